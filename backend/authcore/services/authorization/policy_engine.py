"""
Policy Engine - role set x endpoint -> allow/deny

Access to an endpoint is granted when the policies held by the caller's roles
intersect the policies guarding the endpoint. Only active RBAC policies count
on either side; ABAC and CUSTOM policies are denied by default and the legacy
JSON ``expression`` column is never read.
"""

import logging
from typing import Iterable, Set

from sqlalchemy.orm import Session

from ...models.authorization_models import PolicyType
from ...repositories.endpoint_repository import EndpointRepository
from ...repositories.policy_repository import PolicyRepository
from ...utils.logging_security import sanitize_for_log

logger = logging.getLogger(__name__)


class PolicyEngine:
    """
    Intersects granted and required policy sets.

    Pure over its inputs plus the session's snapshot of the policy graph.
    """

    def __init__(self, db: Session):
        self.db = db
        self.policy_repository = PolicyRepository(db)
        self.endpoint_repository = EndpointRepository(db)

    def required_policy_ids(self, endpoint_id: int) -> Set[int]:
        """Active RBAC policies guarding an active endpoint (empty if the endpoint is inactive or absent)"""
        endpoint = self.endpoint_repository.find_by_id(endpoint_id)
        if endpoint is None or not endpoint.is_active:
            return set()
        return {
            link.policy_id
            for link in self.policy_repository.active_links_for_endpoint(endpoint_id)
            if (link.policy_type or "").upper() == PolicyType.RBAC.value
        }

    def granted_policy_ids(self, role_names: Iterable[str]) -> Set[int]:
        """Active RBAC policies held by the named (active) roles, exact name match"""
        return {
            grant.policy_id
            for grant in self.policy_repository.grants_for_role_names(role_names)
            if (grant.policy_type or "").upper() == PolicyType.RBAC.value
        }

    def evaluate(self, role_names: Iterable[str], endpoint_id: int) -> bool:
        """
        Decide whether any of the roles may call the endpoint.

        Args:
            role_names: Caller's effective role names
            endpoint_id: Cataloged endpoint id

        Returns:
            True iff required and granted policy sets intersect; False on any error
        """
        role_names = {name for name in (role_names or []) if name}
        if not role_names:
            logger.debug(f"Policy evaluation for endpoint {endpoint_id}: no roles, denying")
            return False

        try:
            required = self.required_policy_ids(endpoint_id)
            if not required:
                logger.debug(f"Endpoint {endpoint_id} has no active policies, denying")
                return False

            granted = self.granted_policy_ids(role_names)
            allowed = bool(required & granted)

            logger.debug(
                f"Policy evaluation for endpoint {endpoint_id} roles "
                f"{sanitize_for_log(sorted(role_names), allow_special=True)}: "
                f"required={sorted(required)} granted={sorted(granted)} allowed={allowed}"
            )
            return allowed

        except Exception as e:
            # Fail secure
            logger.error(f"Policy evaluation failed for endpoint {endpoint_id}: {e}")
            return False
