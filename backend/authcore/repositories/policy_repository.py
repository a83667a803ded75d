"""
Policy Graph Repository
Named read queries for the role -> policy -> endpoint joins used by the
decision path and the matrix views.
"""

from typing import Any, Iterable, List, Mapping

from ..models.authorization_models import (
    EndpointPolicyLink,
    PolicyEndpointMapping,
    PolicyRecord,
    PolicyType,
    RolePolicyGrant,
)
from ..utils.query_builder import QueryBuilder
from .base_repository import BaseRepository
from .endpoint_repository import ENDPOINT_COLUMNS, endpoint_from_row

GRANT_COLUMNS = ("r.id AS role_id", "r.name AS role_name", "p.id AS policy_id", "p.name AS policy_name", "p.type AS policy_type")


def policy_from_row(row: Mapping[str, Any]) -> PolicyRecord:
    return PolicyRecord(
        id=row["id"],
        name=row["name"],
        description=row["description"],
        type=(row["type"] or PolicyType.RBAC.value).upper(),
        is_active=bool(row["is_active"]),
    )


class PolicyRepository(BaseRepository):
    """Reads policies and their links to roles and endpoints"""

    def _grant_query(self) -> QueryBuilder:
        # Role(active) x RolePolicy(active) x Policy(active)
        return (
            QueryBuilder("role_policies rp")
            .select(*GRANT_COLUMNS)
            .join("roles r", "r.id = rp.role_id", "INNER")
            .join("policies p", "p.id = rp.policy_id", "INNER")
            .where("rp.is_active = :rp_active", True, "rp_active")
            .where("r.is_active = :r_active", True, "r_active")
            .where("p.is_active = :p_active", True, "p_active")
        )

    def grants_for_role_names(self, role_names: Iterable[str]) -> List[RolePolicyGrant]:
        """
        Active policies held by the named roles.

        Role names are compared with exact string equality.

        Args:
            role_names: Role names as carried by the caller

        Returns:
            One grant per (role, policy) pair
        """
        builder = self._grant_query().where_in("r.name", sorted(set(role_names)), "role_name").order_by("p.id")
        return [RolePolicyGrant(**dict(row)) for row in self._fetch_all("grants_for_role_names", builder)]

    def grants_for_user(self, user_id: int) -> List[RolePolicyGrant]:
        """UserRole x Role(active) x RolePolicy(active) x Policy(active) for one user"""
        builder = (
            self._grant_query()
            .join("user_roles ur", "ur.role_id = r.id", "INNER")
            .where("ur.user_id = :user_id", user_id, "user_id")
            .order_by("r.name")
            .order_by("p.id")
        )
        return [RolePolicyGrant(**dict(row)) for row in self._fetch_all("grants_for_user", builder)]

    def active_links_for_endpoint(self, endpoint_id: int) -> List[EndpointPolicyLink]:
        """EndpointPolicy x Policy(active) for one endpoint"""
        builder = (
            QueryBuilder("endpoint_policies ep")
            .select("ep.endpoint_id", "p.id AS policy_id", "p.name AS policy_name", "p.type AS policy_type")
            .join("policies p", "p.id = ep.policy_id", "INNER")
            .where("ep.endpoint_id = :endpoint_id", endpoint_id, "endpoint_id")
            .where("p.is_active = :p_active", True, "p_active")
            .order_by("p.id")
        )
        return [EndpointPolicyLink(**dict(row)) for row in self._fetch_all("policies_for_endpoint", builder)]

    def count_links_for_endpoint(self, endpoint_id: int) -> int:
        """Number of EndpointPolicy rows for an endpoint, whatever the policy state"""
        builder = QueryBuilder("endpoint_policies ep").where("ep.endpoint_id = :endpoint_id", endpoint_id, "endpoint_id")
        return self._count("endpoint_policy_link_count", builder)

    def find_active_policies(self) -> List[PolicyRecord]:
        builder = (
            QueryBuilder("policies p")
            .select("p.id", "p.name", "p.description", "p.type", "p.is_active")
            .where("p.is_active = :p_active", True, "p_active")
            .order_by("p.id")
        )
        return [policy_from_row(row) for row in self._fetch_all("active_policies", builder)]

    def load_policy_endpoint_mapping(self) -> PolicyEndpointMapping:
        """
        Active policies, active endpoints, and the links between them.

        Two queries: the active policy list and the
        EndpointPolicy x Policy(active) x Endpoint(active) join.
        """
        mapping = PolicyEndpointMapping()
        for policy in self.find_active_policies():
            mapping.active_policies_by_id[policy.id] = policy

        builder = (
            QueryBuilder("endpoint_policies ep")
            .select("ep.policy_id AS link_policy_id", *ENDPOINT_COLUMNS)
            .join("endpoints e", "e.id = ep.endpoint_id", "INNER")
            .join("policies p", "p.id = ep.policy_id", "INNER")
            .where("e.is_active = :e_active", True, "e_active")
            .where("p.is_active = :p_active", True, "p_active")
            .order_by("ep.policy_id")
            .order_by("e.id")
        )
        for row in self._fetch_all("policy_endpoint_links", builder):
            endpoint = endpoint_from_row(row)
            mapping.active_endpoints_by_id[endpoint.id] = endpoint
            mapping.endpoints_by_policy_id.setdefault(row["link_policy_id"], []).append(endpoint)

        return mapping
