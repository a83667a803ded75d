"""
Endpoint Authorization Service

Combines the endpoint matcher with the endpoint -> policy links to answer
"what does the catalog know about this request line".
"""

import logging
from typing import Any, Dict, Optional

from sqlalchemy.orm import Session

from ...models.authorization_models import EndpointAuthorizationMetadata, EndpointDescriptor
from ...repositories.endpoint_repository import EndpointRepository
from ...repositories.policy_repository import PolicyRepository
from .endpoint_matcher import EndpointMatcher
from .exceptions import ResourceNotFoundError

logger = logging.getLogger(__name__)


class EndpointAuthorizationService:
    """Request-line and endpoint-id lookups against the catalog"""

    def __init__(self, db: Session, matcher: EndpointMatcher):
        self.db = db
        self.matcher = matcher
        self.endpoints = EndpointRepository(db)
        self.policies = PolicyRepository(db)

    def find_endpoint(self, method: Optional[str], path: Optional[str]) -> Optional[EndpointDescriptor]:
        return self.matcher.find_matching_endpoint(self.db, method, path)

    def metadata_for_endpoint(self, endpoint: EndpointDescriptor) -> EndpointAuthorizationMetadata:
        """Metadata for an already resolved endpoint"""
        if not endpoint.is_active:
            return EndpointAuthorizationMetadata(endpoint_found=True, endpoint_id=endpoint.id, has_policies=False)

        policy_ids = {link.policy_id for link in self.policies.active_links_for_endpoint(endpoint.id)}
        return EndpointAuthorizationMetadata(
            endpoint_found=True,
            endpoint_id=endpoint.id,
            has_policies=bool(policy_ids),
            policy_ids=policy_ids,
        )

    def get_endpoint_authorization_metadata(
        self, method: Optional[str], path: Optional[str]
    ) -> EndpointAuthorizationMetadata:
        """
        Resolve a request line and report the endpoint's active policies.

        Args:
            method: HTTP method (defaults to GET)
            path: Request URI

        Returns:
            Metadata with endpoint_found False when nothing matches
        """
        endpoint = self.find_endpoint(method, path)
        if endpoint is None:
            return EndpointAuthorizationMetadata.not_found()
        return self.metadata_for_endpoint(endpoint)

    def get_endpoint_with_policies(self, endpoint_id: int) -> Dict[str, Any]:
        """
        Endpoint by id with the ids of its active policies.

        Raises:
            ResourceNotFoundError: If no endpoint has this id
        """
        endpoint = self.endpoints.find_by_id(endpoint_id)
        if endpoint is None:
            raise ResourceNotFoundError("endpoint", endpoint_id)

        detail = endpoint.to_dict()
        detail["policyIds"] = sorted(link.policy_id for link in self.policies.active_links_for_endpoint(endpoint_id))
        return detail
