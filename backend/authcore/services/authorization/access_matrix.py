"""
Access Matrix Service - administrative audit views

Two read-only snapshots built from the same joins as the decision path:

    user access matrix   role -> policy -> endpoint -> page actions, per user
    ui access matrix     page -> action -> endpoint, per page

User matrix branches without endpoints are pruned. The UI matrix describes every
endpoint an action references, inactive ones included. The "all users" / "all pages" variants
fold over the single-entity builders and skip entries that fail to resolve.
"""

import logging
from datetime import datetime
from typing import Any, Dict, List, Optional

from sqlalchemy.orm import Session

from ...models.authorization_models import (
    EndpointDescriptor,
    PageActionRecord,
    PageRecord,
    PolicyEndpointMapping,
)
from ...repositories.endpoint_repository import EndpointRepository
from ...repositories.policy_repository import PolicyRepository
from ...repositories.ui_repository import UIRepository
from ...repositories.user_repository import UserRepository
from .exceptions import InvalidRequestError, ResourceNotFoundError
from .matrix_builder import current_millis

logger = logging.getLogger(__name__)


def _page_ref(page: PageRecord) -> Dict[str, Any]:
    return {"key": page.key, "label": page.label, "route": page.route}


def _endpoint_ref(endpoint: EndpointDescriptor) -> Dict[str, Any]:
    return {
        "service": endpoint.service,
        "version": endpoint.version,
        "method": endpoint.method,
        "path": endpoint.path,
    }


def _action_sort_key(action: PageActionRecord):
    # display order first (missing orders last), then label
    missing = action.display_order is None
    return (missing, action.display_order or 0, (action.label or "").lower(), action.id)


def _endpoint_sort_key(endpoint: EndpointDescriptor):
    return ((endpoint.service or "").lower(), (endpoint.path or "").lower(), (endpoint.method or "").lower(), endpoint.id)


def _snapshot_header() -> Dict[str, Any]:
    return {"generated_at": datetime.utcnow().isoformat() + "Z", "version": current_millis()}


class AccessMatrixService:
    """Builds the user and UI access matrices"""

    def __init__(self, db: Session):
        self.db = db
        self.users = UserRepository(db)
        self.policies = PolicyRepository(db)
        self.endpoints = EndpointRepository(db)
        self.ui = UIRepository(db)

    def _actions_by_endpoint(self) -> Dict[int, List[Dict[str, Any]]]:
        """Active actions on active pages, grouped by endpoint id and sorted"""
        pages = {page.id: page for page in self.ui.find_active_pages()}
        grouped: Dict[int, List[PageActionRecord]] = {}
        for action in self.ui.find_active_actions():
            if action.endpoint_id is None or action.page_id not in pages:
                continue
            grouped.setdefault(action.endpoint_id, []).append(action)

        result: Dict[int, List[Dict[str, Any]]] = {}
        for endpoint_id, actions in grouped.items():
            seen = set()
            views = []
            for action in sorted(actions, key=_action_sort_key):
                if action.id in seen:
                    continue
                seen.add(action.id)
                views.append(
                    {
                        "action": action.action,
                        "label": action.label,
                        "page": _page_ref(pages[action.page_id]),
                    }
                )
            result[endpoint_id] = views
        return result

    def build_user_access_matrix(
        self,
        user_id: Optional[int],
        mapping: Optional[PolicyEndpointMapping] = None,
        actions_by_endpoint: Optional[Dict[int, List[Dict[str, Any]]]] = None,
    ) -> Dict[str, Any]:
        """
        Role -> policy -> endpoint -> page action view for one user.

        Args:
            user_id: User id
            mapping: Preloaded policy/endpoint mapping (batch callers)
            actions_by_endpoint: Preloaded action index (batch callers)

        Returns:
            Matrix dict with generated_at, version, filters and roles

        Raises:
            InvalidRequestError: If user_id is missing
            ResourceNotFoundError: If the user does not exist
        """
        if user_id is None:
            raise InvalidRequestError("user_id is required", field="user_id")

        user = self.users.find_by_id(user_id)
        if user is None:
            raise ResourceNotFoundError("user", user_id)

        mapping = mapping or self.policies.load_policy_endpoint_mapping()
        if actions_by_endpoint is None:
            actions_by_endpoint = self._actions_by_endpoint()

        policies_by_role: Dict[int, List[int]] = {}
        for grant in self.policies.grants_for_user(user_id):
            policies_by_role.setdefault(grant.role_id, []).append(grant.policy_id)

        roles = []
        for role in self.users.active_roles_for_user(user_id):
            policy_views = []
            for policy_id in dict.fromkeys(policies_by_role.get(role.id, [])):
                policy = mapping.active_policies_by_id.get(policy_id)
                endpoints = mapping.endpoints_by_policy_id.get(policy_id, [])
                if policy is None or not endpoints:
                    continue
                endpoint_views = []
                for endpoint in sorted({e.id: e for e in endpoints}.values(), key=_endpoint_sort_key):
                    view = _endpoint_ref(endpoint)
                    view["page_actions"] = actions_by_endpoint.get(endpoint.id, [])
                    endpoint_views.append(view)
                policy_views.append(
                    {"name": policy.name, "description": policy.description, "endpoints": endpoint_views}
                )

            if not policy_views:
                continue
            policy_views.sort(key=lambda p: (p["name"] or "").lower())
            roles.append({"name": role.name, "description": role.description, "policies": policy_views})

        roles.sort(key=lambda r: (r["name"] or "").lower())

        matrix = _snapshot_header()
        matrix["filters"] = {"user_id": user_id}
        matrix["roles"] = roles
        return matrix

    def build_all_user_access_matrices(self) -> Dict[str, Any]:
        """User access matrix for every user, skipping users that fail to resolve"""
        mapping = self.policies.load_policy_endpoint_mapping()
        actions_by_endpoint = self._actions_by_endpoint()

        users = []
        for user in self.users.find_all():
            try:
                users.append(self.build_user_access_matrix(user.id, mapping, actions_by_endpoint))
            except Exception as e:
                logger.warning(f"Skipping user {user.id} in access matrix: {e}")

        snapshot = _snapshot_header()
        snapshot["users"] = users
        return snapshot

    def build_ui_access_matrix(self, page_id: Optional[int]) -> Dict[str, Any]:
        """
        Page -> action -> endpoint view for one page.

        Args:
            page_id: UI page id

        Returns:
            Matrix dict with generated_at, version, page_id, page and actions

        Raises:
            InvalidRequestError: If page_id is missing
            ResourceNotFoundError: If the page is absent or inactive
        """
        if page_id is None:
            raise InvalidRequestError("page_id is required", field="page_id")

        page = self.ui.find_page(page_id)
        if page is None or not page.is_active:
            raise ResourceNotFoundError("page", page_id)

        actions = sorted(self.ui.find_active_actions(page_id), key=_action_sort_key)
        endpoint_ids = {a.endpoint_id for a in actions if a.endpoint_id is not None}
        endpoints = {e.id: e for e in self.endpoints.find_by_ids(endpoint_ids)} if endpoint_ids else {}

        action_views = []
        for action in actions:
            view: Dict[str, Any] = {"label": action.label, "action": action.action}
            endpoint = endpoints.get(action.endpoint_id) if action.endpoint_id is not None else None
            if endpoint is not None:
                view["endpoint"] = _endpoint_ref(endpoint)
            action_views.append(view)

        matrix = _snapshot_header()
        matrix["page_id"] = page.id
        matrix["page"] = _page_ref(page)
        matrix["actions"] = action_views
        return matrix

    def build_all_ui_access_matrices(self) -> Dict[str, Any]:
        """UI access matrix for every active page, skipping pages that fail to resolve"""
        pages = []
        for page in self.ui.find_active_pages():
            try:
                pages.append(self.build_ui_access_matrix(page.id))
            except Exception as e:
                logger.warning(f"Skipping page {page.id} in UI access matrix: {e}")

        snapshot = _snapshot_header()
        snapshot["pages"] = pages
        return snapshot
