"""
Matrix Builder - per-user authorization views

Builds the enforcement matrix (roles, policy names, permission version) used
by the request gate, and the user-facing pages/actions tree that drives
client-side UI gating. Both are computed from a handful of bulk queries and
composed in memory.
"""

import logging
import time
from typing import Any, Dict, Iterable, List, Optional, Set

from sqlalchemy.orm import Session

from ...models.authorization_models import (
    AuthorizationMatrix,
    PageActionRecord,
    PageRecord,
    PolicyEndpointMapping,
    PolicyType,
    RolePolicyGrant,
    UserRecord,
)
from ...repositories.policy_repository import PolicyRepository
from ...repositories.ui_repository import UIRepository
from ...repositories.user_repository import UserRepository
from .exceptions import ResourceNotFoundError

logger = logging.getLogger(__name__)


def current_millis() -> int:
    return int(time.time() * 1000)


def _grants_access(grant: RolePolicyGrant) -> bool:
    return (grant.policy_type or "").upper() == PolicyType.RBAC.value


def order_page_tree(pages: Iterable[PageRecord]) -> List[PageRecord]:
    """
    Order pages so every parent directly precedes its subtree.

    Roots (no parent, or a parent absent from the set) come first by
    display order; each page is followed by its children, also by display
    order, so siblings under different parents stay grouped by their
    parent's position.
    """
    pages = list(pages)
    present = {page.id for page in pages}
    children: Dict[Optional[int], List[PageRecord]] = {}
    for page in pages:
        parent = page.parent_id if page.parent_id in present else None
        children.setdefault(parent, []).append(page)
    for siblings in children.values():
        siblings.sort(key=lambda p: (p.display_order, p.id))

    ordered: List[PageRecord] = []
    visited: Set[int] = set()

    def visit(page: PageRecord) -> None:
        if page.id in visited:
            return
        visited.add(page.id)
        ordered.append(page)
        for child in children.get(page.id, []):
            visit(child)

    for root in children.get(None, []):
        visit(root)
    # Pages caught in a parent cycle never reach a root; keep them rather than drop them
    for page in sorted(pages, key=lambda p: (p.display_order, p.id)):
        visit(page)
    return ordered


def page_view(page: PageRecord, actions: List[PageActionRecord]) -> Dict[str, Any]:
    return {
        "id": page.id,
        "name": page.label,
        "path": page.route,
        "parentId": page.parent_id,
        "icon": page.icon,
        "displayOrder": page.display_order,
        "isMenuItem": page.is_menu_item,
        "actions": [
            {
                "name": action.action,
                "label": action.label,
                "icon": action.icon,
                "variant": action.variant,
                "endpointId": action.endpoint_id,
            }
            for action in actions
        ],
    }


class MatrixBuilder:
    """
    Computes a user's enforcement matrix and pages/actions tree.

    Example:
        builder = MatrixBuilder(db)
        matrix = builder.build_authorization_matrix(user_id=42)
        payload = builder.build_user_authorizations(user_id=42)
    """

    def __init__(self, db: Session):
        self.db = db
        self.users = UserRepository(db)
        self.policies = PolicyRepository(db)
        self.ui = UIRepository(db)

    def _require_user(self, user_id: int) -> UserRecord:
        user = self.users.find_by_id(user_id)
        if user is None:
            raise ResourceNotFoundError("user", user_id)
        return user

    def build_authorization_matrix(self, user_id: int) -> AuthorizationMatrix:
        """
        Enforcement matrix for a user.

        Args:
            user_id: User id

        Returns:
            AuthorizationMatrix with active role names and the names of active
            policies reachable through active role-policy assignments

        Raises:
            ResourceNotFoundError: If the user does not exist
        """
        user = self._require_user(user_id)
        roles = {role.name for role in self.users.active_roles_for_user(user_id)}
        policies = {grant.policy_name for grant in self.policies.grants_for_user(user_id)}

        return AuthorizationMatrix(
            user_id=user.id,
            permission_version=user.permission_version,
            roles=roles,
            policies=policies,
        )

    def user_policy_ids(self, user_id: int) -> Set[int]:
        """Active RBAC policies the user holds through active roles"""
        return {grant.policy_id for grant in self.policies.grants_for_user(user_id) if _grants_access(grant)}

    def accessible_endpoint_ids(
        self, role_names: Iterable[str], mapping: Optional[PolicyEndpointMapping] = None
    ) -> Set[int]:
        """
        Active endpoints reachable from a set of role names.

        Args:
            role_names: Role names (exact match)
            mapping: Preloaded policy/endpoint mapping, loaded if omitted

        Returns:
            Endpoint ids
        """
        role_names = [name for name in role_names if name]
        if not role_names:
            return set()
        policy_ids = {
            grant.policy_id for grant in self.policies.grants_for_role_names(role_names) if _grants_access(grant)
        }
        mapping = mapping or self.policies.load_policy_endpoint_mapping()
        return mapping.endpoint_ids_for_policies(policy_ids)

    def user_endpoint_ids(self, user_id: int, mapping: Optional[PolicyEndpointMapping] = None) -> Set[int]:
        """Union of endpoints of every policy the user holds"""
        policy_ids = self.user_policy_ids(user_id)
        if not policy_ids:
            return set()
        mapping = mapping or self.policies.load_policy_endpoint_mapping()
        return mapping.endpoint_ids_for_policies(policy_ids)

    def build_page_tree(self, endpoint_ids: Set[int]) -> List[Dict[str, Any]]:
        """
        Pages/actions visible for a set of accessible endpoint ids.

        Active actions are kept when their endpoint is accessible; a page is
        included when it keeps at least one action. Ancestors of included
        pages are then added with no actions so the navigation tree stays
        connected.

        Args:
            endpoint_ids: Endpoint ids the caller may invoke

        Returns:
            Page views ordered parent-first
        """
        pages = self.ui.find_active_pages()
        pages_by_id = {page.id: page for page in pages}

        actions_by_page: Dict[int, List[PageActionRecord]] = {}
        for action in self.ui.find_active_actions():
            if action.endpoint_id is not None and action.endpoint_id in endpoint_ids:
                actions_by_page.setdefault(action.page_id, []).append(action)

        included: Dict[int, PageRecord] = {}
        for page in pages:
            if actions_by_page.get(page.id):
                included[page.id] = page

        # Parent fill-in, repeated until every included page's parent is present
        pending = [page.parent_id for page in included.values() if page.parent_id is not None]
        while pending:
            parent_id = pending.pop()
            if parent_id in included:
                continue
            parent = pages_by_id.get(parent_id) or self.ui.find_page(parent_id)
            if parent is None:
                logger.warning(f"Page parent {parent_id} referenced but not found")
                continue
            included[parent.id] = parent
            if parent.parent_id is not None:
                pending.append(parent.parent_id)

        for page_actions in actions_by_page.values():
            page_actions.sort(key=lambda a: (a.display_order if a.display_order is not None else 0, a.id))

        return [page_view(page, actions_by_page.get(page.id, [])) for page in order_page_tree(included.values())]

    def build_user_authorizations(self, user_id: int) -> Dict[str, Any]:
        """
        User-facing authorization payload.

        Args:
            user_id: User id

        Returns:
            Dict with userId, username, roles, permissionVersion, version
            (generation time in millis) and pages

        Raises:
            ResourceNotFoundError: If the user does not exist
        """
        user = self._require_user(user_id)
        roles = sorted(role.name for role in self.users.active_roles_for_user(user_id))
        endpoint_ids = self.user_endpoint_ids(user_id)

        pages = self.build_page_tree(endpoint_ids)
        logger.debug(f"Built {len(pages)} pages for user {user_id} from {len(endpoint_ids)} endpoints")

        return {
            "userId": user.id,
            "username": user.username,
            "roles": roles,
            "permissionVersion": user.permission_version,
            "version": current_millis(),
            "pages": pages,
        }
