"""
Catalog Service - endpoint and page discovery

User-independent views of the endpoint catalog and the UI page hierarchy,
including the deduplicated endpoints a page's actions call.
"""

import logging
from typing import Any, Dict, List, Optional

from sqlalchemy.orm import Session

from ...models.authorization_models import EndpointDescriptor, PageRecord
from ...repositories.endpoint_repository import EndpointRepository
from ...repositories.ui_repository import UIRepository
from ...repositories.user_repository import UserRepository
from .exceptions import InvalidRequestError, ResourceNotFoundError
from .matrix_builder import order_page_tree

logger = logging.getLogger(__name__)


def endpoint_summary(endpoint: EndpointDescriptor) -> Dict[str, Any]:
    return {
        "id": endpoint.id,
        "method": endpoint.method,
        "path": endpoint.path,
        "service": endpoint.service,
        "version": endpoint.version,
        "description": endpoint.description,
        "ui_type": endpoint.ui_type,
    }


def page_summary(page: PageRecord) -> Dict[str, Any]:
    return {
        "id": page.id,
        "parentId": page.parent_id,
        "key": page.key,
        "label": page.label,
        "route": page.route,
        "icon": page.icon,
        "module": page.module,
        "displayOrder": page.display_order,
        "isMenuItem": page.is_menu_item,
    }


class CatalogService:
    """Endpoint catalog and page hierarchy discovery"""

    def __init__(self, db: Session):
        self.db = db
        self.endpoints = EndpointRepository(db)
        self.ui = UIRepository(db)
        self.users = UserRepository(db)

    def list_endpoints(self) -> List[Dict[str, Any]]:
        """Active cataloged endpoints ordered by service, version, path, method"""
        return [endpoint_summary(endpoint) for endpoint in self.endpoints.find_all(active_only=True)]

    def endpoints_for_page(self, page_id: Optional[int]) -> List[Dict[str, Any]]:
        """
        Endpoints referenced by a page's active actions.

        Deduplicated by endpoint id; the first action (by display order)
        referencing an endpoint fixes its position.

        Args:
            page_id: UI page id

        Returns:
            Endpoint summaries

        Raises:
            InvalidRequestError: If page_id is missing
            ResourceNotFoundError: If the page is absent or inactive
        """
        if page_id is None:
            raise InvalidRequestError("page_id is required", field="page_id")

        page = self.ui.find_page(page_id)
        if page is None or not page.is_active:
            raise ResourceNotFoundError("page", page_id)

        ordered_ids: List[int] = []
        for action in self.ui.find_active_actions(page_id):
            if action.endpoint_id is not None and action.endpoint_id not in ordered_ids:
                ordered_ids.append(action.endpoint_id)
        if not ordered_ids:
            return []

        endpoints = {endpoint.id: endpoint for endpoint in self.endpoints.find_by_ids(ordered_ids)}
        return [endpoint_summary(endpoints[eid]) for eid in ordered_ids if eid in endpoints]

    def page_hierarchy(self) -> List[Dict[str, Any]]:
        """Active pages as a nested tree (children under each parent)"""
        pages = order_page_tree(self.ui.find_active_pages())
        nodes: Dict[int, Dict[str, Any]] = {}
        roots: List[Dict[str, Any]] = []

        for page in pages:
            node = page_summary(page)
            node["children"] = []
            nodes[page.id] = node

        # order_page_tree places parents before children
        emitted = set()
        for page in pages:
            if page.parent_id in emitted:
                nodes[page.parent_id]["children"].append(nodes[page.id])
            else:
                roots.append(nodes[page.id])
            emitted.add(page.id)
        return roots

    def service_catalog(self) -> Dict[str, Any]:
        """Full catalog: active endpoints plus the page hierarchy"""
        return {"endpoints": self.list_endpoints(), "pages": self.page_hierarchy()}

    def roles_summary(self) -> List[Dict[str, Any]]:
        """Active roles with their active policy and member counts"""
        return [
            {
                "id": row["id"],
                "name": row["name"],
                "description": row["description"],
                "policyCount": int(row["policy_count"] or 0),
                "userCount": int(row["user_count"] or 0),
            }
            for row in self.users.active_roles_with_counts()
        ]
