"""
UI Graph Repository
Read queries for navigable pages and their actions.
"""

from typing import Any, List, Mapping, Optional

from ..models.authorization_models import PageActionRecord, PageRecord
from ..utils.query_builder import QueryBuilder
from .base_repository import BaseRepository

PAGE_COLUMNS = (
    "pg.id",
    "pg.parent_id",
    "pg.key",
    "pg.label",
    "pg.route",
    "pg.icon",
    "pg.module",
    "pg.display_order",
    "pg.is_menu_item",
    "pg.is_active",
)

ACTION_COLUMNS = (
    "pa.id",
    "pa.page_id",
    "pa.endpoint_id",
    "pa.label",
    "pa.action",
    "pa.icon",
    "pa.variant",
    "pa.display_order",
    "pa.is_active",
)


def page_from_row(row: Mapping[str, Any]) -> PageRecord:
    return PageRecord(
        id=row["id"],
        parent_id=row["parent_id"],
        key=row["key"],
        label=row["label"],
        route=row["route"],
        icon=row["icon"],
        module=row["module"],
        display_order=row["display_order"] or 0,
        is_menu_item=bool(row["is_menu_item"]),
        is_active=bool(row["is_active"]),
    )


def action_from_row(row: Mapping[str, Any]) -> PageActionRecord:
    return PageActionRecord(
        id=row["id"],
        page_id=row["page_id"],
        endpoint_id=row["endpoint_id"],
        label=row["label"],
        action=row["action"],
        icon=row["icon"],
        variant=row["variant"],
        display_order=row["display_order"],
        is_active=bool(row["is_active"]),
    )


class UIRepository(BaseRepository):
    """Reads UI pages and page actions"""

    def find_active_pages(self) -> List[PageRecord]:
        """Active pages ordered by display order (id breaks ties)"""
        builder = (
            QueryBuilder("ui_pages pg")
            .select(*PAGE_COLUMNS)
            .where("pg.is_active = :active", True, "active")
            .order_by("pg.display_order")
            .order_by("pg.id")
        )
        return [page_from_row(row) for row in self._fetch_all("active_pages", builder)]

    def find_page(self, page_id: int) -> Optional[PageRecord]:
        builder = QueryBuilder("ui_pages pg").select(*PAGE_COLUMNS).where("pg.id = :page_id", page_id, "page_id")
        row = self._fetch_one("page_by_id", builder)
        return page_from_row(row) if row else None

    def find_active_actions(self, page_id: Optional[int] = None) -> List[PageActionRecord]:
        """
        Active page actions, optionally for a single page.

        Args:
            page_id: Restrict to one page when given

        Returns:
            Actions ordered by page, display order and id
        """
        builder = QueryBuilder("page_actions pa").select(*ACTION_COLUMNS).where("pa.is_active = :active", True, "active")
        if page_id is not None:
            builder.where("pa.page_id = :page_id", page_id, "page_id")
        builder.order_by("pa.page_id").order_by("pa.display_order").order_by("pa.id")
        return [action_from_row(row) for row in self._fetch_all("active_actions", builder)]
