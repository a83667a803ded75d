"""
Endpoint Catalog Repository
Named read queries over the endpoints table.
"""

from typing import Any, Iterable, List, Mapping, Optional

from ..models.authorization_models import EndpointDescriptor
from ..utils.query_builder import QueryBuilder
from .base_repository import BaseRepository

ENDPOINT_COLUMNS = (
    "e.id",
    "e.service",
    "e.version",
    "e.method",
    "e.path",
    "e.is_active",
    "e.description",
    "e.ui_type",
)


def endpoint_from_row(row: Mapping[str, Any]) -> EndpointDescriptor:
    return EndpointDescriptor(
        id=row["id"],
        service=row["service"] or "",
        version=row["version"] or "",
        method=(row["method"] or "").upper(),
        path=row["path"] or "",
        is_active=bool(row["is_active"]),
        description=row["description"],
        ui_type=row["ui_type"],
    )


class EndpointRepository(BaseRepository):
    """Reads cataloged endpoints"""

    def _base_query(self) -> QueryBuilder:
        return QueryBuilder("endpoints e").select(*ENDPOINT_COLUMNS)

    def find_by_method(self, method: str) -> List[EndpointDescriptor]:
        """
        All endpoints (active or not) for an HTTP method, in insertion order.

        Args:
            method: Upper-case HTTP method

        Returns:
            Endpoint descriptors ordered by id
        """
        builder = self._base_query().where("UPPER(e.method) = :method", method.upper(), "method").order_by("e.id")
        return [endpoint_from_row(row) for row in self._fetch_all("endpoints_by_method", builder)]

    def find_by_id(self, endpoint_id: int) -> Optional[EndpointDescriptor]:
        builder = self._base_query().where("e.id = :endpoint_id", endpoint_id, "endpoint_id")
        row = self._fetch_one("endpoint_by_id", builder)
        return endpoint_from_row(row) if row else None

    def find_by_ids(self, endpoint_ids: Iterable[int]) -> List[EndpointDescriptor]:
        builder = self._base_query().where_in("e.id", sorted(set(endpoint_ids)), "endpoint_id").order_by("e.id")
        return [endpoint_from_row(row) for row in self._fetch_all("endpoints_by_ids", builder)]

    def find_all(self, active_only: bool = True) -> List[EndpointDescriptor]:
        """Catalog listing ordered by service, version, path and method"""
        builder = self._base_query()
        if active_only:
            builder.where("e.is_active = :active", True, "active")
        builder.order_by("e.service").order_by("e.version").order_by("e.path").order_by("e.method")
        return [endpoint_from_row(row) for row in self._fetch_all("endpoints_catalog", builder)]
