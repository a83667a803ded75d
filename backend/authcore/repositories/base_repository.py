"""
Base Repository for SQL Read Models

Provides query execution for the policy graph repositories: every query is
built with QueryBuilder, executed through ``sqlalchemy.text`` on the request's
session, timed, and logged. Rows come back as plain mappings; subclasses turn
them into the record dataclasses of ``authcore.models``.
"""

import logging
import time
from typing import Any, Dict, List, Mapping, Optional

from sqlalchemy import text
from sqlalchemy.orm import Session

from ..utils.query_builder import QueryBuilder


class BaseRepository:
    """
    Base repository wrapping a SQLAlchemy session.

    Features:
    - Consistent error handling and logging
    - Performance monitoring for slow queries
    - Named queries so slow-query warnings say which read was slow

    Example:
        class EndpointRepository(BaseRepository):
            def find_by_method(self, method):
                builder = QueryBuilder("endpoints e").where("e.method = :method", method, "method")
                return self._fetch_all("find_by_method", builder)
    """

    def __init__(self, db: Session):
        """
        Initialize repository with a database session.

        Args:
            db: SQLAlchemy session scoped to the current request
        """
        self.db = db
        self.logger = logging.getLogger(f"{__name__}.{type(self).__name__}")
        self._slow_query_threshold = 1.0  # seconds

    def _fetch_all(self, operation: str, builder: QueryBuilder) -> List[Mapping[str, Any]]:
        """
        Execute a built query and return every row as a mapping.

        Args:
            operation: Query name used in logs
            builder: Fully configured QueryBuilder

        Returns:
            List of row mappings

        Raises:
            Exception: If database operation fails
        """
        query, params = builder.build()
        start_time = time.time()
        try:
            rows = self.db.execute(text(query), params).mappings().all()

            self._log_query_performance(
                operation=operation,
                params=params,
                duration=time.time() - start_time,
                result_count=len(rows),
            )

            return list(rows)
        except Exception as e:
            self.logger.error(f"Error in {operation}: {e}")
            raise

    def _fetch_one(self, operation: str, builder: QueryBuilder) -> Optional[Mapping[str, Any]]:
        """Execute a built query and return the first row, or None"""
        rows = self._fetch_all(operation, builder)
        return rows[0] if rows else None

    def _count(self, operation: str, builder: QueryBuilder) -> int:
        """Execute the COUNT form of a built query"""
        query, params = builder.count_query()
        start_time = time.time()
        try:
            total = self.db.execute(text(query), params).scalar()

            self._log_query_performance(
                operation=operation,
                params=params,
                duration=time.time() - start_time,
            )

            return int(total or 0)
        except Exception as e:
            self.logger.error(f"Error in {operation}: {e}")
            raise

    def _log_query_performance(
        self,
        operation: str,
        params: Dict[str, Any],
        duration: float,
        result_count: Optional[int] = None,
    ):
        """
        Log query performance and warn about slow queries.

        Args:
            operation: Query name
            params: Bound parameters
            duration: Query duration in seconds
            result_count: Number of results (if applicable)
        """
        log_msg = f"{operation} completed in {duration:.3f}s"

        if result_count is not None:
            log_msg += f" ({result_count} results)"

        if duration > self._slow_query_threshold:
            self.logger.warning(f"SLOW QUERY: {log_msg} - Params: {sorted(params)}")
        else:
            self.logger.debug(log_msg)
