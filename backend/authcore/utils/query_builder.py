"""
QueryBuilder Utility - Fluent SQL Query Construction
Provides SQL query building with automatic parameterization for the policy graph reads

Security Features:
- Automatic parameter binding (prevents SQL injection)
- IN lists expanded into individually bound parameters
- Join type and sort direction whitelisting

Usage:
    builder = (QueryBuilder("role_policies rp")
        .select("p.id", "p.name")
        .join("roles r", "r.id = rp.role_id", "INNER")
        .join("policies p", "p.id = rp.policy_id", "INNER")
        .where_in("r.name", role_names, "role_name")
        .where("rp.is_active = :rp_active", True, "rp_active")
        .order_by("p.id")
    )

    query, params = builder.build()
    result = db.execute(text(query), params)
"""

from dataclasses import dataclass, field
from typing import Any, Dict, Iterable, List, Optional, Tuple


@dataclass
class QueryBuilder:
    """
    Fluent interface for building SQL queries with security and consistency

    Attributes:
        table: Table name with optional alias (e.g., "endpoints e")
        _select: List of columns to select
        _joins: List of JOIN clauses
        _where: List of WHERE conditions with parameter names
        _order_by: ORDER BY clauses, applied in insertion order
        _params: Dictionary of query parameters
    """

    table: str
    _select: List[str] = field(default_factory=lambda: ["*"])
    _joins: List[str] = field(default_factory=list)
    _where: List[Tuple[str, Optional[str]]] = field(default_factory=list)
    _order_by: List[str] = field(default_factory=list)
    _params: Dict[str, Any] = field(default_factory=dict)

    def select(self, *columns: str) -> "QueryBuilder":
        """
        Specify columns to select

        Args:
            *columns: Column names (e.g., "e.id", "e.path", "COUNT(*) as total")

        Returns:
            Self for method chaining
        """
        self._select = list(columns) if columns else ["*"]
        return self

    def join(self, table: str, on: str, join_type: str = "LEFT") -> "QueryBuilder":
        """
        Add JOIN clause

        Args:
            table: Table name with optional alias (e.g., "policies p")
            on: JOIN condition (e.g., "p.id = ep.policy_id")
            join_type: Type of join (LEFT, INNER, RIGHT, FULL)

        Returns:
            Self for method chaining
        """
        join_type = join_type.upper()
        if join_type not in ("LEFT", "INNER", "RIGHT", "FULL", "CROSS"):
            raise ValueError(f"Invalid join type: {join_type}")

        self._joins.append(f"{join_type} JOIN {table} ON {on}")
        return self

    def where(self, condition: str, value: Any = None, param_name: Optional[str] = None) -> "QueryBuilder":
        """
        Add WHERE condition with parameterization

        Args:
            condition: SQL condition with :param_name placeholders
            value: Value to bind to parameter (None for conditions without params)
            param_name: Parameter name (auto-generated if not provided)

        Returns:
            Self for method chaining

        Example:
            builder.where("e.method = :method", "GET", "method")
            builder.where("e.is_active = :active", True, "active")
        """
        if value is not None:
            if param_name is None:
                param_name = f"param_{len(self._params)}"

            self._where.append((condition, param_name))
            self._params[param_name] = value
        else:
            # Condition without parameters (e.g., "pa.endpoint_id IS NOT NULL")
            self._where.append((condition, None))

        return self

    def where_in(self, column: str, values: Iterable[Any], param_name: Optional[str] = None) -> "QueryBuilder":
        """
        Add an IN condition, binding every value as its own parameter

        An empty value list produces a condition that matches nothing.

        Args:
            column: Column to test
            values: Candidate values
            param_name: Parameter name prefix (auto-generated if not provided)

        Returns:
            Self for method chaining

        Example:
            builder.where_in("r.name", ["ADMIN", "VIEWER"], "role")
            # Generates: r.name IN (:role_0, :role_1)
        """
        values = list(values)
        if not values:
            self._where.append(("1 = 0", None))
            return self

        if param_name is None:
            param_name = f"param_{len(self._params)}"

        placeholders = []
        for index, value in enumerate(values):
            name = f"{param_name}_{index}"
            placeholders.append(f":{name}")
            self._params[name] = value

        self._where.append((f"{column} IN ({', '.join(placeholders)})", param_name))
        return self

    def bind(self, param_name: str, value: Any) -> "QueryBuilder":
        """
        Bind a parameter referenced outside WHERE (e.g. inside a selected subquery)

        Args:
            param_name: Parameter name used as :param_name in the SQL
            value: Value to bind

        Returns:
            Self for method chaining
        """
        self._params[param_name] = value
        return self

    def order_by(self, column: str, direction: str = "ASC") -> "QueryBuilder":
        """
        Add ORDER BY clause (repeatable for multi-column ordering)

        Args:
            column: Column to order by
            direction: ASC or DESC

        Returns:
            Self for method chaining

        Raises:
            ValueError: If direction is not ASC or DESC
        """
        direction = direction.upper()
        if direction not in ("ASC", "DESC"):
            raise ValueError("Direction must be ASC or DESC")

        self._order_by.append(f"{column} {direction}")
        return self

    def build(self) -> Tuple[str, Dict[str, Any]]:
        """
        Build final SQL query with parameters

        Returns:
            Tuple of (sql_query, parameters_dict)
        """
        query_parts = []

        query_parts.append(f"SELECT {', '.join(self._select)}")
        query_parts.append(f"FROM {self.table}")

        if self._joins:
            query_parts.extend(self._joins)

        if self._where:
            where_conditions = [cond for cond, _ in self._where]
            query_parts.append(f"WHERE {' AND '.join(where_conditions)}")

        if self._order_by:
            query_parts.append(f"ORDER BY {', '.join(self._order_by)}")

        return " ".join(query_parts), self._params.copy()

    def count_query(self) -> Tuple[str, Dict[str, Any]]:
        """
        Build COUNT query over the same FROM/JOIN/WHERE

        Returns:
            Tuple of (count_query, parameters_dict)
        """
        query_parts = ["SELECT COUNT(*) as total", f"FROM {self.table}"]

        if self._joins:
            query_parts.extend(self._joins)

        if self._where:
            where_conditions = [cond for cond, _ in self._where]
            query_parts.append(f"WHERE {' AND '.join(where_conditions)}")

        return " ".join(query_parts), self._params.copy()
