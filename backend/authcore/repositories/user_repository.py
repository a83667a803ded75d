"""
User and Role Repository
Read queries for users and their role memberships.
"""

from typing import Any, Dict, List, Mapping, Optional

from ..models.authorization_models import RoleRecord, UserRecord
from ..utils.query_builder import QueryBuilder
from .base_repository import BaseRepository

USER_COLUMNS = ("u.id", "u.username", "u.enabled", "u.permission_version")


def user_from_row(row: Mapping[str, Any]) -> UserRecord:
    return UserRecord(
        id=row["id"],
        username=row["username"],
        enabled=bool(row["enabled"]),
        permission_version=int(row["permission_version"] or 0),
    )


class UserRepository(BaseRepository):
    """Reads users and role memberships"""

    def find_by_id(self, user_id: int) -> Optional[UserRecord]:
        builder = QueryBuilder("users u").select(*USER_COLUMNS).where("u.id = :user_id", user_id, "user_id")
        row = self._fetch_one("user_by_id", builder)
        return user_from_row(row) if row else None

    def find_by_username(self, username: str) -> Optional[UserRecord]:
        builder = QueryBuilder("users u").select(*USER_COLUMNS).where("u.username = :username", username, "username")
        row = self._fetch_one("user_by_username", builder)
        return user_from_row(row) if row else None

    def find_all(self) -> List[UserRecord]:
        builder = QueryBuilder("users u").select(*USER_COLUMNS).order_by("u.id")
        return [user_from_row(row) for row in self._fetch_all("users_all", builder)]

    def active_roles_for_user(self, user_id: int) -> List[RoleRecord]:
        """Active roles held by a user, by name"""
        builder = (
            QueryBuilder("user_roles ur")
            .select("r.id", "r.name", "r.description", "r.is_active")
            .join("roles r", "r.id = ur.role_id", "INNER")
            .where("ur.user_id = :user_id", user_id, "user_id")
            .where("r.is_active = :r_active", True, "r_active")
            .order_by("r.name")
        )
        return [
            RoleRecord(id=row["id"], name=row["name"], description=row["description"], is_active=bool(row["is_active"]))
            for row in self._fetch_all("roles_for_user", builder)
        ]

    def active_roles_with_counts(self) -> List[Dict[str, Any]]:
        """
        Active roles with the number of active policies and members each holds.

        Returns:
            Dicts with id, name, description, policy_count, user_count
        """
        builder = (
            QueryBuilder("roles r")
            .select(
                "r.id",
                "r.name",
                "r.description",
                "(SELECT COUNT(*) FROM role_policies rp INNER JOIN policies p ON p.id = rp.policy_id"
                " WHERE rp.role_id = r.id AND rp.is_active = :rp_active AND p.is_active = :p_active)"
                " AS policy_count",
                "(SELECT COUNT(*) FROM user_roles ur WHERE ur.role_id = r.id) AS user_count",
            )
            .where("r.is_active = :r_active", True, "r_active")
            .order_by("LOWER(r.name)")
        )
        builder.bind("rp_active", True).bind("p_active", True)
        return [dict(row) for row in self._fetch_all("roles_with_counts", builder)]
