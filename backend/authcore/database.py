"""
Database configuration and policy graph models
SQLAlchemy declarative schema for users, roles, policies, endpoints and UI pages
"""

import logging
from datetime import datetime
from functools import lru_cache
from typing import Any, Callable, Dict, Generator

from fastapi import Request
from sqlalchemy import (
    Boolean,
    Column,
    DateTime,
    ForeignKey,
    Integer,
    String,
    Text,
    UniqueConstraint,
    create_engine,
    text,
)
from sqlalchemy.engine import Engine
from sqlalchemy.ext.declarative import declarative_base
from sqlalchemy.orm import Session, sessionmaker

from .config import get_settings

logger = logging.getLogger(__name__)

Base = declarative_base()


# Database Models
class User(Base):  # type: ignore[valid-type, misc]
    """User account as seen by the authorization core"""

    __tablename__ = "users"

    id = Column(Integer, primary_key=True, index=True)
    username = Column(String(50), unique=True, index=True, nullable=False)
    email = Column(String(100), unique=True, index=True, nullable=True)
    enabled = Column(Boolean, default=True, nullable=False)
    # Bumped by the admin mutation path; consumed here as an ETag key
    permission_version = Column(Integer, default=0, nullable=False)
    created_at = Column(DateTime, default=datetime.utcnow, nullable=False)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow, nullable=False)


class Role(Base):  # type: ignore[valid-type, misc]
    """Named bag of policies assigned to users"""

    __tablename__ = "roles"

    id = Column(Integer, primary_key=True, index=True)
    name = Column(String(100), unique=True, index=True, nullable=False)
    description = Column(Text, nullable=True)
    is_active = Column(Boolean, default=True, nullable=False)
    created_at = Column(DateTime, default=datetime.utcnow, nullable=False)


class UserRole(Base):  # type: ignore[valid-type, misc]
    """User to role membership (set semantics)"""

    __tablename__ = "user_roles"

    user_id = Column(Integer, ForeignKey("users.id", ondelete="CASCADE"), primary_key=True)
    role_id = Column(Integer, ForeignKey("roles.id", ondelete="CASCADE"), primary_key=True)
    assigned_at = Column(DateTime, default=datetime.utcnow, nullable=False)


class Policy(Base):  # type: ignore[valid-type, misc]
    """Named access gate linking roles to endpoints"""

    __tablename__ = "policies"

    id = Column(Integer, primary_key=True, index=True)
    name = Column(String(100), unique=True, index=True, nullable=False)
    description = Column(Text, nullable=True)
    type = Column(String(20), default="RBAC", nullable=False)  # RBAC, ABAC, CUSTOM
    expression = Column(Text, nullable=True)  # Deprecated JSON expression, not evaluated
    is_active = Column(Boolean, default=True, nullable=False)
    created_at = Column(DateTime, default=datetime.utcnow, nullable=False)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow, nullable=False)


class RolePolicy(Base):  # type: ignore[valid-type, misc]
    """Role to policy assignment with soft deactivation"""

    __tablename__ = "role_policies"
    __table_args__ = (UniqueConstraint("role_id", "policy_id", name="uq_role_policy"),)

    id = Column(Integer, primary_key=True, index=True)
    role_id = Column(Integer, ForeignKey("roles.id", ondelete="CASCADE"), nullable=False, index=True)
    policy_id = Column(Integer, ForeignKey("policies.id", ondelete="CASCADE"), nullable=False, index=True)
    is_active = Column(Boolean, default=True, nullable=False)
    assigned_at = Column(DateTime, default=datetime.utcnow, nullable=False)
    assigned_by = Column(Integer, ForeignKey("users.id"), nullable=True)


class Endpoint(Base):  # type: ignore[valid-type, misc]
    """Cataloged (service, version, method, path) tuple"""

    __tablename__ = "endpoints"
    __table_args__ = (UniqueConstraint("service", "version", "method", "path", name="uq_endpoint_signature"),)

    id = Column(Integer, primary_key=True, index=True)
    service = Column(String(100), nullable=False)
    version = Column(String(20), nullable=False)
    method = Column(String(10), nullable=False, index=True)
    path = Column(String(255), nullable=False)  # Ant-style template
    description = Column(Text, nullable=True)
    ui_type = Column(String(50), nullable=True)
    is_active = Column(Boolean, default=True, nullable=False)
    created_at = Column(DateTime, default=datetime.utcnow, nullable=False)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow, nullable=False)


class EndpointPolicy(Base):  # type: ignore[valid-type, misc]
    """Endpoint to policy link, hard-deleted on unassignment"""

    __tablename__ = "endpoint_policies"
    __table_args__ = (UniqueConstraint("endpoint_id", "policy_id", name="uq_endpoint_policy"),)

    id = Column(Integer, primary_key=True, index=True)
    endpoint_id = Column(Integer, ForeignKey("endpoints.id", ondelete="CASCADE"), nullable=False, index=True)
    policy_id = Column(Integer, ForeignKey("policies.id", ondelete="CASCADE"), nullable=False, index=True)


class UIPage(Base):  # type: ignore[valid-type, misc]
    """Navigable UI page; parent_id forms the navigation tree"""

    __tablename__ = "ui_pages"

    id = Column(Integer, primary_key=True, index=True)
    parent_id = Column(Integer, ForeignKey("ui_pages.id"), nullable=True)
    key = Column(String(100), unique=True, nullable=False)
    label = Column(String(100), nullable=False)
    route = Column(String(255), nullable=False)
    icon = Column(String(50), nullable=True)
    module = Column(String(50), nullable=True)
    display_order = Column(Integer, default=0, nullable=False)
    is_menu_item = Column(Boolean, default=True, nullable=False)
    is_active = Column(Boolean, default=True, nullable=False)
    created_at = Column(DateTime, default=datetime.utcnow, nullable=False)


class PageAction(Base):  # type: ignore[valid-type, misc]
    """UI verb on a page, optionally bound to an endpoint"""

    __tablename__ = "page_actions"

    id = Column(Integer, primary_key=True, index=True)
    page_id = Column(Integer, ForeignKey("ui_pages.id", ondelete="CASCADE"), nullable=False, index=True)
    endpoint_id = Column(Integer, ForeignKey("endpoints.id"), nullable=True)
    label = Column(String(100), nullable=False)
    action = Column(String(50), nullable=False)
    icon = Column(String(50), nullable=True)
    variant = Column(String(20), nullable=True)
    display_order = Column(Integer, default=0, nullable=False)
    is_active = Column(Boolean, default=True, nullable=False)
    created_at = Column(DateTime, default=datetime.utcnow, nullable=False)


@lru_cache()
def get_engine() -> Engine:
    """Create the application engine from settings (once per process)"""
    settings = get_settings()
    engine_options: Dict[str, Any] = {"pool_pre_ping": True}

    if settings.database_url.startswith("sqlite"):
        engine_options["connect_args"] = {"check_same_thread": False}
    else:
        engine_options.update(
            {
                "pool_size": settings.database_pool_size,
                "max_overflow": settings.database_max_overflow,
                "pool_recycle": settings.database_pool_recycle,
            }
        )

    return create_engine(settings.database_url, **engine_options)


def create_session_factory(engine: Engine) -> Callable[[], Session]:
    """Build a session factory bound to the given engine"""
    return sessionmaker(autocommit=False, autoflush=False, bind=engine)


def get_db(request: Request) -> Generator[Session, None, None]:
    """
    Database session dependency for FastAPI endpoints.

    The session factory is read from ``app.state.session_factory`` so the
    application (and tests) decide which engine backs the request.

    Yields:
        SQLAlchemy Session instance.

    Note:
        Session is automatically closed when the request completes.
    """
    db = request.app.state.session_factory()
    try:
        yield db
    finally:
        db.close()


def create_tables(engine: Engine) -> None:
    """Create database tables if they don't exist."""
    try:
        Base.metadata.create_all(bind=engine)
        logger.info("Database tables created successfully")
    except Exception as e:
        logger.error(f"Failed to create database tables: {e}")
        raise


def check_database_health(session_factory: Callable[[], Session]) -> bool:
    """Check database connectivity for health checks"""
    try:
        db = session_factory()
        try:
            db.execute(text("SELECT 1"))
            return True
        finally:
            db.close()
    except Exception as e:
        logger.error(f"Database health check failed: {e}")
        return False
