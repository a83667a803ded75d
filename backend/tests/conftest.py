"""
Pytest configuration and fixtures for AuthCore backend tests.

Every test gets a fresh in-memory SQLite database (one shared connection via
StaticPool so the application's sessions and the seeding session see the same
data) plus a PolicyGraph helper for seeding users, roles, policies, endpoints
and UI pages.
"""

import os

os.environ.setdefault("AUTHCORE_SECRET_KEY", "authcore-test-secret-key-0123456789abcdef")
os.environ.setdefault("AUTHCORE_DATABASE_URL", "sqlite://")
os.environ.setdefault("AUTHCORE_INTERNAL_API_KEY", "authcore-internal-test-key")

from typing import Any, Callable, Optional  # noqa: E402

import jwt  # noqa: E402
import pytest  # noqa: E402
from fastapi import FastAPI  # noqa: E402
from fastapi.testclient import TestClient  # noqa: E402
from sqlalchemy import create_engine  # noqa: E402
from sqlalchemy.orm import Session, sessionmaker  # noqa: E402
from sqlalchemy.pool import StaticPool  # noqa: E402

from authcore.config import get_settings  # noqa: E402
from authcore.database import (  # noqa: E402
    Base,
    Endpoint,
    EndpointPolicy,
    PageAction,
    Policy,
    Role,
    RolePolicy,
    UIPage,
    User,
    UserRole,
)
from authcore.main import create_app  # noqa: E402
from authcore.services.authorization import EndpointMatcher  # noqa: E402

INTERNAL_API_KEY = os.environ["AUTHCORE_INTERNAL_API_KEY"]


class PolicyGraph:
    """Seeds the policy and UI graphs; every helper commits and returns the row."""

    def __init__(self, session: Session):
        self.session = session

    def _add(self, obj: Any) -> Any:
        self.session.add(obj)
        self.session.commit()
        return obj

    def user(self, username: str, permission_version: int = 0, enabled: bool = True) -> User:
        return self._add(
            User(
                username=username,
                email=f"{username}@example.com",
                permission_version=permission_version,
                enabled=enabled,
            )
        )

    def role(self, name: str, is_active: bool = True, description: Optional[str] = None) -> Role:
        return self._add(Role(name=name, description=description, is_active=is_active))

    def policy(
        self, name: str, type: str = "RBAC", is_active: bool = True, description: Optional[str] = None
    ) -> Policy:
        return self._add(Policy(name=name, type=type, is_active=is_active, description=description))

    def endpoint(
        self,
        method: str,
        path: str,
        service: str = "billing",
        version: str = "v1",
        is_active: bool = True,
        description: Optional[str] = None,
    ) -> Endpoint:
        return self._add(
            Endpoint(
                service=service,
                version=version,
                method=method,
                path=path,
                is_active=is_active,
                description=description,
            )
        )

    def page(
        self,
        key: str,
        parent: Optional[UIPage] = None,
        display_order: int = 0,
        is_active: bool = True,
        id: Optional[int] = None,
        route: Optional[str] = None,
    ) -> UIPage:
        return self._add(
            UIPage(
                id=id,
                key=key,
                label=key.replace("_", " ").title(),
                route=route or f"/{key}",
                parent_id=parent.id if parent is not None else None,
                display_order=display_order,
                is_active=is_active,
            )
        )

    def action(
        self,
        page: UIPage,
        endpoint: Optional[Endpoint] = None,
        action: str = "view",
        label: Optional[str] = None,
        display_order: int = 0,
        is_active: bool = True,
    ) -> PageAction:
        return self._add(
            PageAction(
                page_id=page.id,
                endpoint_id=endpoint.id if endpoint is not None else None,
                action=action,
                label=label or action.title(),
                display_order=display_order,
                is_active=is_active,
            )
        )

    def assign(self, user: User, role: Role) -> UserRole:
        return self._add(UserRole(user_id=user.id, role_id=role.id))

    def grant(self, role: Role, policy: Policy, is_active: bool = True) -> RolePolicy:
        return self._add(RolePolicy(role_id=role.id, policy_id=policy.id, is_active=is_active))

    def guard(self, endpoint: Endpoint, policy: Policy) -> EndpointPolicy:
        return self._add(EndpointPolicy(endpoint_id=endpoint.id, policy_id=policy.id))

    def deactivate(self, obj: Any) -> Any:
        obj.is_active = False
        self.session.commit()
        return obj


@pytest.fixture
def settings():
    return get_settings()


@pytest.fixture
def test_engine():
    """In-memory database shared by every session of the test"""
    engine = create_engine(
        "sqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    Base.metadata.create_all(bind=engine)
    yield engine
    engine.dispose()


@pytest.fixture
def session_factory(test_engine) -> Callable[[], Session]:
    return sessionmaker(autocommit=False, autoflush=False, bind=test_engine)


@pytest.fixture
def db_session(session_factory) -> Session:
    """Provide database session for tests"""
    session = session_factory()
    yield session
    session.rollback()
    session.close()


@pytest.fixture
def graph(db_session) -> PolicyGraph:
    return PolicyGraph(db_session)


@pytest.fixture
def billing_graph(graph):
    """
    One guarded endpoint: GET /invoices/{id} (billing v1) behind P_READ,
    held by R_FIN, which u2 has.
    """
    endpoint = graph.endpoint("GET", "/invoices/{id}", service="billing", version="v1")
    policy = graph.policy("P_READ")
    role = graph.role("R_FIN")
    user = graph.user("u2", permission_version=3)
    graph.guard(endpoint, policy)
    graph.grant(role, policy)
    graph.assign(user, role)
    return {"endpoint": endpoint, "policy": policy, "role": role, "user": user}


@pytest.fixture
def auditor_graph(graph):
    """
    The catalog and audit views (GET /api/meta/**) behind P_META_AUDIT,
    held by R_AUDITOR, which the auditor user has.
    """
    endpoint = graph.endpoint("GET", "/api/meta/**", service="authcore", version="v1")
    policy = graph.policy("P_META_AUDIT")
    role = graph.role("R_AUDITOR")
    user = graph.user("auditor")
    graph.guard(endpoint, policy)
    graph.grant(role, policy)
    graph.assign(user, role)
    return {"endpoint": endpoint, "policy": policy, "role": role, "user": user}


@pytest.fixture
def matcher() -> EndpointMatcher:
    return EndpointMatcher(ttl_seconds=30)


@pytest.fixture
def app(session_factory, settings, matcher) -> FastAPI:
    """AuthCore application backed by the test database, with sample guarded routes"""
    application = create_app(session_factory=session_factory, settings=settings, matcher=matcher)

    async def get_invoice(invoice_id: int):
        return {"id": invoice_id}

    async def put_thing():
        return {"ok": True}

    application.add_api_route("/api/billing/v1/invoices/{invoice_id}", get_invoice, methods=["GET"])
    application.add_api_route("/invoices/{invoice_id}", get_invoice, methods=["GET"])
    application.add_api_route("/api/unknown/thing", put_thing, methods=["PUT"])
    return application


@pytest.fixture
def client(app):
    """Provide FastAPI test client"""
    with TestClient(app) as test_client:
        yield test_client


@pytest.fixture
def make_token(settings) -> Callable[..., str]:
    """Mint bearer tokens the way the identity service would"""

    def _make_token(user_id: Optional[int] = None, sub: str = "tester", **claims: Any) -> str:
        payload = {"sub": sub, **claims}
        if user_id is not None:
            payload["user_id"] = user_id
        return jwt.encode(payload, settings.secret_key, algorithm=settings.algorithm)

    return _make_token


@pytest.fixture
def auth_headers(make_token) -> Callable[..., dict]:
    def _auth_headers(user_id: Optional[int] = None, **claims: Any) -> dict:
        return {"Authorization": f"Bearer {make_token(user_id, **claims)}"}

    return _auth_headers


@pytest.fixture
def internal_headers() -> dict:
    return {"X-Internal-Api-Key": INTERNAL_API_KEY}
