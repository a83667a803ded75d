"""
Authorization Middleware for AuthCore
Applies the dynamic endpoint authorization decision to every non-exempt request

ZERO TRUST IMPLEMENTATION:
- Every request resolved against the endpoint catalog before processing
- Uncataloged routes are denied with 403 (not 404, to avoid probing)
- Fail-secure behavior on errors
- Deny reasons logged server-side only

Exempt routes (health, OpenAPI docs, the caller's own /api/me payload and the
service-to-service /internal/authz API) authenticate through their route
dependencies instead. The /api/meta catalog and audit views are not exempt:
deployments catalog them and guard them with an administrative policy.
"""

import logging
from typing import Awaitable, Callable, Iterable, Optional

from fastapi import Request, Response
from starlette.concurrency import run_in_threadpool
from starlette.middleware.base import BaseHTTPMiddleware

from ..auth import Principal, decode_token, extract_bearer_token
from ..config import Settings, get_settings
from ..models.authorization_models import AuthorizationResult, DenyReason
from ..services.authorization import deny_error_for, get_authorization_service
from ..services.authorization.path_matching import normalize_path, strip_context_path
from ..utils.logging_security import sanitize_path_for_log
from .error_handling import build_error_response

logger = logging.getLogger(__name__)

DEFAULT_EXEMPT_PATHS = (
    "/health",
    "/docs",
    "/redoc",
    "/openapi.json",
    "/api/me",
    "/internal/authz",
)


class AuthorizationMiddleware(BaseHTTPMiddleware):
    """
    Authorization middleware backed by the endpoint catalog and policy graph

    SECURITY FEATURES:
    1. Request Interception - Every non-exempt request is decided
    2. Catalog Resolution - Request line mapped to a cataloged endpoint
    3. Policy Evaluation - Caller's role policies intersected with the endpoint's
    4. Fail-Secure - Denies access on any error or uncertainty
    """

    def __init__(
        self,
        app,
        authorization_service_factory: Callable = None,
        exempt_paths: Optional[Iterable[str]] = None,
        settings: Optional[Settings] = None,
    ):
        super().__init__(app)
        self.settings = settings or get_settings()
        self.authorization_service_factory = authorization_service_factory or get_authorization_service
        self.exempt_paths = tuple(normalize_path(p) for p in (exempt_paths or DEFAULT_EXEMPT_PATHS))
        logger.info(f"Authorization middleware initialized with {len(self.exempt_paths)} exempt path prefixes")

    def _is_exempt(self, path: str) -> bool:
        path = normalize_path(strip_context_path(normalize_path(path), self.settings.context_path))
        return any(path == prefix or path.startswith(prefix + "/") for prefix in self.exempt_paths)

    def _extract_principal(self, request: Request) -> Optional[Principal]:
        token = extract_bearer_token(request.headers.get("Authorization"))
        return decode_token(token, self.settings)

    def _authorize(self, request: Request, principal: Optional[Principal]) -> AuthorizationResult:
        db = request.app.state.session_factory()
        try:
            service = self.authorization_service_factory(db, request.app.state.endpoint_matcher, settings=self.settings)
            return service.authorize(request.method, request.url.path, principal)
        finally:
            db.close()

    async def dispatch(self, request: Request, call_next: Callable[[Request], Awaitable[Response]]) -> Response:
        """
        Main middleware dispatch method - decides every non-exempt request
        """
        if self._is_exempt(request.url.path):
            return await call_next(request)

        try:
            principal = self._extract_principal(request)
            result = await run_in_threadpool(self._authorize, request, principal)
        except Exception as e:
            logger.error(f"Authorization middleware error: {e}")
            # Fail securely - deny access on any error
            return build_error_response(403, path=request.url.path, method=request.method)

        if not result.allowed:
            error = deny_error_for(result)
            headers = {"WWW-Authenticate": "Bearer"} if result.reason == DenyReason.UNAUTHENTICATED else None
            return build_error_response(
                error.status_code,
                path=request.url.path,
                method=request.method,
                headers=headers,
            )

        request.state.authorization_result = result
        request.state.current_user = principal
        logger.debug(f"Authorized {request.method} {sanitize_path_for_log(request.url.path)}")
        return await call_next(request)
