"""
Authorization Service - request-time decision

Implements the gate every non-exempt request passes through:

    1. OPTIONS (CORS preflight) is allowed outright
    2. no authenticated principal                 -> deny (unauthenticated)
    3. principal without a resolvable user id     -> deny (principal_unresolvable)
    4. path normalized, context prefix stripped
    5. no cataloged endpoint matches              -> deny (uncataloged)
    6. matched endpoint inactive                  -> deny (inactive)
    7. endpoint linked to no policy at all        -> deny (unprotected)
       endpoint linked to inactive policies only -> deny (policy)
    8. user's matrix x endpoint policies empty    -> deny (policy)

ZERO TRUST: any failure inside the procedure is a deny. Decisions are never
cached across requests; the per-method endpoint list is the only shared state.
"""

import logging
from typing import Dict, Optional, Type

from sqlalchemy.orm import Session

from ...auth import Principal, PrincipalResolver, get_principal_resolver
from ...config import Settings, get_settings
from ...models.authorization_models import (
    AuthorizationDecision,
    AuthorizationResult,
    DenyReason,
)
from ...utils.logging_security import sanitize_for_log, sanitize_path_for_log
from .endpoint_matcher import EndpointMatcher, normalize_method
from .endpoint_service import EndpointAuthorizationService
from .exceptions import (
    AccessDeniedError,
    EndpointInactiveError,
    EndpointNotFoundError,
    NoPoliciesError,
    NotAuthenticatedError,
    PolicyDeniedError,
    PrincipalUnresolvableError,
    ResourceNotFoundError,
)
from .matrix_builder import MatrixBuilder
from .path_matching import normalize_path, strip_context_path
from .policy_engine import PolicyEngine

logger = logging.getLogger(__name__)

DENY_ERRORS: Dict[DenyReason, Type[AccessDeniedError]] = {
    DenyReason.UNAUTHENTICATED: NotAuthenticatedError,
    DenyReason.PRINCIPAL_UNRESOLVABLE: PrincipalUnresolvableError,
    DenyReason.UNCATALOGED: EndpointNotFoundError,
    DenyReason.INACTIVE: EndpointInactiveError,
    DenyReason.UNPROTECTED: NoPoliciesError,
    DenyReason.POLICY: PolicyDeniedError,
    DenyReason.ERROR: PolicyDeniedError,
}


def deny_error_for(result: AuthorizationResult) -> AccessDeniedError:
    """Exception matching a deny result (carries the HTTP status to answer with)"""
    error_class = DENY_ERRORS.get(result.reason or DenyReason.POLICY, PolicyDeniedError)
    return error_class()


class AuthorizationService:
    """
    Request-time authorization coordinator.

    Args:
        db: Session scoped to the current request
        matcher: Process-wide endpoint matcher
        principal_resolver: Principal -> user id adapter
        context_path: Application context prefix stripped before matching
    """

    def __init__(
        self,
        db: Session,
        matcher: EndpointMatcher,
        principal_resolver: PrincipalResolver,
        context_path: str = "",
    ):
        self.db = db
        self.matcher = matcher
        self.principal_resolver = principal_resolver
        self.context_path = context_path or ""
        self.endpoint_service = EndpointAuthorizationService(db, matcher)
        self.matrix_builder = MatrixBuilder(db)
        self.policy_engine = PolicyEngine(db)

    def authorize(self, method: Optional[str], path: Optional[str], principal: Optional[Principal]) -> AuthorizationResult:
        """
        Decide whether a request may proceed.

        Args:
            method: HTTP method
            path: Request path as seen by the framework (query string allowed)
            principal: Authenticated principal, None when unauthenticated

        Returns:
            AuthorizationResult; never raises
        """
        method = normalize_method(method)
        request_path = normalize_path(strip_context_path(normalize_path(path), self.context_path))

        if method == "OPTIONS":
            return self._allow(method, request_path, None, None)

        if principal is None:
            return self._deny(method, request_path, DenyReason.UNAUTHENTICATED)

        try:
            user_id = self._resolve_user_id(principal)
            if user_id is None:
                logger.warning(
                    f"Denying {method} {sanitize_path_for_log(request_path)}: "
                    f"principal {sanitize_for_log(principal.get('sub'))} does not resolve to a user id"
                )
                return self._deny(method, request_path, DenyReason.PRINCIPAL_UNRESOLVABLE, log=False)

            endpoint = self.endpoint_service.find_endpoint(method, request_path)
            if endpoint is None:
                return self._deny(method, request_path, DenyReason.UNCATALOGED, user_id)

            metadata = self.endpoint_service.metadata_for_endpoint(endpoint)
            if not endpoint.is_active:
                return self._deny(method, request_path, DenyReason.INACTIVE, user_id, endpoint.id)
            if not metadata.has_policies:
                # Links to inactive policies only: the intersection below is empty by construction
                if self.endpoint_service.policies.count_links_for_endpoint(endpoint.id):
                    return self._deny(method, request_path, DenyReason.POLICY, user_id, endpoint.id)
                return self._deny(method, request_path, DenyReason.UNPROTECTED, user_id, endpoint.id)

            try:
                matrix = self.matrix_builder.build_authorization_matrix(user_id)
            except ResourceNotFoundError:
                logger.warning(f"Denying {method} {sanitize_path_for_log(request_path)}: user {user_id} not found")
                return self._deny(method, request_path, DenyReason.PRINCIPAL_UNRESOLVABLE, user_id, log=False)

            if not self.policy_engine.evaluate(matrix.roles, endpoint.id):
                return self._deny(method, request_path, DenyReason.POLICY, user_id, endpoint.id)

            return self._allow(method, request_path, user_id, endpoint.id)

        except Exception as e:
            # Fail secure
            logger.error(f"Authorization check failed for {method} {sanitize_path_for_log(request_path)}: {e}")
            return self._deny(method, request_path, DenyReason.ERROR)

    def _resolve_user_id(self, principal: Principal) -> Optional[int]:
        try:
            return self.principal_resolver.user_id(principal)
        except Exception as e:
            logger.warning(f"Principal resolution failed: {e}")
            return None

    def _allow(self, method: str, path: str, user_id: Optional[int], endpoint_id: Optional[int]) -> AuthorizationResult:
        logger.debug(f"Access allowed: {method} {sanitize_path_for_log(path)} user={user_id} endpoint={endpoint_id}")
        return AuthorizationResult(
            decision=AuthorizationDecision.ALLOW,
            method=method,
            path=path,
            user_id=user_id,
            endpoint_id=endpoint_id,
        )

    def _deny(
        self,
        method: str,
        path: str,
        reason: DenyReason,
        user_id: Optional[int] = None,
        endpoint_id: Optional[int] = None,
        log: bool = True,
    ) -> AuthorizationResult:
        if log:
            logger.info(
                f"Access denied ({reason.value}): {method} {sanitize_path_for_log(path)} "
                f"user={user_id} endpoint={endpoint_id}"
            )
        return AuthorizationResult(
            decision=AuthorizationDecision.DENY,
            method=method,
            path=path,
            reason=reason,
            user_id=user_id,
            endpoint_id=endpoint_id,
        )

    def is_allowed(self, method: Optional[str], path: Optional[str], principal: Optional[Principal]) -> bool:
        return self.authorize(method, path, principal).allowed


def get_authorization_service(
    db: Session,
    matcher: EndpointMatcher,
    principal_resolver: Optional[PrincipalResolver] = None,
    settings: Optional[Settings] = None,
) -> AuthorizationService:
    """
    Factory function to create AuthorizationService instance.

    Args:
        db: Database session
        matcher: Shared endpoint matcher (one per process)
        principal_resolver: Optional resolver override
        settings: Optional settings override

    Returns:
        Configured AuthorizationService instance
    """
    settings = settings or get_settings()
    resolver = principal_resolver or get_principal_resolver(db, settings)
    return AuthorizationService(db, matcher, resolver, context_path=settings.context_path)
