"""
Authorization Module - Policy Graph Access Control

This module decides, for an authenticated principal and an HTTP request line,
whether the request may proceed, and produces the discovery payloads that
drive client-side UI gating and downstream services.

Architecture Overview:
    Access is modelled as a graph:

        User -> Role -> Policy -> Endpoint
                        PageAction -> Endpoint   (UI edge)

    1. Matcher (endpoint_matcher.py, path_matching.py)
       - Normalizes request paths and matches Ant-style templates
       - Composite /api/{service}/{version}{path} forms
       - Per-method endpoint cache with a global TTL

    2. Policy Engine (policy_engine.py)
       - Allows iff the caller's role policies intersect the endpoint's policies

    3. Matrix Builder (matrix_builder.py, access_matrix.py)
       - Enforcement matrix (roles, policy names, permission version)
       - Pages/actions tree with parent fill-in
       - Administrative user and UI access matrices

    4. Authorization Service (service.py)
       - Request-time coordinator used by the authorization middleware

    5. Catalog (catalog.py, endpoint_service.py)
       - Endpoint catalog, page hierarchy, endpoints per page, request-line metadata

Design Philosophy:
    - Fail-Closed: uncataloged, inactive and unguarded endpoints are denied
    - Fail-Secure: any error in the decision path is a deny
    - Inactive Erasure: inactive roles, policies and endpoints behave as absent
    - No decision caching: the matrix is recomputed per request

Quick Start:
    from authcore.services.authorization import (
        EndpointMatcher,
        get_authorization_service,
    )

    matcher = EndpointMatcher(ttl_seconds=30)
    service = get_authorization_service(db, matcher)
    result = service.authorize("GET", "/api/billing/v1/invoices/42", principal)
    if not result.allowed:
        ...  # 401 for unauthenticated, 403 otherwise
"""

from .access_matrix import AccessMatrixService
from .catalog import CatalogService
from .endpoint_matcher import EndpointMatcher
from .endpoint_service import EndpointAuthorizationService
from .exceptions import (
    AccessDeniedError,
    AuthorizationCoreError,
    EndpointInactiveError,
    EndpointNotFoundError,
    InvalidRequestError,
    NoPoliciesError,
    NotAuthenticatedError,
    PolicyDeniedError,
    PrincipalUnresolvableError,
    ResourceNotFoundError,
)
from .matrix_builder import MatrixBuilder
from .path_matching import AntPathMatcher, composite_paths, normalize_path
from .policy_engine import PolicyEngine
from .service import AuthorizationService, deny_error_for, get_authorization_service

__all__ = [
    # Services
    "AccessMatrixService",
    "AuthorizationService",
    "CatalogService",
    "EndpointAuthorizationService",
    "MatrixBuilder",
    "PolicyEngine",
    "get_authorization_service",
    "deny_error_for",
    # Matching
    "AntPathMatcher",
    "EndpointMatcher",
    "composite_paths",
    "normalize_path",
    # Exceptions
    "AccessDeniedError",
    "AuthorizationCoreError",
    "EndpointInactiveError",
    "EndpointNotFoundError",
    "InvalidRequestError",
    "NoPoliciesError",
    "NotAuthenticatedError",
    "PolicyDeniedError",
    "PrincipalUnresolvableError",
    "ResourceNotFoundError",
]

__version__ = "1.0.0"
