"""
Authorization Exceptions

Error kinds raised by the authorization core. Each carries the HTTP status it
maps to; decision-path kinds also carry the server-side deny reason, which is
logged but never returned to the client.
"""

from typing import Optional

from ...models.authorization_models import DenyReason


class AuthorizationCoreError(Exception):
    """Base class for authorization core errors.

    Attributes:
        kind: Error kind name (e.g. "POLICY_DENIED")
        status_code: HTTP status surfaced to the caller
        message: Descriptive message for logs and admin callers
    """

    kind = "INTERNAL"
    status_code = 500
    default_message = "Internal authorization error"

    def __init__(self, message: Optional[str] = None):
        self.message = message or self.default_message
        super().__init__(self.message)


class AccessDeniedError(AuthorizationCoreError):
    """Base class for request-time deny outcomes."""

    status_code = 403
    deny_reason = DenyReason.POLICY
    default_message = "Access denied"


class NotAuthenticatedError(AccessDeniedError):
    """Raised when no authenticated principal is attached to the request."""

    kind = "NOT_AUTHENTICATED"
    status_code = 401
    deny_reason = DenyReason.UNAUTHENTICATED
    default_message = "Authentication required"


class PrincipalUnresolvableError(AccessDeniedError):
    """Raised when a principal is present but no user id can be derived from it."""

    kind = "PRINCIPAL_UNRESOLVABLE"
    deny_reason = DenyReason.PRINCIPAL_UNRESOLVABLE


class EndpointNotFoundError(AccessDeniedError):
    """Raised when no cataloged template matches the request line."""

    kind = "ENDPOINT_NOT_FOUND"
    deny_reason = DenyReason.UNCATALOGED


class EndpointInactiveError(AccessDeniedError):
    kind = "ENDPOINT_INACTIVE"
    deny_reason = DenyReason.INACTIVE


class NoPoliciesError(AccessDeniedError):
    kind = "NO_POLICIES"
    deny_reason = DenyReason.UNPROTECTED


class PolicyDeniedError(AccessDeniedError):
    kind = "POLICY_DENIED"
    deny_reason = DenyReason.POLICY


class ResourceNotFoundError(AuthorizationCoreError):
    """Raised by admin/audit views when a user or page is absent or inactive.

    Attributes:
        resource: Resource kind ("user", "page", "endpoint")
        identifier: Requested identifier
    """

    kind = "NOT_FOUND"
    status_code = 404

    def __init__(self, resource: str, identifier=None, message: Optional[str] = None):
        self.resource = resource
        self.identifier = identifier
        super().__init__(message or f"{resource} not found: {identifier}")


class InvalidRequestError(AuthorizationCoreError):
    """Raised when a required id or body field is missing."""

    kind = "INVALID_REQUEST"
    status_code = 400

    def __init__(self, message: str = "Invalid request", field: Optional[str] = None):
        self.field = field
        super().__init__(message)
