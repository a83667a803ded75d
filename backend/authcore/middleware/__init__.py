"""Request-level middleware and error handlers for AuthCore"""

from .authorization_middleware import DEFAULT_EXEMPT_PATHS, AuthorizationMiddleware
from .error_handling import build_error_response, register_exception_handlers

__all__ = [
    "AuthorizationMiddleware",
    "DEFAULT_EXEMPT_PATHS",
    "build_error_response",
    "register_exception_handlers",
]
