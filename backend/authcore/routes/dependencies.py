"""
Shared FastAPI dependencies for AuthCore routes
"""

from fastapi import Depends, Request
from sqlalchemy.orm import Session

from ..auth import PrincipalResolver, get_principal_resolver
from ..database import get_db
from ..services.authorization.endpoint_matcher import EndpointMatcher


def get_endpoint_matcher(request: Request) -> EndpointMatcher:
    """Process-wide endpoint matcher created at application startup"""
    return request.app.state.endpoint_matcher


def get_resolver(db: Session = Depends(get_db)) -> PrincipalResolver:
    return get_principal_resolver(db)
