"""
Internal Authorization API Endpoints
Service-to-service lookups used by gateways and downstream services

Every route requires a bearer principal or the shared internal API key.
"""

import logging
from typing import Optional

from fastapi import APIRouter, Depends, HTTPException, Query, status
from sqlalchemy.orm import Session

from ..auth import Principal, require_internal_access
from ..database import get_db
from ..models.authorization_models import (
    AuthorizationMatrixResponse,
    EndpointDetailResponse,
    EndpointMetadataResponse,
    PolicyEvaluationRequest,
    PolicyEvaluationResponse,
)
from ..services.authorization import (
    AuthorizationCoreError,
    EndpointAuthorizationService,
    EndpointMatcher,
    InvalidRequestError,
    MatrixBuilder,
    PolicyEngine,
)
from ..utils.logging_security import sanitize_for_log, sanitize_path_for_log
from .dependencies import get_endpoint_matcher

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/internal/authz", tags=["Internal Authorization"])


@router.get("/endpoints/metadata", response_model=EndpointMetadataResponse)
async def get_endpoint_metadata(
    method: Optional[str] = Query(None, description="HTTP method, defaults to GET"),
    path: Optional[str] = Query(None, description="Request path to resolve"),
    caller: Principal = Depends(require_internal_access),
    matcher: EndpointMatcher = Depends(get_endpoint_matcher),
    db: Session = Depends(get_db),
):
    """
    Resolve a request line against the catalog and report its active policies
    """
    if not path:
        raise InvalidRequestError("path is required", field="path")

    try:
        metadata = EndpointAuthorizationService(db, matcher).get_endpoint_authorization_metadata(method, path)
        logger.debug(
            f"Endpoint metadata for {sanitize_for_log(method)} {sanitize_path_for_log(path)}: "
            f"found={metadata.endpoint_found} endpoint={metadata.endpoint_id}"
        )
        return EndpointMetadataResponse(**metadata.to_dict())
    except AuthorizationCoreError:
        raise
    except Exception as e:
        logger.error(f"Error resolving endpoint metadata: {e}")
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="Endpoint metadata lookup failed",
        )


@router.get("/endpoints/{endpoint_id}", response_model=EndpointDetailResponse)
async def get_endpoint(
    endpoint_id: int,
    caller: Principal = Depends(require_internal_access),
    matcher: EndpointMatcher = Depends(get_endpoint_matcher),
    db: Session = Depends(get_db),
):
    """Endpoint by id with its active policy ids"""
    try:
        return EndpointDetailResponse(**EndpointAuthorizationService(db, matcher).get_endpoint_with_policies(endpoint_id))
    except AuthorizationCoreError:
        raise
    except Exception as e:
        logger.error(f"Error loading endpoint {endpoint_id}: {e}")
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="Endpoint lookup failed",
        )


@router.post("/policies/evaluate", response_model=PolicyEvaluationResponse)
async def evaluate_policies(
    request: PolicyEvaluationRequest,
    caller: Principal = Depends(require_internal_access),
    db: Session = Depends(get_db),
):
    """
    Decide whether any of the given roles may call an endpoint
    """
    if request.endpointId is None:
        raise InvalidRequestError("endpointId is required", field="endpointId")

    allowed = PolicyEngine(db).evaluate(request.roles, request.endpointId)
    return PolicyEvaluationResponse(endpointId=request.endpointId, allowed=allowed)


@router.get("/users/{user_id}/matrix", response_model=AuthorizationMatrixResponse)
async def get_user_matrix(
    user_id: int,
    caller: Principal = Depends(require_internal_access),
    db: Session = Depends(get_db),
):
    """Enforcement matrix (roles, policy names, permission version) for a user"""
    try:
        matrix = MatrixBuilder(db).build_authorization_matrix(user_id)
        return AuthorizationMatrixResponse(**matrix.to_dict())
    except AuthorizationCoreError:
        raise
    except Exception as e:
        logger.error(f"Error building authorization matrix for user {user_id}: {e}")
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="Authorization matrix lookup failed",
        )
