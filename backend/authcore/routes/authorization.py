"""
Authorization Discovery API Endpoints
User-facing authorization payload and catalog/audit metadata views

    /api/me/authorizations          pages/actions tree for the caller (ETag)
    /api/meta/service-catalog       cataloged endpoints + page hierarchy (ETag)
    /api/meta/endpoints             endpoint catalog, or one page's endpoints
    /api/meta/pages                 page hierarchy
    /api/meta/roles                 roles with policy/member counts
    /api/meta/user-access-matrix    role -> policy -> endpoint audit view
    /api/meta/ui-access-matrix      page -> action -> endpoint audit view
"""

import logging
from typing import Any, Dict, Optional

from fastapi import APIRouter, Depends, HTTPException, Query, Request, status
from fastapi.responses import Response
from sqlalchemy.orm import Session

from ..auth import Principal, PrincipalResolver, get_current_user
from ..database import get_db
from ..services.authorization import (
    AccessMatrixService,
    AuthorizationCoreError,
    CatalogService,
    MatrixBuilder,
    PrincipalUnresolvableError,
)
from ..utils.etag import compute_etag, etag_json_response
from ..utils.logging_security import sanitize_for_log
from .dependencies import get_resolver

logger = logging.getLogger(__name__)

me_router = APIRouter(prefix="/api/me", tags=["Authorizations"])
meta_router = APIRouter(prefix="/api/meta", tags=["Authorization Metadata"])


def _internal_error(operation: str, e: Exception) -> HTTPException:
    logger.error(f"Error building {operation}: {e}")
    return HTTPException(
        status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        detail=f"Failed to build {operation}",
    )


def authorizations_etag(payload: Dict[str, Any]) -> str:
    """
    Entity tag for the caller's authorization payload.

    Keyed on permissionVersion plus a digest of everything except the
    generation stamp, so an unchanged graph revalidates with 304.
    """
    stable = {key: value for key, value in payload.items() if key != "version"}
    return f"{payload.get('permissionVersion', 0)}-{compute_etag(stable, version_keys=())[:16]}"


@me_router.get("/authorizations")
async def get_my_authorizations(
    request: Request,
    current_user: Principal = Depends(get_current_user),
    resolver: PrincipalResolver = Depends(get_resolver),
    db: Session = Depends(get_db),
) -> Response:
    """
    Pages and actions the caller may use, with parent pages kept for navigation
    """
    user_id = resolver.user_id(current_user)
    if user_id is None:
        logger.warning(f"Principal {sanitize_for_log(current_user.get('sub'))} does not resolve to a user id")
        raise PrincipalUnresolvableError()

    try:
        payload = MatrixBuilder(db).build_user_authorizations(user_id)
        return etag_json_response(request, payload, etag=authorizations_etag(payload))
    except AuthorizationCoreError:
        raise
    except Exception as e:
        raise _internal_error("user authorizations", e)


@meta_router.get("/service-catalog")
async def get_service_catalog(
    request: Request,
    current_user: Principal = Depends(get_current_user),
    db: Session = Depends(get_db),
) -> Response:
    """Full catalog of active endpoints and the page hierarchy"""
    try:
        return etag_json_response(request, CatalogService(db).service_catalog())
    except AuthorizationCoreError:
        raise
    except Exception as e:
        raise _internal_error("service catalog", e)


@meta_router.get("/endpoints")
async def get_endpoints(
    request: Request,
    page_id: Optional[int] = Query(None, description="Restrict to endpoints called by this page's actions"),
    current_user: Principal = Depends(get_current_user),
    db: Session = Depends(get_db),
) -> Response:
    """Endpoint catalog; with page_id, the page's deduplicated endpoints"""
    try:
        catalog = CatalogService(db)
        if page_id is not None:
            payload: Dict[str, Any] = {"page_id": page_id, "endpoints": catalog.endpoints_for_page(page_id)}
        else:
            payload = {"endpoints": catalog.list_endpoints()}
        return etag_json_response(request, payload)
    except AuthorizationCoreError:
        raise
    except Exception as e:
        raise _internal_error("endpoint catalog", e)


@meta_router.get("/pages")
async def get_pages(
    request: Request,
    current_user: Principal = Depends(get_current_user),
    db: Session = Depends(get_db),
) -> Response:
    """Active page hierarchy"""
    try:
        return etag_json_response(request, {"pages": CatalogService(db).page_hierarchy()})
    except AuthorizationCoreError:
        raise
    except Exception as e:
        raise _internal_error("page hierarchy", e)


@meta_router.get("/roles")
async def get_roles(
    request: Request,
    current_user: Principal = Depends(get_current_user),
    db: Session = Depends(get_db),
) -> Response:
    """Active roles with their policy and member counts"""
    try:
        return etag_json_response(request, {"roles": CatalogService(db).roles_summary()})
    except AuthorizationCoreError:
        raise
    except Exception as e:
        raise _internal_error("role summary", e)


@meta_router.get("/user-access-matrix")
async def get_all_user_access_matrices(
    request: Request,
    current_user: Principal = Depends(get_current_user),
    db: Session = Depends(get_db),
) -> Response:
    """User access matrix for every user (unresolvable users are skipped)"""
    try:
        return etag_json_response(request, AccessMatrixService(db).build_all_user_access_matrices())
    except AuthorizationCoreError:
        raise
    except Exception as e:
        raise _internal_error("user access matrices", e)


@meta_router.get("/user-access-matrix/{user_id}")
async def get_user_access_matrix(
    user_id: int,
    request: Request,
    current_user: Principal = Depends(get_current_user),
    db: Session = Depends(get_db),
) -> Response:
    """Role -> policy -> endpoint -> page action view for one user"""
    try:
        return etag_json_response(request, AccessMatrixService(db).build_user_access_matrix(user_id))
    except AuthorizationCoreError:
        raise
    except Exception as e:
        raise _internal_error("user access matrix", e)


@meta_router.get("/ui-access-matrix")
async def get_all_ui_access_matrices(
    request: Request,
    current_user: Principal = Depends(get_current_user),
    db: Session = Depends(get_db),
) -> Response:
    """UI access matrix for every active page"""
    try:
        return etag_json_response(request, AccessMatrixService(db).build_all_ui_access_matrices())
    except AuthorizationCoreError:
        raise
    except Exception as e:
        raise _internal_error("UI access matrices", e)


@meta_router.get("/ui-access-matrix/{page_id}")
async def get_ui_access_matrix(
    page_id: int,
    request: Request,
    current_user: Principal = Depends(get_current_user),
    db: Session = Depends(get_db),
) -> Response:
    """Page -> action -> endpoint view for one page"""
    try:
        return etag_json_response(request, AccessMatrixService(db).build_ui_access_matrix(page_id))
    except AuthorizationCoreError:
        raise
    except Exception as e:
        raise _internal_error("UI access matrix", e)
