"""
Admin API: session login/logout and review of submitted water service requests.
"""

from __future__ import annotations

import logging
from typing import Optional

from fastapi import APIRouter, Depends, HTTPException, Query, Response
from sqlalchemy.orm import Session

from app.core.auth import (
    AdminSession,
    authenticate_admin,
    create_admin_session,
    require_admin_session,
    revoke_admin_session,
    safe_redirect_target,
)
from app.core.config import get_settings
from app.core.dependencies import get_db
from app.schemas.water_service_request import (
    AdminLoginRequest,
    AdminLoginResponse,
    AdminSessionOut,
    DashboardStats,
    RequestStatus,
    StatusUpdateRequest,
    StatusUpdateResponse,
    WaterServiceRequestListResponse,
    WaterServiceRequestOut,
)
from app.services import request_store
from app.services.admin_read_models import dashboard_stats, list_recent_requests, request_detail
from app.services.status_workflow import RequestNotFoundError, delete_request, update_request_status

logger = logging.getLogger(__name__)

router = APIRouter()


# ─── Session ──────────────────────────────────────────


@router.post("/admin/login", response_model=AdminLoginResponse)
async def admin_login(payload: AdminLoginRequest, response: Response):
    username = (payload.username or "").strip()
    if not username or not payload.password:
        raise HTTPException(400, "Username and password are required")
    if not authenticate_admin(username, payload.password):
        logger.warning("Rejected admin login for %s", username)
        raise HTTPException(401, "Invalid username or password")

    settings = get_settings()
    session, token = create_admin_session(username)
    response.set_cookie(
        settings.session_cookie_name,
        token,
        max_age=settings.session_ttl_hours * 3600,
        path="/",
        httponly=True,
        samesite="lax",
        secure=settings.session_cookie_secure,
    )
    return AdminLoginResponse(
        username=session.username,
        expires_at=session.expires_at,
        redirect_to=safe_redirect_target(payload.redirect_to),
        token=token,
    )


@router.post("/admin/logout")
async def admin_logout(response: Response, session: AdminSession = Depends(require_admin_session)):
    revoke_admin_session(session)
    response.delete_cookie(get_settings().session_cookie_name, path="/")
    return {"success": True}


@router.get("/admin/session", response_model=AdminSessionOut)
async def admin_session_info(session: AdminSession = Depends(require_admin_session)):
    return AdminSessionOut(
        username=session.username,
        issued_at=session.issued_at,
        expires_at=session.expires_at,
    )


# ─── Requests ─────────────────────────────────────────


@router.get("/admin/requests", response_model=WaterServiceRequestListResponse)
async def list_requests(
    status: Optional[RequestStatus] = Query(None),
    limit: Optional[int] = Query(None, ge=1),
    session: AdminSession = Depends(require_admin_session),
    db: Session = Depends(get_db),
):
    max_limit = get_settings().admin_list_limit
    effective_limit = min(limit or max_limit, max_limit)
    items = list_recent_requests(db, limit=effective_limit, status=status)
    return WaterServiceRequestListResponse(items=items, total=len(items), limit=effective_limit)


@router.get("/admin/requests/{request_id}", response_model=WaterServiceRequestOut)
async def get_request_detail(
    request_id: str,
    session: AdminSession = Depends(require_admin_session),
    db: Session = Depends(get_db),
):
    row = request_store.get_request(db, request_id)
    if row is None:
        raise HTTPException(404, "Request not found")
    return request_detail(row)


@router.patch("/admin/requests/{request_id}/status", response_model=StatusUpdateResponse)
async def change_request_status(
    request_id: str,
    payload: StatusUpdateRequest,
    session: AdminSession = Depends(require_admin_session),
    db: Session = Depends(get_db),
):
    try:
        row = update_request_status(db, request_id, payload.status, actor=session.username)
    except RequestNotFoundError as exc:
        raise HTTPException(404, "Request not found") from exc
    db.commit()
    return StatusUpdateResponse(id=str(row.id), status=row.status, updated_at=row.updated_at)


@router.delete("/admin/requests/{request_id}")
async def remove_request(
    request_id: str,
    session: AdminSession = Depends(require_admin_session),
    db: Session = Depends(get_db),
):
    try:
        delete_request(db, request_id, actor=session.username)
    except RequestNotFoundError as exc:
        raise HTTPException(404, "Request not found") from exc
    db.commit()
    return {"success": True, "id": request_id}


@router.get("/admin/stats", response_model=DashboardStats)
async def admin_stats(
    session: AdminSession = Depends(require_admin_session),
    db: Session = Depends(get_db),
):
    return dashboard_stats(db)
