"""Admin status changes. Any status may be set from any status; the last write wins."""

from __future__ import annotations

import logging
from datetime import datetime, timezone
from typing import Optional, Union

from sqlalchemy.orm import Session

from app.models.water_service_request import WaterServiceRequest
from app.schemas.water_service_request import RequestStatus
from app.services import request_store

logger = logging.getLogger(__name__)


class RequestNotFoundError(Exception):
    pass


def update_request_status(
    db: Session,
    request_id: str,
    status: Union[RequestStatus, str],
    *,
    actor: Optional[str] = None,
    now: Optional[datetime] = None,
) -> WaterServiceRequest:
    """Set ``status`` and ``updated_at``. Unknown status strings raise ``ValueError``."""
    new_status = RequestStatus(status)
    stamp = now or datetime.now(timezone.utc)

    row = request_store.update_request(
        db,
        request_id,
        {"status": new_status.value, "updated_at": stamp},
    )
    if row is None:
        raise RequestNotFoundError(request_id)

    logger.info("Request %s status set to %s by %s", request_id, new_status.value, actor or "unknown")
    return row


def delete_request(db: Session, request_id: str, *, actor: Optional[str] = None) -> None:
    """Remove the record. Stored documents are left in the bucket."""
    if not request_store.delete_request(db, request_id):
        raise RequestNotFoundError(request_id)
    logger.info("Request %s deleted by %s", request_id, actor or "unknown")
