"""Record store for ``water_service_requests`` (insert / update / delete / select)."""

from __future__ import annotations

import uuid
from typing import Any, Optional

from sqlalchemy import select
from sqlalchemy.orm import Session

from app.models.water_service_request import WaterServiceRequest


def _as_uuid(request_id) -> Optional[uuid.UUID]:
    if isinstance(request_id, uuid.UUID):
        return request_id
    try:
        return uuid.UUID(str(request_id))
    except (TypeError, ValueError):
        return None


def insert_request(db: Session, record: dict[str, Any]) -> str:
    row = WaterServiceRequest(**record)
    db.add(row)
    db.flush()
    return str(row.id)


def get_request(db: Session, request_id) -> Optional[WaterServiceRequest]:
    key = _as_uuid(request_id)
    if key is None:
        return None
    return db.get(WaterServiceRequest, key)


def update_request(db: Session, request_id, values: dict[str, Any]) -> Optional[WaterServiceRequest]:
    row = get_request(db, request_id)
    if row is None:
        return None
    for name, value in values.items():
        setattr(row, name, value)
    db.flush()
    return row


def delete_request(db: Session, request_id) -> bool:
    row = get_request(db, request_id)
    if row is None:
        return False
    db.delete(row)
    db.flush()
    return True


def select_requests(
    db: Session,
    *,
    status: Optional[str] = None,
    newest_first: bool = True,
    limit: int = 50,
) -> list[WaterServiceRequest]:
    stmt = select(WaterServiceRequest)
    if status:
        stmt = stmt.where(WaterServiceRequest.status == status)
    order = WaterServiceRequest.created_at.desc() if newest_first else WaterServiceRequest.created_at.asc()
    stmt = stmt.order_by(order).limit(max(1, int(limit)))
    return list(db.execute(stmt).scalars().all())
