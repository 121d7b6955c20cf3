"""
Public form submission: calculate, upload documents, insert the request.

Uploads are best-effort: a failed upload is logged and the request is still
saved without that document. Nothing is retried and nothing is rolled back
across the uploads and the insert.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import date, datetime, timezone
from typing import Callable, Optional

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from app.core.config import get_settings
from app.core.storage import FOLDER_DEEDS, FOLDER_LEASES, StorageUploadError, StoredDocument
from app.services import request_store
from app.services.rate_calculator import calculate_deposit, calculate_monthly_rate
from app.services.request_assembler import (
    RequestValidationFailed,
    UploadedDocument,
    WaterServiceRequestForm,
    assemble_record,
    validate_submission,
)

logger = logging.getLogger(__name__)

PERSISTENCE_FAILURE_MESSAGE = "Failed to save request. Please try again."
UNEXPECTED_FAILURE_MESSAGE = "An unexpected error occurred. Please try again."

DocumentUploader = Callable[..., StoredDocument]


class SubmissionPersistenceError(Exception):
    pass


@dataclass(frozen=True)
class SubmissionResult:
    request_id: str
    lease_stored: bool
    deed_stored: bool


def _store_document(
    uploader: DocumentUploader,
    folder: str,
    document: Optional[UploadedDocument],
) -> Optional[StoredDocument]:
    if document is None or not document.content:
        return None
    try:
        return uploader(
            folder=folder,
            filename=document.filename,
            content=document.content,
            content_type=document.content_type,
        )
    except (StorageUploadError, RuntimeError):
        logger.warning("Document upload to %s failed; saving request without it", folder, exc_info=True)
        return None


def submit_water_service_request(
    db: Session,
    form: WaterServiceRequestForm,
    *,
    uploader: DocumentUploader,
    lease: Optional[UploadedDocument] = None,
    deed: Optional[UploadedDocument] = None,
    ip_address: Optional[str] = None,
    user_agent: Optional[str] = None,
    now: Optional[datetime] = None,
    today: Optional[date] = None,
) -> SubmissionResult:
    settings = get_settings()
    errors = validate_submission(
        form,
        lease,
        deed,
        max_bytes=settings.max_document_bytes,
        allowed_types=settings.allowed_document_types,
        today=today,
    )
    if errors:
        raise RequestValidationFailed(errors)

    submitted_at = now or datetime.now(timezone.utc)

    monthly_rate = calculate_monthly_rate(
        form.territory,
        form.trash_carts_needed,
        form.recycle_carts_needed,
        form.has_pool,
        form.has_sprinkler_system,
    )
    # Credit checks happen after submission.
    deposit = calculate_deposit(form.property_use, form.territory, None)

    stored_lease = _store_document(uploader, FOLDER_LEASES, lease)
    stored_deed = _store_document(uploader, FOLDER_DEEDS, deed)

    record = assemble_record(
        form,
        monthly_rate=monthly_rate,
        deposit=deposit,
        submitted_at=submitted_at,
        lease=lease,
        deed=deed,
        stored_lease=stored_lease,
        stored_deed=stored_deed,
        ip_address=ip_address,
        user_agent=user_agent,
    )

    try:
        request_id = request_store.insert_request(db, record)
        db.commit()
    except SQLAlchemyError as exc:
        db.rollback()
        logger.exception("Inserting water service request failed")
        raise SubmissionPersistenceError(PERSISTENCE_FAILURE_MESSAGE) from exc

    logger.info(
        "Water service request %s created (lease=%s, deed=%s)",
        request_id,
        bool(stored_lease),
        bool(stored_deed),
    )
    return SubmissionResult(
        request_id=request_id,
        lease_stored=stored_lease is not None,
        deed_stored=stored_deed is not None,
    )
