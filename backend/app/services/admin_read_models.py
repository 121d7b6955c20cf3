"""Read models for the admin dashboard: recent requests, detail view and counters."""

from __future__ import annotations

from datetime import datetime, timezone
from typing import Optional

from sqlalchemy import func, select
from sqlalchemy.orm import Session

from app.models.water_service_request import WaterServiceRequest
from app.schemas.water_service_request import (
    DashboardStats,
    RequestStatus,
    WaterServiceRequestOut,
    WaterServiceRequestSummary,
)
from app.services import request_store
from app.services.validators import mask_ssn

PENDING_VERIFICATION_STATUSES = (
    RequestStatus.PENDING_DOCUMENTS.value,
    RequestStatus.PENDING_LANDLORD_VERIFICATION.value,
    RequestStatus.PENDING_CREDIT_CHECK.value,
)


def request_summary(row: WaterServiceRequest) -> WaterServiceRequestSummary:
    return WaterServiceRequestSummary(
        id=str(row.id),
        created_at=row.created_at,
        status=row.status,
        applicant_name=row.applicant_name,
        applicant_email=row.applicant_email,
        applicant_phone=row.applicant_phone,
        property_use_type=row.property_use_type,
        service_address=row.service_address,
        service_city=row.service_city,
        service_state=row.service_state,
        service_start_date=row.service_start_date,
        service_stop_date=row.service_stop_date,
    )


def request_detail(row: WaterServiceRequest) -> WaterServiceRequestOut:
    return WaterServiceRequestOut(
        id=str(row.id),
        created_at=row.created_at,
        updated_at=row.updated_at,
        status=row.status,
        service_request_date=row.service_request_date,
        service_start_date=row.service_start_date,
        service_stop_date=row.service_stop_date,
        applicant_name=row.applicant_name,
        applicant_email=row.applicant_email,
        applicant_phone=row.applicant_phone,
        applicant_alternate_phone=row.applicant_alternate_phone,
        applicant_work_phone=row.applicant_work_phone,
        applicant_drivers_license_number=row.applicant_drivers_license_number,
        applicant_drivers_license_state=row.applicant_drivers_license_state,
        applicant_date_of_birth=row.applicant_date_of_birth,
        applicant_ssn_masked=mask_ssn(row.applicant_ssn_last4),
        applicant_signature_text=row.applicant_signature_text,
        applicant_signature_timestamp=row.applicant_signature_timestamp,
        applicant_ip_address=row.applicant_ip_address,
        applicant_user_agent=row.applicant_user_agent,
        has_co_applicant=bool(row.has_co_applicant),
        co_applicant_name=row.co_applicant_name,
        co_applicant_email=row.co_applicant_email,
        co_applicant_phone=row.co_applicant_phone,
        co_applicant_alternate_phone=row.co_applicant_alternate_phone,
        co_applicant_work_phone=row.co_applicant_work_phone,
        co_applicant_drivers_license_number=row.co_applicant_drivers_license_number,
        co_applicant_drivers_license_state=row.co_applicant_drivers_license_state,
        co_applicant_date_of_birth=row.co_applicant_date_of_birth,
        co_applicant_ssn_masked=mask_ssn(row.co_applicant_ssn_last4),
        co_applicant_signature_text=row.co_applicant_signature_text,
        co_applicant_signature_timestamp=row.co_applicant_signature_timestamp,
        service_address=row.service_address,
        service_city=row.service_city,
        service_state=row.service_state,
        service_postal_code=row.service_postal_code,
        mailing_address_same_as_service=bool(row.mailing_address_same_as_service),
        mailing_address=row.mailing_address,
        mailing_city=row.mailing_city,
        mailing_state=row.mailing_state,
        mailing_postal_code=row.mailing_postal_code,
        property_use_type=row.property_use_type,
        service_territory=row.service_territory,
        landlord_name=row.landlord_name,
        landlord_phone=row.landlord_phone,
        landlord_verified=bool(row.landlord_verified),
        lease_document_path=row.lease_document_path,
        lease_document_original_name=row.lease_document_original_name,
        lease_document_uploaded_at=row.lease_document_uploaded_at,
        deed_document_path=row.deed_document_path,
        deed_document_original_name=row.deed_document_original_name,
        deed_document_uploaded_at=row.deed_document_uploaded_at,
        trash_carts_needed=row.trash_carts_needed,
        recycle_carts_needed=row.recycle_carts_needed,
        has_sprinkler_system=bool(row.has_sprinkler_system),
        has_pool=bool(row.has_pool),
        bill_type_preference=row.bill_type_preference,
        deposit_amount_required=row.deposit_amount_required,
        deposit_paid=bool(row.deposit_paid),
        acknowledged_service_terms=bool(row.acknowledged_service_terms),
        acknowledged_service_terms_timestamp=row.acknowledged_service_terms_timestamp,
        staff_notes=row.staff_notes,
        metadata=row.metadata_json or {},
    )


def list_recent_requests(
    db: Session,
    *,
    limit: int,
    status: Optional[RequestStatus] = None,
) -> list[WaterServiceRequestSummary]:
    rows = request_store.select_requests(
        db,
        status=status.value if status else None,
        newest_first=True,
        limit=limit,
    )
    return [request_summary(row) for row in rows]


def _month_start(now: datetime) -> datetime:
    return now.replace(day=1, hour=0, minute=0, second=0, microsecond=0)


def dashboard_stats(db: Session, now: Optional[datetime] = None) -> DashboardStats:
    counts = dict(
        db.execute(
            select(WaterServiceRequest.status, func.count()).group_by(WaterServiceRequest.status)
        ).all()
    )

    month_start = _month_start(now or datetime.now(timezone.utc))
    if db.get_bind().dialect.name == "sqlite":
        month_start = month_start.replace(tzinfo=None)
    completed_this_month = db.scalar(
        select(func.count())
        .select_from(WaterServiceRequest)
        .where(
            WaterServiceRequest.status == RequestStatus.COMPLETED.value,
            WaterServiceRequest.updated_at >= month_start,
        )
    ) or 0

    return DashboardStats(
        total_requests=sum(counts.values()),
        new_requests=counts.get(RequestStatus.NEW.value, 0),
        pending_verification=sum(counts.get(s, 0) for s in PENDING_VERIFICATION_STATUSES),
        pending_deposits=counts.get(RequestStatus.PENDING_DEPOSIT.value, 0),
        scheduled_activations=counts.get(RequestStatus.SCHEDULED_ACTIVATION.value, 0),
        active_accounts=counts.get(RequestStatus.ACTIVE.value, 0),
        completed_this_month=completed_this_month,
        cancelled=counts.get(RequestStatus.CANCELLED.value, 0),
    )
