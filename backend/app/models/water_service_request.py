import uuid
from datetime import datetime, timezone

from sqlalchemy import (
    JSON,
    Boolean,
    CheckConstraint,
    Column,
    Date,
    DateTime,
    Index,
    Integer,
    Numeric,
    String,
    Text,
    text,
)
from sqlalchemy.dialects.postgresql import JSONB
from sqlalchemy.dialects.postgresql import UUID as PGUUID
from sqlalchemy.orm import declarative_base
from sqlalchemy.sql import func
from sqlalchemy.types import CHAR, TypeDecorator

Base = declarative_base()


class GUID(TypeDecorator):
    impl = CHAR
    cache_ok = True

    def load_dialect_impl(self, dialect):
        if dialect.name == "postgresql":
            return dialect.type_descriptor(PGUUID(as_uuid=True))
        return dialect.type_descriptor(CHAR(36))

    def process_bind_param(self, value, dialect):
        if value is None:
            return None
        if isinstance(value, uuid.UUID):
            return value if dialect.name == "postgresql" else str(value)
        if isinstance(value, str):
            try:
                parsed = uuid.UUID(value)
            except ValueError:
                return value
            return parsed if dialect.name == "postgresql" else str(parsed)
        return value

    def process_result_value(self, value, dialect):
        if value is None or isinstance(value, uuid.UUID):
            return value
        try:
            return uuid.UUID(value)
        except ValueError:
            return value


UUID_TYPE = GUID()
JSON_TYPE = JSON().with_variant(JSONB, "postgresql")


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)

REQUEST_STATUS_VALUES = (
    "new",
    "pending_documents",
    "pending_landlord_verification",
    "pending_credit_check",
    "pending_deposit",
    "approved",
    "scheduled_activation",
    "active",
    "suspended",
    "completed",
    "cancelled",
)


def _in_list(column: str, values) -> str:
    quoted = ",".join(f"'{value}'" for value in values)
    return f"{column} IN ({quoted})"


class WaterServiceRequest(Base):
    __tablename__ = "water_service_requests"
    __table_args__ = (
        CheckConstraint(_in_list("status", REQUEST_STATUS_VALUES), name="chk_wsr_status"),
        CheckConstraint(
            _in_list("property_use_type", ("rent", "owner_occupied", "owner_leasing")),
            name="chk_wsr_property_use_type",
        ),
        CheckConstraint("trash_carts_needed BETWEEN 0 AND 10", name="chk_wsr_trash_carts"),
        CheckConstraint("recycle_carts_needed BETWEEN 0 AND 10", name="chk_wsr_recycle_carts"),
        Index("idx_wsr_created_at", "created_at"),
        Index("idx_wsr_status", "status"),
    )

    id = Column(UUID_TYPE, primary_key=True, default=uuid.uuid4)
    created_at = Column(DateTime(timezone=True), default=_utcnow, server_default=func.now(), nullable=False)
    updated_at = Column(DateTime(timezone=True), default=_utcnow, server_default=func.now(), nullable=False)
    status = Column(String(40), nullable=False, default="new", server_default=text("'new'"))

    service_request_date = Column(DateTime(timezone=True))
    service_start_date = Column(Date)
    service_stop_date = Column(Date)

    applicant_name = Column(String(160), nullable=False)
    applicant_email = Column(String(254), nullable=False)
    applicant_phone = Column(String(20), nullable=False)
    applicant_alternate_phone = Column(String(20))
    applicant_work_phone = Column(String(20))
    applicant_drivers_license_number = Column(String(120))
    applicant_drivers_license_state = Column(String(2))
    applicant_date_of_birth = Column(Date)
    applicant_ssn_last4 = Column(String(4))
    applicant_signature_text = Column(String(160))
    applicant_signature_timestamp = Column(DateTime(timezone=True))
    applicant_ip_address = Column(String(45))
    applicant_user_agent = Column(Text)

    has_co_applicant = Column(Boolean, nullable=False, default=False, server_default=text("false"))
    co_applicant_name = Column(String(160))
    co_applicant_email = Column(String(254))
    co_applicant_phone = Column(String(20))
    co_applicant_alternate_phone = Column(String(20))
    co_applicant_work_phone = Column(String(20))
    co_applicant_drivers_license_number = Column(String(120))
    co_applicant_drivers_license_state = Column(String(2))
    co_applicant_date_of_birth = Column(Date)
    co_applicant_ssn_last4 = Column(String(4))
    co_applicant_signature_text = Column(String(160))
    co_applicant_signature_timestamp = Column(DateTime(timezone=True))

    service_address = Column(String(240), nullable=False)
    service_city = Column(String(120))
    service_state = Column(String(2))
    service_postal_code = Column(String(20))

    mailing_address_same_as_service = Column(Boolean, nullable=False, default=True, server_default=text("true"))
    mailing_address = Column(String(240))
    mailing_city = Column(String(120))
    mailing_state = Column(String(2))
    mailing_postal_code = Column(String(20))

    property_use_type = Column(String(20), nullable=False)
    service_territory = Column(String(32))
    landlord_name = Column(String(160))
    landlord_phone = Column(String(20))
    landlord_verified = Column(Boolean, nullable=False, default=False, server_default=text("false"))

    lease_document_path = Column(Text)
    lease_document_original_name = Column(String(255))
    lease_document_uploaded_at = Column(DateTime(timezone=True))
    deed_document_path = Column(Text)
    deed_document_original_name = Column(String(255))
    deed_document_uploaded_at = Column(DateTime(timezone=True))

    trash_carts_needed = Column(Integer, nullable=False, default=1, server_default=text("1"))
    recycle_carts_needed = Column(Integer, nullable=False, default=1, server_default=text("1"))
    has_sprinkler_system = Column(Boolean, nullable=False, default=False, server_default=text("false"))
    has_pool = Column(Boolean, nullable=False, default=False, server_default=text("false"))

    bill_type_preference = Column(String(10), nullable=False, default="email", server_default=text("'email'"))

    deposit_amount_required = Column(Numeric(10, 2))
    deposit_paid = Column(Boolean, nullable=False, default=False, server_default=text("false"))

    acknowledged_service_terms = Column(Boolean, nullable=False, default=False, server_default=text("false"))
    acknowledged_service_terms_timestamp = Column(DateTime(timezone=True))

    staff_notes = Column(Text)
    metadata_json = Column("metadata", JSON_TYPE, nullable=False, default=dict)
