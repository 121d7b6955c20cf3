from datetime import date, datetime
from decimal import Decimal
from enum import Enum
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, Field


class RequestStatus(str, Enum):
    NEW = "new"
    PENDING_DOCUMENTS = "pending_documents"
    PENDING_LANDLORD_VERIFICATION = "pending_landlord_verification"
    PENDING_CREDIT_CHECK = "pending_credit_check"
    PENDING_DEPOSIT = "pending_deposit"
    APPROVED = "approved"
    SCHEDULED_ACTIVATION = "scheduled_activation"
    ACTIVE = "active"
    SUSPENDED = "suspended"
    COMPLETED = "completed"
    CANCELLED = "cancelled"


class PropertyUseType(str, Enum):
    RENT = "rent"
    OWNER_OCCUPIED = "owner_occupied"
    OWNER_LEASING = "owner_leasing"


class ServiceTerritory(str, Enum):
    INSIDE_CITY_LIMITS = "inside_city_limits"
    OUTSIDE_CITY_LIMITS = "outside_city_limits"


class BillTypePreference(str, Enum):
    MAIL = "mail"
    EMAIL = "email"
    BOTH = "both"


class ValidatedField(str, Enum):
    PHONE = "phone"
    EMAIL = "email"
    SSN = "ssn"
    ZIP = "zip"
    DATE_OF_BIRTH = "date_of_birth"
    DRIVERS_LICENSE = "drivers_license"
    NAME = "name"
    ADDRESS = "address"


# ─── Public ─────────────────────────────────────────────


class SubmissionResponse(BaseModel):
    success: bool
    id: Optional[str] = None
    error: Optional[str] = None
    errors: Dict[str, str] = Field(default_factory=dict)


class RateCalculationOut(BaseModel):
    water_rate: Decimal
    trash_rate: Decimal
    recycle_rate: Decimal
    pool_surcharge: Decimal
    subtotal: Decimal
    estimated_total: Decimal
    notes: List[str]
    base_water_rate: Decimal
    trash_base_rate: Decimal
    recycle_base_rate: Decimal
    territory_multiplier: Decimal
    additional_trash_cart_fee: Decimal
    additional_recycle_cart_fee: Decimal
    irrigation_tier_rate: Decimal
    deposit_required: Decimal


class RateEstimateResponse(BaseModel):
    monthly_rate: RateCalculationOut
    deposit_amount: Optional[Decimal] = None
    credit_score_applied: Optional[int] = None


class FieldValidationRequest(BaseModel):
    field: ValidatedField
    value: str = ""
    state: Optional[str] = None


class FieldValidationResponse(BaseModel):
    field: ValidatedField
    valid: bool
    message: Optional[str] = None
    suggestion: Optional[str] = None
    formatted: Optional[str] = None


class StepValidationRequest(BaseModel):
    step: int = Field(ge=1, le=5)
    fields: Dict[str, Any] = Field(default_factory=dict)


class StepValidationResponse(BaseModel):
    step: int
    valid: bool
    errors: Dict[str, str] = Field(default_factory=dict)


# ─── Admin ──────────────────────────────────────────────


class AdminLoginRequest(BaseModel):
    username: str = ""
    password: str = ""
    redirect_to: Optional[str] = None


class AdminLoginResponse(BaseModel):
    username: str
    expires_at: datetime
    redirect_to: str
    token: str


class AdminSessionOut(BaseModel):
    username: str
    issued_at: datetime
    expires_at: datetime


class StatusUpdateRequest(BaseModel):
    status: RequestStatus


class WaterServiceRequestSummary(BaseModel):
    id: str
    created_at: Optional[datetime] = None
    status: RequestStatus
    applicant_name: str
    applicant_email: Optional[str] = None
    applicant_phone: Optional[str] = None
    property_use_type: PropertyUseType
    service_address: Optional[str] = None
    service_city: Optional[str] = None
    service_state: Optional[str] = None
    service_start_date: Optional[date] = None
    service_stop_date: Optional[date] = None


class WaterServiceRequestListResponse(BaseModel):
    items: List[WaterServiceRequestSummary]
    total: int
    limit: int


class WaterServiceRequestOut(BaseModel):
    id: str
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None
    status: RequestStatus
    service_request_date: Optional[datetime] = None
    service_start_date: Optional[date] = None
    service_stop_date: Optional[date] = None

    applicant_name: str
    applicant_email: str
    applicant_phone: str
    applicant_alternate_phone: Optional[str] = None
    applicant_work_phone: Optional[str] = None
    applicant_drivers_license_number: Optional[str] = None
    applicant_drivers_license_state: Optional[str] = None
    applicant_date_of_birth: Optional[date] = None
    applicant_ssn_masked: Optional[str] = None
    applicant_signature_text: Optional[str] = None
    applicant_signature_timestamp: Optional[datetime] = None
    applicant_ip_address: Optional[str] = None
    applicant_user_agent: Optional[str] = None

    has_co_applicant: bool = False
    co_applicant_name: Optional[str] = None
    co_applicant_email: Optional[str] = None
    co_applicant_phone: Optional[str] = None
    co_applicant_alternate_phone: Optional[str] = None
    co_applicant_work_phone: Optional[str] = None
    co_applicant_drivers_license_number: Optional[str] = None
    co_applicant_drivers_license_state: Optional[str] = None
    co_applicant_date_of_birth: Optional[date] = None
    co_applicant_ssn_masked: Optional[str] = None
    co_applicant_signature_text: Optional[str] = None
    co_applicant_signature_timestamp: Optional[datetime] = None

    service_address: str
    service_city: Optional[str] = None
    service_state: Optional[str] = None
    service_postal_code: Optional[str] = None
    mailing_address_same_as_service: bool = True
    mailing_address: Optional[str] = None
    mailing_city: Optional[str] = None
    mailing_state: Optional[str] = None
    mailing_postal_code: Optional[str] = None

    property_use_type: PropertyUseType
    service_territory: Optional[ServiceTerritory] = None
    landlord_name: Optional[str] = None
    landlord_phone: Optional[str] = None
    landlord_verified: bool = False

    lease_document_path: Optional[str] = None
    lease_document_original_name: Optional[str] = None
    lease_document_uploaded_at: Optional[datetime] = None
    deed_document_path: Optional[str] = None
    deed_document_original_name: Optional[str] = None
    deed_document_uploaded_at: Optional[datetime] = None

    trash_carts_needed: int
    recycle_carts_needed: int
    has_sprinkler_system: bool = False
    has_pool: bool = False
    bill_type_preference: BillTypePreference

    deposit_amount_required: Optional[Decimal] = None
    deposit_paid: bool = False
    acknowledged_service_terms: bool = False
    acknowledged_service_terms_timestamp: Optional[datetime] = None
    staff_notes: Optional[str] = None
    metadata: Dict[str, Any] = Field(default_factory=dict)


class StatusUpdateResponse(BaseModel):
    id: str
    status: RequestStatus
    updated_at: datetime


class DashboardStats(BaseModel):
    total_requests: int = 0
    new_requests: int = 0
    pending_verification: int = 0
    pending_deposits: int = 0
    scheduled_activations: int = 0
    active_accounts: int = 0
    completed_this_month: int = 0
    cancelled: int = 0
