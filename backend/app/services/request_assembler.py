"""
Service sign-up form -> persistable record.

The public form has five steps:
  1. contact & billing
  2. addresses & service dates
  3. property & sanitation services
  4. identity, co-applicant & documents
  5. acknowledgement & signature

``parse_form`` turns raw multipart values into a ``WaterServiceRequestForm``;
``validate_step`` / ``validate_submission`` return field-level messages;
``assemble_record`` maps a valid form plus calculator output and stored
document references onto ``water_service_requests`` columns.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field, fields
from datetime import date, datetime
from decimal import Decimal
from typing import Any, Mapping, Optional

from app.core.storage import StoredDocument
from app.schemas.water_service_request import (
    BillTypePreference,
    PropertyUseType,
    RequestStatus,
    ServiceTerritory,
)
from app.services.rate_calculator import RateCalculation, validate_service_dates, validate_service_start_date
from app.services.validators import (
    ValidationResult,
    format_phone_for_storage,
    format_zip_code,
    normalize_drivers_license,
    parse_iso_date,
    sanitize_input,
    ssn_last4,
    validate_address,
    validate_cart_count,
    validate_date_of_birth,
    validate_drivers_license,
    validate_email_detailed,
    validate_file_upload,
    validate_name,
    validate_phone_detailed,
    validate_postal_code_detailed,
    validate_ssn_detailed,
    validate_state_code,
)

logger = logging.getLogger(__name__)

SUBMISSION_SOURCE = "web_form"
DEFAULT_CART_COUNT = 1
SIGNATURE_MAX_LENGTH = 160
TRUE_VALUES = {"true", "1", "yes", "on"}

BOOLEAN_FIELDS = (
    "mailing_address_same_as_service",
    "has_sprinkler_system",
    "has_pool",
    "has_co_applicant",
    "acknowledged_service_terms",
)
CART_FIELDS = ("trash_carts_needed", "recycle_carts_needed")
# Free text fields that are not otherwise pattern-checked get sanitized.
SANITIZED_FIELDS = (
    "service_city",
    "mailing_city",
    "landlord_name",
    "applicant_signature",
    "co_applicant_signature",
)

STEP_FIELDS: dict[int, tuple[str, ...]] = {
    1: (
        "applicant_name",
        "applicant_email",
        "applicant_phone",
        "applicant_alternate_phone",
        "applicant_work_phone",
        "bill_type_preference",
    ),
    2: (
        "service_address",
        "service_city",
        "service_state",
        "service_postal_code",
        "mailing_address_same_as_service",
        "mailing_address",
        "mailing_city",
        "mailing_state",
        "mailing_postal_code",
        "service_start_date",
        "service_stop_date",
    ),
    3: (
        "property_use_type",
        "service_territory",
        "landlord_name",
        "landlord_phone",
        "trash_carts_needed",
        "recycle_carts_needed",
        "has_sprinkler_system",
        "has_pool",
    ),
    4: (
        "applicant_drivers_license_number",
        "applicant_drivers_license_state",
        "applicant_date_of_birth",
        "applicant_ssn",
        "has_co_applicant",
        "co_applicant_name",
        "co_applicant_email",
        "co_applicant_phone",
        "co_applicant_alternate_phone",
        "co_applicant_work_phone",
        "co_applicant_drivers_license_number",
        "co_applicant_drivers_license_state",
        "co_applicant_date_of_birth",
        "co_applicant_ssn",
    ),
    5: (
        "acknowledged_service_terms",
        "applicant_signature",
        "co_applicant_signature",
    ),
}


class RequestValidationFailed(Exception):
    def __init__(self, errors: dict[str, str]):
        super().__init__("Submitted form is not valid")
        self.errors = errors


@dataclass
class UploadedDocument:
    filename: str
    content_type: Optional[str]
    content: bytes

    @property
    def size(self) -> int:
        return len(self.content)


@dataclass
class WaterServiceRequestForm:
    applicant_name: Optional[str] = None
    applicant_email: Optional[str] = None
    applicant_phone: Optional[str] = None
    applicant_alternate_phone: Optional[str] = None
    applicant_work_phone: Optional[str] = None
    bill_type_preference: Optional[str] = None

    service_address: Optional[str] = None
    service_city: Optional[str] = None
    service_state: Optional[str] = None
    service_postal_code: Optional[str] = None
    mailing_address_same_as_service: bool = False
    mailing_address: Optional[str] = None
    mailing_city: Optional[str] = None
    mailing_state: Optional[str] = None
    mailing_postal_code: Optional[str] = None
    service_start_date: Optional[str] = None
    service_stop_date: Optional[str] = None

    property_use_type: Optional[str] = None
    service_territory: Optional[str] = None
    landlord_name: Optional[str] = None
    landlord_phone: Optional[str] = None
    trash_carts_needed: Optional[int] = DEFAULT_CART_COUNT
    recycle_carts_needed: Optional[int] = DEFAULT_CART_COUNT
    has_sprinkler_system: bool = False
    has_pool: bool = False

    applicant_drivers_license_number: Optional[str] = None
    applicant_drivers_license_state: Optional[str] = None
    applicant_date_of_birth: Optional[str] = None
    applicant_ssn: Optional[str] = None
    has_co_applicant: bool = False
    co_applicant_name: Optional[str] = None
    co_applicant_email: Optional[str] = None
    co_applicant_phone: Optional[str] = None
    co_applicant_alternate_phone: Optional[str] = None
    co_applicant_work_phone: Optional[str] = None
    co_applicant_drivers_license_number: Optional[str] = None
    co_applicant_drivers_license_state: Optional[str] = None
    co_applicant_date_of_birth: Optional[str] = None
    co_applicant_ssn: Optional[str] = None

    acknowledged_service_terms: bool = False
    applicant_signature: Optional[str] = None
    co_applicant_signature: Optional[str] = None

    parse_errors: dict[str, str] = field(default_factory=dict)

    @property
    def property_use(self) -> Optional[PropertyUseType]:
        try:
            return PropertyUseType(self.property_use_type) if self.property_use_type else None
        except ValueError:
            return None

    @property
    def territory(self) -> Optional[ServiceTerritory]:
        try:
            return ServiceTerritory(self.service_territory) if self.service_territory else None
        except ValueError:
            return None

    @property
    def bill_type(self) -> BillTypePreference:
        try:
            return BillTypePreference(self.bill_type_preference or BillTypePreference.EMAIL.value)
        except ValueError:
            return BillTypePreference.EMAIL


# ─── Parsing ───────────────────────────────────────────


def _clean_text(value: Any) -> Optional[str]:
    if value is None:
        return None
    text = str(value).strip()
    return text or None


def _parse_bool(value: Any) -> bool:
    if isinstance(value, bool):
        return value
    return str(value or "").strip().lower() in TRUE_VALUES


def _parse_cart_count(value: Any) -> tuple[Optional[int], Optional[str]]:
    if value is None or (isinstance(value, str) and not value.strip()):
        return DEFAULT_CART_COUNT, None
    if isinstance(value, bool):
        return None, "Cart count must be a whole number between 0 and 10"
    try:
        count = int(str(value).strip())
    except ValueError:
        return None, "Cart count must be a whole number between 0 and 10"
    return count, None


def parse_form(raw: Mapping[str, Any]) -> WaterServiceRequestForm:
    """Build a form from raw submitted values (strings, as a multipart form delivers them)."""
    form = WaterServiceRequestForm()
    known = {f.name for f in fields(WaterServiceRequestForm)} - {"parse_errors"}
    for name in known:
        if name not in raw:
            continue
        value = raw[name]
        if name in BOOLEAN_FIELDS:
            setattr(form, name, _parse_bool(value))
        elif name in CART_FIELDS:
            count, error = _parse_cart_count(value)
            setattr(form, name, count)
            if error:
                form.parse_errors[name] = error
        else:
            text = _clean_text(value)
            if text is not None and name in SANITIZED_FIELDS:
                text = sanitize_input(text) or None
            setattr(form, name, text)
    return form


# ─── Validation ────────────────────────────────────────


def _check(errors: dict[str, str], name: str, result: ValidationResult) -> None:
    if not result.valid and name not in errors:
        errors[name] = result.message or "Invalid value"


def _check_optional_phone(errors: dict[str, str], name: str, value: Optional[str]) -> None:
    if value:
        _check(errors, name, validate_phone_detailed(value))


def _check_optional_state(errors: dict[str, str], name: str, value: Optional[str]) -> None:
    if value and not validate_state_code(value):
        errors[name] = "Enter a valid two-letter state code"


def _validate_contact(form: WaterServiceRequestForm, errors: dict[str, str]) -> None:
    _check(errors, "applicant_name", validate_name(form.applicant_name or ""))
    _check(errors, "applicant_email", validate_email_detailed(form.applicant_email or ""))
    _check(errors, "applicant_phone", validate_phone_detailed(form.applicant_phone or ""))
    _check_optional_phone(errors, "applicant_alternate_phone", form.applicant_alternate_phone)
    _check_optional_phone(errors, "applicant_work_phone", form.applicant_work_phone)
    if form.bill_type_preference:
        try:
            BillTypePreference(form.bill_type_preference)
        except ValueError:
            errors["bill_type_preference"] = "Choose mail, email or both"


def _validate_addresses(form: WaterServiceRequestForm, errors: dict[str, str], today: Optional[date]) -> None:
    _check(errors, "service_address", validate_address(form.service_address or ""))
    _check_optional_state(errors, "service_state", form.service_state)
    _check(errors, "service_postal_code", validate_postal_code_detailed(form.service_postal_code or ""))

    if not form.mailing_address_same_as_service:
        if not form.mailing_address:
            errors["mailing_address"] = "Mailing address is required when different from service address"
        else:
            _check(errors, "mailing_address", validate_address(form.mailing_address))
        _check_optional_state(errors, "mailing_state", form.mailing_state)
        _check(errors, "mailing_postal_code", validate_postal_code_detailed(form.mailing_postal_code or ""))

    if form.service_start_date:
        if parse_iso_date(form.service_start_date) is None:
            errors["service_start_date"] = "Enter a valid date"
        elif not validate_service_start_date(form.service_start_date, today=today):
            errors["service_start_date"] = "Service start date cannot be in the past"
    if form.service_stop_date:
        if parse_iso_date(form.service_stop_date) is None:
            errors["service_stop_date"] = "Enter a valid date"
        elif not validate_service_dates(form.service_start_date, form.service_stop_date):
            errors["service_stop_date"] = "Service stop date must be after the start date"


def _validate_property(form: WaterServiceRequestForm, errors: dict[str, str]) -> None:
    errors.update({k: v for k, v in form.parse_errors.items() if k in CART_FIELDS})

    if not form.property_use_type:
        errors["property_use_type"] = "Select how the property is used"
    elif form.property_use is None:
        errors["property_use_type"] = "Select rent, owner occupied or owner leasing"

    if form.service_territory and form.territory is None:
        errors["service_territory"] = "Select inside or outside city limits"

    if form.property_use == PropertyUseType.RENT:
        if not form.landlord_name:
            errors["landlord_name"] = "Landlord name is required for rental properties"
        else:
            _check(errors, "landlord_name", validate_name(form.landlord_name))
        if not form.landlord_phone:
            errors["landlord_phone"] = "Landlord phone is required for rental properties"
        else:
            _check(errors, "landlord_phone", validate_phone_detailed(form.landlord_phone))

    for name in CART_FIELDS:
        if name in errors:
            continue
        if not validate_cart_count(getattr(form, name)):
            errors[name] = "Cart count must be a whole number between 0 and 10"


def _validate_identity(
    errors: dict[str, str],
    prefix: str,
    form: WaterServiceRequestForm,
    today: Optional[date],
) -> None:
    license_number = getattr(form, f"{prefix}_drivers_license_number")
    license_state = getattr(form, f"{prefix}_drivers_license_state")
    dob = getattr(form, f"{prefix}_date_of_birth")
    ssn = getattr(form, f"{prefix}_ssn")

    if license_number:
        _check(errors, f"{prefix}_drivers_license_number", validate_drivers_license(license_number, license_state))
    _check_optional_state(errors, f"{prefix}_drivers_license_state", license_state)
    if dob:
        _check(errors, f"{prefix}_date_of_birth", validate_date_of_birth(dob, today=today))
    _check(errors, f"{prefix}_ssn", validate_ssn_detailed(ssn or ""))


def _validate_co_applicant(form: WaterServiceRequestForm, errors: dict[str, str], today: Optional[date]) -> None:
    _validate_identity(errors, "applicant", form, today)
    if not form.has_co_applicant:
        return

    if not form.co_applicant_name:
        errors["co_applicant_name"] = "Co-applicant name is required when adding a co-applicant"
    else:
        _check(errors, "co_applicant_name", validate_name(form.co_applicant_name))
    if not form.co_applicant_email:
        errors["co_applicant_email"] = "Co-applicant email is required when adding a co-applicant"
    else:
        _check(errors, "co_applicant_email", validate_email_detailed(form.co_applicant_email))
    if not form.co_applicant_phone:
        errors["co_applicant_phone"] = "Co-applicant phone is required when adding a co-applicant"
    else:
        _check(errors, "co_applicant_phone", validate_phone_detailed(form.co_applicant_phone))
    _check_optional_phone(errors, "co_applicant_alternate_phone", form.co_applicant_alternate_phone)
    _check_optional_phone(errors, "co_applicant_work_phone", form.co_applicant_work_phone)
    _validate_identity(errors, "co_applicant", form, today)


def _validate_acknowledgement(form: WaterServiceRequestForm, errors: dict[str, str]) -> None:
    if not form.acknowledged_service_terms:
        errors["acknowledged_service_terms"] = "You must acknowledge the service terms"
    if not form.applicant_signature:
        errors["applicant_signature"] = "Signature is required"
    elif len(form.applicant_signature) > SIGNATURE_MAX_LENGTH:
        errors["applicant_signature"] = f"Signature must be at most {SIGNATURE_MAX_LENGTH} characters"
    if form.co_applicant_signature and len(form.co_applicant_signature) > SIGNATURE_MAX_LENGTH:
        errors["co_applicant_signature"] = f"Signature must be at most {SIGNATURE_MAX_LENGTH} characters"


def validate_step(step: int, form: WaterServiceRequestForm, today: Optional[date] = None) -> dict[str, str]:
    """Field errors that block advancing past ``step`` (1-5)."""
    errors: dict[str, str] = {}
    if step == 1:
        _validate_contact(form, errors)
    elif step == 2:
        _validate_addresses(form, errors, today)
    elif step == 3:
        _validate_property(form, errors)
    elif step == 4:
        _validate_co_applicant(form, errors, today)
    elif step == 5:
        _validate_acknowledgement(form, errors)
    else:
        raise ValueError(f"Unknown form step: {step}")
    return errors


def validate_documents(
    form: WaterServiceRequestForm,
    lease: Optional[UploadedDocument],
    deed: Optional[UploadedDocument],
    *,
    max_bytes: int,
    allowed_types: list[str],
) -> dict[str, str]:
    errors: dict[str, str] = {}
    if form.property_use == PropertyUseType.RENT and lease is None:
        errors["lease_document"] = "A lease document is required for rental properties"
    if form.property_use in (PropertyUseType.OWNER_OCCUPIED, PropertyUseType.OWNER_LEASING) and deed is None:
        errors["deed_document"] = "A deed document is required for owned properties"

    for name, document in (("lease_document", lease), ("deed_document", deed)):
        if document is None or name in errors:
            continue
        _check(
            errors,
            name,
            validate_file_upload(
                document.size,
                document.content_type,
                max_bytes=max_bytes,
                allowed_types=allowed_types,
            ),
        )
    return errors


def validate_submission(
    form: WaterServiceRequestForm,
    lease: Optional[UploadedDocument],
    deed: Optional[UploadedDocument],
    *,
    max_bytes: int,
    allowed_types: list[str],
    today: Optional[date] = None,
) -> dict[str, str]:
    errors: dict[str, str] = {}
    for step in sorted(STEP_FIELDS):
        for name, message in validate_step(step, form, today=today).items():
            errors.setdefault(name, message)
    for name, message in validate_documents(
        form, lease, deed, max_bytes=max_bytes, allowed_types=allowed_types
    ).items():
        errors.setdefault(name, message)
    return errors


# ─── Record mapping ────────────────────────────────────


def _phone(value: Optional[str]) -> Optional[str]:
    return format_phone_for_storage(value) if value else None


def _state(value: Optional[str]) -> Optional[str]:
    return value.strip().upper() if value else None


def _zip(value: Optional[str]) -> Optional[str]:
    return format_zip_code(value) if value else None


def _license(value: Optional[str]) -> Optional[str]:
    return normalize_drivers_license(value) if value else None


def _document_columns(
    prefix: str,
    uploaded: Optional[UploadedDocument],
    stored: Optional[StoredDocument],
    at: datetime,
) -> dict[str, Any]:
    return {
        f"{prefix}_document_path": stored.path if stored else None,
        f"{prefix}_document_original_name": uploaded.filename if uploaded else None,
        f"{prefix}_document_uploaded_at": at if stored else None,
    }


def assemble_record(
    form: WaterServiceRequestForm,
    *,
    monthly_rate: RateCalculation,
    deposit: Decimal,
    submitted_at: datetime,
    lease: Optional[UploadedDocument] = None,
    deed: Optional[UploadedDocument] = None,
    stored_lease: Optional[StoredDocument] = None,
    stored_deed: Optional[StoredDocument] = None,
    ip_address: Optional[str] = None,
    user_agent: Optional[str] = None,
) -> dict[str, Any]:
    """Column values for a new request. Full SSNs are reduced to their last four digits here."""
    has_co = form.has_co_applicant
    mailing_same = form.mailing_address_same_as_service
    territory = form.territory

    record: dict[str, Any] = {
        "status": RequestStatus.NEW.value,
        "service_request_date": submitted_at,
        "service_start_date": parse_iso_date(form.service_start_date),
        "service_stop_date": parse_iso_date(form.service_stop_date),
        "applicant_name": form.applicant_name,
        "applicant_email": form.applicant_email,
        "applicant_phone": _phone(form.applicant_phone),
        "applicant_alternate_phone": _phone(form.applicant_alternate_phone),
        "applicant_work_phone": _phone(form.applicant_work_phone),
        "bill_type_preference": form.bill_type.value,
        "applicant_drivers_license_number": _license(form.applicant_drivers_license_number),
        "applicant_drivers_license_state": _state(form.applicant_drivers_license_state),
        "applicant_date_of_birth": parse_iso_date(form.applicant_date_of_birth),
        "applicant_ssn_last4": ssn_last4(form.applicant_ssn),
        "applicant_signature_text": form.applicant_signature,
        "applicant_signature_timestamp": submitted_at if form.applicant_signature else None,
        "applicant_ip_address": ip_address,
        "applicant_user_agent": user_agent,
        "has_co_applicant": has_co,
        "co_applicant_name": form.co_applicant_name if has_co else None,
        "co_applicant_email": form.co_applicant_email if has_co else None,
        "co_applicant_phone": _phone(form.co_applicant_phone) if has_co else None,
        "co_applicant_alternate_phone": _phone(form.co_applicant_alternate_phone) if has_co else None,
        "co_applicant_work_phone": _phone(form.co_applicant_work_phone) if has_co else None,
        "co_applicant_drivers_license_number": _license(form.co_applicant_drivers_license_number) if has_co else None,
        "co_applicant_drivers_license_state": _state(form.co_applicant_drivers_license_state) if has_co else None,
        "co_applicant_date_of_birth": parse_iso_date(form.co_applicant_date_of_birth) if has_co else None,
        "co_applicant_ssn_last4": ssn_last4(form.co_applicant_ssn) if has_co else None,
        "co_applicant_signature_text": form.co_applicant_signature if has_co else None,
        "co_applicant_signature_timestamp": submitted_at if has_co and form.co_applicant_signature else None,
        "service_address": form.service_address,
        "service_city": form.service_city,
        "service_state": _state(form.service_state),
        "service_postal_code": _zip(form.service_postal_code),
        "mailing_address_same_as_service": mailing_same,
        "mailing_address": None if mailing_same else form.mailing_address,
        "mailing_city": None if mailing_same else form.mailing_city,
        "mailing_state": None if mailing_same else _state(form.mailing_state),
        "mailing_postal_code": None if mailing_same else _zip(form.mailing_postal_code),
        "property_use_type": form.property_use.value if form.property_use else form.property_use_type,
        "service_territory": territory.value if territory else None,
        "landlord_name": form.landlord_name,
        "landlord_phone": _phone(form.landlord_phone),
        "trash_carts_needed": form.trash_carts_needed,
        "recycle_carts_needed": form.recycle_carts_needed,
        "has_sprinkler_system": form.has_sprinkler_system,
        "has_pool": form.has_pool,
        "deposit_amount_required": deposit,
        "acknowledged_service_terms": form.acknowledged_service_terms,
        "acknowledged_service_terms_timestamp": submitted_at if form.acknowledged_service_terms else None,
        "metadata_json": {
            "monthly_rate_calculation": monthly_rate.to_metadata(),
            "submission_source": SUBMISSION_SOURCE,
            "user_agent": user_agent,
        },
    }
    record.update(_document_columns("lease", lease, stored_lease, submitted_at))
    record.update(_document_columns("deed", deed, stored_deed, submitted_at))
    return record
