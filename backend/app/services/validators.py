"""Field validators and input formatters for the service sign-up form.

Validators take the raw string and return a ``ValidationResult``. Formatters
reshape partial keystrokes and never raise: when the input does not look like
the expected value they hand it back unchanged.
"""

from __future__ import annotations

import re
from dataclasses import dataclass
from datetime import date, datetime
from typing import Optional, Union

_NON_DIGITS = re.compile(r"\D")

US_STATE_CODES = frozenset(
    {
        "AL", "AK", "AZ", "AR", "CA", "CO", "CT", "DE", "FL", "GA",
        "HI", "ID", "IL", "IN", "IA", "KS", "KY", "LA", "ME", "MD",
        "MA", "MI", "MN", "MS", "MO", "MT", "NE", "NV", "NH", "NJ",
        "NM", "NY", "NC", "ND", "OH", "OK", "OR", "PA", "RI", "SC",
        "SD", "TN", "TX", "UT", "VT", "VA", "WA", "WV", "WI", "WY",
        "DC",
    }
)

EMAIL_MAX_LENGTH = 254
EMAIL_LOCAL_MAX_LENGTH = 64
_EMAIL_PATTERN = re.compile(
    r"^[A-Za-z0-9!#$%&'*+/=?^_`{|}~-]+(?:\.[A-Za-z0-9!#$%&'*+/=?^_`{|}~-]+)*"
    r"@(?:[A-Za-z0-9](?:[A-Za-z0-9-]{0,61}[A-Za-z0-9])?\.)+[A-Za-z]{2,63}$"
)

# Common misspellings -> intended domain. Flagged, not rejected.
EMAIL_DOMAIN_TYPOS = {
    "gmial.com": "gmail.com",
    "gmai.com": "gmail.com",
    "gmal.com": "gmail.com",
    "gamil.com": "gmail.com",
    "gnail.com": "gmail.com",
    "gmail.co": "gmail.com",
    "gmail.con": "gmail.com",
    "hotmial.com": "hotmail.com",
    "hotmal.com": "hotmail.com",
    "hotmail.co": "hotmail.com",
    "yahooo.com": "yahoo.com",
    "yaho.com": "yahoo.com",
    "yahoo.co": "yahoo.com",
    "outlok.com": "outlook.com",
    "outloo.com": "outlook.com",
    "iclod.com": "icloud.com",
    "icloud.co": "icloud.com",
}

DRIVERS_LICENSE_PATTERNS = {
    "TX": (re.compile(r"^\d{8}$"), "Texas licenses are 8 digits"),
    "CA": (re.compile(r"^[A-Z]\d{7}$"), "California licenses are 1 letter followed by 7 digits"),
    "FL": (re.compile(r"^[A-Z]\d{12}$"), "Florida licenses are 1 letter followed by 12 digits"),
    "NY": (
        re.compile(r"^(?:\d{9}|[A-Z]\d{18})$"),
        "New York licenses are 9 digits, or 1 letter followed by 18 digits",
    ),
}
_GENERIC_LICENSE = re.compile(r"^[A-Z0-9]{5,20}$")

NAME_MIN_LENGTH = 2
NAME_MAX_LENGTH = 160
ADDRESS_MIN_LENGTH = 5
ADDRESS_MAX_LENGTH = 240
MIN_APPLICANT_AGE = 18
MAX_APPLICANT_AGE = 120
MAX_CARTS = 10
SANITIZED_MAX_LENGTH = 500


@dataclass(frozen=True)
class ValidationResult:
    valid: bool
    message: Optional[str] = None
    suggestion: Optional[str] = None

    def as_dict(self) -> dict:
        out: dict = {"valid": self.valid}
        if self.message:
            out["message"] = self.message
        if self.suggestion:
            out["suggestion"] = self.suggestion
        return out


VALID = ValidationResult(True)


def _invalid(message: str) -> ValidationResult:
    return ValidationResult(False, message)


def digits_only(value: Optional[str]) -> str:
    return _NON_DIGITS.sub("", value or "")


# ─── Phone ─────────────────────────────────────────────


def validate_phone_detailed(phone: str) -> ValidationResult:
    cleaned = digits_only(phone)
    if not cleaned:
        return _invalid("Phone number is required")
    if len(cleaned) != 10:
        return _invalid("Phone number must be 10 digits")
    if cleaned[0] in "01":
        return _invalid("Area code cannot start with 0 or 1")
    if cleaned[3] == "0":
        return _invalid("Exchange code cannot start with 0")
    return VALID


def validate_phone(phone: str) -> bool:
    return validate_phone_detailed(phone).valid


def format_phone_input(partial: str) -> str:
    """Reshape an in-progress phone entry into ``(555) 123-4567`` form."""
    digits = digits_only(partial)
    if not digits:
        return partial
    if len(digits) == 11 and digits[0] == "1":
        digits = digits[1:]
    digits = digits[:10]
    if len(digits) <= 3:
        return digits
    if len(digits) <= 6:
        return f"({digits[:3]}) {digits[3:]}"
    return f"({digits[:3]}) {digits[3:6]}-{digits[6:]}"


def format_phone_for_storage(phone: str) -> str:
    return digits_only(phone)


def format_phone_for_display(phone: str) -> str:
    cleaned = digits_only(phone)
    if len(cleaned) != 10:
        return phone
    return f"({cleaned[:3]}) {cleaned[3:6]}-{cleaned[6:]}"


# ─── Email ─────────────────────────────────────────────


def validate_email_detailed(email: str) -> ValidationResult:
    value = (email or "").strip()
    if not value:
        return _invalid("Email address is required")
    if len(value) > EMAIL_MAX_LENGTH:
        return _invalid(f"Email address must be at most {EMAIL_MAX_LENGTH} characters")
    if value.count("@") != 1:
        return _invalid("Enter a valid email address")
    local, domain = value.split("@", 1)
    if len(local) > EMAIL_LOCAL_MAX_LENGTH:
        return _invalid(f"The part before @ must be at most {EMAIL_LOCAL_MAX_LENGTH} characters")
    if not _EMAIL_PATTERN.match(value):
        return _invalid("Enter a valid email address")

    correction = EMAIL_DOMAIN_TYPOS.get(domain.lower())
    if correction:
        suggestion = f"{local}@{correction}"
        return ValidationResult(True, f"Did you mean {suggestion}?", suggestion)
    return VALID


def validate_email(email: str) -> bool:
    return validate_email_detailed(email).valid


# ─── SSN ───────────────────────────────────────────────


def validate_ssn_detailed(ssn: str) -> ValidationResult:
    """SSN is optional: an empty value is valid."""
    if not (ssn or "").strip():
        return VALID
    cleaned = digits_only(ssn)
    if len(cleaned) != 9:
        return _invalid("SSN must be 9 digits")
    if len(set(cleaned)) == 1:
        return _invalid("SSN cannot be all the same digit")
    area = int(cleaned[:3])
    if area == 0 or area == 666 or area >= 900:
        return _invalid("SSN area number is not valid")
    if cleaned[3:5] == "00":
        return _invalid("SSN group number cannot be 00")
    if cleaned[5:] == "0000":
        return _invalid("SSN serial number cannot be 0000")
    return VALID


def validate_ssn(ssn: str) -> bool:
    return bool(digits_only(ssn)) and validate_ssn_detailed(ssn).valid


def format_ssn_input(partial: str) -> str:
    digits = digits_only(partial)
    if not digits:
        return partial
    digits = digits[:9]
    if len(digits) <= 3:
        return digits
    if len(digits) <= 5:
        return f"{digits[:3]}-{digits[3:]}"
    return f"{digits[:3]}-{digits[3:5]}-{digits[5:]}"


def ssn_last4(ssn: Optional[str]) -> Optional[str]:
    cleaned = digits_only(ssn)
    if not cleaned:
        return None
    return cleaned[-4:]


def mask_ssn(last4: Optional[str]) -> Optional[str]:
    if not last4:
        return None
    return f"***-**-{last4}"


# ─── ZIP ───────────────────────────────────────────────


def validate_postal_code_detailed(zip_code: str) -> ValidationResult:
    """ZIP is optional: an empty value is valid."""
    if not (zip_code or "").strip():
        return VALID
    if not validate_zip_code(zip_code):
        return _invalid("ZIP code must be 5 or 9 digits")
    return VALID


def validate_zip_code(zip_code: str) -> bool:
    return len(digits_only(zip_code)) in (5, 9)


def format_zip_code_input(partial: str) -> str:
    digits = digits_only(partial)
    if not digits:
        return partial
    digits = digits[:9]
    if len(digits) <= 5:
        return digits
    return f"{digits[:5]}-{digits[5:]}"


def format_zip_code(zip_code: str) -> str:
    cleaned = digits_only(zip_code)
    if len(cleaned) == 9:
        return f"{cleaned[:5]}-{cleaned[5:]}"
    return cleaned


# ─── Dates ─────────────────────────────────────────────


def parse_iso_date(value: Union[str, date, datetime, None]) -> Optional[date]:
    if value is None:
        return None
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value
    raw = str(value).strip()
    if not raw:
        return None
    try:
        return date.fromisoformat(raw[:10])
    except ValueError:
        return None


def age_on(born: date, today: date) -> int:
    """Whole years between ``born`` and ``today`` using calendar month/day."""
    years = today.year - born.year
    if (today.month, today.day) < (born.month, born.day):
        years -= 1
    return years


def validate_date_of_birth(
    dob: Union[str, date, None],
    today: Optional[date] = None,
) -> ValidationResult:
    born = parse_iso_date(dob)
    if born is None:
        return _invalid("Enter a valid date of birth")
    today = today or date.today()
    if born > today:
        return _invalid("Date of birth cannot be in the future")
    age = age_on(born, today)
    if age < MIN_APPLICANT_AGE:
        return _invalid(f"Applicant must be at least {MIN_APPLICANT_AGE} years old")
    if age > MAX_APPLICANT_AGE:
        return _invalid("Invalid date of birth")
    return VALID


def validate_future_date(value: Union[str, date, None], today: Optional[date] = None) -> bool:
    parsed = parse_iso_date(value)
    if parsed is None:
        return False
    return parsed >= (today or date.today())


def validate_date_range(start: Union[str, date, None], end: Union[str, date, None]) -> bool:
    start_date = parse_iso_date(start)
    end_date = parse_iso_date(end)
    if start_date is None or end_date is None:
        return False
    return end_date > start_date


# ─── Identity ──────────────────────────────────────────


def normalize_drivers_license(number: str) -> str:
    return re.sub(r"[\s-]", "", number or "").upper()


def validate_drivers_license(number: str, state: Optional[str] = None) -> ValidationResult:
    cleaned = normalize_drivers_license(number)
    if not cleaned:
        return _invalid("Driver's license number is required")
    state_code = (state or "").strip().upper()
    rule = DRIVERS_LICENSE_PATTERNS.get(state_code)
    if rule is not None:
        pattern, hint = rule
        if not pattern.match(cleaned):
            return _invalid(hint)
        return VALID
    if not _GENERIC_LICENSE.match(cleaned):
        return _invalid("Driver's license must be 5-20 letters or digits")
    return VALID


def validate_state_code(state: str) -> bool:
    return (state or "").strip().upper() in US_STATE_CODES


def validate_name(name: str) -> ValidationResult:
    value = (name or "").strip()
    if not value:
        return _invalid("Name is required")
    if len(value) < NAME_MIN_LENGTH:
        return _invalid(f"Name must be at least {NAME_MIN_LENGTH} characters")
    if len(value) > NAME_MAX_LENGTH:
        return _invalid(f"Name must be at most {NAME_MAX_LENGTH} characters")
    if value.isdigit():
        return _invalid("Name cannot be only numbers")
    if not any(ch.isalpha() for ch in value):
        return _invalid("Name must contain at least one letter")
    return VALID


def validate_address(address: str) -> ValidationResult:
    value = (address or "").strip()
    if not value:
        return _invalid("Address is required")
    if len(value) < ADDRESS_MIN_LENGTH:
        return _invalid(f"Address must be at least {ADDRESS_MIN_LENGTH} characters")
    if len(value) > ADDRESS_MAX_LENGTH:
        return _invalid(f"Address must be at most {ADDRESS_MAX_LENGTH} characters")
    if not any(ch.isdigit() for ch in value):
        return _invalid("Address must include a street number")
    return VALID


# ─── Misc ──────────────────────────────────────────────


def validate_cart_count(count) -> bool:
    if isinstance(count, bool) or not isinstance(count, int):
        return False
    return 0 <= count <= MAX_CARTS


def validate_file_upload(
    size: int,
    content_type: Optional[str],
    *,
    max_bytes: int,
    allowed_types: list[str],
) -> ValidationResult:
    if size > max_bytes:
        max_mb = max_bytes // (1024 * 1024)
        return _invalid(f"File size must be less than {max_mb}MB")
    if (content_type or "").lower() not in {t.lower() for t in allowed_types}:
        return _invalid("File type must be PDF or image (JPG, PNG, HEIC)")
    return VALID


def sanitize_input(value: Optional[str]) -> str:
    cleaned = (value or "").strip()
    cleaned = cleaned.replace("<", "").replace(">", "")
    cleaned = re.sub(r"javascript:", "", cleaned, flags=re.IGNORECASE)
    return cleaned[:SANITIZED_MAX_LENGTH]
