"""
Unit tests for request_assembler: form parsing, step rules and record mapping.

Covers:
  - parse_form: booleans, cart defaults, non-numeric carts, sanitizing
  - validate_step: conditional requirements per step
  - validate_documents: lease for rentals, deed for owners, size/type limits
  - assemble_record: column mapping, SSN reduction, metadata bag
"""

from __future__ import annotations

from datetime import date, datetime, timezone
from decimal import Decimal

import pytest
from form_values import valid_form_values

from app.core.storage import StoredDocument
from app.services.rate_calculator import calculate_monthly_rate
from app.services.request_assembler import (
    UploadedDocument,
    assemble_record,
    parse_form,
    validate_documents,
    validate_step,
    validate_submission,
)

TODAY = date(2026, 6, 15)
ALLOWED = ["application/pdf", "image/jpeg", "image/png"]
MAX_BYTES = 1024 * 1024


def _pdf(name="lease.pdf", size=100):
    return UploadedDocument(filename=name, content_type="application/pdf", content=b"%" * size)


# ─── Parsing ──────────────────────────────────────────────────────────────


class TestParseForm:
    def test_booleans(self):
        form = parse_form({"has_pool": "on", "has_sprinkler_system": "no", "has_co_applicant": "1"})

        assert form.has_pool is True
        assert form.has_sprinkler_system is False
        assert form.has_co_applicant is True

    def test_missing_cart_counts_default_to_one(self):
        form = parse_form({})
        assert form.trash_carts_needed == 1
        assert form.recycle_carts_needed == 1

    def test_blank_cart_count_defaults_to_one(self):
        assert parse_form({"trash_carts_needed": " "}).trash_carts_needed == 1

    def test_explicit_zero_carts_are_kept(self):
        form = parse_form({"trash_carts_needed": "0", "recycle_carts_needed": "0"})
        assert form.trash_carts_needed == 0
        assert form.recycle_carts_needed == 0

    def test_non_numeric_cart_count_is_a_parse_error(self):
        form = parse_form({"trash_carts_needed": "two"})

        assert form.trash_carts_needed is None
        assert "trash_carts_needed" in form.parse_errors
        assert "trash_carts_needed" in validate_step(3, form)

    def test_free_text_is_sanitized(self):
        form = parse_form({"service_city": " <Springfield> ", "applicant_name": "  Jane Doe  "})

        assert form.service_city == "Springfield"
        assert form.applicant_name == "Jane Doe"

    def test_unknown_keys_are_ignored(self):
        form = parse_form({"parse_errors": "x", "favourite_colour": "blue"})
        assert form.parse_errors == {}

    def test_bill_type_defaults_to_email(self):
        assert parse_form({}).bill_type.value == "email"


# ─── Step rules ───────────────────────────────────────────────────────────


class TestStepRules:
    def test_valid_form_passes_every_step(self):
        form = parse_form(valid_form_values(service_start_date="2026-07-01"))
        for step in range(1, 6):
            assert validate_step(step, form, today=TODAY) == {}, step

    def test_contact_step_reports_each_field(self):
        errors = validate_step(1, parse_form({"applicant_phone": "0551234567"}))

        assert set(errors) >= {"applicant_name", "applicant_email", "applicant_phone"}

    def test_mailing_address_required_when_different(self):
        form = parse_form(valid_form_values(mailing_address_same_as_service="false"))
        errors = validate_step(2, form, today=TODAY)

        assert "mailing_address" in errors

    def test_mailing_address_not_required_when_same(self):
        form = parse_form(valid_form_values(service_start_date="2026-07-01"))
        assert "mailing_address" not in validate_step(2, form, today=TODAY)

    def test_start_date_in_past_rejected(self):
        form = parse_form(valid_form_values(service_start_date="2026-06-14"))
        assert "service_start_date" in validate_step(2, form, today=TODAY)

    def test_stop_date_must_follow_start(self):
        form = parse_form(valid_form_values(service_start_date="2026-07-01", service_stop_date="2026-07-01"))
        assert "service_stop_date" in validate_step(2, form, today=TODAY)

    def test_landlord_required_for_rentals(self):
        form = parse_form(valid_form_values(property_use_type="rent"))
        errors = validate_step(3, form)

        assert "landlord_name" in errors
        assert "landlord_phone" in errors

    def test_landlord_not_required_for_owners(self):
        form = parse_form(valid_form_values())
        assert validate_step(3, form) == {}

    def test_cart_count_out_of_range(self):
        form = parse_form(valid_form_values(recycle_carts_needed="11"))
        assert "recycle_carts_needed" in validate_step(3, form)

    def test_unknown_property_type(self):
        form = parse_form(valid_form_values(property_use_type="timeshare"))
        assert "property_use_type" in validate_step(3, form)

    def test_co_applicant_fields_required_when_flagged(self):
        form = parse_form(valid_form_values(has_co_applicant="true"))
        errors = validate_step(4, form, today=TODAY)

        assert set(errors) >= {"co_applicant_name", "co_applicant_email", "co_applicant_phone"}

    def test_co_applicant_fields_ignored_when_not_flagged(self):
        form = parse_form(valid_form_values(co_applicant_email="not-an-email"))
        assert validate_step(4, form, today=TODAY) == {}

    def test_invalid_ssn_rejected(self):
        form = parse_form(valid_form_values(applicant_ssn="666-12-3456"))
        assert "applicant_ssn" in validate_step(4, form, today=TODAY)

    def test_acknowledgement_and_signature_required(self):
        form = parse_form(valid_form_values(acknowledged_service_terms="false", applicant_signature=""))
        errors = validate_step(5, form)

        assert "acknowledged_service_terms" in errors
        assert "applicant_signature" in errors

    def test_unknown_step(self):
        with pytest.raises(ValueError):
            validate_step(6, parse_form({}))


# ─── Documents ────────────────────────────────────────────────────────────


class TestDocuments:
    def test_lease_required_for_rentals(self):
        form = parse_form(valid_form_values(property_use_type="rent"))
        errors = validate_documents(form, None, None, max_bytes=MAX_BYTES, allowed_types=ALLOWED)

        assert "lease_document" in errors
        assert "deed_document" not in errors

    @pytest.mark.parametrize("use_type", ["owner_occupied", "owner_leasing"])
    def test_deed_required_for_owners(self, use_type):
        form = parse_form(valid_form_values(property_use_type=use_type))
        errors = validate_documents(form, None, None, max_bytes=MAX_BYTES, allowed_types=ALLOWED)

        assert "deed_document" in errors

    def test_oversized_document(self):
        form = parse_form(valid_form_values())
        big = _pdf("deed.pdf", size=MAX_BYTES + 1)
        errors = validate_documents(form, None, big, max_bytes=MAX_BYTES, allowed_types=ALLOWED)

        assert "deed_document" in errors

    def test_disallowed_type(self):
        form = parse_form(valid_form_values())
        text = UploadedDocument(filename="deed.txt", content_type="text/plain", content=b"deed")
        errors = validate_documents(form, None, text, max_bytes=MAX_BYTES, allowed_types=ALLOWED)

        assert "deed_document" in errors

    def test_submission_combines_steps_and_documents(self):
        form = parse_form(valid_form_values(service_start_date="2026-07-01"))

        assert validate_submission(form, None, _pdf("deed.pdf"), max_bytes=MAX_BYTES, allowed_types=ALLOWED, today=TODAY) == {}
        errors = validate_submission(form, None, None, max_bytes=MAX_BYTES, allowed_types=ALLOWED, today=TODAY)
        assert list(errors) == ["deed_document"]


# ─── Record mapping ───────────────────────────────────────────────────────


class TestAssembleRecord:
    submitted_at = datetime(2026, 6, 15, 12, 0, tzinfo=timezone.utc)

    def _record(self, form, **kwargs):
        calc = calculate_monthly_rate(form.territory, form.trash_carts_needed, form.recycle_carts_needed, form.has_pool, False)
        return assemble_record(
            form,
            monthly_rate=calc,
            deposit=Decimal("175.00"),
            submitted_at=self.submitted_at,
            **kwargs,
        )

    def test_basic_mapping(self):
        record = self._record(parse_form(valid_form_values(service_start_date="2026-07-01")), ip_address="10.0.0.1", user_agent="pytest")

        assert record["status"] == "new"
        assert record["applicant_phone"] == "5551234567"
        assert record["service_state"] == "TX"
        assert record["service_start_date"] == date(2026, 7, 1)
        assert record["deposit_amount_required"] == Decimal("175.00")
        assert record["applicant_ip_address"] == "10.0.0.1"
        assert record["acknowledged_service_terms_timestamp"] == self.submitted_at
        assert record["applicant_signature_timestamp"] == self.submitted_at

    def test_only_last_four_ssn_digits_stored(self):
        record = self._record(parse_form(valid_form_values()))

        assert record["applicant_ssn_last4"] == "6789"
        assert "applicant_ssn" not in record
        assert "123456789" not in repr(record)

    def test_co_applicant_dropped_when_not_flagged(self):
        record = self._record(parse_form(valid_form_values(co_applicant_name="John Doe", co_applicant_ssn="123-45-6789")))

        assert record["co_applicant_name"] is None
        assert record["co_applicant_ssn_last4"] is None

    def test_mailing_address_cleared_when_same(self):
        record = self._record(parse_form(valid_form_values(mailing_address="999 Other Rd")))
        assert record["mailing_address"] is None

    def test_metadata_bag(self):
        record = self._record(parse_form(valid_form_values()), user_agent="pytest")
        meta = record["metadata_json"]

        assert meta["submission_source"] == "web_form"
        assert meta["user_agent"] == "pytest"
        assert meta["monthly_rate_calculation"]["estimated_total"] == "58.00"

    def test_document_columns(self):
        deed = _pdf("deed.pdf")
        stored = StoredDocument(bucket="documents", path="deeds/1-deed.pdf", original_name="deed.pdf")
        record = self._record(parse_form(valid_form_values()), deed=deed, stored_deed=stored)

        assert record["deed_document_path"] == "deeds/1-deed.pdf"
        assert record["deed_document_original_name"] == "deed.pdf"
        assert record["deed_document_uploaded_at"] == self.submitted_at
        assert record["lease_document_path"] is None

    def test_failed_upload_keeps_name_but_no_path(self):
        deed = _pdf("deed.pdf")
        record = self._record(parse_form(valid_form_values()), deed=deed, stored_deed=None)

        assert record["deed_document_path"] is None
        assert record["deed_document_original_name"] == "deed.pdf"
        assert record["deed_document_uploaded_at"] is None
