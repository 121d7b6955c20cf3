"""
Public water/trash/recycling sign-up API: submission, rate estimates, field and step validation.
"""

from __future__ import annotations

import logging
from typing import Optional

from fastapi import APIRouter, Depends, HTTPException, Query, Request
from fastapi.responses import JSONResponse
from sqlalchemy.orm import Session
from starlette.datastructures import UploadFile

from app.core.dependencies import get_db
from app.core.storage import upload_document
from app.schemas.water_service_request import (
    FieldValidationRequest,
    FieldValidationResponse,
    PropertyUseType,
    RateCalculationOut,
    RateEstimateResponse,
    ServiceTerritory,
    StepValidationRequest,
    StepValidationResponse,
    SubmissionResponse,
    ValidatedField,
)
from app.services import validators
from app.services.rate_calculator import calculate_deposit, calculate_monthly_rate, get_deposit_examples
from app.services.request_assembler import RequestValidationFailed, UploadedDocument, parse_form, validate_step
from app.services.submission_service import (
    UNEXPECTED_FAILURE_MESSAGE,
    SubmissionPersistenceError,
    submit_water_service_request,
)
from app.utils.rate_limit import submission_allowed, submitter_from_request

logger = logging.getLogger(__name__)

router = APIRouter()

FIELD_RULES = {
    ValidatedField.PHONE: (validators.validate_phone_detailed, validators.format_phone_input),
    ValidatedField.EMAIL: (validators.validate_email_detailed, None),
    ValidatedField.SSN: (validators.validate_ssn_detailed, validators.format_ssn_input),
    ValidatedField.ZIP: (validators.validate_postal_code_detailed, validators.format_zip_code_input),
    ValidatedField.DATE_OF_BIRTH: (validators.validate_date_of_birth, None),
    ValidatedField.NAME: (validators.validate_name, None),
    ValidatedField.ADDRESS: (validators.validate_address, None),
}


def get_document_uploader():
    return upload_document


async def _read_upload(value) -> Optional[UploadedDocument]:
    if not isinstance(value, UploadFile):
        return None
    content = await value.read()
    if not content:
        return None
    return UploadedDocument(
        filename=value.filename or "document",
        content_type=value.content_type,
        content=content,
    )


@router.post("/water-service-requests", response_model=SubmissionResponse, status_code=201)
async def submit_request(
    request: Request,
    db: Session = Depends(get_db),
    uploader=Depends(get_document_uploader),
):
    submitter = submitter_from_request(request)
    if not submission_allowed(submitter):
        raise HTTPException(429, "Too Many Requests")

    try:
        raw = await request.form()
        values = {key: value for key, value in raw.items() if isinstance(value, str)}
        lease = await _read_upload(raw.get("lease_document"))
        deed = await _read_upload(raw.get("deed_document"))

        result = submit_water_service_request(
            db,
            parse_form(values),
            uploader=uploader,
            lease=lease,
            deed=deed,
            ip_address=submitter.ip_address,
            user_agent=values.get("user_agent") or submitter.user_agent,
        )
    except RequestValidationFailed as exc:
        return JSONResponse(
            status_code=422,
            content=SubmissionResponse(success=False, errors=exc.errors).model_dump(),
        )
    except SubmissionPersistenceError as exc:
        return JSONResponse(
            status_code=500,
            content=SubmissionResponse(success=False, error=str(exc)).model_dump(),
        )
    except Exception:
        logger.exception("Unexpected failure while handling a water service submission")
        return JSONResponse(
            status_code=500,
            content=SubmissionResponse(success=False, error=UNEXPECTED_FAILURE_MESSAGE).model_dump(),
        )

    return SubmissionResponse(success=True, id=result.request_id)


@router.post("/water-service-requests/validate-step", response_model=StepValidationResponse)
async def validate_form_step(payload: StepValidationRequest):
    form = parse_form({key: value for key, value in payload.fields.items() if value is not None})
    errors = validate_step(payload.step, form)
    return StepValidationResponse(step=payload.step, valid=not errors, errors=errors)


@router.post("/validate-field", response_model=FieldValidationResponse)
async def validate_field(payload: FieldValidationRequest):
    if payload.field == ValidatedField.DRIVERS_LICENSE:
        result = validators.validate_drivers_license(payload.value, payload.state)
        formatter = None
    else:
        validator, formatter = FIELD_RULES[payload.field]
        result = validator(payload.value)

    return FieldValidationResponse(
        field=payload.field,
        valid=result.valid,
        message=result.message,
        suggestion=result.suggestion,
        formatted=formatter(payload.value) if formatter else None,
    )


@router.get("/rates/estimate", response_model=RateEstimateResponse)
async def estimate_rates(
    territory: Optional[ServiceTerritory] = Query(None),
    trash_carts: int = Query(1, ge=0, le=10),
    recycle_carts: int = Query(1, ge=0, le=10),
    has_pool: bool = Query(False),
    has_sprinkler: bool = Query(False),
    property_use_type: Optional[PropertyUseType] = Query(None),
    credit_score: Optional[int] = Query(None, ge=300, le=850),
):
    calculation = calculate_monthly_rate(territory, trash_carts, recycle_carts, has_pool, has_sprinkler)
    deposit = None
    if property_use_type is not None:
        deposit = calculate_deposit(property_use_type, territory, credit_score)
    return RateEstimateResponse(
        monthly_rate=RateCalculationOut(**calculation.as_dict()),
        deposit_amount=deposit,
        credit_score_applied=credit_score if property_use_type is not None else None,
    )


@router.get("/rates/deposit-examples")
async def deposit_examples():
    return {"items": get_deposit_examples()}
