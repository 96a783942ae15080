"""Validation and submission of the student's own placement form."""

from __future__ import annotations

import logging
import random
import re
import string
import time
from datetime import datetime
from typing import List, Optional, Tuple

from placement_data_service import PlacementDataService
from placement_errors import SubmissionValidationError
from placement_models import BackendResponse, StudentSubmission, SubmissionReceipt, SubmissionVerification
from recruiter_verification import utc_timestamp

logger = logging.getLogger(__name__)

_EMAIL_PATTERN = re.compile(r"^[^\s@]+@[^\s@]+\.[^\s@]+$")
_ID_ALPHABET = string.digits + string.ascii_lowercase


def is_valid_email(email: str) -> bool:
    return bool(_EMAIL_PATTERN.match(email or ""))


def validate_student_data(data: StudentSubmission) -> Tuple[bool, List[str]]:
    """Collect every problem with the form; an empty list means it can be sent."""
    errors: List[str] = []

    if not data.registration_number.strip():
        errors.append("Registration number is required")
    if not data.name.strip():
        errors.append("Full name is required")
    if not data.course.strip():
        errors.append("Course is required")
    if not data.phone.strip():
        errors.append("Phone number is required")

    if not data.email.strip():
        errors.append("Email address is required")
    elif not is_valid_email(data.email):
        errors.append("Please enter a valid email address")

    if data.is_placed == "yes" and not data.company.strip():
        errors.append("Company name is required when student is placed")

    return not errors, errors


def build_submission_row(data: StudentSubmission, *, now: Optional[datetime] = None) -> List[str]:
    """Row in the Student Submissions sheet column order; new rows start unverified."""
    return [
        data.registration_number,
        data.name,
        data.company if data.is_placed == "yes" else "",
        data.course,
        data.phone,
        data.email,
        data.placement_date or "",
        data.package or "",
        data.feedback or "",
        utc_timestamp(now),
        "false",
        "Pending",
    ]


def _ensure_valid(data: StudentSubmission) -> None:
    is_valid, errors = validate_student_data(data)
    if not is_valid:
        logger.info(
            "student_submission_rejected",
            extra={"registration_number": data.registration_number, "errors": errors},
        )
        raise SubmissionValidationError(errors)


def _receipt(response: BackendResponse) -> SubmissionReceipt:
    return SubmissionReceipt(**response.model_dump(), submission_id=generate_submission_id())


def submit_student_data(
    service: PlacementDataService,
    data: StudentSubmission,
    *,
    now: Optional[datetime] = None,
) -> SubmissionReceipt:
    """Append a new row to the submissions sheet."""
    _ensure_valid(data)
    receipt = _receipt(service.add_student_submission(build_submission_row(data, now=now)))
    logger.info(
        "student_submission_saved",
        extra={
            "registration_number": data.registration_number,
            "submission_id": receipt.submission_id,
            "backend_message": receipt.message,
        },
    )
    return receipt


def update_student_data(
    service: PlacementDataService,
    data: StudentSubmission,
    *,
    now: Optional[datetime] = None,
) -> SubmissionReceipt:
    """Overwrite the student's existing row, matched by registration number; appends when absent."""
    _ensure_valid(data)
    receipt = _receipt(service.update_existing_student(build_submission_row(data, now=now)))
    logger.info(
        "student_submission_updated",
        extra={
            "registration_number": data.registration_number,
            "submission_id": receipt.submission_id,
            "backend_message": receipt.message,
        },
    )
    return receipt


def verify_submission(service: PlacementDataService, verification: SubmissionVerification) -> BackendResponse:
    errors: List[str] = []
    if not verification.registration_number:
        errors.append("Registration number is required")
    if not verification.recruiter_name:
        errors.append("Recruiter name is required")
    if errors:
        raise SubmissionValidationError(errors)
    return service.verify_student_submission(verification)


def format_phone_number(phone: str) -> str:
    """Ten-digit numbers become 'XXXXX XXXXX'; anything else is returned unchanged."""
    cleaned = re.sub(r"\D", "", phone or "")
    if len(cleaned) == 10:
        return f"{cleaned[:5]} {cleaned[5:]}"
    return phone


def generate_submission_id() -> str:
    suffix = "".join(random.choice(_ID_ALPHABET) for _ in range(9))
    return f"SUB_{int(time.time() * 1000)}_{suffix}"
