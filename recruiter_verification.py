from __future__ import annotations

import logging
from datetime import datetime, timezone
from typing import Optional

from placement_data_service import PlacementDataService
from placement_models import RecruiterIdentity, RecruiterVerification, Student, StudentFeedback

logger = logging.getLogger(__name__)


def utc_timestamp(now: Optional[datetime] = None) -> str:
    """ISO-8601 UTC timestamp with millisecond precision and a Z suffix."""
    moment = (now or datetime.now(timezone.utc)).astimezone(timezone.utc)
    return moment.isoformat(timespec="milliseconds").replace("+00:00", "Z")


def build_verification(
    student: Student,
    feedback: StudentFeedback,
    recruiter: RecruiterIdentity,
    *,
    now: Optional[datetime] = None,
) -> RecruiterVerification:
    return RecruiterVerification(
        student_name=student.name,
        registration_number=student.reg_no,
        email=student.email,
        department=student.department,
        company=student.company,
        phone=student.phone,
        recruiter_name=recruiter.name,
        recruiter_email=recruiter.email,
        verification_date=utc_timestamp(now),
        status=feedback.status or "",
        still_with_us=bool(feedback.still_with_us),
        rating=feedback.rating,
        comments=feedback.comment,
        is_verified=True,
    )


def submit_verification(
    service: PlacementDataService,
    student: Student,
    feedback: StudentFeedback,
    recruiter: RecruiterIdentity,
    *,
    now: Optional[datetime] = None,
) -> bool:
    """
    Upsert the recruiter's verification for one student.
    Looks the student up by registration number first and updates that record
    when one exists, otherwise inserts. The service drops its verifications
    cache after either write so a repeat call sees the new record.
    """
    verification = build_verification(student, feedback, recruiter, now=now)
    existing = service.get_student_verification(student.reg_no)

    if existing is not None:
        logger.info(
            "verification_upsert_update",
            extra={"registration_number": student.reg_no, "company": student.company},
        )
        return service.update_verification(student.reg_no, verification)

    logger.info(
        "verification_upsert_insert",
        extra={"registration_number": student.reg_no, "company": student.company},
    )
    return service.add_verification(verification)
