"""Parsing helpers for the spreadsheet's published CSV exports."""

from __future__ import annotations

import io
import logging
import re
from collections import Counter
from typing import Dict, Iterable, List, Sequence, Tuple

import pandas as pd

from placement_errors import MalformedResponseError
from placement_models import RecruiterVerification, Student, VerifiedStudent

logger = logging.getLogger(__name__)

MIN_FIELDS = 3

_CURLY_QUOTES = re.compile("[\u201c\u201d\u201e\u201f]")
_REPLACEMENT_CHAR = "\ufffd"

# Aliases are compared after normalize_header().
STUDENT_COLUMNS: Dict[str, Tuple[str, ...]] = {
    "reg_no": ("registration number", "reg no", "regno", "registration no", "reg number"),
    "name": ("name", "student name", "full name"),
    "email": ("email", "email id", "email address"),
    "department": ("course", "department", "branch"),
    "company": ("company", "company name"),
    "phone": ("phone", "phone number", "mobile", "contact number"),
}

VERIFIED_STUDENT_COLUMNS: Dict[str, Tuple[str, ...]] = {
    "name": ("student name", "name"),
    "reg_no": ("registration number", "reg no", "regno"),
    "email": ("email", "email id"),
    "department": ("department", "course"),
    "company": ("company",),
    "phone": ("phone", "phone number"),
    "verification_date": ("verification date", "verified on"),
    "is_verified": ("is verified",),
}

VERIFICATION_COLUMNS: Dict[str, Tuple[str, ...]] = {
    "student_name": ("student name", "name"),
    "registration_number": ("registration number", "reg no", "regno"),
    "email": ("email", "email id"),
    "department": ("department", "course"),
    "company": ("company",),
    "phone": ("phone", "phone number"),
    "recruiter_name": ("recruiter name", "recruiter"),
    "recruiter_email": ("recruiter email",),
    "verification_date": ("verification date", "verified on"),
    "status": ("status",),
    "still_with_us": ("still with us",),
    "rating": ("rating",),
    "comments": ("comments", "comment", "feedback"),
    "is_verified": ("is verified", "verified"),
}


def normalize_header(header: object) -> str:
    """'  Registration_Number ' -> 'registration number'."""
    text = str(header).replace("_", " ")
    return " ".join(text.split()).lower()


def sanitize_csv_text(raw_text: str) -> str:
    """Normalize stray quote characters, replacement characters and the BOM."""
    text = _CURLY_QUOTES.sub('"', raw_text or "").replace(_REPLACEMENT_CHAR, "")
    return text.lstrip("\ufeff")


def resolve_columns(headers: Sequence[object], columns: Dict[str, Tuple[str, ...]]) -> Dict[str, int]:
    """Map each field to the position of the first header matching one of its aliases."""
    normalized = [normalize_header(h) for h in headers]
    resolved: Dict[str, int] = {}
    for field, aliases in columns.items():
        for alias in aliases:
            if alias in normalized:
                resolved[field] = normalized.index(alias)
                break
    return resolved


def read_records(
    raw_text: str,
    columns: Dict[str, Tuple[str, ...]],
    *,
    min_fields: int = MIN_FIELDS,
) -> List[Dict[str, str]]:
    cleaned = sanitize_csv_text(raw_text)
    if not cleaned.strip():
        return []

    try:
        frame = pd.read_csv(
            io.StringIO(cleaned),
            dtype=str,
            keep_default_na=False,
            skip_blank_lines=True,
            on_bad_lines="skip",
        )
    except pd.errors.EmptyDataError:
        return []
    except pd.errors.ParserError as exc:
        logger.warning("csv_parse_failed", extra={"error": str(exc)})
        raise MalformedResponseError(f"CSV could not be parsed: {exc}") from exc

    # Quoted cells may span lines; short records are dropped after parsing.
    # Missing trailing cells are NaN, empty cells are "".
    frame = frame[frame.notna().sum(axis=1) >= min(min_fields, len(frame.columns))]
    frame = frame.fillna("")

    positions = resolve_columns(list(frame.columns), columns)
    missing = sorted(set(columns) - set(positions))
    if missing:
        logger.info("csv_columns_missing", extra={"fields": missing})

    records: List[Dict[str, str]] = []
    for values in frame.itertuples(index=False, name=None):
        records.append(
            {field: str(values[idx]).strip() for field, idx in positions.items()}
        )
    return records


def parse_students(raw_text: str, *, require_company: bool = True) -> List[Student]:
    """
    Parse the student data export into roster rows.
    Rows without a registration number or name are dropped; with
    ``require_company`` (the placement roster) unplaced rows are dropped too.
    """
    students: List[Student] = []
    dropped = 0
    for record in read_records(raw_text, STUDENT_COLUMNS):
        student = Student(**record)
        if not student.is_complete or (require_company and not student.company):
            dropped += 1
            continue
        students.append(student)

    if dropped:
        logger.debug("csv_student_rows_dropped", extra={"count": dropped})
    return students


def parse_verified_students(raw_text: str) -> List[VerifiedStudent]:
    """Rows of the verified sheet whose Is Verified column is TRUE and that name a company."""
    verified: List[VerifiedStudent] = []
    for record in read_records(raw_text, VERIFIED_STUDENT_COLUMNS):
        flag = record.pop("is_verified", "")
        if flag.lower() != "true":
            continue
        entry = VerifiedStudent(**record)
        if entry.is_complete and entry.company:
            verified.append(entry)
    return verified


def parse_verifications(raw_text: str) -> List[RecruiterVerification]:
    verifications: List[RecruiterVerification] = []
    for record in read_records(raw_text, VERIFICATION_COLUMNS):
        verification = RecruiterVerification(**record)
        if verification.registration_number and verification.student_name:
            verifications.append(verification)
    return verifications


def find_duplicate_students(students: Iterable[Student]) -> List[Tuple[str, str]]:
    """(reg_no, company) keys that occur more than once. Reported, never collapsed."""
    counts = Counter(
        (s.identity_key, s.company.strip().lower()) for s in students if s.identity_key
    )
    return sorted(key for key, count in counts.items() if count > 1)
