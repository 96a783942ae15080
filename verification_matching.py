"""Match roster students against entries of the verified sheet."""

from __future__ import annotations

from typing import Iterable, Optional, TypeVar

from placement_models import Student

S = TypeVar("S", bound=Student)


def _norm(value: Optional[str]) -> str:
    return (value or "").strip().lower()


def _same_non_empty(left: Optional[str], right: Optional[str]) -> bool:
    a, b = _norm(left), _norm(right)
    return bool(a) and a == b


def _same_phone(left: Optional[str], right: Optional[str]) -> bool:
    a, b = (left or "").strip(), (right or "").strip()
    return bool(a) and a == b


def is_same_student(student: Student, record: Student) -> bool:
    """
    Same company, plus any one of registration number, email, phone or name.
    The OR across identity fields tolerates partially filled rows; two students
    sharing a name inside one company will therefore match each other.
    """
    if not _same_non_empty(student.company, record.company):
        return False
    return (
        _same_non_empty(student.reg_no, record.reg_no)
        or _same_non_empty(student.email, record.email)
        or _same_phone(student.phone, record.phone)
        or _same_non_empty(student.name, record.name)
    )


def match_verified_record(student: Student, verified_records: Iterable[S]) -> Optional[S]:
    """First record in source order that identifies the same student, else None."""
    for record in verified_records:
        if is_same_student(student, record):
            return record
    return None
