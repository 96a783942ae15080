# placement_models.py
"""
Pydantic models for student, feedback and verification records.
Wire names are camelCase to match the spreadsheet backend; Python code uses snake_case.
"""

from typing import Any, List, NamedTuple, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator
from pydantic.alias_generators import to_camel

_TRUE_FLAGS = {"true", "yes", "y", "1"}


def _clean_text(value: Any) -> str:
    if value is None:
        return ""
    return str(value).strip()


def _coerce_flag(value: Any) -> bool:
    if isinstance(value, bool):
        return value
    if value is None:
        return False
    return str(value).strip().lower() in _TRUE_FLAGS


def _coerce_rating(value: Any) -> Optional[int]:
    if value is None or isinstance(value, bool):
        return None
    if isinstance(value, (int, float)):
        return int(value)
    text = str(value).strip()
    if not text:
        return None
    try:
        return int(float(text))
    except ValueError:
        return None


class WireModel(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    def to_wire(self) -> dict:
        return self.model_dump(by_alias=True, exclude_none=True)


class Student(WireModel):
    """One roster row. ``reg_no`` is the identity key."""

    reg_no: str = ""
    name: str = ""
    email: str = ""
    department: str = ""
    company: str = ""
    phone: str = ""

    @field_validator("reg_no", "name", "email", "department", "company", "phone", mode="before")
    @classmethod
    def _text(cls, v: Any) -> str:
        return _clean_text(v)

    @property
    def identity_key(self) -> str:
        return self.reg_no.strip().lower()

    @property
    def is_complete(self) -> bool:
        return bool(self.reg_no.strip()) and bool(self.name.strip())


class VerifiedStudent(Student):
    """A row from the verified sheet written by recruiter batch submissions."""

    verification_date: str = ""

    @field_validator("verification_date", mode="before")
    @classmethod
    def _date_text(cls, v: Any) -> str:
        return _clean_text(v)


class StudentFeedback(WireModel):
    """Session-local feedback a recruiter is editing for one student."""

    status: Optional[str] = None
    still_with_us: Optional[bool] = None
    comment: Optional[str] = None
    rating: Optional[int] = Field(None, ge=0, le=5)
    is_verified: Optional[bool] = None
    verification_date: Optional[str] = None
    recruiter_name: Optional[str] = None
    recruiter_email: Optional[str] = None

    def has_content(self) -> bool:
        """True when the recruiter entered a status, a comment or a rating."""
        return bool(self.status) or bool(self.comment) or bool(self.rating)


class FeedbackPatch(WireModel):
    """
    Partial update a recruiter may send for one student.
    Only the fields explicitly set on the patch override the base; see
    ``recruiter_session.merge_feedback``. Verification fields are set only
    by ``RecruiterSession.verify_student``.
    """

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, extra="forbid")

    status: Optional[str] = None
    still_with_us: Optional[bool] = None
    comment: Optional[str] = None
    rating: Optional[int] = Field(None, ge=0, le=5)


class RecruiterIdentity(WireModel):
    name: str = ""
    designation: str = ""
    company: str = ""
    email: str = ""


class RecruiterVerification(WireModel):
    """The durable verification record kept in the spreadsheet."""

    student_name: str = ""
    registration_number: str = ""
    email: str = ""
    department: str = ""
    company: str = ""
    phone: str = ""
    recruiter_name: str = ""
    recruiter_email: str = ""
    verification_date: str = ""
    status: str = ""
    still_with_us: bool = False
    rating: Optional[int] = None
    comments: Optional[str] = None
    is_verified: bool = False

    @field_validator(
        "student_name",
        "registration_number",
        "email",
        "department",
        "company",
        "phone",
        "recruiter_name",
        "recruiter_email",
        "verification_date",
        "status",
        mode="before",
    )
    @classmethod
    def _text(cls, v: Any) -> str:
        return _clean_text(v)

    @field_validator("still_with_us", "is_verified", mode="before")
    @classmethod
    def _flag(cls, v: Any) -> bool:
        return _coerce_flag(v)

    @field_validator("rating", mode="before")
    @classmethod
    def _rating(cls, v: Any) -> Optional[int]:
        return _coerce_rating(v)

    @field_validator("comments", mode="before")
    @classmethod
    def _comments(cls, v: Any) -> Optional[str]:
        if v is None:
            return None
        text = str(v).strip()
        return text or None


class FeedbackRow(NamedTuple):
    """One positional row of a batched recruiter submission, in sheet column order."""

    name: str
    reg_no: str
    email: str
    department: str
    company: str
    phone: str
    recruiter_name: str
    recruiter_email: str
    verification_date: str
    status: str
    still_with_us: str
    rating: str
    comment: str
    is_verified: str = "true"

    def as_values(self) -> List[str]:
        return list(self)


class ReconciledStudent(Student):
    """A roster student merged with session feedback and the verified sheet."""

    status: str = ""
    still_with_us: bool = False
    comment: str = ""
    rating: int = 0
    is_verified: bool = False
    verification_date: str = ""
    recruiter_name: str = ""
    recruiter_email: str = ""


class CompanyVerificationStats(WireModel):
    total: int = 0
    verified: int = 0
    joined: int = 0
    not_joined: int = 0
    left_company: int = 0
    blacklisted: int = 0
    still_with_us: int = 0


class StudentSubmission(WireModel):
    """The student's own placement form."""

    registration_number: str = ""
    name: str = ""
    is_placed: str = ""
    company: str = ""
    course: str = ""
    phone: str = ""
    email: str = ""
    placement_date: Optional[str] = None
    package: Optional[str] = None
    feedback: Optional[str] = None


class BackendResponse(WireModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, extra="allow")

    success: bool = False
    message: Optional[str] = None
    error: Optional[str] = None
    data: Optional[Any] = None


class BatchSubmitResult(WireModel):
    success: bool
    submitted: int = 0
    message: str = ""
    rows: List[List[str]] = Field(default_factory=list)


class SubmissionVerification(WireModel):
    """A recruiter's sign-off on one row of the student submissions sheet."""

    registration_number: str = ""
    recruiter_name: str = ""
    status: Optional[str] = None
    rating: Optional[str] = None
    feedback: Optional[str] = None

    @field_validator("registration_number", "recruiter_name", mode="before")
    @classmethod
    def _text(cls, v: Any) -> str:
        return _clean_text(v)


class SubmissionReceipt(BackendResponse):
    submission_id: str = ""
