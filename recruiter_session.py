"""Per-recruiter feedback state and the reconciled roster view built from it."""

from __future__ import annotations

import asyncio
import csv
import io
import logging
import math
import time
import uuid
from collections import OrderedDict
from datetime import datetime
from threading import Lock
from typing import Callable, Dict, List, Optional, Tuple

from pydantic import BaseModel, Field

from placement_config import (
    MAX_RECRUITER_SESSIONS,
    RECRUITER_PAGE_SIZE,
    RECRUITER_SESSION_IDLE_SECONDS,
)
from placement_data_service import PlacementDataService
from placement_errors import PlacementError, SessionNotFoundError, StudentNotFoundError, SubmissionValidationError
from placement_models import (
    BatchSubmitResult,
    CompanyVerificationStats,
    FeedbackPatch,
    FeedbackRow,
    ReconciledStudent,
    RecruiterIdentity,
    Student,
    StudentFeedback,
    VerifiedStudent,
)
from recruiter_verification import submit_verification, utc_timestamp
from student_submission import format_phone_number
from verification_matching import match_verified_record

logger = logging.getLogger(__name__)

VIEW_COLUMNS = (
    "name",
    "reg_no",
    "email",
    "department",
    "company",
    "phone",
    "status",
    "still_with_us",
    "rating",
    "is_verified",
    "verification_date",
)
SEARCH_FIELDS = ("name", "reg_no", "email", "department", "phone")

EXPORT_HEADERS = [
    "Name",
    "Reg No",
    "Email",
    "Department",
    "Company",
    "Phone",
    "Status",
    "Still With Us",
    "Rating",
    "Comment",
    "Verified",
    "Verification Date",
    "Recruiter Name",
    "Recruiter Email",
]

NOTHING_TO_SUBMIT = "No feedback to submit."


def merge_feedback(base: Optional[StudentFeedback], patch: FeedbackPatch) -> StudentFeedback:
    """Fields set on the patch replace the base's; every other base field is kept."""
    current = base or StudentFeedback()
    return current.model_copy(update=patch.model_dump(exclude_unset=True))


def _sort_key(row: ReconciledStudent, column: str):
    value = getattr(row, column)
    return value.lower() if isinstance(value, str) else value


class RosterPage(BaseModel):
    rows: List[ReconciledStudent] = Field(default_factory=list)
    page: int = 0
    page_size: int = RECRUITER_PAGE_SIZE
    total: int = 0
    total_pages: int = 0


class RecruiterSession:
    """
    One recruiter's working state: identity, selected company and the feedback
    map keyed by registration number. Nothing here is persisted; submissions
    go to the spreadsheet through the data service.
    """

    def __init__(self, service: PlacementDataService, session_id: Optional[str] = None) -> None:
        self.session_id = session_id or uuid.uuid4().hex
        self.service = service
        self.recruiter = RecruiterIdentity()
        self.feedback_map: Dict[str, StudentFeedback] = {}
        self._all_students: List[Student] = []
        self._verified_entries: List[VerifiedStudent] = []
        self._active = True
        self._lock = Lock()
        self.loaded = False

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------
    @property
    def is_active(self) -> bool:
        return self._active

    def close(self) -> None:
        self._active = False

    async def load_roster(self) -> bool:
        """
        Fetch students and verified-sheet entries concurrently.
        Returns False, leaving the session untouched, when it was closed while
        the fetches were in flight.
        """
        students, verified = await asyncio.gather(
            asyncio.to_thread(self.service.fetch_students),
            asyncio.to_thread(self._fetch_verified_or_empty),
        )
        return self.apply_roster(students, verified)

    def apply_roster(self, students: List[Student], verified_entries: List[VerifiedStudent]) -> bool:
        if not self._active:
            logger.info("recruiter_session_closed_roster_dropped", extra={"session_id": self.session_id})
            return False
        self._all_students = list(students)
        self._verified_entries = list(verified_entries)
        self.loaded = True
        return True

    def _fetch_verified_or_empty(self) -> List[VerifiedStudent]:
        try:
            return self.service.fetch_verified_students()
        except PlacementError as exc:
            logger.error(
                "verified_sheet_load_failed",
                extra={"session_id": self.session_id, "error": str(exc)},
            )
            return []

    # ------------------------------------------------------------------
    # Edits
    # ------------------------------------------------------------------
    def on_change(self, field: str, value: str) -> None:
        """Update one recruiter identity field; switching company drops all feedback."""
        if field not in RecruiterIdentity.model_fields:
            raise ValueError(f"Unknown recruiter field: {field}")
        if getattr(self.recruiter, field) == value:
            return

        with self._lock:
            self.recruiter = self.recruiter.model_copy(update={field: value})
            if field != "company":
                return
            self.feedback_map.clear()
        logger.info(
            "recruiter_company_changed",
            extra={"session_id": self.session_id, "company": value},
        )

    def update_feedback(self, reg_no: str, patch: FeedbackPatch) -> bool:
        """Merge a patch into one student's feedback. Returns False when nothing changed."""
        student = self.find_student(reg_no)
        with self._lock:
            current = self.feedback_map.get(student.reg_no)
            merged = merge_feedback(current, patch)
            if merged.model_dump() == (current or StudentFeedback()).model_dump():
                return False
            self.feedback_map[student.reg_no] = merged
        return True

    # ------------------------------------------------------------------
    # Derived views, recomputed on every call
    # ------------------------------------------------------------------
    @property
    def roster(self) -> List[Student]:
        company = self.recruiter.company.strip().lower()
        if not company or not self._all_students:
            return []
        return [
            s for s in self._all_students
            if s.company.strip().lower() == company and s.is_complete
        ]

    def find_student(self, reg_no: str) -> Student:
        key = (reg_no or "").strip().lower()
        for student in self.roster:
            if student.identity_key == key:
                return student
        raise StudentNotFoundError(f"Student {reg_no!r} is not in the roster for {self.recruiter.company!r}")

    def feedback_for(self, student: Student) -> StudentFeedback:
        return self.feedback_map.get(student.reg_no) or StudentFeedback()

    def reconcile(self, student: Student) -> ReconciledStudent:
        feedback = self.feedback_for(student)
        entry = match_verified_record(student, self._verified_entries)
        return ReconciledStudent(
            **student.model_dump(),
            status=feedback.status or "",
            still_with_us=bool(feedback.still_with_us),
            comment=feedback.comment or "",
            rating=feedback.rating or 0,
            is_verified=entry is not None,
            verification_date=entry.verification_date if entry else "",
            recruiter_name=feedback.recruiter_name or "",
            recruiter_email=feedback.recruiter_email or "",
        )

    def reconciled_roster(self) -> List[ReconciledStudent]:
        return [self.reconcile(s) for s in self.roster]

    def view(
        self,
        *,
        search: str = "",
        status: str = "all",
        verification: str = "all",
        sort_by: Optional[str] = None,
        descending: bool = False,
        page: int = 0,
        page_size: int = RECRUITER_PAGE_SIZE,
    ) -> RosterPage:
        if page_size <= 0:
            raise ValueError("page_size must be positive")
        if sort_by and sort_by not in VIEW_COLUMNS:
            raise ValueError(f"Cannot sort by {sort_by!r}")

        rows = self.reconciled_roster()

        term = search.strip().lower()
        if term:
            rows = [
                r for r in rows
                if any(term in getattr(r, f).strip().lower() for f in SEARCH_FIELDS)
            ]
        if status != "all":
            rows = [r for r in rows if r.status == status]
        if verification == "verified":
            rows = [r for r in rows if r.is_verified]
        elif verification == "unverified":
            rows = [r for r in rows if not r.is_verified]

        if sort_by:
            rows.sort(key=lambda r: _sort_key(r, sort_by), reverse=descending)

        start = max(page, 0) * page_size
        return RosterPage(
            rows=rows[start:start + page_size],
            page=max(page, 0),
            page_size=page_size,
            total=len(rows),
            total_pages=math.ceil(len(rows) / page_size),
        )

    def stats(self) -> CompanyVerificationStats:
        rows = self.reconciled_roster()
        return CompanyVerificationStats(
            total=len(rows),
            verified=sum(1 for r in rows if r.is_verified),
            joined=sum(1 for r in rows if r.status == "Joined"),
            not_joined=sum(1 for r in rows if r.status == "Not Joined"),
            left_company=sum(1 for r in rows if r.status == "Left Company"),
            blacklisted=sum(1 for r in rows if r.status == "Blacklisted"),
            still_with_us=sum(1 for r in rows if r.still_with_us),
        )

    def export_csv(self) -> str:
        buffer = io.StringIO()
        writer = csv.writer(buffer, quoting=csv.QUOTE_ALL, lineterminator="\n")
        writer.writerow(EXPORT_HEADERS)
        for r in self.reconciled_roster():
            writer.writerow(
                [
                    r.name,
                    r.reg_no,
                    r.email,
                    r.department,
                    r.company,
                    format_phone_number(r.phone),
                    r.status,
                    "Yes" if r.still_with_us else "No",
                    str(r.rating) if r.rating else "",
                    r.comment,
                    "Yes" if r.is_verified else "No",
                    r.verification_date,
                    r.recruiter_name,
                    r.recruiter_email,
                ]
            )
        return buffer.getvalue()

    # ------------------------------------------------------------------
    # Submission
    # ------------------------------------------------------------------
    def build_feedback_rows(self, *, now: Optional[datetime] = None) -> List[FeedbackRow]:
        """One row per roster student with a status, comment or rating entered."""
        rows: List[FeedbackRow] = []
        for student in self.roster:
            feedback = self.feedback_map.get(student.reg_no)
            if feedback is None or not feedback.has_content():
                continue
            rows.append(
                FeedbackRow(
                    name=student.name,
                    reg_no=student.reg_no,
                    email=student.email,
                    department=student.department,
                    company=student.company,
                    phone=student.phone,
                    recruiter_name=self.recruiter.name,
                    recruiter_email=self.recruiter.email,
                    verification_date=feedback.verification_date or utc_timestamp(now),
                    status=feedback.status or "",
                    still_with_us="true" if feedback.still_with_us else "false",
                    rating="" if feedback.rating is None else str(feedback.rating),
                    comment=feedback.comment or "",
                )
            )
        return rows

    def submit_feedback(self, *, now: Optional[datetime] = None) -> BatchSubmitResult:
        """
        Send every edited student in one write. The outcome is reported for
        the whole batch; the backend may still have applied part of it.
        """
        rows = self.build_feedback_rows(now=now)
        if not rows:
            return BatchSubmitResult(success=False, submitted=0, message=NOTHING_TO_SUBMIT)

        try:
            self.service.insert_rows(rows)
        except PlacementError as exc:
            logger.error(
                "recruiter_batch_submit_failed",
                extra={"session_id": self.session_id, "rows": len(rows), "error": str(exc)},
            )
            return BatchSubmitResult(
                success=False,
                submitted=0,
                message=f"Failed to submit feedback: {exc}",
            )

        logger.info(
            "recruiter_batch_submitted",
            extra={"session_id": self.session_id, "rows": len(rows), "company": self.recruiter.company},
        )
        return BatchSubmitResult(
            success=True,
            submitted=len(rows),
            message=f"Successfully submitted feedback for {len(rows)} students!",
            rows=[row.as_values() for row in rows],
        )

    def verify_student(
        self,
        reg_no: str,
        recruiter_name: str,
        recruiter_email: str,
        *,
        now: Optional[datetime] = None,
    ) -> StudentFeedback:
        """Upsert one student's verification and mark the session feedback verified."""
        student = self.find_student(reg_no)
        feedback = self.feedback_for(student)

        errors: List[str] = []
        if not (recruiter_name or "").strip() or not (recruiter_email or "").strip():
            errors.append("Please fill in recruiter name and email")
        if not feedback.status:
            errors.append("Please select a status")
        if errors:
            raise SubmissionValidationError(errors)

        marks = {
            "is_verified": True,
            "verification_date": utc_timestamp(now),
            "recruiter_name": recruiter_name.strip(),
            "recruiter_email": recruiter_email.strip(),
        }
        verified = feedback.model_copy(update=marks)
        company = self.recruiter.company
        recruiter = RecruiterIdentity(
            name=recruiter_name.strip(),
            email=recruiter_email.strip(),
            company=student.company,
        )
        submit_verification(self.service, student, verified, recruiter, now=now)

        # Merge onto the current entry; skip it if the company changed during the write.
        with self._lock:
            if not self._active or self.recruiter.company != company:
                logger.info(
                    "verified_feedback_not_stored",
                    extra={"session_id": self.session_id, "reg_no": student.reg_no},
                )
                return verified
            current = self.feedback_map.get(student.reg_no) or StudentFeedback()
            verified = current.model_copy(update=marks)
            self.feedback_map[student.reg_no] = verified
        return verified


class RecruiterSessionStore:
    """
    In-memory registry of open recruiter sessions, ordered by last access.
    Sessions idle for ``idle_seconds`` are dropped on the next lookup, and the
    least recently used session is dropped once ``max_sessions`` is exceeded.
    """

    _sessions: "OrderedDict[str, Tuple[RecruiterSession, float]]" = OrderedDict()
    _lock: Lock = Lock()
    idle_seconds: float = RECRUITER_SESSION_IDLE_SECONDS
    max_sessions: int = MAX_RECRUITER_SESSIONS
    clock: Callable[[], float] = time.monotonic

    @classmethod
    def register(cls, session: RecruiterSession) -> RecruiterSession:
        with cls._lock:
            now = cls.clock()
            cls._evict_idle(now)
            cls._sessions[session.session_id] = (session, now)
            cls._sessions.move_to_end(session.session_id)
            while len(cls._sessions) > cls.max_sessions:
                _, (oldest, _) = cls._sessions.popitem(last=False)
                oldest.close()
                logger.info(
                    "recruiter_session_evicted",
                    extra={"session_id": oldest.session_id, "reason": "capacity"},
                )
        return session

    @classmethod
    def get(cls, session_id: str) -> RecruiterSession:
        with cls._lock:
            now = cls.clock()
            cls._evict_idle(now)
            entry = cls._sessions.get(session_id)
            if entry is not None:
                cls._sessions[session_id] = (entry[0], now)
                cls._sessions.move_to_end(session_id)
        if entry is None:
            raise SessionNotFoundError(f"Unknown recruiter session {session_id!r}")
        return entry[0]

    @classmethod
    def close(cls, session_id: str) -> None:
        with cls._lock:
            entry = cls._sessions.pop(session_id, None)
        if entry is None:
            raise SessionNotFoundError(f"Unknown recruiter session {session_id!r}")
        entry[0].close()

    @classmethod
    def count(cls) -> int:
        with cls._lock:
            cls._evict_idle(cls.clock())
            return len(cls._sessions)

    @classmethod
    def _evict_idle(cls, now: float) -> None:
        # Caller holds the lock; entries are oldest-access first.
        while cls._sessions:
            session_id, (session, last_access) = next(iter(cls._sessions.items()))
            if now - last_access < cls.idle_seconds:
                break
            del cls._sessions[session_id]
            session.close()
            logger.info(
                "recruiter_session_evicted",
                extra={"session_id": session_id, "reason": "idle"},
            )

    @classmethod
    def reset(cls) -> None:
        """Utility method for tests to drop every session."""
        with cls._lock:
            for session, _ in cls._sessions.values():
                session.close()
            cls._sessions = OrderedDict()
