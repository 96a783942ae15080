"""Student and verification data access with freshness caching and CSV fallback."""

from __future__ import annotations

import logging
import time
from typing import Any, Callable, Dict, List, Optional, Sequence, TypeVar, Union

from pydantic import ValidationError

from apps_script_client import AppsScriptClient, download_csv
from placement_config import (
    CACHE_TTL_SECONDS,
    CSV_FALLBACK_TIMEOUT_SECONDS,
    STUDENTS_CSV_URL,
    VERIFICATIONS_CSV_URL,
    VERIFIED_STUDENTS_CSV_URL,
)
from placement_errors import MalformedResponseError, PlacementError
from placement_models import (
    BackendResponse,
    CompanyVerificationStats,
    FeedbackRow,
    RecruiterVerification,
    Student,
    SubmissionVerification,
    VerifiedStudent,
)
from sheet_csv import (
    find_duplicate_students,
    parse_students,
    parse_verifications,
    parse_verified_students,
)
from timed_cache import TimedCache

logger = logging.getLogger(__name__)

T = TypeVar("T")

STATUS_JOINED = "Joined"
STATUS_NOT_JOINED = "Not Joined"
STATUS_LEFT_COMPANY = "Left Company"
STATUS_BLACKLISTED = "Blacklisted"


def _report_duplicates(students: List[Student]) -> None:
    duplicates = find_duplicate_students(students)
    if duplicates:
        logger.warning(
            "duplicate_student_rows",
            extra={"count": len(duplicates), "keys": duplicates[:10]},
        )


def _same_text(left: Optional[str], right: Optional[str]) -> bool:
    return (left or "").strip().lower() == (right or "").strip().lower()


class PlacementDataService:
    """
    Reads students and verifications from the spreadsheet backend.

    Every read goes through a TimedCache: a fresh value is served without any
    network call; otherwise the scripting endpoint is tried first, then the
    sheet's CSV export. When both fail the last cached value is returned
    whatever its age, and the error only propagates if nothing was ever cached.
    """

    def __init__(
        self,
        client: Optional[AppsScriptClient] = None,
        *,
        students_csv_url: Optional[str] = None,
        verifications_csv_url: Optional[str] = None,
        verified_students_csv_url: Optional[str] = None,
        cache_ttl_seconds: Optional[float] = None,
        csv_timeout_seconds: Optional[float] = None,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self.client = client or AppsScriptClient()
        self.students_csv_url = students_csv_url or STUDENTS_CSV_URL
        self.verifications_csv_url = verifications_csv_url or VERIFICATIONS_CSV_URL
        self.verified_students_csv_url = verified_students_csv_url or VERIFIED_STUDENTS_CSV_URL
        self.csv_timeout_seconds = csv_timeout_seconds or CSV_FALLBACK_TIMEOUT_SECONDS

        ttl = cache_ttl_seconds or CACHE_TTL_SECONDS
        self.students_cache: TimedCache[List[Student]] = TimedCache(ttl, clock)
        self.verifications_cache: TimedCache[List[RecruiterVerification]] = TimedCache(ttl, clock)
        self.verified_students_cache: TimedCache[List[VerifiedStudent]] = TimedCache(ttl, clock)

    # ------------------------------------------------------------------
    # Cached reads
    # ------------------------------------------------------------------
    def fetch_students(self) -> List[Student]:
        return self._cached_fetch(
            self.students_cache,
            "students",
            self._students_from_backend,
            lambda: parse_students(self._download(self.students_csv_url)),
            on_refresh=_report_duplicates,
        )

    def fetch_verifications(self) -> List[RecruiterVerification]:
        return self._cached_fetch(
            self.verifications_cache,
            "verifications",
            self._verifications_from_backend,
            lambda: parse_verifications(self._download(self.verifications_csv_url)),
        )

    def fetch_verified_students(self) -> List[VerifiedStudent]:
        """Entries of the verified sheet, which batch submissions append to."""
        return self._cached_fetch(
            self.verified_students_cache,
            "verified_students",
            None,
            lambda: parse_verified_students(self._download(self.verified_students_csv_url)),
        )

    def _cached_fetch(
        self,
        cache: TimedCache[List[T]],
        label: str,
        primary: Optional[Callable[[], Optional[List[T]]]],
        fallback: Callable[[], List[T]],
        on_refresh: Optional[Callable[[List[T]], None]] = None,
    ) -> List[T]:
        cached = cache.get_fresh()
        if cached is not None:
            return cached

        if primary is not None:
            try:
                value = primary()
            except PlacementError as exc:
                logger.warning(
                    f"{label}_backend_failed_using_csv",
                    extra={"error": str(exc)},
                )
            else:
                if value is not None:
                    cache.set(value)
                    logger.info(f"{label}_fetched", extra={"count": len(value), "source": "backend"})
                    if on_refresh is not None:
                        on_refresh(value)
                    return value

        try:
            value = fallback()
        except PlacementError as exc:
            stale = cache.get_any()
            if stale is not None:
                logger.warning(f"{label}_serving_stale_cache", extra={"error": str(exc)})
                return stale
            logger.error(f"{label}_fetch_failed", extra={"error": str(exc)})
            raise

        cache.set(value)
        logger.info(f"{label}_fetched", extra={"count": len(value), "source": "csv"})
        if on_refresh is not None:
            on_refresh(value)
        return value

    def _download(self, url: str) -> str:
        return download_csv(url, timeout=self.csv_timeout_seconds)

    def _students_from_backend(self) -> Optional[List[Student]]:
        data = self.client.get("getStudents")
        raw = data.get("students")
        if not raw:
            return None
        try:
            students = [Student.model_validate(item) for item in raw]
        except ValidationError as exc:
            raise MalformedResponseError(f"getStudents: {exc}") from exc
        return [s for s in students if s.is_complete and s.company]

    def _verifications_from_backend(self) -> List[RecruiterVerification]:
        data = self.client.get("getVerifications")
        raw = data.get("verifications")
        if not isinstance(raw, list):
            raise MalformedResponseError("getVerifications: missing verifications list")
        try:
            return [RecruiterVerification.model_validate(item) for item in raw]
        except ValidationError as exc:
            raise MalformedResponseError(f"getVerifications: {exc}") from exc

    # ------------------------------------------------------------------
    # Derived reads
    # ------------------------------------------------------------------
    def fetch_company_names(self) -> List[str]:
        companies = {
            s.company.strip()
            for s in self.fetch_students()
            if s.company.strip() and s.company.strip().lower() != "null"
        }
        return sorted(companies, key=str.lower)

    def fetch_students_by_company(self, company: str) -> List[Student]:
        if not (company or "").strip():
            return []
        return [
            s for s in self.fetch_students()
            if _same_text(s.company, company) and s.is_complete
        ]

    def get_student_verification(self, registration_number: str) -> Optional[RecruiterVerification]:
        for verification in self.fetch_verifications():
            if _same_text(verification.registration_number, registration_number):
                return verification
        return None

    def get_company_verification_stats(self, company: str) -> CompanyVerificationStats:
        try:
            students = self.fetch_students_by_company(company)
            verifications = [
                v for v in self.fetch_verifications() if _same_text(v.company, company)
            ]
        except PlacementError as exc:
            logger.error(
                "company_stats_failed",
                extra={"company": company, "error": str(exc)},
            )
            return CompanyVerificationStats()

        return CompanyVerificationStats(
            total=len(students),
            verified=len(verifications),
            joined=sum(1 for v in verifications if v.status == STATUS_JOINED),
            not_joined=sum(1 for v in verifications if v.status == STATUS_NOT_JOINED),
            left_company=sum(1 for v in verifications if v.status == STATUS_LEFT_COMPANY),
            blacklisted=sum(1 for v in verifications if v.status == STATUS_BLACKLISTED),
            still_with_us=sum(1 for v in verifications if v.still_with_us),
        )

    def check_student_exists(self, registration_number: str) -> bool:
        data = self.client.get("checkStudentExists", registrationNumber=registration_number)
        return bool(data.get("exists"))

    def fetch_submissions(self) -> List[Dict[str, Any]]:
        data = self.client.get("getSubmissions")
        return list(data.get("submissions") or [])

    # ------------------------------------------------------------------
    # Writes
    # ------------------------------------------------------------------
    def add_verification(self, verification: RecruiterVerification) -> bool:
        try:
            result = self.client.post("addVerification", {"verification": verification.to_wire()})
        finally:
            self.clear_verifications_cache()
        logger.info(
            "verification_added",
            extra={"registration_number": verification.registration_number, "backend_message": result.get("message")},
        )
        return True

    def update_verification(self, registration_number: str, verification: RecruiterVerification) -> bool:
        try:
            result = self.client.post(
                "updateVerification",
                {
                    "registrationNumber": registration_number,
                    "verification": verification.to_wire(),
                },
            )
        finally:
            self.clear_verifications_cache()
        logger.info(
            "verification_updated",
            extra={"registration_number": registration_number, "backend_message": result.get("message")},
        )
        return True

    def insert_rows(self, rows: Sequence[Union[FeedbackRow, Sequence[str]]]) -> BackendResponse:
        """Append rows to the verified sheet in a single write."""
        values = [list(row) for row in rows]
        try:
            result = self.client.post("write", {"values": values})
        finally:
            self.clear_verified_students_cache()
        logger.info("rows_inserted", extra={"count": len(values)})
        return BackendResponse.model_validate(result)

    def add_student_submission(self, row: Sequence[str]) -> BackendResponse:
        result = self.client.post("addStudentSubmission", {"studentData": list(row)})
        return BackendResponse.model_validate(result)

    def update_existing_student(self, row: Sequence[str]) -> BackendResponse:
        result = self.client.post("updateExistingStudent", {"studentData": list(row)})
        self.clear_students_cache()
        return BackendResponse.model_validate(result)

    def verify_student_submission(self, verification: SubmissionVerification) -> BackendResponse:
        """Mark a row of the student submissions sheet verified; status defaults to Pending."""
        data = verification.to_wire()
        data["status"] = verification.status or "Pending"
        try:
            result = self.client.post("verifyStudent", {"verificationData": data})
        finally:
            self.clear_students_cache()
        logger.info(
            "submission_verified",
            extra={
                "registration_number": verification.registration_number,
                "recruiter_name": verification.recruiter_name,
            },
        )
        return BackendResponse.model_validate(result)

    # ------------------------------------------------------------------
    def clear_students_cache(self) -> None:
        self.students_cache.clear()

    def clear_verifications_cache(self) -> None:
        self.verifications_cache.clear()

    def clear_verified_students_cache(self) -> None:
        self.verified_students_cache.clear()

    def clear_all_caches(self) -> None:
        self.clear_students_cache()
        self.clear_verifications_cache()
        self.clear_verified_students_cache()


_service_instance: Optional[PlacementDataService] = None


def get_placement_data_service() -> PlacementDataService:
    global _service_instance
    if _service_instance is None:
        _service_instance = PlacementDataService()
    return _service_instance


def set_placement_data_service(service: Optional[PlacementDataService]) -> None:
    """Swap the process-wide service; tests pass a service built on a fake client."""
    global _service_instance
    _service_instance = service
