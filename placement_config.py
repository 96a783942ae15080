# placement_config.py
"""
Configuration for the placement verification service.
"""

import os
from urllib.parse import quote

from dotenv import load_dotenv

load_dotenv()

# Remote scripting endpoint (Apps Script web app or a proxy in front of it)
PLACEMENT_BACKEND_URL = os.getenv("PLACEMENT_BACKEND_URL", "").strip()

# Published spreadsheets used for the CSV fallback path
PLACEMENT_SPREADSHEET_ID = os.getenv(
    "PLACEMENT_SPREADSHEET_ID", "1qaw22tBerPvG6A_WGpuH41vP9RfHsFodYQ2sz8F35Lk"
)
VERIFIED_SPREADSHEET_ID = os.getenv(
    "VERIFIED_SPREADSHEET_ID", "1Fkjm__5-2N3IkXQ1Op82a_3HGeuxcPsxG_aq4pt2hd0"
)
STUDENT_DATA_SHEET = os.getenv("STUDENT_DATA_SHEET", "Student Submission")
VERIFICATIONS_SHEET = os.getenv("VERIFICATIONS_SHEET", "Recruiter Verifications")
VERIFIED_STUDENTS_SHEET = os.getenv("VERIFIED_STUDENTS_SHEET", "Sheet1")


def _read_float(name: str, default: str) -> float:
    raw = os.getenv(name, default)
    try:
        value = float(raw)
    except ValueError as exc:
        raise ValueError(f"{name} must be a number, got {raw!r}") from exc
    if value <= 0:
        raise ValueError(f"{name} must be positive, got {raw!r}")
    return value


CACHE_TTL_SECONDS = _read_float("PLACEMENT_CACHE_TTL_SECONDS", "300")
CSV_FALLBACK_TIMEOUT_SECONDS = _read_float("CSV_FALLBACK_TIMEOUT_SECONDS", "10")
BACKEND_TIMEOUT_SECONDS = _read_float("BACKEND_TIMEOUT_SECONDS", "30")
RECRUITER_PAGE_SIZE = int(_read_float("RECRUITER_PAGE_SIZE", "10"))


def csv_export_url(spreadsheet_id: str, sheet_name: str) -> str:
    """Build the published CSV export URL for one sheet tab."""
    return (
        f"https://docs.google.com/spreadsheets/d/{spreadsheet_id}"
        f"/gviz/tq?tqx=out:csv&sheet={quote(sheet_name)}"
    )


STUDENTS_CSV_URL = os.getenv(
    "STUDENTS_CSV_URL", csv_export_url(PLACEMENT_SPREADSHEET_ID, STUDENT_DATA_SHEET)
)
VERIFICATIONS_CSV_URL = os.getenv(
    "VERIFICATIONS_CSV_URL", csv_export_url(PLACEMENT_SPREADSHEET_ID, VERIFICATIONS_SHEET)
)
VERIFIED_STUDENTS_CSV_URL = os.getenv(
    "VERIFIED_STUDENTS_CSV_URL",
    csv_export_url(VERIFIED_SPREADSHEET_ID, VERIFIED_STUDENTS_SHEET),
)

# Recruiter sessions idle longer than this are dropped; the registry is also capped.
RECRUITER_SESSION_IDLE_SECONDS = _read_float("RECRUITER_SESSION_IDLE_SECONDS", "1800")
MAX_RECRUITER_SESSIONS = int(_read_float("MAX_RECRUITER_SESSIONS", "200"))
