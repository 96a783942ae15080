"""FastAPI router for recruiter verification sessions."""

from __future__ import annotations

import asyncio
import logging
from typing import Optional

from fastapi import APIRouter, HTTPException, Query
from fastapi.responses import PlainTextResponse
from pydantic import BaseModel

from placement_config import RECRUITER_PAGE_SIZE
from placement_data_service import get_placement_data_service
from placement_models import FeedbackPatch, WireModel
from recruiter_session import RecruiterSession, RecruiterSessionStore

logger = logging.getLogger(__name__)
router = APIRouter(prefix="/api/recruiter")


class RecruiterFieldChange(BaseModel):
    field: str
    value: str


class VerifyStudentRequest(WireModel):
    recruiter_name: str = ""
    recruiter_email: str = ""


def _session_summary(session: RecruiterSession) -> dict:
    return {
        "success": True,
        "sessionId": session.session_id,
        "recruiter": session.recruiter.to_wire(),
        "loaded": session.loaded,
        "rosterSize": len(session.roster),
        "feedbackCount": len(session.feedback_map),
    }


@router.post("/sessions")
async def create_session() -> dict:
    """Load the roster sources, then register the session; a failed load leaves nothing behind."""
    session = RecruiterSession(get_placement_data_service())
    await session.load_roster()
    RecruiterSessionStore.register(session)
    logger.info("recruiter_session_created", extra={"session_id": session.session_id})
    return _session_summary(session)


@router.get("/sessions/{session_id}")
async def get_session(session_id: str) -> dict:
    return _session_summary(RecruiterSessionStore.get(session_id))


@router.delete("/sessions/{session_id}")
async def close_session(session_id: str) -> dict:
    RecruiterSessionStore.close(session_id)
    return {"success": True}


@router.post("/sessions/{session_id}/reload")
async def reload_session(session_id: str) -> dict:
    session = RecruiterSessionStore.get(session_id)
    await session.load_roster()
    return _session_summary(session)


@router.patch("/sessions/{session_id}/recruiter")
async def change_recruiter(session_id: str, change: RecruiterFieldChange) -> dict:
    session = RecruiterSessionStore.get(session_id)
    try:
        session.on_change(change.field, change.value)
    except ValueError as exc:
        raise HTTPException(status_code=400, detail=str(exc)) from exc
    return _session_summary(session)


@router.patch("/sessions/{session_id}/feedback/{reg_no}")
async def update_feedback(session_id: str, reg_no: str, patch: FeedbackPatch) -> dict:
    session = RecruiterSessionStore.get(session_id)
    changed = session.update_feedback(reg_no, patch)
    student = session.find_student(reg_no)
    return {
        "success": True,
        "changed": changed,
        "student": session.reconcile(student).to_wire(),
    }


@router.get("/sessions/{session_id}/students")
async def list_students(
    session_id: str,
    search: str = "",
    status: str = "all",
    verification: str = Query("all", pattern="^(all|verified|unverified)$"),
    sort_by: Optional[str] = None,
    descending: bool = False,
    page: int = Query(0, ge=0),
    page_size: int = Query(RECRUITER_PAGE_SIZE, ge=1, le=200),
) -> dict:
    session = RecruiterSessionStore.get(session_id)
    try:
        roster_page = session.view(
            search=search,
            status=status,
            verification=verification,
            sort_by=sort_by,
            descending=descending,
            page=page,
            page_size=page_size,
        )
    except ValueError as exc:
        raise HTTPException(status_code=400, detail=str(exc)) from exc
    return {
        "success": True,
        "students": [row.to_wire() for row in roster_page.rows],
        "page": roster_page.page,
        "pageSize": roster_page.page_size,
        "total": roster_page.total,
        "totalPages": roster_page.total_pages,
    }


@router.get("/sessions/{session_id}/stats")
async def session_stats(session_id: str) -> dict:
    session = RecruiterSessionStore.get(session_id)
    return {"success": True, "stats": session.stats().to_wire()}


@router.get("/sessions/{session_id}/export", response_class=PlainTextResponse)
async def export_session(session_id: str) -> PlainTextResponse:
    session = RecruiterSessionStore.get(session_id)
    return PlainTextResponse(
        session.export_csv(),
        media_type="text/csv",
        headers={"Content-Disposition": 'attachment; filename="student_verification.csv"'},
    )


@router.post("/sessions/{session_id}/submit")
async def submit_feedback(session_id: str) -> dict:
    """Send all entered feedback for the selected company as one batch."""
    session = RecruiterSessionStore.get(session_id)
    result = await asyncio.to_thread(session.submit_feedback)
    return result.to_wire()


@router.post("/sessions/{session_id}/students/{reg_no}/verify")
async def verify_student(session_id: str, reg_no: str, request: VerifyStudentRequest) -> dict:
    session = RecruiterSessionStore.get(session_id)
    feedback = await asyncio.to_thread(
        session.verify_student, reg_no, request.recruiter_name, request.recruiter_email
    )
    return {"success": True, "feedback": feedback.to_wire()}
