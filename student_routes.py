"""FastAPI router for student submissions and roster reads."""

from __future__ import annotations

import asyncio
import logging
from typing import List

from fastapi import APIRouter, HTTPException
from pydantic import BaseModel, Field

from placement_data_service import get_placement_data_service
from placement_models import StudentSubmission, SubmissionVerification, WireModel
from student_submission import submit_student_data, update_student_data, verify_submission

logger = logging.getLogger(__name__)
router = APIRouter(prefix="/api")


class InsertRowsRequest(BaseModel):
    action: str = "write"
    values: List[List[str]] = Field(default_factory=list)


class VerifySubmissionRequest(WireModel):
    verification_data: SubmissionVerification


@router.post("/student-submission")
async def student_submission(submission: StudentSubmission) -> dict:
    """Validate the student's form and append it to the submissions sheet."""
    service = get_placement_data_service()
    response = await asyncio.to_thread(submit_student_data, service, submission)
    return response.to_wire()


@router.post("/update-student")
async def update_student(submission: StudentSubmission) -> dict:
    """Replace an existing student's row, for a student who confirmed the overwrite."""
    service = get_placement_data_service()
    response = await asyncio.to_thread(update_student_data, service, submission)
    return response.to_wire()


@router.post("/verify-student")
async def verify_student(request: VerifySubmissionRequest) -> dict:
    service = get_placement_data_service()
    response = await asyncio.to_thread(verify_submission, service, request.verification_data)
    return response.to_wire()


@router.post("/insert-rows")
async def insert_rows(request: InsertRowsRequest) -> dict:
    if request.action != "write":
        raise HTTPException(status_code=400, detail=f"Unsupported action {request.action!r}")
    if not request.values:
        raise HTTPException(status_code=400, detail="No rows to insert")

    service = get_placement_data_service()
    response = await asyncio.to_thread(service.insert_rows, request.values)
    return response.to_wire()


@router.get("/companies")
async def list_companies() -> dict:
    service = get_placement_data_service()
    companies = await asyncio.to_thread(service.fetch_company_names)
    return {"success": True, "companies": companies}


@router.get("/students")
async def list_students() -> dict:
    service = get_placement_data_service()
    students = await asyncio.to_thread(service.fetch_students)
    return {"success": True, "students": [s.to_wire() for s in students]}


@router.get("/students/company/{company_name}")
async def list_students_by_company(company_name: str) -> dict:
    service = get_placement_data_service()
    students = await asyncio.to_thread(service.fetch_students_by_company, company_name)
    return {"success": True, "students": [s.to_wire() for s in students]}


@router.get("/companies/{company_name}/stats")
async def company_stats(company_name: str) -> dict:
    service = get_placement_data_service()
    stats = await asyncio.to_thread(service.get_company_verification_stats, company_name)
    return {"success": True, "stats": stats.to_wire()}


@router.get("/check-student/{registration_number}")
async def check_student(registration_number: str) -> dict:
    service = get_placement_data_service()
    exists = await asyncio.to_thread(service.check_student_exists, registration_number)
    return {"success": True, "exists": exists}


@router.get("/submissions")
async def list_submissions() -> dict:
    service = get_placement_data_service()
    submissions = await asyncio.to_thread(service.fetch_submissions)
    return {"success": True, "submissions": submissions, "totalCount": len(submissions)}
