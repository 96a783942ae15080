# main.py

from dotenv import load_dotenv
load_dotenv()

import logging
import time
import uuid

from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse
from starlette.middleware.base import BaseHTTPMiddleware

from placement_config import PLACEMENT_BACKEND_URL
from placement_errors import (
    BackendResponseError,
    PlacementError,
    SessionNotFoundError,
    StudentNotFoundError,
    SubmissionValidationError,
)
from recruiter_routes import router as recruiter_router
from recruiter_session import RecruiterSessionStore
from student_routes import router as student_router


# Request Logging Middleware
request_logger = logging.getLogger("request_logging")
app_logger = logging.getLogger("placement_app")


class RequestLoggingMiddleware(BaseHTTPMiddleware):
    async def dispatch(self, request: Request, call_next):
        request_id = str(uuid.uuid4())
        start_time = time.time()

        actor = "API"
        if request.url.path.startswith("/api/recruiter"):
            actor = "Recruiter"
        elif request.url.path.startswith("/api/student"):
            actor = "Student"

        response = await call_next(request)

        latency_ms = (time.time() - start_time) * 1000

        request_logger.info(
            "request_completed",
            extra={
                "request_id": request_id,
                "endpoint": request.url.path,
                "method": request.method,
                "actor": actor,
                "status_code": response.status_code,
                "latency_ms": round(latency_ms, 2),
            }
        )

        return response


app = FastAPI(title="Placement Verification Service")
app.add_middleware(RequestLoggingMiddleware)
app.include_router(student_router, tags=["students"])
app.include_router(recruiter_router, tags=["recruiters"])

if not PLACEMENT_BACKEND_URL:
    app_logger.warning("placement_backend_url_missing_startup")


# ------------------------------------------------------------------
# Error mapping
# ------------------------------------------------------------------
@app.exception_handler(SubmissionValidationError)
async def handle_validation_error(request: Request, exc: SubmissionValidationError):
    return JSONResponse(status_code=400, content={"success": False, "errors": exc.errors})


@app.exception_handler(SessionNotFoundError)
@app.exception_handler(StudentNotFoundError)
async def handle_not_found(request: Request, exc: PlacementError):
    return JSONResponse(status_code=404, content={"success": False, "error": str(exc)})


@app.exception_handler(BackendResponseError)
async def handle_backend_response_error(request: Request, exc: BackendResponseError):
    return JSONResponse(status_code=502, content={"success": False, "error": exc.error})


@app.exception_handler(PlacementError)
async def handle_placement_error(request: Request, exc: PlacementError):
    app_logger.error(
        "placement_request_failed",
        extra={"endpoint": request.url.path, "error": str(exc)},
    )
    return JSONResponse(status_code=502, content={"success": False, "error": str(exc)})


# ------------------------------------------------------------------
# Health check
# ------------------------------------------------------------------
def _healthy_response():
    return {
        "status": "ok",
        "backend_configured": bool(PLACEMENT_BACKEND_URL),
        "recruiter_sessions": RecruiterSessionStore.count(),
    }


@app.get("/health")
def health():
    return _healthy_response()


@app.get("/healthz")
def healthz():
    return _healthy_response()

