# main.py

from dotenv import load_dotenv
load_dotenv()

import logging
import os

from fastapi import FastAPI, Request
from starlette.middleware.base import BaseHTTPMiddleware
import time
import uuid

import service_config
from hiring_api import router as hiring_router


# Request Logging Middleware
request_logger = logging.getLogger("request_logging")

class RequestLoggingMiddleware(BaseHTTPMiddleware):
    async def dispatch(self, request: Request, call_next):
        request_id = str(uuid.uuid4())
        start_time = time.time()

        # Extract actor from path
        actor = "API"
        if request.url.path.startswith("/me/"):
            actor = "JobSeeker"
        elif request.url.path.startswith(("/candidates", "/interviewers", "/interviews")):
            actor = "HR"

        # Process request
        response = await call_next(request)

        # Calculate latency
        latency_ms = (time.time() - start_time) * 1000

        # Log request details
        request_logger.info(
            "request_completed",
            extra={
                "request_id": request_id,
                "endpoint": request.url.path,
                "method": request.method,
                "actor": actor,
                "user_id": request.headers.get("X-User-Id"),
                "status_code": response.status_code,
                "latency_ms": round(latency_ms, 2),
            }
        )

        return response


app = FastAPI(title="Hiring Identity Service")
app.add_middleware(RequestLoggingMiddleware)
app.include_router(hiring_router, tags=["hiring"])

startup_logger = logging.getLogger("startup")
startup_logger.info(
    "record_store_configured",
    extra={
        "backend": service_config.RECORD_STORE_BACKEND,
        "free_text_window": service_config.FREE_TEXT_WINDOW,
        "email_case_insensitive": service_config.EMAIL_MATCH_CASE_INSENSITIVE,
    },
)


# ------------------------------------------------------------------
# Health check
# ------------------------------------------------------------------
def _healthy_response():
    return {"status": "ok"}


@app.get("/health")
def health():
    return _healthy_response()


@app.get("/healthz")
def healthz():
    return _healthy_response()


# ------------------------------------------------------------------
# Config debugging endpoint
# ------------------------------------------------------------------
@app.get("/debug-config")
def debug_config():
    return {
        "backend": service_config.RECORD_STORE_BACKEND,
        "supabase_configured": bool(service_config.SUPABASE_URL and service_config.SUPABASE_KEY),
        "free_text_window": service_config.FREE_TEXT_WINDOW,
        "dashboard_job_limit": service_config.DASHBOARD_JOB_LIMIT,
        "email_case_insensitive": service_config.EMAIL_MATCH_CASE_INSENSITIVE,
        "port": os.getenv("PORT") or "8080",
    }
