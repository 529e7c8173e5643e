import logging
import os
from datetime import datetime, timezone
from typing import Optional

from fastapi import FastAPI, Request, Response
from fastapi.concurrency import run_in_threadpool
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from .config import CORS_ALLOW_ORIGINS, GOOGLE_CLIENT_ID, GOOGLE_CLIENT_SECRET, LOG_LEVEL
from .dates import AnchorPolicy, get_zone
from .errors import AuthExpired, InvalidRequest, SyllabusCalendarError
from .formatter import format_events
from .google_calendar import event_to_template_url, export_to_google_calendar
from .ics import events_to_ics, ics_filename
from .models import ExportRequest, ExportResult, IcsRequest, LinksRequest, LinksResponse

logging.basicConfig(
    level=LOG_LEVEL,
    format="%(asctime)s %(levelname)s %(name)s %(message)s",
)
logger = logging.getLogger(__name__)

# ============================================================
# FASTAPI
# ============================================================
app = FastAPI(title="Syllabus Calendar", version="1.0.0")

app.add_middleware(
    CORSMiddleware,
    allow_origins=CORS_ALLOW_ORIGINS,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


# ============================================================
# ERRORS
# ============================================================
@app.exception_handler(SyllabusCalendarError)
async def calendar_error_handler(request: Request, exc: SyllabusCalendarError):
    content = {"error": exc.message}
    if isinstance(exc, AuthExpired):
        content["authError"] = True
    return JSONResponse(status_code=exc.status_code, content=content)


@app.exception_handler(RequestValidationError)
async def validation_error_handler(request: Request, exc: RequestValidationError):
    return JSONResponse(
        status_code=400,
        content={"error": "Invalid request body", "details": str(exc.errors())},
    )


@app.exception_handler(Exception)
async def unexpected_error_handler(request: Request, exc: Exception):
    logger.exception("Unhandled error on %s", request.url.path)
    return JSONResponse(
        status_code=500,
        content={"error": "Internal server error", "details": str(exc)},
    )


def request_now(time_zone: Optional[str]) -> datetime:
    """The one wall-clock read per request, in the caller's zone when known."""
    zone = get_zone(time_zone)
    return datetime.now(zone or timezone.utc)


def check_timezone(time_zone: Optional[str]) -> None:
    if time_zone and get_zone(time_zone) is None:
        raise InvalidRequest(f"Unknown timezone: {time_zone}")


# ============================================================
# ENDPOINTS
# ============================================================
@app.post("/generate-ics")
async def generate_ics(req: IcsRequest):
    if not req.dates:
        raise InvalidRequest("No dates provided")
    check_timezone(req.timezone)

    now = request_now(req.timezone)
    events = format_events(req.dates, now, time_zone=req.timezone, anchor=AnchorPolicy.TOMORROW)
    ics_bytes = events_to_ics(events, now, class_name=req.class_name, time_zone=req.timezone)

    return Response(
        content=ics_bytes,
        media_type="text/calendar",
        headers={"Content-Disposition": f'attachment; filename="{ics_filename(req.class_name)}"'},
    )


@app.post(
    "/export-google-calendar",
    response_model=ExportResult,
    response_model_exclude_none=True,
)
async def export_google_calendar(req: ExportRequest):
    now = request_now(req.timezone)
    return await run_in_threadpool(export_to_google_calendar, req, now)


@app.post("/google-calendar-links", response_model=LinksResponse)
async def google_calendar_links(req: LinksRequest):
    if not req.dates:
        raise InvalidRequest("No dates provided")
    check_timezone(req.timezone)

    now = request_now(req.timezone)
    events = format_events(req.dates, now, time_zone=req.timezone, anchor=AnchorPolicy.NEXT_MONDAY)
    urls = [event_to_template_url(ev) for ev in events]
    return LinksResponse(
        success=True,
        urls=urls,
        message=f"Generated {len(urls)} Google Calendar links",
    )


@app.get("/")
async def root():
    return {
        "message": "Syllabus Calendar API",
        "version": "1.0.0",
        "endpoints": {
            "generate_ics": "/generate-ics (POST)",
            "export_google_calendar": "/export-google-calendar (POST)",
            "google_calendar_links": "/google-calendar-links (POST)",
            "health": "/health (GET)",
            "docs": "/docs (GET)",
        },
    }


@app.get("/health")
async def health_check():
    return {
        "status": "healthy",
        "googleConfigured": bool(GOOGLE_CLIENT_ID and GOOGLE_CLIENT_SECRET),
        "message": "Syllabus Calendar API is running",
    }


if __name__ == "__main__":
    import uvicorn

    uvicorn.run(app, host="127.0.0.1", port=int(os.getenv("PORT", "8001")), reload=False)
