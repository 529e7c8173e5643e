"""
Google Calendar export.

Builds Calendar v3 event resources from normalized events, checks and
refreshes the caller's OAuth tokens, moves new deadlines off slots the
destination calendar already uses, and inserts events one by one so a
failure on one event never stops the rest.
"""

import logging
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Any, Callable, Dict, List, Optional
from urllib.parse import urlencode

from dateutil.relativedelta import relativedelta
from google.auth.exceptions import RefreshError, TransportError
from google.auth.transport.requests import Request
from google.oauth2.credentials import Credentials
from googleapiclient.discovery import build

from .config import (
    CONFLICT_WINDOW_MONTHS,
    GOOGLE_CALENDAR_ID,
    GOOGLE_CLIENT_ID,
    GOOGLE_CLIENT_SECRET,
    GOOGLE_TOKEN_URI,
    GOOGLE_TOKENINFO_URL,
)
from .conflicts import resolve_external_conflicts, resolve_overlaps
from .dates import AnchorPolicy, get_zone
from .errors import AuthExpired, InvalidRequest
from .formatter import format_event
from .models import (
    CreatedEvent,
    EventError,
    EventWarning,
    ExportRequest,
    ExportResult,
    ExportSummary,
    ExtractedEvent,
    InsertOutcome,
    NormalizedEvent,
)
from .recurrence import format_rrule

logger = logging.getLogger(__name__)

TEMPLATE_URL = "https://calendar.google.com/calendar/render"


# ============================================================
# EVENT RESOURCES
# ============================================================
def _when(value, ev: NormalizedEvent) -> Dict[str, str]:
    if ev.is_all_day:
        return {"date": value.isoformat()}
    return {"dateTime": value.isoformat(timespec="seconds"), "timeZone": ev.time_zone}


def event_to_google_body(ev: NormalizedEvent, color_id: Optional[str] = None) -> Dict[str, Any]:
    """Calendar v3 insert body.

    Timed events carry a local ``dateTime`` plus ``timeZone``; the service does
    the zone math. All-day events use ``date`` with an exclusive end.
    """
    body: Dict[str, Any] = {
        "summary": ev.title,
        "description": ev.description,
        "start": _when(ev.start, ev),
        "end": _when(ev.end, ev),
    }
    if color_id:
        body["colorId"] = color_id
    if ev.location:
        body["location"] = ev.location
    if ev.rule is not None:
        body["recurrence"] = ["RRULE:" + format_rrule(ev.rule, ev.is_all_day, ev.time_zone)]
    return body


def event_to_template_url(ev: NormalizedEvent) -> str:
    """Pre-filled "add event" link; opening it needs no API authorization."""
    if ev.is_all_day:
        dates = f"{ev.start:%Y%m%d}/{ev.end:%Y%m%d}"
    else:
        dates = f"{ev.start:%Y%m%dT%H%M%S}/{ev.end:%Y%m%dT%H%M%S}"
    params = {"action": "TEMPLATE", "text": ev.title, "dates": dates, "details": ev.description}
    if ev.location:
        params["location"] = ev.location
    if ev.time_zone:
        params["ctz"] = ev.time_zone
    if ev.rule is not None:
        params["recur"] = "RRULE:" + format_rrule(ev.rule, ev.is_all_day, ev.time_zone)
    return f"{TEMPLATE_URL}?{urlencode(params)}"


# ============================================================
# CREDENTIALS
# ============================================================
@dataclass
class TokenResult:
    credentials: Credentials
    refreshed: bool = False

    @property
    def token(self) -> Optional[str]:
        return self.credentials.token

    @property
    def refresh_token(self) -> Optional[str]:
        return self.credentials.refresh_token


def token_is_valid(access_token: str, request: Callable) -> bool:
    url = f"{GOOGLE_TOKENINFO_URL}?{urlencode({'access_token': access_token})}"
    try:
        response = request(url=url, method="GET")
    except TransportError as e:
        logger.warning("Token check failed: %s", e)
        return False
    return response.status == 200


def authorize(
    access_token: str, refresh_token: Optional[str] = None, request: Optional[Callable] = None
) -> TokenResult:
    """Return usable credentials, refreshing the access token when needed.

    Raises ``AuthExpired`` when the access token is invalid and no refresh
    token can mint a new one.
    """
    request = request or Request()
    if token_is_valid(access_token, request):
        return TokenResult(
            Credentials(
                token=access_token,
                refresh_token=refresh_token or None,
                token_uri=GOOGLE_TOKEN_URI,
                client_id=GOOGLE_CLIENT_ID or None,
                client_secret=GOOGLE_CLIENT_SECRET or None,
            )
        )

    if not refresh_token:
        raise AuthExpired("Invalid or expired access token")

    creds = Credentials(
        token=None,
        refresh_token=refresh_token,
        token_uri=GOOGLE_TOKEN_URI,
        client_id=GOOGLE_CLIENT_ID or None,
        client_secret=GOOGLE_CLIENT_SECRET or None,
    )
    try:
        creds.refresh(request)
    except (RefreshError, TransportError) as e:
        logger.warning("Token refresh failed: %s", e)
        raise AuthExpired("Authentication expired. Please sign in again.") from e
    logger.info("Refreshed Google access token")
    return TokenResult(creds, refreshed=True)


def build_calendar_service(credentials: Credentials):
    return build("calendar", "v3", credentials=credentials, cache_discovery=False)


# ============================================================
# CALENDAR CALLS
# ============================================================
def _rfc3339(value: datetime) -> str:
    if value.tzinfo is None:
        value = value.replace(tzinfo=timezone.utc)
    return value.isoformat()


def fetch_existing_events(
    service, time_min: datetime, time_max: datetime, calendar_id: str = GOOGLE_CALENDAR_ID
) -> List[Dict[str, Any]]:
    """Events already in the calendar in ``[time_min, time_max)``; [] if the call fails."""
    items: List[Dict[str, Any]] = []
    page_token = None
    try:
        while True:
            response = (
                service.events()
                .list(
                    calendarId=calendar_id,
                    timeMin=_rfc3339(time_min),
                    timeMax=_rfc3339(time_max),
                    singleEvents=True,
                    orderBy="startTime",
                    pageToken=page_token,
                )
                .execute()
            )
            items.extend(response.get("items", []))
            page_token = response.get("nextPageToken")
            if not page_token:
                break
    except Exception as e:
        logger.warning("Could not fetch existing events, skipping conflict check: %s", e)
        return []
    return items


def insert_event(
    service,
    original: ExtractedEvent,
    ev: NormalizedEvent,
    body: Dict[str, Any],
    adjusted_time: Optional[str],
    calendar_id: str = GOOGLE_CALENDAR_ID,
) -> InsertOutcome:
    try:
        created = service.events().insert(calendarId=calendar_id, body=body).execute()
    except Exception as e:
        logger.error("Error creating event %r: %s", ev.title, e)
        return EventError(event=ev.title, error=str(e) or type(e).__name__)
    return CreatedEvent(
        title=ev.title,
        service_event_id=created.get("id"),
        link=created.get("htmlLink"),
        original_time=original.time or None,
        adjusted_time=adjusted_time,
    )


# ============================================================
# EXPORT
# ============================================================
def validate_export_request(req: ExportRequest) -> None:
    if not req.dates:
        raise InvalidRequest("No dates provided")
    if not req.access_token:
        raise AuthExpired("No access token provided")
    if not req.timezone:
        raise InvalidRequest("No timezone provided")
    if get_zone(req.timezone) is None:
        raise InvalidRequest(f"Unknown timezone: {req.timezone}")


def export_to_google_calendar(
    req: ExportRequest,
    now: datetime,
    request: Optional[Callable] = None,
    service_factory: Callable = build_calendar_service,
    anchor: AnchorPolicy = AnchorPolicy.NEXT_MONDAY,
    calendar_id: str = GOOGLE_CALENDAR_ID,
) -> ExportResult:
    validate_export_request(req)
    tokens = authorize(req.access_token, req.refresh_token, request)
    service = service_factory(tokens.credentials)

    window_end = now + relativedelta(months=CONFLICT_WINDOW_MONTHS)
    existing = fetch_existing_events(service, now, window_end, calendar_id)

    # existing-calendar conflicts first, then conflicts inside the batch
    adjusted = resolve_external_conflicts(req.dates, existing, now, req.timezone)
    adjusted = resolve_overlaps(adjusted, now)

    outcomes: List[InsertOutcome] = []
    warnings: List[EventWarning] = []
    for original, item in zip(req.dates, adjusted):
        ev = format_event(item, now, time_zone=req.timezone, anchor=anchor)
        if ev is None:
            warnings.append(
                EventWarning(event=item.title, warning="No date or recurrence pattern found")
            )
            continue
        warnings.extend(EventWarning(event=ev.title, warning=w) for w in ev.warnings)

        moved = (item.time, item.date) != (original.time, original.date)
        body = event_to_google_body(ev, req.color_id)
        outcomes.append(
            insert_event(service, original, ev, body, item.time if moved else None, calendar_id)
        )

    created = [o for o in outcomes if isinstance(o, CreatedEvent)]
    errors = [o for o in outcomes if isinstance(o, EventError)]
    logger.info("Google export: %d created, %d failed", len(created), len(errors))

    return ExportResult(
        success=True,
        created_events=created,
        errors=errors,
        warnings=warnings,
        new_access_token=tokens.token if tokens.refreshed else None,
        new_refresh_token=tokens.refresh_token if tokens.refreshed else None,
        adjustments_made=any(
            (a.time, a.date) != (o.time, o.date) for a, o in zip(adjusted, req.dates)
        ),
        summary=ExportSummary(
            total_events=len(req.dates), successful=len(created), failed=len(errors)
        ),
    )
