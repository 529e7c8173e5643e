import datetime as dt
import hashlib
from dataclasses import dataclass, field
from typing import List, Optional, Tuple, Union

from pydantic import BaseModel, ConfigDict, field_validator, model_validator
from pydantic.alias_generators import to_camel

from .config import DEFAULT_EVENT_TYPE

WEEKDAY_CODES = ("MO", "TU", "WE", "TH", "FR", "SA", "SU")
PRIORITY_KEYWORDS = ("homework", "assignment", "deadline")


def is_priority_text(text: Optional[str]) -> bool:
    low = (text or "").lower()
    return any(k in low for k in PRIORITY_KEYWORDS)


# ============================================================
# INPUT (upstream extraction output, loosely typed)
# ============================================================
class ExtractedEvent(BaseModel):
    """One event as produced by the extraction step.

    Every field is untrusted text. Missing or null fields become "" (``type``
    becomes ``DEFAULT_EVENT_TYPE``) and an empty ``id`` is replaced by a stable
    digest of the event's content.
    """

    model_config = ConfigDict(extra="ignore")

    id: str = ""
    title: str = ""
    date: str = ""
    type: str = ""
    time: str = ""
    recurrence: str = ""
    location: str = ""
    description: str = ""

    @field_validator("*", mode="before")
    @classmethod
    def _coerce_text(cls, value):
        if value is None:
            return ""
        if not isinstance(value, str):
            value = str(value)
        return value.strip()

    @model_validator(mode="after")
    def _fill_defaults(self):
        self.type = self.type.lower() or DEFAULT_EVENT_TYPE
        if not self.id:
            base = "|".join([self.title.lower(), self.date, self.time, self.type])
            self.id = hashlib.sha1(base.encode("utf-8")).hexdigest()[:16]
        return self

    @property
    def is_priority(self) -> bool:
        return is_priority_text(self.type)


# ============================================================
# INTERNAL
# ============================================================
@dataclass(frozen=True)
class RecurrenceRule:
    """Weekly recurrence. An empty ``days`` tuple repeats on the anchor's weekday."""

    days: Tuple[str, ...] = ()
    until: Optional[dt.date] = None


@dataclass
class NormalizedEvent:
    """A placeable event with concrete start/end instants.

    ``start``/``end`` are ``date`` values for all-day events (end exclusive,
    start + 1 day) and naive local ``datetime`` values otherwise, interpreted
    in ``time_zone`` when one is set and as floating local time when not.
    """

    uid: str
    title: str
    type: str
    is_all_day: bool
    start: Union[dt.date, dt.datetime]
    end: Union[dt.date, dt.datetime]
    time_zone: Optional[str] = None
    rule: Optional[RecurrenceRule] = None
    location: str = ""
    description: str = ""
    warnings: List[str] = field(default_factory=list)


# ============================================================
# HTTP REQUESTS / RESPONSES
# ============================================================
class CamelModel(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class IcsRequest(CamelModel):
    dates: List[ExtractedEvent] = []
    class_name: Optional[str] = None
    timezone: Optional[str] = None


class LinksRequest(CamelModel):
    dates: List[ExtractedEvent] = []
    timezone: Optional[str] = None


class ExportRequest(CamelModel):
    dates: List[ExtractedEvent] = []
    access_token: Optional[str] = None
    refresh_token: Optional[str] = None
    color_id: Optional[str] = None
    timezone: Optional[str] = None


class CreatedEvent(CamelModel):
    title: str
    service_event_id: Optional[str] = None
    link: Optional[str] = None
    original_time: Optional[str] = None
    adjusted_time: Optional[str] = None


class EventError(CamelModel):
    event: str
    error: str


class EventWarning(CamelModel):
    event: str
    warning: str


InsertOutcome = Union[CreatedEvent, EventError]


class ExportSummary(CamelModel):
    total_events: int
    successful: int
    failed: int


class ExportResult(CamelModel):
    success: bool
    created_events: List[CreatedEvent] = []
    errors: List[EventError] = []
    warnings: List[EventWarning] = []
    new_access_token: Optional[str] = None
    new_refresh_token: Optional[str] = None
    adjustments_made: bool = False
    summary: ExportSummary


class LinksResponse(BaseModel):
    success: bool
    urls: List[str]
    message: str
