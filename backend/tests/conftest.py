from datetime import datetime, timezone
from urllib.parse import parse_qs, urlparse

import pytest

# Wednesday
NOW = datetime(2025, 3, 5, 9, 0, tzinfo=timezone.utc)


class FakeResponse:
    def __init__(self, status, data=b"", headers=None):
        self.status = status
        self.data = data
        self.headers = headers or {}


class FakeTransport:
    """Stands in for google.auth.transport.requests.Request on the tokeninfo check."""

    def __init__(self, valid_tokens=()):
        self.valid_tokens = set(valid_tokens)
        self.calls = []

    def __call__(self, url, method="GET", body=None, headers=None, timeout=None, **kwargs):
        self.calls.append(url)
        token = parse_qs(urlparse(url).query).get("access_token", [""])[0]
        return FakeResponse(200 if token in self.valid_tokens else 400)


class FakeHttpRequest:
    def __init__(self, run):
        self._run = run

    def execute(self):
        return self._run()


class FakeEvents:
    def __init__(self, service):
        self.service = service

    def list(self, **kwargs):
        service = self.service
        service.list_calls.append(kwargs)

        def run():
            if service.list_error is not None:
                raise service.list_error
            page = kwargs.get("pageToken") or 0
            response = {"items": service.existing_pages[page]}
            if page + 1 < len(service.existing_pages):
                response["nextPageToken"] = page + 1
            return response

        return FakeHttpRequest(run)

    def insert(self, calendarId, body):
        service = self.service
        service.inserted.append(body)

        def run():
            if body["summary"] in service.fail_titles:
                raise RuntimeError(f"Rejected {body['summary']}")
            n = len(service.inserted)
            return {"id": f"evt{n}", "htmlLink": f"https://calendar.google.com/event?eid=evt{n}"}

        return FakeHttpRequest(run)


class FakeCalendarService:
    """Just enough of the Calendar v3 discovery client for export tests."""

    def __init__(self, existing=None, fail_titles=(), list_error=None, existing_pages=None):
        self.existing_pages = existing_pages or [existing or []]
        self.fail_titles = set(fail_titles)
        self.list_error = list_error
        self.list_calls = []
        self.inserted = []

    def events(self):
        return FakeEvents(self)


@pytest.fixture
def service():
    return FakeCalendarService()
