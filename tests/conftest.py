from __future__ import annotations

from contextlib import asynccontextmanager
from typing import Any, Optional

import httpx
import pytest

from fta.config import AUTH_MODE_API_KEY, AUTH_MODE_COOKIE, Settings
from fta.ingest.browser import StepResult


@pytest.fixture
def api_key_settings() -> Settings:
    return Settings(
        domain="acme.freshservice.com",
        api_key="secret-key",
        auth_mode=AUTH_MODE_API_KEY,
        group_id="27000189625",
        workspace_id=2,
    )


@pytest.fixture
def cookie_settings() -> Settings:
    return Settings(
        domain="acme.freshservice.com",
        email="agent@acme.test",
        password="hunter2",
        auth_mode=AUTH_MODE_COOKIE,
        filter_id="27000160172",
        group_id="27000189625",
        workspace_id=2,
    )


def make_ticket(ticket_id: int, **overrides: Any) -> dict:
    ticket = {
        "id": ticket_id,
        "human_display_id": f"#SR-{ticket_id}",
        "subject": f"Ticket {ticket_id}",
        "priority": 2,
        "requester_id": 900 + ticket_id,
        "requester": {"name": "Dana Smith", "location_name": "London"},
        "status": 2,
        "ticket_status": {"name": "Open"},
        "created_at": "2025-01-15T10:30:00Z",
        "updated_at": "2025-01-15T10:35:00Z",
        "stats": {
            "agent_responded_at": None,
            "outbound_count": 0,
            "first_resp_time_in_secs": None,
            "first_responded_at": None,
        },
    }
    ticket.update(overrides)
    return ticket


@pytest.fixture
def raw_tickets() -> list[dict]:
    return [
        make_ticket(1, priority=4),
        make_ticket(
            2,
            priority=1,
            stats={
                "agent_responded_at": "2024-01-01T00:00:00Z",
                "outbound_count": 3,
                "first_resp_time_in_secs": 90,
                "first_responded_at": "2024-01-01T00:01:30Z",
            },
        ),
    ]


class PagedTicketAPI:
    """httpx MockTransport handler serving scripted responses in order"""

    def __init__(self, responses: list):
        self.responses = list(responses)
        self.requests: list[httpx.Request] = []

    def __call__(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        if not self.responses:
            raise AssertionError(f"Unexpected request: {request.url}")
        response = self.responses.pop(0)
        if isinstance(response, Exception):
            raise response
        if isinstance(response, int):
            return httpx.Response(response, text="error")
        if isinstance(response, httpx.Response):
            return response
        return httpx.Response(200, json={"tickets": response})

    @property
    def pages(self) -> list[int]:
        return [int(r.url.params["page"]) for r in self.requests]

    def transport(self) -> httpx.MockTransport:
        return httpx.MockTransport(self)


class FakeLogin:
    """Stands in for BrowserLogin"""

    def __init__(self, cookie: str = "_session=abc; user=42", error: Optional[Exception] = None):
        self.cookie = cookie
        self.error = error
        self.calls = 0

    async def login(self) -> str:
        self.calls += 1
        if self.error:
            raise self.error
        return f"{self.cookie}; n={self.calls}"


class FakePage:
    """Scripted BrowserPage"""

    def __init__(
        self,
        present: tuple = ('input[type="email"]', 'input[type="password"]', 'button[type="submit"]'),
        url_after_submit: str = "https://acme.freshservice.com/a/dashboard",
        cookies: Optional[list[dict]] = None,
        error_text: Optional[str] = None,
        goto_ok: bool = True,
        submit_ok: bool = True,
        evaluate_results: Optional[dict] = None,
        wait_results: Optional[dict] = None,
    ):
        self.present = present
        self.url_after_submit = url_after_submit
        self._cookies = cookies if cookies is not None else [
            {"name": "_session", "value": "abc"},
            {"name": "user", "value": "42"},
        ]
        self.error_text = error_text
        self.goto_ok = goto_ok
        self.submit_ok = submit_ok
        self.evaluate_results = evaluate_results or {}
        self.wait_results = wait_results or {}
        self.url = "about:blank"
        self.typed: dict[str, str] = {}
        self.visited: list[str] = []
        self.added_cookies: Optional[list[dict]] = None
        self.evaluated: list[tuple[str, Any]] = []
        self.screenshots: list[str] = []
        self.content: Optional[str] = None

    async def goto(self, url: str, timeout: float = 30.0) -> StepResult:
        self.visited.append(url)
        if not self.goto_ok:
            return StepResult.failure(f"Navigation to {url} failed: timeout")
        self.url = url
        return StepResult.success()

    async def find_first(self, selectors, timeout: float = 15.0) -> StepResult:
        for selector in selectors:
            if selector in self.present:
                return StepResult.success(selector)
        return StepResult.failure("not found")

    async def type(self, selector: str, text: str) -> StepResult:
        self.typed[selector] = text
        return StepResult.success()

    async def click_and_wait(self, selector: str, timeout: float = 30.0) -> StepResult:
        self.url = self.url_after_submit
        if not self.submit_ok:
            return StepResult.failure("navigation timeout")
        return StepResult.success()

    async def first_text(self, selectors) -> StepResult:
        if self.error_text:
            return StepResult.success(self.error_text)
        return StepResult.failure("No text found")

    async def cookies(self) -> StepResult:
        return StepResult.success(self._cookies)

    async def add_cookies(self, cookies: list[dict]) -> StepResult:
        self.added_cookies = cookies
        return StepResult.success()

    async def evaluate(self, script: str, arg: Any = None) -> StepResult:
        self.evaluated.append((script, arg))
        result = self.evaluate_results.get(script)
        if isinstance(result, StepResult):
            return result
        return StepResult.success(result)

    async def wait_for_function(self, script: str, timeout: float = 30.0) -> StepResult:
        return self.wait_results.get(script, StepResult.success())

    async def set_content(self, html: str) -> StepResult:
        self.content = html
        return StepResult.success()

    async def screenshot(self, path: str) -> StepResult:
        self.screenshots.append(path)
        return StepResult.success()


def fake_page_factory(page: FakePage):
    @asynccontextmanager
    async def factory():
        yield page
    return factory


def failing_page_factory(error: Exception):
    """Page factory whose browser never starts"""
    @asynccontextmanager
    async def factory():
        raise error
        yield
    return factory
