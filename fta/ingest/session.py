"""
Session Provider
Obtains and caches the credential used to call the Freshservice API

Two modes:
- api_key: stateless, a Basic auth header derived from the configured key
- cookie: a browser login yields a cookie header valid for a fixed TTL
"""

import asyncio
import base64
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from typing import Callable, Optional

import structlog
from playwright.async_api import Error as PlaywrightError

from fta.config import AUTH_MODE_API_KEY, AUTH_MODE_COOKIE, Settings
from fta.errors import AuthenticationError, ConfigurationError

from .browser import BrowserPage, page_factory

logger = structlog.get_logger()

SESSION_API_KEY = "api_key"
SESSION_COOKIE = "cookie"
SESSION_MANUAL_COOKIE = "manual_cookie"

EMAIL_SELECTORS = ('input[type="email"]', 'input[name="email"]', "#user_email")
PASSWORD_SELECTORS = ('input[type="password"]', 'input[name="password"]', "#user_password")
SUBMIT_SELECTORS = ('button[type="submit"]', 'input[type="submit"]', ".login-btn")
ERROR_SELECTORS = (".alert-error", ".error-message", ".flash-error", ".alert-danger", '[role="alert"]')


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


@dataclass
class Session:
    """Acquired right to query the ticket API"""
    mode: str
    credential: str
    acquired_at: datetime
    ttl: Optional[timedelta] = None

    def is_expired(self, now: Optional[datetime] = None) -> bool:
        if self.ttl is None:
            return False
        return (now or utcnow()) - self.acquired_at >= self.ttl

    def headers(self) -> dict[str, str]:
        if self.mode == SESSION_API_KEY:
            token = base64.b64encode(f"{self.credential}:X".encode()).decode()
            return {"Authorization": f"Basic {token}"}
        return {"Cookie": self.credential}

    def age_seconds(self, now: Optional[datetime] = None) -> float:
        return ((now or utcnow()) - self.acquired_at).total_seconds()


class BrowserLogin:
    """
    Drives the Freshservice login page through a browser.

    The page factory returns an async context manager yielding a BrowserPage
    (see browser.open_page). Every step result is checked in order; the first
    failing step aborts the login with an AuthenticationError.
    """

    def __init__(
        self,
        login_url: str,
        email: str,
        password: str,
        page_factory: Callable,
        navigation_timeout: float = 30.0,
        element_timeout: float = 15.0,
    ):
        self.login_url = login_url
        self.email = email
        self.password = password
        self.page_factory = page_factory
        self.navigation_timeout = navigation_timeout
        self.element_timeout = element_timeout

    async def login(self) -> str:
        """
        Run the login flow.

        Returns:
            Cookie header value ("name=value; name=value")

        Raises:
            AuthenticationError: the flow failed at some step
        """
        logger.info("Logging in to Freshservice", url=self.login_url)

        try:
            async with self.page_factory() as page:
                return await self._run_steps(page)
        except PlaywrightError as e:
            logger.error("Browser could not be started", error=str(e))
            raise AuthenticationError(f"Browser could not be started: {e}") from e

    async def _run_steps(self, page: BrowserPage) -> str:
        step = await page.goto(self.login_url, timeout=self.navigation_timeout)
        if not step.ok:
            raise AuthenticationError(step.error)

        email_field = await page.find_first(EMAIL_SELECTORS, timeout=self.element_timeout)
        if not email_field.ok:
            raise AuthenticationError(f"Email field not found: {email_field.error}")
        step = await page.type(email_field.value, self.email)
        if not step.ok:
            raise AuthenticationError(step.error)

        password_field = await page.find_first(PASSWORD_SELECTORS, timeout=self.element_timeout)
        if not password_field.ok:
            raise AuthenticationError(f"Password field not found: {password_field.error}")
        step = await page.type(password_field.value, self.password)
        if not step.ok:
            raise AuthenticationError(step.error)

        submit = await page.find_first(SUBMIT_SELECTORS, timeout=self.element_timeout)
        if not submit.ok:
            raise AuthenticationError(f"Submit button not found: {submit.error}")
        step = await page.click_and_wait(submit.value, timeout=self.navigation_timeout)
        if not step.ok:
            # Judged by the URL below
            logger.warning("Post-login navigation did not settle", error=step.error)

        if "/login" in page.url:
            message = await page.first_text(ERROR_SELECTORS)
            reason = message.value if message.ok else "Check credentials."
            raise AuthenticationError(f"Login failed: {reason}")

        cookies = await page.cookies()
        if not cookies.ok:
            raise AuthenticationError(cookies.error)
        if not cookies.value:
            raise AuthenticationError("Login succeeded but no cookies were set")

        header = "; ".join(f"{c['name']}={c['value']}" for c in cookies.value)
        logger.info("Login successful", cookies=len(cookies.value), header_length=len(header))
        return header


class SessionProvider:
    """
    Owns the cached Session and its invalidate/refresh lifecycle.

    ensure_valid_session() is single-flight: concurrent callers on a missing or
    expired cookie session wait for one login instead of each starting one.
    """

    def __init__(
        self,
        mode: str = AUTH_MODE_API_KEY,
        api_key: str = "",
        login: Optional[BrowserLogin] = None,
        ttl: timedelta = timedelta(minutes=30),
        clock: Callable[[], datetime] = utcnow,
    ):
        self.mode = mode
        self.api_key = api_key
        self._login = login
        self.ttl = ttl
        self._clock = clock
        self._session: Optional[Session] = None
        self._lock = asyncio.Lock()

    @classmethod
    def from_settings(cls, settings: Settings, login_page_factory: Optional[Callable] = None) -> "SessionProvider":
        login = None
        if settings.auth_mode == AUTH_MODE_COOKIE and settings.has_credentials:
            login = BrowserLogin(
                login_url=settings.login_url,
                email=settings.email,
                password=settings.password,
                page_factory=login_page_factory or page_factory(headless=settings.browser_headless),
            )
        return cls(
            mode=settings.auth_mode,
            api_key=settings.api_key,
            login=login,
            ttl=timedelta(minutes=settings.session_ttl_minutes),
        )

    @property
    def session(self) -> Optional[Session]:
        return self._session

    @property
    def can_login(self) -> bool:
        return self._login is not None

    async def ensure_valid_session(self) -> Session:
        """Return a usable session, logging in when needed"""
        if self.mode == AUTH_MODE_API_KEY:
            if not self.api_key:
                raise ConfigurationError("Missing FRESHSERVICE_API_KEY environment variable")
            return Session(mode=SESSION_API_KEY, credential=self.api_key, acquired_at=self._clock())

        async with self._lock:
            session = self._session
            if session is not None and not session.is_expired(self._clock()):
                return session
            if session is not None:
                logger.info("Session expired, logging in again", age_seconds=int(session.age_seconds(self._clock())))
            return await self._do_login()

    async def login(self) -> Session:
        """Force a fresh login regardless of the cached session"""
        if self.mode == AUTH_MODE_API_KEY:
            raise ConfigurationError("Login is only available in cookie mode")
        async with self._lock:
            return await self._do_login()

    async def _do_login(self) -> Session:
        if self._login is None:
            raise ConfigurationError(
                "No session cookies available. Set FRESHSERVICE_EMAIL and FRESHSERVICE_PASSWORD "
                "or POST cookies to /api/set-cookies"
            )
        header = await self._login.login()
        self._session = Session(
            mode=SESSION_COOKIE,
            credential=header,
            acquired_at=self._clock(),
            ttl=self.ttl,
        )
        return self._session

    def invalidate(self):
        """Drop the cached session; the next ensure_valid_session() logs in"""
        if self._session is not None:
            logger.info("Invalidating session", mode=self._session.mode)
        self._session = None

    async def refresh(self) -> Session:
        """Invalidate and obtain a new session"""
        self.invalidate()
        return await self.ensure_valid_session()

    def set_cookies(self, cookies: str) -> Session:
        """Install a manually supplied cookie header"""
        self._session = Session(
            mode=SESSION_MANUAL_COOKIE,
            credential=cookies.strip(),
            acquired_at=self._clock(),
        )
        logger.info("Manual cookies set", length=len(self._session.credential))
        return self._session

    def describe(self) -> dict:
        """Session state for the health endpoint"""
        session = self._session
        return {
            "mode": self.mode,
            "api_key_configured": bool(self.api_key),
            "credentials_configured": self.can_login,
            "session_active": session is not None and not session.is_expired(self._clock()),
            "session_type": session.mode if session else None,
            "session_age_seconds": int(session.age_seconds(self._clock())) if session else None,
        }
