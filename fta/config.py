"""
FTA Configuration
Environment-driven settings shared by the API service and the CLI
"""

import os
from dataclasses import dataclass
from typing import Optional

import structlog
from dotenv import find_dotenv, load_dotenv

logger = structlog.get_logger()

load_dotenv(find_dotenv(usecwd=True))

AUTH_MODE_API_KEY = "api_key"
AUTH_MODE_COOKIE = "cookie"
AUTH_MODES = (AUTH_MODE_API_KEY, AUTH_MODE_COOKIE)

# Where the workspace condition goes when querying tickets
WORKSPACE_FILTER_QUERY = "query"
WORKSPACE_FILTER_PARAM = "param"
WORKSPACE_FILTER_NONE = "none"
WORKSPACE_FILTERS = (WORKSPACE_FILTER_QUERY, WORKSPACE_FILTER_PARAM, WORKSPACE_FILTER_NONE)


def _env_int(name: str, default: int) -> int:
    value = os.getenv(name)
    if value is None or value.strip() == "":
        return default
    try:
        return int(value)
    except ValueError:
        logger.warning("Invalid integer in environment, using default", name=name, default=default)
        return default


def _env_bool(name: str, default: bool) -> bool:
    value = os.getenv(name)
    if value is None or value.strip() == "":
        return default
    return value.strip().lower() in ("1", "true", "yes", "on")


def _env_choice(name: str, choices: tuple, default: str) -> str:
    value = (os.getenv(name) or "").strip().lower()
    if not value:
        return default
    if value not in choices:
        logger.warning("Unknown value in environment, using default", name=name, value=value, default=default)
        return default
    return value


@dataclass
class Settings:
    """Runtime configuration for FTA"""
    domain: str = ""
    api_key: str = ""
    email: str = ""
    password: str = ""
    auth_mode: str = AUTH_MODE_API_KEY
    filter_id: str = ""
    group_id: str = ""
    workspace_id: Optional[int] = 2
    workspace_filter: str = WORKSPACE_FILTER_QUERY
    window_minutes: int = 1440
    subject_max_length: int = 100
    session_ttl_minutes: int = 30
    http_timeout: float = 30.0
    max_retries: int = 0
    browser_headless: bool = True
    oracle_url: str = "https://puter.com"
    oracle_cookies_path: str = "puter-cookies.json"
    oracle_captcha_timeout: int = 60
    port: int = 3000

    @classmethod
    def from_env(cls) -> "Settings":
        api_key = os.getenv("FRESHSERVICE_API_KEY", "")
        default_mode = AUTH_MODE_API_KEY if api_key else AUTH_MODE_COOKIE
        workspace_id = _env_int("FRESHSERVICE_WORKSPACE_ID", 2)
        return cls(
            domain=os.getenv("FRESHSERVICE_DOMAIN", "").strip(),
            api_key=api_key,
            email=os.getenv("FRESHSERVICE_EMAIL", ""),
            password=os.getenv("FRESHSERVICE_PASSWORD", ""),
            auth_mode=_env_choice("FRESHSERVICE_AUTH_MODE", AUTH_MODES, default_mode),
            filter_id=os.getenv("FRESHSERVICE_FILTER_ID", ""),
            group_id=os.getenv("FRESHSERVICE_GROUP_ID", ""),
            workspace_id=workspace_id or None,
            workspace_filter=_env_choice(
                "FRESHSERVICE_WORKSPACE_FILTER", WORKSPACE_FILTERS, WORKSPACE_FILTER_QUERY
            ),
            window_minutes=_env_int("FRESHSERVICE_WINDOW_MINUTES", 1440),
            subject_max_length=_env_int("FRESHSERVICE_SUBJECT_MAX_LENGTH", 100),
            session_ttl_minutes=_env_int("FRESHSERVICE_SESSION_TTL_MINUTES", 30),
            http_timeout=float(_env_int("FRESHSERVICE_TIMEOUT", 30)),
            max_retries=_env_int("FRESHSERVICE_MAX_RETRIES", 0),
            browser_headless=_env_bool("BROWSER_HEADLESS", True),
            oracle_url=os.getenv("ORACLE_URL", "https://puter.com"),
            oracle_cookies_path=os.getenv("ORACLE_COOKIES_PATH", "puter-cookies.json"),
            oracle_captcha_timeout=_env_int("ORACLE_CAPTCHA_TIMEOUT", 60),
            port=_env_int("PORT", 3000),
        )

    @property
    def base_url(self) -> str:
        return f"https://{self.domain}"

    @property
    def login_url(self) -> str:
        return f"{self.base_url}/login"

    @property
    def has_api_key(self) -> bool:
        return bool(self.api_key)

    @property
    def has_credentials(self) -> bool:
        return bool(self.email and self.password)
