"""
FTA API Service - FastAPI endpoints for Freshservice ticket analysis
"""

from typing import Optional

import structlog
import uvicorn
from fastapi import FastAPI, Query, Request
from fastapi.responses import JSONResponse

from fta import __version__
from fta.analyze.analyzer import TicketAnalyzer
from fta.config import AUTH_MODE_API_KEY, AUTH_MODE_COOKIE, Settings
from fta.errors import (
    AuthenticationError,
    AuthorizationExpired,
    ConfigurationError,
    FTAError,
)
from fta.ingest.client import FreshserviceClient
from fta.ingest.query import TicketWindow
from fta.ingest.session import SessionProvider
from fta.schemas.ticket import (
    AnalysisResult,
    FreshTicketsResponse,
    SetCookiesRequest,
    SummaryResponse,
)

logger = structlog.get_logger()

ENDPOINTS = {
    "GET /": "Health check (add ?test=true for a live connection test)",
    "POST /api/login": "Force a browser login (cookie mode)",
    "POST /api/set-cookies": "Use manually copied session cookies",
    "GET /api/tickets": "Full ticket analysis (default: last 24 hours)",
    "GET /api/tickets?minutes=60": "Tickets from the last 60 minutes",
    "GET /api/tickets?filter=today": "Tickets created today",
    "GET /api/tickets/fresh": "Only unattended tickets",
    "GET /api/tickets/summary": "Summary counts only",
}

API_KEY_SETUP = {
    "required_env_vars": [
        "FRESHSERVICE_DOMAIN - e.g. yourcompany.freshservice.com",
        "FRESHSERVICE_API_KEY - Your Freshservice API key (found in Profile Settings)",
    ],
    "optional_env_vars": [
        "FRESHSERVICE_FILTER_ID",
        "FRESHSERVICE_GROUP_ID",
        "FRESHSERVICE_WORKSPACE_ID - Default: 2",
        "FRESHSERVICE_WORKSPACE_FILTER - query | param | none",
    ],
    "how_to_get_api_key": [
        "1. Log in to Freshservice",
        "2. Click your profile picture (top right)",
        "3. Select \"Profile Settings\"",
        "4. Find \"Your API Key\" on the right side",
        "5. Copy and set as FRESHSERVICE_API_KEY",
    ],
}

COOKIE_SETUP = {
    "required_env_vars": [
        "FRESHSERVICE_DOMAIN - e.g. yourcompany.freshservice.com",
        "FRESHSERVICE_EMAIL and FRESHSERVICE_PASSWORD - agent login",
    ],
    "alternative": "POST {\"cookies\": \"...\"} to /api/set-cookies with cookies copied from a logged-in browser",
}


def credential_hint(error: Exception, settings: Settings) -> Optional[str]:
    """Actionable hint for credential problems, else None"""
    message = str(error)
    credential_problem = isinstance(
        error, (ConfigurationError, AuthenticationError, AuthorizationExpired)
    ) or "API key" in message
    if not credential_problem:
        return None
    if settings.auth_mode == AUTH_MODE_API_KEY:
        return "Set FRESHSERVICE_API_KEY environment variable with your API key from Profile Settings"
    return (
        "Check FRESHSERVICE_EMAIL and FRESHSERVICE_PASSWORD, call POST /api/login, "
        "or supply cookies via POST /api/set-cookies"
    )


def create_app(
    settings: Optional[Settings] = None,
    sessions: Optional[SessionProvider] = None,
    client: Optional[FreshserviceClient] = None,
) -> FastAPI:
    """Build the API; collaborators can be injected for tests"""
    settings = settings or Settings.from_env()
    sessions = sessions or SessionProvider.from_settings(settings)
    client = client or FreshserviceClient(settings, sessions)
    analyzer = TicketAnalyzer(subject_max_length=settings.subject_max_length)

    app = FastAPI(
        title="FTA API",
        description="Freshservice Ticket Analyzer - freshness, priority and response time",
        version=__version__,
    )
    app.state.settings = settings
    app.state.sessions = sessions
    app.state.client = client
    app.state.analyzer = analyzer

    @app.exception_handler(FTAError)
    async def handle_fta_error(request: Request, exc: FTAError):
        logger.error("Request failed", path=request.url.path, error=str(exc), error_type=type(exc).__name__)
        return JSONResponse(
            status_code=500,
            content={"error": str(exc), "hint": credential_hint(exc, settings)},
        )

    async def run_analysis(minutes: Optional[str], filter_name: Optional[str]) -> AnalysisResult:
        window = TicketWindow.from_request(minutes, filter_name, settings.window_minutes)
        logger.info("Step 1: Fetching tickets", window=window.description)
        tickets = await client.fetch_tickets(window)
        logger.info("Step 2: Analyzing tickets", count=len(tickets))
        return analyzer.analyze(tickets)

    @app.get("/")
    async def health_check(test: bool = False):
        """Service status, configuration and optional live connection test"""
        auth = sessions.describe()
        configured = settings.has_api_key if settings.auth_mode == AUTH_MODE_API_KEY else (
            settings.has_credentials or auth["session_active"]
        )

        connection_test = None
        if settings.domain and configured and (test or settings.auth_mode == AUTH_MODE_API_KEY):
            connection_test = await client.test_connection()

        setup = None
        if not configured or not settings.domain:
            setup = API_KEY_SETUP if settings.auth_mode == AUTH_MODE_API_KEY else COOKIE_SETUP

        return {
            "status": "ok",
            "service": "Freshservice Ticket Analyzer",
            "version": __version__,
            "authentication": {
                "method": "API Key (Basic Auth)" if settings.auth_mode == AUTH_MODE_API_KEY
                else "Browser session cookies",
                **auth,
                "connection_test": connection_test,
            },
            "config": {
                "domain": settings.domain,
                "workspace_id": settings.workspace_id,
                "workspace_filter": settings.workspace_filter,
                "group_id": settings.group_id,
                "filter_id": settings.filter_id,
                "window_minutes": settings.window_minutes,
            },
            "endpoints": ENDPOINTS,
            "setup": setup,
        }

    @app.post("/api/login")
    async def login():
        """Force a fresh browser login"""
        if settings.auth_mode != AUTH_MODE_COOKIE:
            return JSONResponse(
                status_code=400,
                content={"success": False, "error": "Login is only available in cookie mode"},
            )
        try:
            await sessions.login()
        except (AuthenticationError, ConfigurationError) as e:
            logger.warning("Login failed", error=str(e))
            return JSONResponse(status_code=401, content={"success": False, "error": str(e)})
        return {"success": True, "message": "Login successful"}

    @app.post("/api/set-cookies")
    async def set_cookies(request: SetCookiesRequest):
        """Install cookies copied from a logged-in browser"""
        if not request.cookies or not request.cookies.strip():
            return JSONResponse(
                status_code=400,
                content={"success": False, "error": "Missing 'cookies' in request body"},
            )
        session = sessions.set_cookies(request.cookies)
        return {"success": True, "cookies_length": len(session.credential)}

    @app.get("/api/tickets", response_model=AnalysisResult)
    async def get_tickets(
        minutes: Optional[str] = Query(None, description="Created within the last N minutes"),
        filter: Optional[str] = Query(None, description="'today' overrides minutes"),
    ):
        """Full ticket analysis"""
        logger.info("GET /api/tickets", minutes=minutes, filter=filter)
        return await run_analysis(minutes, filter)

    @app.get("/api/tickets/fresh", response_model=FreshTicketsResponse)
    async def get_fresh_tickets(
        minutes: Optional[str] = Query(None),
        filter: Optional[str] = Query(None),
    ):
        """Only tickets no agent has responded to"""
        logger.info("GET /api/tickets/fresh", minutes=minutes, filter=filter)
        fresh = (await run_analysis(minutes, filter)).fresh_only()
        logger.info("Found fresh tickets", count=fresh.total_fresh)
        return fresh

    @app.get("/api/tickets/summary", response_model=SummaryResponse)
    async def get_ticket_summary(
        minutes: Optional[str] = Query(None),
        filter: Optional[str] = Query(None),
    ):
        """Counters only"""
        logger.info("GET /api/tickets/summary", minutes=minutes, filter=filter)
        return (await run_analysis(minutes, filter)).summary_only()

    return app


app = create_app()


def main():
    settings = app.state.settings
    logger.info(
        "Starting FTA API",
        port=settings.port,
        mode=settings.auth_mode,
        api_key_configured=settings.has_api_key,
        credentials_configured=settings.has_credentials,
    )
    uvicorn.run(app, host="0.0.0.0", port=settings.port)


if __name__ == "__main__":
    main()
