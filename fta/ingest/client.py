"""
Freshservice Ticket Client
Pages through the ticket listing API with the current session

Query styles:
- API key sessions use the public /api/v2/tickets/filter endpoint
- Cookie sessions use the internal /api/_/tickets endpoint the web UI calls
"""

import asyncio
import json
from typing import Any, Optional

import httpx
import structlog

from fta.config import (
    WORKSPACE_FILTER_PARAM,
    WORKSPACE_FILTER_QUERY,
    Settings,
)
from fta.errors import (
    AuthorizationExpired,
    ConfigurationError,
    NetworkError,
    UpstreamHTTPError,
)

from .query import TicketWindow
from .session import SESSION_API_KEY, Session, SessionProvider

logger = structlog.get_logger()

PAGE_SIZE = 100
TICKET_INCLUDES = "stats,responder,requester,ticket_states,ticket_status,group"


class FreshserviceClient:
    """
    Client for the Freshservice ticket listing API.

    A page shorter than PAGE_SIZE ends pagination. A 401/403 invalidates the
    session, triggers one re-login and one full re-fetch from page 1.
    """

    def __init__(
        self,
        settings: Settings,
        sessions: SessionProvider,
        transport: Optional[httpx.AsyncBaseTransport] = None,
        retry_delay: float = 1.0,
    ):
        self.settings = settings
        self.sessions = sessions
        self.timeout = settings.http_timeout
        self.max_retries = max(settings.max_retries, 0)
        self.retry_delay = retry_delay
        self._transport = transport

    def _client(self) -> httpx.AsyncClient:
        return httpx.AsyncClient(
            timeout=self.timeout,
            transport=self._transport,
            headers={"Accept": "application/json", "Content-Type": "application/json"},
        )

    async def fetch_tickets(self, window: TicketWindow) -> list[dict]:
        """
        Fetch every ticket created inside the window.

        Args:
            window: Time window to query

        Returns:
            Raw ticket dicts in API order (created_at descending)

        Raises:
            FetchError: any upstream failure; no partial results are returned
        """
        if not self.settings.domain:
            raise ConfigurationError("Missing FRESHSERVICE_DOMAIN environment variable")

        logger.info("Starting ticket fetch", window=window.description, mode=self.sessions.mode)
        try:
            session = await self.sessions.ensure_valid_session()
            tickets = await self._fetch_all_pages(session, window)
        except AuthorizationExpired as e:
            logger.warning("Session rejected, logging in again", status=e.status_code)
            session = await self.sessions.refresh()
            tickets = await self._fetch_all_pages(session, window)

        logger.info("Ticket fetch complete", total=len(tickets))
        return tickets

    async def _fetch_all_pages(self, session: Session, window: TicketWindow) -> list[dict]:
        all_tickets: list[dict] = []
        page = 1
        async with self._client() as client:
            while True:
                url, params = self._build_request(session, window, page)
                logger.info("Fetching page", page=page)
                data = await self._get(client, url, params, session.headers())
                tickets = data.get("tickets") or []
                all_tickets.extend(tickets)
                logger.info("Fetched page", page=page, count=len(tickets))

                if len(tickets) != PAGE_SIZE:
                    break
                page += 1
        return all_tickets

    def _build_request(self, session: Session, window: TicketWindow, page: int) -> tuple[str, dict]:
        if session.mode == SESSION_API_KEY:
            return self._public_request(window, page)
        return self._internal_request(window, page)

    def _public_request(self, window: TicketWindow, page: int) -> tuple[str, dict]:
        """Filter query for /api/v2/tickets/filter"""
        s = self.settings
        parts = [f"created_at:>'{window.since_iso}'"]
        if s.group_id:
            parts.append(f"group_id:{s.group_id}")
        if s.workspace_id and s.workspace_filter == WORKSPACE_FILTER_QUERY:
            parts.append(f"workspace_id:{s.workspace_id}")

        params: dict[str, Any] = {
            "query": f'"{" AND ".join(parts)}"',
            "per_page": PAGE_SIZE,
            "page": page,
        }
        if s.workspace_id and s.workspace_filter == WORKSPACE_FILTER_PARAM:
            params["workspace_id"] = s.workspace_id
        return f"{s.base_url}/api/v2/tickets/filter", params

    def _internal_request(self, window: TicketWindow, page: int) -> tuple[str, dict]:
        """query_hash conditions for /api/_/tickets"""
        s = self.settings
        conditions = []
        if s.workspace_id and s.workspace_filter == WORKSPACE_FILTER_QUERY:
            conditions.append({
                "value": [{"id": s.workspace_id}],
                "condition": "workspace_id",
                "operator": "is_in",
                "type": "default",
            })
        if s.group_id:
            conditions.append({
                "value": [s.group_id],
                "condition": "group_id",
                "operator": "is_in",
                "type": "default",
            })
        conditions.append({
            "value": str(window.minutes),
            "condition": "created_at",
            "operator": "is_greater_than",
            "type": "default",
        })

        params: dict[str, Any] = {
            "include": TICKET_INCLUDES,
            "order_by": "created_at",
            "order_type": "desc",
            "page": page,
            "per_page": PAGE_SIZE,
            "query_hash": json.dumps(conditions, separators=(",", ":")),
            "cache": "true",
        }
        if s.filter_id:
            params["filter"] = s.filter_id
        if s.workspace_id and s.workspace_filter in (WORKSPACE_FILTER_QUERY, WORKSPACE_FILTER_PARAM):
            params["workspace_id"] = s.workspace_id
        return f"{s.base_url}/api/_/tickets", params

    async def _get(self, client: httpx.AsyncClient, url: str, params: dict, headers: dict) -> dict:
        """GET with status mapping; transport errors retried up to max_retries"""
        attempt = 0
        while True:
            try:
                response = await client.get(url, params=params, headers=headers)
                break
            except httpx.TransportError as e:
                if attempt >= self.max_retries:
                    raise NetworkError(f"Network error talking to {self.settings.domain}: {e}") from e
                attempt += 1
                logger.warning("Network error, retrying", attempt=attempt, error=str(e))
                await asyncio.sleep(self.retry_delay * attempt)

        if response.status_code == 401:
            raise AuthorizationExpired(
                "Authorization rejected (HTTP 401). Check your session or API key.", status_code=401
            )
        if response.status_code == 403:
            raise AuthorizationExpired(
                "Access denied (HTTP 403). Your session or API key may lack permission to access tickets.",
                status_code=403,
            )
        if not response.is_success:
            raise UpstreamHTTPError(
                f"HTTP {response.status_code}: {response.text[:500]}", status_code=response.status_code
            )

        try:
            data = response.json()
        except ValueError as e:
            raise UpstreamHTTPError(
                f"Invalid JSON from ticket API: {e}", status_code=response.status_code
            ) from e

        tickets = data.get("tickets") if isinstance(data, dict) else None
        if not isinstance(data, dict) or not isinstance(tickets or [], list):
            raise UpstreamHTTPError(
                f"Unexpected response shape from ticket API: {type(data).__name__}",
                status_code=response.status_code,
            )
        return data

    async def test_connection(self) -> dict:
        """Single lightweight call to check the configured credential"""
        logger.info("Testing API connection")
        try:
            session = await self.sessions.ensure_valid_session()
            async with self._client() as client:
                response = await client.get(
                    f"{self.settings.base_url}/api/v2/tickets",
                    params={"per_page": 1},
                    headers=session.headers(),
                )
        except Exception as e:
            logger.warning("Connection test failed", error=str(e))
            return {"success": False, "error": str(e)}

        if response.status_code == 401:
            return {"success": False, "error": "Invalid API key or session"}
        if response.status_code == 403:
            return {"success": False, "error": "Access denied - check API key permissions"}
        if response.is_success:
            return {"success": True}
        return {"success": False, "error": f"HTTP {response.status_code}"}
