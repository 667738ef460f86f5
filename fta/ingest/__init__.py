"""
FTA Ingest
Acquires a Freshservice session and pulls tickets

Components:
- session.py: SessionProvider (API key or browser login) and BrowserLogin
- client.py: FreshserviceClient paginated ticket fetcher
- query.py: TicketWindow time window resolution
- browser.py: playwright-backed page with step results
- cli.py: script variant (fetch, oracle analysis, local fallback)
"""

from .client import FreshserviceClient
from .query import TicketWindow
from .session import BrowserLogin, Session, SessionProvider

__all__ = ["FreshserviceClient", "TicketWindow", "BrowserLogin", "Session", "SessionProvider"]
