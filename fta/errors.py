"""
FTA error types

Everything below the API layer raises one of these; the API layer is the only
place they are turned into HTTP responses.
"""

from typing import Optional


class FTAError(Exception):
    """Base class for all FTA failures"""


class ConfigurationError(FTAError):
    """Missing domain, API key or login credentials"""


class AuthenticationError(FTAError):
    """The browser login flow did not produce a session"""

    def __init__(self, reason: str):
        super().__init__(reason)
        self.reason = reason


class FetchError(FTAError):
    """Ticket API call failed"""

    def __init__(self, message: str, status_code: Optional[int] = None):
        super().__init__(message)
        self.status_code = status_code


class AuthorizationExpired(FetchError):
    """Ticket API answered 401/403 for the current session"""


class UpstreamHTTPError(FetchError):
    """Ticket API answered with a non-success status"""


class NetworkError(FetchError):
    """Connection failure or timeout talking to the ticket API"""


class OracleError(FTAError):
    """External oracle analysis failed; always recovered locally"""
