"""FTA Shared Schemas"""

from .ticket import (
    AnalysisResult,
    AnalysisSummary,
    AnalyzedTicket,
    AttendanceStatus,
    FreshTicketsResponse,
    PriorityLabel,
    SetCookiesRequest,
    SummaryResponse,
)

__all__ = [
    # Ticket schemas
    "AnalyzedTicket",
    "AttendanceStatus",
    "PriorityLabel",
    # Response schemas
    "AnalysisResult",
    "AnalysisSummary",
    "FreshTicketsResponse",
    "SummaryResponse",
    # Request schemas
    "SetCookiesRequest",
]
