"""
Freshservice Ticket Analyzer - Ticket Schemas

Defines the normalized AnalyzedTicket and the aggregate response models
"""

from enum import Enum
from typing import Any, Optional

from pydantic import BaseModel, Field


class AttendanceStatus(str, Enum):
    """Whether an agent has picked the ticket up yet"""
    FRESH = "FRESH"
    REPLIED = "REPLIED"


class PriorityLabel(str, Enum):
    """Service desk priority label (P1 is most urgent)"""
    P1 = "P1"
    P2 = "P2"
    P3 = "P3"
    P4 = "P4"


class AnalyzedTicket(BaseModel):
    """Normalized view of a single Freshservice ticket"""
    ticket_id: str
    subject: str = "No subject"
    priority: PriorityLabel = PriorityLabel.P4
    requester_id: Optional[Any] = None
    requester_name: str = "Unknown"
    requester_location: str = "Unknown"
    status: str = "Unknown"
    attendance_status: AttendanceStatus
    first_response_at: Optional[str] = None
    response_time_minutes: Optional[int] = None
    urgency_assessment: Optional[str] = None
    recommendation: Optional[str] = None
    created_at: Optional[str] = None
    updated_at: Optional[str] = None

    class Config:
        use_enum_values = True
        json_schema_extra = {
            "example": {
                "ticket_id": "#SR-1042",
                "subject": "VPN drops every 10 minutes",
                "priority": "P2",
                "requester_name": "Dana Smith",
                "requester_location": "London",
                "status": "Open",
                "attendance_status": "FRESH",
                "response_time_minutes": None,
                "created_at": "2025-01-15T10:30:00Z",
                "updated_at": "2025-01-15T10:31:00Z",
            }
        }


class AnalysisSummary(BaseModel):
    """Freshness and priority counters"""
    fresh_tickets: int = 0
    replied_tickets: int = 0
    p1_count: int = 0
    p2_count: int = 0
    p3_count: int = 0
    p4_count: int = 0


class AnalysisResult(BaseModel):
    """Full analysis of one fetch"""
    analysis_timestamp: str
    total_tickets: int = 0
    summary: AnalysisSummary = Field(default_factory=AnalysisSummary)
    tickets: list[AnalyzedTicket] = Field(default_factory=list)

    def fresh_only(self) -> "FreshTicketsResponse":
        fresh = [t for t in self.tickets if t.attendance_status == AttendanceStatus.FRESH.value]
        return FreshTicketsResponse(
            analysis_timestamp=self.analysis_timestamp,
            total_fresh=len(fresh),
            tickets=fresh,
        )

    def summary_only(self) -> "SummaryResponse":
        return SummaryResponse(
            analysis_timestamp=self.analysis_timestamp,
            total_tickets=self.total_tickets,
            summary=self.summary,
        )


class FreshTicketsResponse(BaseModel):
    """Unattended tickets only"""
    analysis_timestamp: str
    total_fresh: int
    tickets: list[AnalyzedTicket] = Field(default_factory=list)


class SummaryResponse(BaseModel):
    """Counters without the ticket list"""
    analysis_timestamp: str
    total_tickets: int
    summary: AnalysisSummary


class SetCookiesRequest(BaseModel):
    """Manually supplied session cookies"""
    cookies: Optional[str] = None
