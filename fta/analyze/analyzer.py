"""
Ticket Analyzer
Converts raw Freshservice ticket payloads to AnalyzedTicket records and counts them
"""

import math
from datetime import datetime, timezone
from typing import Any, Iterable, Optional

import structlog

from fta.schemas.ticket import (
    AnalysisResult,
    AnalysisSummary,
    AnalyzedTicket,
    AttendanceStatus,
    PriorityLabel,
)

logger = structlog.get_logger()

# Freshservice numeric priority -> service desk label (4 is the most urgent)
PRIORITY_LABELS = {
    1: PriorityLabel.P4,
    2: PriorityLabel.P3,
    3: PriorityLabel.P2,
    4: PriorityLabel.P1,
}

STATUS_LABELS = {
    2: "Open",
    3: "Pending",
    4: "Resolved",
    5: "Closed",
}

DEFAULT_SUBJECT = "No subject"
UNKNOWN = "Unknown"


def utc_timestamp(now: Optional[datetime] = None) -> str:
    """ISO-8601 UTC timestamp with millisecond precision and Z suffix"""
    now = now or datetime.now(timezone.utc)
    return now.astimezone(timezone.utc).isoformat(timespec="milliseconds").replace("+00:00", "Z")


class TicketAnalyzer:
    """
    Maps raw tickets to AnalyzedTicket records and aggregates counters.

    Every raw ticket yields exactly one AnalyzedTicket; missing fields fall
    back to fixed defaults instead of failing.
    """

    def __init__(self, subject_max_length: int = 100):
        self.subject_max_length = subject_max_length

    def analyze(self, tickets: Iterable[dict], now: Optional[datetime] = None) -> AnalysisResult:
        """
        Analyze a batch of raw tickets.

        Args:
            tickets: Raw ticket dicts in API order
            now: Analysis time (defaults to current UTC time)

        Returns:
            AnalysisResult with tickets in the same order
        """
        analyzed = []
        summary = AnalysisSummary()

        for raw in tickets:
            ticket = self.analyze_ticket(raw)
            analyzed.append(ticket)

            if ticket.attendance_status == AttendanceStatus.FRESH:
                summary.fresh_tickets += 1
            else:
                summary.replied_tickets += 1

            counter = f"{ticket.priority.lower()}_count"
            setattr(summary, counter, getattr(summary, counter) + 1)

        logger.info(
            "Analysis complete",
            total=len(analyzed),
            fresh=summary.fresh_tickets,
            replied=summary.replied_tickets,
        )

        return AnalysisResult(
            analysis_timestamp=utc_timestamp(now),
            total_tickets=len(analyzed),
            summary=summary,
            tickets=analyzed,
        )

    def analyze_ticket(self, raw: dict) -> AnalyzedTicket:
        """Normalize a single raw ticket"""
        stats = raw.get("stats") or {}
        requester = raw.get("requester") or {}
        fresh = is_fresh(stats)

        return AnalyzedTicket(
            ticket_id=self._ticket_id(raw),
            subject=self._subject(raw.get("subject")),
            priority=priority_label(raw.get("priority")),
            requester_id=raw.get("requester_id"),
            requester_name=requester.get("name") or UNKNOWN,
            requester_location=requester.get("location_name") or UNKNOWN,
            status=self._status(raw),
            attendance_status=AttendanceStatus.FRESH if fresh else AttendanceStatus.REPLIED,
            first_response_at=stats.get("first_responded_at"),
            response_time_minutes=response_time_minutes(stats.get("first_resp_time_in_secs")),
            urgency_assessment="Needs immediate attention" if fresh else "Being handled",
            recommendation="Assign and respond ASAP" if fresh else "Monitor progress",
            created_at=raw.get("created_at"),
            updated_at=raw.get("updated_at"),
        )

    def _ticket_id(self, raw: dict) -> str:
        display_id = raw.get("human_display_id")
        if display_id:
            return str(display_id)
        return f"#{raw.get('id')}"

    def _subject(self, subject: Any) -> str:
        if not subject:
            return DEFAULT_SUBJECT
        return str(subject)[: self.subject_max_length]

    def _status(self, raw: dict) -> str:
        ticket_status = raw.get("ticket_status") or {}
        if ticket_status.get("name"):
            return ticket_status["name"]
        status = raw.get("status")
        if status is None:
            return UNKNOWN
        code = _as_int(status)
        if code in STATUS_LABELS:
            return STATUS_LABELS[code]
        return f"Status {status}"


def is_fresh(stats: Optional[dict]) -> bool:
    """No agent response recorded and at most one outbound message"""
    stats = stats or {}
    outbound = _as_int(stats.get("outbound_count")) or 0
    return not stats.get("agent_responded_at") and outbound <= 1


def priority_label(priority: Any) -> PriorityLabel:
    """Map numeric priority to P1-P4; anything unrecognized is P4"""
    return PRIORITY_LABELS.get(_as_int(priority), PriorityLabel.P4)


def response_time_minutes(seconds: Any) -> Optional[int]:
    """First response time in whole minutes, rounding halves up"""
    if seconds is None:
        return None
    try:
        return math.floor(float(seconds) / 60 + 0.5)
    except (TypeError, ValueError, OverflowError):
        return None


def _as_int(value: Any) -> Optional[int]:
    if isinstance(value, bool):
        return None
    if isinstance(value, int):
        return value
    if isinstance(value, float) and value.is_integer():
        return int(value)
    if isinstance(value, str) and value.strip().isdigit():
        return int(value.strip())
    return None


# Default analyzer instance
default_analyzer = TicketAnalyzer()


def analyze_tickets(tickets: Iterable[dict]) -> AnalysisResult:
    """Convenience function to analyze tickets with default settings"""
    return default_analyzer.analyze(tickets)
