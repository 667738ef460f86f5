from __future__ import annotations

from datetime import datetime, timezone

import pytest

from fta.analyze.analyzer import (
    TicketAnalyzer,
    analyze_tickets,
    is_fresh,
    priority_label,
    response_time_minutes,
)

from conftest import make_ticket


def test_end_to_end_summary(raw_tickets) -> None:
    result = analyze_tickets(raw_tickets)

    assert result.total_tickets == 2
    assert result.summary.model_dump() == {
        "fresh_tickets": 1,
        "replied_tickets": 1,
        "p1_count": 1,
        "p2_count": 0,
        "p3_count": 0,
        "p4_count": 1,
    }
    assert [t.ticket_id for t in result.tickets] == ["#SR-1", "#SR-2"]
    assert result.tickets[0].attendance_status == "FRESH"
    assert result.tickets[0].priority == "P1"
    assert result.tickets[1].attendance_status == "REPLIED"
    assert result.tickets[1].response_time_minutes == 2


def test_missing_fields_use_defaults() -> None:
    result = TicketAnalyzer(subject_max_length=3).analyze([{"id": 77}])
    ticket = result.tickets[0]

    assert ticket.ticket_id == "#77"
    assert ticket.subject == "No subject"
    assert ticket.priority == "P4"
    assert ticket.requester_name == "Unknown"
    assert ticket.requester_location == "Unknown"
    assert ticket.status == "Unknown"
    assert ticket.attendance_status == "FRESH"
    assert ticket.response_time_minutes is None
    assert ticket.created_at is None


def test_null_sub_objects_do_not_fail() -> None:
    ticket = TicketAnalyzer().analyze_ticket(
        {"id": 5, "stats": None, "requester": None, "ticket_status": None, "subject": None}
    )
    assert ticket.subject == "No subject"
    assert ticket.requester_name == "Unknown"
    assert ticket.attendance_status == "FRESH"


@pytest.mark.parametrize(
    "raw, expected",
    [
        (1, "P4"), (2, "P3"), (3, "P2"), (4, "P1"), (0, "P4"), (5, "P4"), (None, "P4"),
        ("4", "P1"), ("high", "P4"), (4.0, "P1"), (2.5, "P4"),
    ],
)
def test_priority_mapping(raw, expected) -> None:
    assert priority_label(raw) == expected


@pytest.mark.parametrize(
    "stats, fresh",
    [
        ({"agent_responded_at": None, "outbound_count": 0}, True),
        ({"agent_responded_at": None, "outbound_count": 1}, True),
        ({"agent_responded_at": None, "outbound_count": 2}, False),
        ({"agent_responded_at": None, "outbound_count": 2.0}, False),
        ({"agent_responded_at": None, "outbound_count": 1.0}, True),
        ({"agent_responded_at": "2024-01-01T00:00:00Z", "outbound_count": 0}, False),
        ({}, True),
        (None, True),
    ],
)
def test_freshness_predicate(stats, fresh) -> None:
    assert is_fresh(stats) is fresh


@pytest.mark.parametrize(
    "seconds, minutes",
    [(90, 2), (30, 1), (29, 0), (150, 3), (3600, 60), (0, 0), (None, None), (float("inf"), None), (float("nan"), None)],
)
def test_response_time_rounds_half_up(seconds, minutes) -> None:
    assert response_time_minutes(seconds) == minutes


def test_subject_truncation_is_configurable() -> None:
    long_subject = "x" * 150
    assert len(TicketAnalyzer().analyze_ticket(make_ticket(1, subject=long_subject)).subject) == 100
    assert len(TicketAnalyzer(subject_max_length=80).analyze_ticket(make_ticket(1, subject=long_subject)).subject) == 80


def test_status_fallbacks() -> None:
    analyzer = TicketAnalyzer()
    assert analyzer.analyze_ticket(make_ticket(1, ticket_status={"name": "Waiting on Customer"})).status == "Waiting on Customer"
    assert analyzer.analyze_ticket(make_ticket(1, ticket_status=None, status=4)).status == "Resolved"
    assert analyzer.analyze_ticket(make_ticket(1, ticket_status=None, status=9)).status == "Status 9"


def test_ticket_id_falls_back_to_numeric_id() -> None:
    ticket = TicketAnalyzer().analyze_ticket(make_ticket(12, human_display_id=None))
    assert ticket.ticket_id == "#12"


def test_counters_cover_every_ticket() -> None:
    tickets = [
        make_ticket(i, priority=(i % 6), stats={"agent_responded_at": None, "outbound_count": i % 3})
        for i in range(25)
    ]
    result = analyze_tickets(tickets)
    s = result.summary

    assert result.total_tickets == len(result.tickets) == 25
    assert s.fresh_tickets + s.replied_tickets == result.total_tickets
    assert s.p1_count + s.p2_count + s.p3_count + s.p4_count == result.total_tickets


def test_empty_input() -> None:
    result = analyze_tickets([])
    assert result.total_tickets == 0
    assert result.tickets == []
    assert result.summary.fresh_tickets == 0


def test_analysis_timestamp_format() -> None:
    now = datetime(2025, 1, 15, 10, 30, 0, 123456, tzinfo=timezone.utc)
    result = TicketAnalyzer().analyze([], now=now)
    assert result.analysis_timestamp == "2025-01-15T10:30:00.123Z"


def test_guidance_follows_freshness(raw_tickets) -> None:
    fresh, replied = analyze_tickets(raw_tickets).tickets
    assert fresh.recommendation == "Assign and respond ASAP"
    assert replied.urgency_assessment == "Being handled"
