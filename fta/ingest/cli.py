#!/usr/bin/env python3
"""
FTA Analyze CLI
Fetches tickets, asks the chat oracle to analyze them and falls back to the
local analyzer when the oracle gives nothing usable
"""

import asyncio
import json
import sys
from typing import Optional

import click
import structlog

from fta.analyze.analyzer import TicketAnalyzer
from fta.analyze.oracle import OracleAnalyzer
from fta.config import Settings
from fta.errors import FTAError
from fta.schemas.ticket import AnalysisResult, AttendanceStatus

from .browser import page_factory
from .client import FreshserviceClient
from .query import TicketWindow
from .session import SessionProvider

log = structlog.get_logger()


async def run_analysis(
    settings: Settings,
    window: TicketWindow,
    tickets_output: str,
    analysis_output: str,
    use_oracle: bool = True,
    client: Optional[FreshserviceClient] = None,
    oracle: Optional[OracleAnalyzer] = None,
) -> Optional[AnalysisResult]:
    """
    Fetch -> oracle analysis -> local fallback -> save.

    Returns:
        The saved AnalysisResult, or None when no tickets were found
    """
    if client is None:
        sessions = SessionProvider.from_settings(settings)
        client = FreshserviceClient(settings, sessions)

    tickets = await client.fetch_tickets(window)
    with open(tickets_output, "w") as f:
        json.dump(tickets, f, indent=2, default=str)
    log.info("Saved raw tickets", count=len(tickets), output=tickets_output)

    if not tickets:
        log.info("No tickets to analyze")
        return None

    analysis = None
    if use_oracle:
        if oracle is None:
            oracle = OracleAnalyzer(
                page_factory=page_factory(headless=settings.browser_headless),
                oracle_url=settings.oracle_url,
                cookies_path=settings.oracle_cookies_path,
                captcha_timeout=settings.oracle_captcha_timeout,
            )
        analysis = await oracle.analyze(tickets)

    if analysis is None or not analysis.total_tickets:
        log.info("Using local analysis")
        analysis = TicketAnalyzer(subject_max_length=settings.subject_max_length).analyze(tickets)

    with open(analysis_output, "w") as f:
        json.dump(analysis.model_dump(mode="json"), f, indent=2)
    log.info("Saved analysis", output=analysis_output)
    return analysis


def format_summary(analysis: AnalysisResult) -> str:
    """Human readable report of an analysis"""
    s = analysis.summary
    lines = [
        "=" * 60,
        "TICKET ANALYSIS SUMMARY",
        "=" * 60,
        f"Total Tickets: {analysis.total_tickets}",
        f"Fresh (Unattended): {s.fresh_tickets}",
        f"Replied: {s.replied_tickets}",
        "",
        f"By Priority: P1:{s.p1_count} | P2:{s.p2_count} | P3:{s.p3_count} | P4:{s.p4_count}",
        "",
        "-" * 60,
        "TICKET DETAILS:",
        "-" * 60,
    ]
    for t in analysis.tickets:
        label = "FRESH" if t.attendance_status == AttendanceStatus.FRESH else "REPLIED"
        lines.append("")
        lines.append(f"[{t.ticket_id}] {t.priority} - {label}")
        lines.append(f"  Subject: {t.subject}")
        lines.append(f"  Requester: {t.requester_name} ({t.requester_location})")
        lines.append(f"  Status: {t.status}")
        if t.response_time_minutes:
            lines.append(f"  Response Time: {t.response_time_minutes} mins")
        if t.urgency_assessment:
            lines.append(f"  Assessment: {t.urgency_assessment}")
        if t.recommendation:
            lines.append(f"  Recommendation: {t.recommendation}")
    lines.append("")
    lines.append("=" * 60)
    return "\n".join(lines)


@click.command()
@click.option("--minutes", "-m", type=int, default=None, help="Tickets created within the last N minutes")
@click.option("--today", is_flag=True, help="Tickets created since local midnight (overrides --minutes)")
@click.option("--tickets-output", default="tickets.json", help="Where to save raw tickets")
@click.option("--analysis-output", default="tickets-analysis.json", help="Where to save the analysis")
@click.option("--oracle/--no-oracle", default=True, help="Try the chat oracle before local analysis")
@click.option("--headless/--headed", default=None,
              help="Browser mode (default from BROWSER_HEADLESS; use --headed to solve challenges)")
def main(minutes: Optional[int], today: bool, tickets_output: str, analysis_output: str,
         oracle: bool, headless: Optional[bool]):
    """Fetch Freshservice tickets and analyze them."""
    settings = Settings.from_env()
    if headless is not None:
        settings.browser_headless = headless

    window = TicketWindow.from_request(minutes, "today" if today else None, settings.window_minutes)
    log.info("Starting Freshservice ticket analyzer", window=window.description, oracle=oracle)

    try:
        analysis = asyncio.run(run_analysis(
            settings,
            window,
            tickets_output=tickets_output,
            analysis_output=analysis_output,
            use_oracle=oracle,
        ))
    except FTAError as e:
        log.error("Ticket analysis failed", error=str(e))
        click.echo(f"Error: {e}", err=True)
        sys.exit(1)

    if analysis is None:
        click.echo("No tickets to analyze")
        return
    click.echo(format_summary(analysis))


if __name__ == "__main__":
    main()
