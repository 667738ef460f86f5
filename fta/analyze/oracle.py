"""
Oracle Analyzer
Asks the Puter.js chat oracle, driven through a browser, to analyze tickets.
Returns None on any failure so the caller can fall back to TicketAnalyzer.
"""

import json
import re
from pathlib import Path
from typing import Any, Callable, Optional

import structlog
from pydantic import ValidationError

from fta.errors import OracleError
from fta.ingest.browser import BrowserPage
from fta.schemas.ticket import AnalysisResult

logger = structlog.get_logger()

CHALLENGE_PRESENT_JS = """() => {
    return document.body.innerText.includes('Verify you are human') ||
           document.querySelector('iframe[src*="challenges.cloudflare.com"]') !== null;
}"""

CHALLENGE_CLEARED_JS = """() => {
    return !document.body.innerText.includes('Verify you are human') &&
           !document.querySelector('iframe[src*="challenges.cloudflare.com"]');
}"""

ORACLE_PAGE_HTML = """<!DOCTYPE html>
<html>
  <head>
    <script src="https://js.puter.com/v2/"></script>
  </head>
  <body>
    <div id="status">Loading Puter.js...</div>
  </body>
</html>"""

ORACLE_READY_JS = "() => typeof puter !== 'undefined'"

ORACLE_CHAT_JS = """async (promptText) => {
    try {
        const response = await puter.ai.chat(promptText);
        return { raw: response, type: typeof response };
    } catch (err) {
        return { error: err.message };
    }
}"""

ANALYSIS_PROMPT = """You are an IT Service Desk analyst. Analyze these Freshservice tickets and return ONLY valid JSON.

For each ticket:
- ticket_id: human_display_id
- subject: brief subject
- priority: P1/P2/P3/P4 (map: 1=P4, 2=P3, 3=P2, 4=P1)
- requester_name: from requester.name
- requester_location: from requester.location_name
- status: from ticket_status.name
- attendance_status: "FRESH" if stats.agent_responded_at is null and stats.outbound_count <= 1, else "REPLIED"
- response_time_minutes: stats.first_resp_time_in_secs / 60, rounded
- urgency_assessment: brief assessment
- recommendation: action item

JSON format:
{{
  "analysis_timestamp": "ISO date",
  "total_tickets": number,
  "summary": {{"fresh_tickets":0,"replied_tickets":0,"p1_count":0,"p2_count":0,"p3_count":0,"p4_count":0}},
  "tickets": [...]
}}

Tickets: {tickets}"""

FENCE_PATTERN = re.compile(r"```(?:json)?\n?")


def build_prompt(tickets: list[dict]) -> str:
    return ANALYSIS_PROMPT.format(tickets=json.dumps(tickets, default=str))


def reply_text(raw: Any) -> str:
    """Pull the text out of a chat reply that may be a string or an object"""
    if isinstance(raw, dict):
        message = raw.get("message")
        if isinstance(message, dict) and message.get("content"):
            content = message["content"]
            if isinstance(content, list):
                return "".join(
                    part.get("text", "") for part in content if isinstance(part, dict)
                )
            return str(content)
        for key in ("text", "response"):
            if raw.get(key):
                return str(raw[key])
        return json.dumps(raw)
    return "" if raw is None else str(raw)


def parse_oracle_reply(raw: Any) -> Optional[AnalysisResult]:
    """Strip markdown fences, parse JSON and validate; None if anything fails"""
    text = FENCE_PATTERN.sub("", reply_text(raw)).strip()
    logger.debug("Oracle reply preview", preview=text[:200])
    try:
        return AnalysisResult.model_validate(json.loads(text))
    except (json.JSONDecodeError, ValidationError, TypeError) as e:
        logger.warning("Could not parse oracle reply", error=str(e))
        return None


class OracleAnalyzer:
    """
    Delegates ticket analysis to the Puter.js chat oracle.

    A human verification challenge on the oracle site is waited out (a human
    solves it in the visible browser); the cookies are then persisted so later
    runs skip it.
    """

    def __init__(
        self,
        page_factory: Callable,
        oracle_url: str = "https://puter.com",
        cookies_path: str = "puter-cookies.json",
        captcha_timeout: float = 60.0,
        load_timeout: float = 30.0,
        screenshot_path: Optional[str] = "puter-error.png",
    ):
        self.page_factory = page_factory
        self.oracle_url = oracle_url
        self.cookies_path = Path(cookies_path)
        self.captcha_timeout = captcha_timeout
        self.load_timeout = load_timeout
        self.screenshot_path = screenshot_path

    async def analyze(self, tickets: list[dict]) -> Optional[AnalysisResult]:
        """Run the oracle analysis; never raises"""
        logger.info("Analyzing tickets with oracle", count=len(tickets))
        try:
            async with self.page_factory() as page:
                try:
                    return await self._run(page, tickets)
                except OracleError as e:
                    logger.error("Oracle analysis failed", error=str(e))
                    if self.screenshot_path:
                        await page.screenshot(self.screenshot_path)
                    return None
        except Exception as e:
            logger.error("Oracle browser session failed", error=str(e))
            return None

    async def _run(self, page: BrowserPage, tickets: list[dict]) -> Optional[AnalysisResult]:
        await self._load_cookies(page)

        self._check(await page.goto(self.oracle_url, timeout=self.load_timeout))

        challenge = await page.evaluate(CHALLENGE_PRESENT_JS)
        if challenge.ok and challenge.value:
            logger.warning("Verification challenge detected, waiting for it to be solved",
                           timeout=self.captcha_timeout)
            self._check(await page.wait_for_function(CHALLENGE_CLEARED_JS, timeout=self.captcha_timeout))
            logger.info("Verification challenge cleared")
            await self._save_cookies(page)

        self._check(await page.set_content(ORACLE_PAGE_HTML))
        self._check(await page.wait_for_function(ORACLE_READY_JS, timeout=self.load_timeout))

        result = self._check(await page.evaluate(ORACLE_CHAT_JS, build_prompt(tickets)))
        if not isinstance(result, dict):
            raise OracleError(f"Unexpected oracle result: {type(result).__name__}")
        if result.get("error"):
            raise OracleError(result["error"])

        logger.info("Oracle replied", reply_type=result.get("type"))
        analysis = parse_oracle_reply(result.get("raw"))
        if analysis is not None:
            logger.info("Oracle analysis complete", total=analysis.total_tickets)
        return analysis

    def _check(self, step) -> Any:
        if not step.ok:
            raise OracleError(step.error)
        return step.value

    async def _load_cookies(self, page: BrowserPage):
        if not self.cookies_path.exists():
            return
        try:
            cookies = json.loads(self.cookies_path.read_text())
        except (OSError, json.JSONDecodeError) as e:
            logger.warning("Ignoring unreadable oracle cookies", path=str(self.cookies_path), error=str(e))
            return
        step = await page.add_cookies(cookies)
        if step.ok:
            logger.info("Oracle cookies loaded", count=len(cookies))
        else:
            logger.warning("Oracle cookies rejected", error=step.error)

    async def _save_cookies(self, page: BrowserPage):
        cookies = await page.cookies()
        if not cookies.ok:
            logger.warning("Could not read oracle cookies", error=cookies.error)
            return
        self.cookies_path.write_text(json.dumps(cookies.value, indent=2))
        logger.info("Oracle cookies saved", path=str(self.cookies_path))
