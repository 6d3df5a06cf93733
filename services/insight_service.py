"""
Insight Service
Turns a report summary into a narrative request for the text-generation gateway
"""

import asyncio
import logging
from dataclasses import dataclass
from typing import Dict, List, Optional, Any

from config import report_config
from exceptions import InsightError, InsightUpstreamError
from services.adherence_service import ReportSummary, MedicationStat
from services.llm_service import LLMService, llm_service


logger = logging.getLogger(__name__)


INSIGHTS_SYSTEM_PROMPT = (
    "You are a compassionate health assistant helping users manage their "
    "medication schedules. Be encouraging and supportive."
)

INSIGHTS_PROMPT_TEMPLATE = """You are a friendly health assistant analyzing medication adherence data. Based on the following data, provide helpful insights and recommendations.

Data Summary:
- Period: {period} ({period_days} days from {start_date} to {end_date})
- Total medications being tracked: {total_medications}
- Expected doses: {expected_doses}
- Doses taken: {taken_doses}
- Doses missed: {missed_doses}
- Overall adherence rate: {adherence_rate}%

Per-medication breakdown:
{medication_lines}

Please provide:
1. A brief summary of medication adherence for this period (2-3 sentences)
2. Key observations about patterns (e.g., any medications with notably low adherence)
3. 2-3 personalized, encouraging recommendations to improve adherence
4. A motivational note based on their performance

Keep the tone warm, supportive, and non-judgmental. Format your response in clear sections."""


# Outcome labels carried on a report
STATUS_OK = "ok"


@dataclass
class InsightResult:
    """Outcome of the narrative step attached to a report"""
    status: str
    text: Optional[str] = None
    error: Optional[str] = None

    @property
    def ok(self) -> bool:
        return self.status == STATUS_OK

    def to_dict(self) -> Dict[str, Any]:
        return {"status": self.status, "text": self.text, "error": self.error}


def _medication_line(stat: MedicationStat) -> str:
    if stat.adherence is not None:
        return (
            f"- {stat.name} ({stat.dosage}): {stat.taken}/{stat.expected} doses taken "
            f"({stat.adherence}% adherence)"
        )
    if stat.expected is not None:
        return f"- {stat.name} ({stat.dosage}, one-time): {stat.taken}/{stat.expected} doses taken"
    return f"- {stat.name} ({stat.dosage}, as needed): taken {stat.taken} times"


def build_insight_prompt(summary: ReportSummary) -> str:
    """Render the fixed narrative prompt for a summary"""
    lines: List[str] = [_medication_line(s) for s in summary.medication_stats]
    return INSIGHTS_PROMPT_TEMPLATE.format(
        period=summary.period or "custom",
        period_days=summary.period_days,
        start_date=summary.start_date.date().isoformat(),
        end_date=summary.end_date.date().isoformat(),
        total_medications=summary.total_medications,
        expected_doses=summary.expected_doses,
        taken_doses=summary.taken_doses,
        missed_doses=summary.missed_doses,
        adherence_rate=summary.adherence_rate,
        medication_lines="\n".join(lines) if lines else "- No medications tracked",
    )


class InsightService:
    """
    Service for narrative insights on adherence reports
    """

    def __init__(self, llm: Optional[LLMService] = None):
        self.llm = llm or llm_service

    async def request_insights(self, summary: ReportSummary) -> str:
        """
        Ask the gateway for narrative insights on a summary

        Raises:
            InsightRateLimitedError, InsightPaymentRequiredError,
            InsightUpstreamError
        """
        prompt = build_insight_prompt(summary)
        try:
            text = await asyncio.wait_for(
                self.llm.generate(prompt, system_prompt=INSIGHTS_SYSTEM_PROMPT),
                timeout=self.llm.timeout,
            )
        except asyncio.TimeoutError as e:
            raise InsightUpstreamError(
                f"Insight generation timed out after {self.llm.timeout}s"
            ) from e
        return text or report_config.INSIGHTS_FALLBACK_TEXT

    async def collect_insights(self, summary: ReportSummary) -> InsightResult:
        """request_insights with failures captured as a typed result"""
        try:
            text = await self.request_insights(summary)
        except InsightError as e:
            logger.warning(f"Insight generation failed ({e.kind}): {e.message}")
            return InsightResult(status=e.kind, error=e.message)
        return InsightResult(status=STATUS_OK, text=text)


# Singleton instance
insight_service = InsightService()
