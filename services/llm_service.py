"""
LLM Service
Client for the OpenAI-compatible chat gateway that writes report narratives
"""

import logging
from typing import Dict, List, Optional, Any
import asyncio

import requests

from config import settings
from exceptions import (
    InsightRateLimitedError,
    InsightPaymentRequiredError,
    InsightUpstreamError,
)


logger = logging.getLogger(__name__)


class LLMService:
    """
    Service for the text-generation gateway

    One request per call, no retries. Status codes are mapped onto the
    insight error classes so callers can tell rate limits and exhausted
    credits apart from other failures.
    """

    def __init__(
        self,
        api_key: Optional[str] = None,
        base_url: Optional[str] = None,
        model_name: Optional[str] = None,
        timeout: Optional[float] = None
    ):
        self.api_key = api_key if api_key is not None else settings.INSIGHTS_API_KEY
        self.base_url = (base_url or settings.INSIGHTS_BASE_URL).rstrip("/")
        self.model_name = model_name or settings.INSIGHTS_MODEL
        self.timeout = timeout if timeout is not None else settings.INSIGHTS_TIMEOUT_SECONDS

        # Usage tracking
        self._total_tokens_used = 0
        self._request_count = 0

        if not self.api_key:
            logger.warning("INSIGHTS_API_KEY not configured")

    @property
    def is_configured(self) -> bool:
        return bool(self.api_key)

    async def generate(
        self,
        prompt: str,
        system_prompt: Optional[str] = None
    ) -> str:
        """
        Generate a response from the gateway

        Args:
            prompt: User prompt/message
            system_prompt: System instructions

        Returns:
            Generated text response

        Raises:
            InsightRateLimitedError: gateway answered 429
            InsightPaymentRequiredError: gateway answered 402
            InsightUpstreamError: any other failure
        """
        messages: List[Dict[str, str]] = []
        if system_prompt:
            messages.append({"role": "system", "content": system_prompt})
        messages.append({"role": "user", "content": prompt})
        return await self.chat(messages)

    async def chat(self, messages: List[Dict[str, str]]) -> str:
        """Send a chat completion request and return the first choice's content"""
        if not self.is_configured:
            raise InsightUpstreamError("Insight gateway is not configured. Set INSIGHTS_API_KEY.")

        headers = {
            "Authorization": f"Bearer {self.api_key}",
            "Content-Type": "application/json",
        }
        payload = {
            "model": self.model_name,
            "messages": messages,
        }

        try:
            resp = await asyncio.get_running_loop().run_in_executor(
                None,
                lambda: requests.post(
                    f"{self.base_url}/chat/completions",
                    headers=headers,
                    json=payload,
                    timeout=self.timeout,
                ),
            )
        except requests.Timeout as e:
            logger.error("Insight gateway timed out after %ss", self.timeout)
            raise InsightUpstreamError(f"Insight gateway timed out: {e}") from e
        except requests.RequestException as e:
            logger.error("Insight gateway request failed: %s", e)
            raise InsightUpstreamError(f"Insight gateway request failed: {e}") from e

        if resp.status_code == 429:
            raise InsightRateLimitedError(
                "Rate limit exceeded. Please try again later.", status_code=429
            )
        if resp.status_code == 402:
            raise InsightPaymentRequiredError(
                "Payment required. Please add credits to continue.", status_code=402
            )
        if not 200 <= resp.status_code < 300:
            logger.error("Insight gateway error %s: %s", resp.status_code, resp.text)
            raise InsightUpstreamError(
                "Failed to generate AI insights", status_code=resp.status_code
            )

        try:
            data = resp.json()
        except ValueError as e:
            raise InsightUpstreamError(
                "Insight gateway returned invalid JSON", status_code=resp.status_code
            ) from e

        text = self._extract_text(data, resp.status_code)

        usage = data.get("usage")
        if isinstance(usage, dict):
            tokens = usage.get("total_tokens")
            if isinstance(tokens, int):
                self._total_tokens_used += tokens
        self._request_count += 1

        return text

    @staticmethod
    def _extract_text(data: Any, status_code: int) -> str:
        """First choice's message content; empty when the gateway sent no choices"""
        unexpected = InsightUpstreamError(
            "Insight gateway returned an unexpected payload", status_code=status_code
        )
        if not isinstance(data, dict):
            raise unexpected

        choices = data.get("choices") or []
        if not choices:
            return ""
        if not isinstance(choices, list) or not isinstance(choices[0], dict):
            raise unexpected

        message = choices[0].get("message") or {}
        if not isinstance(message, dict):
            raise unexpected

        content = message.get("content")
        return content if isinstance(content, str) else ""

    def get_usage_stats(self) -> Dict[str, Any]:
        """Get usage statistics"""
        return {
            "total_tokens": self._total_tokens_used,
            "request_count": self._request_count,
            "model": self.model_name,
        }


# Singleton instance
llm_service = LLMService()
