import json
import logging
from collections.abc import AsyncIterator

import httpx
import openai

from pharmastock.config import Settings
from pharmastock.exceptions import UpstreamFailure
from pharmastock.schemas.forecast import ForecastRun
from pharmastock.schemas.snapshot import WeeklyReport

logger = logging.getLogger(__name__)

SYSTEM_PROMPT = (
    "You are a professional AI inventory forecasting assistant for a pharmaceutical company. "
    "Your responses must be written in plain text, without markdown formatting or symbols or "
    "asterisks, and should be extremely concise, no more than 300 words. Provide clear, "
    "actionable insights based on the provided inventory data. If given dates, analyse these "
    "dates and when the items were used to give a general view of increases or decreases in usage."
)

FORECAST_INSTRUCTIONS = """Analyze the following inventory forecast data and provide a concise narrative explanation in plain text (no markdown formatting, symbols, or asterisks) of 300 words or less. Your response must be organized into three clear sections, each on its own line with a heading in all caps followed by a colon. The sections should be:

KEY OBSERVATIONS:
Summarize the main trends and issues in the data, focusing on daily usage trends and how they impact inventory levels.

PREDICTIVE OUTLOOK:
Explain, using consistent math, when each product is expected to stock out (using the estimated_stockout_days field) and why.

ACTIONABLE RECOMMENDATIONS:
Provide specific, clear inventory recommendations.

For each product, reference the batch number, product name, and strength to distinguish them. Data: """

REPORT_INSTRUCTIONS = """Summarize the following weekly pharmaceutical inventory report in plain text (no markdown formatting, symbols, or asterisks) of 300 words or less. Use three sections, each on its own line with a heading in all caps followed by a colon:

WEEK IN REVIEW:
New batches, removed batches, and the batches that were consumed the most over the period.

EXPIRY RISK:
Batches in expiring_soon and what should happen to them.

ACTIONABLE RECOMMENDATIONS:
Specific reorder or redistribution steps.

Reference batch numbers and product names. Data: """


def compact_json(payload) -> str:
    return json.dumps(payload, separators=(",", ":"), default=str)


def forecast_messages(run: ForecastRun) -> list[dict]:
    data = compact_json([r.model_dump(mode="json") for r in run.results])
    return [
        {"role": "system", "content": SYSTEM_PROMPT},
        {"role": "user", "content": FORECAST_INSTRUCTIONS + data},
    ]


def report_messages(report: WeeklyReport) -> list[dict]:
    return [
        {"role": "system", "content": SYSTEM_PROMPT},
        {"role": "user", "content": REPORT_INSTRUCTIONS + compact_json(report.model_dump(mode="json"))},
    ]


class NarrativeClient:
    """Thin wrapper over the OpenAI chat completions API.

    The SDK client is built on first use so the app starts without an API key; requests
    made without one fail with :class:`UpstreamFailure`.
    """

    def __init__(self, api_key: str, model: str, timeout: float = 60.0, client=None):
        self.api_key = api_key
        self.model = model
        self.timeout = timeout
        self._client = client

    @classmethod
    def from_settings(cls, settings: Settings) -> "NarrativeClient":
        return cls(settings.OPENAI_API_KEY, settings.OPENAI_MODEL, settings.OPENAI_TIMEOUT_SECONDS)

    def _get_client(self):
        if self._client is None:
            if not self.api_key:
                raise UpstreamFailure("OPENAI_API_KEY is not configured")
            self._client = openai.AsyncOpenAI(
                api_key=self.api_key,
                http_client=httpx.AsyncClient(timeout=self.timeout),
            )
        return self._client

    async def complete(self, messages: list[dict]) -> str:
        client = self._get_client()
        try:
            response = await client.chat.completions.create(model=self.model, messages=messages)
        except openai.OpenAIError as e:
            logger.error("Narrative completion failed: %s", e)
            raise UpstreamFailure(f"Narrative service error: {e}") from e
        return (response.choices[0].message.content or "").strip()

    async def stream(self, messages: list[dict]) -> AsyncIterator[str]:
        """Yield text fragments as the model produces them. Empty deltas are skipped."""
        client = self._get_client()
        try:
            response = await client.chat.completions.create(model=self.model, messages=messages, stream=True)
        except openai.OpenAIError as e:
            logger.error("Narrative stream failed to start: %s", e)
            raise UpstreamFailure(f"Narrative service error: {e}") from e
        try:
            async for chunk in response:
                if not chunk.choices:
                    continue
                token = chunk.choices[0].delta.content
                if token:
                    yield token
        except (openai.OpenAIError, httpx.HTTPError) as e:
            logger.error("Narrative stream broke mid-response: %s", e)
            raise UpstreamFailure(f"Narrative service error: {e}") from e
        finally:
            await response.close()

    async def aclose(self) -> None:
        if self._client is not None:
            await self._client.close()
            self._client = None
