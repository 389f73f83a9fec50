import asyncio
import json
from datetime import date, datetime
from types import SimpleNamespace

import httpx
import openai
import pytest

from pharmastock.exceptions import UpstreamFailure
from pharmastock.schemas.forecast import ForecastResult, ForecastRun
from pharmastock.schemas.snapshot import ChangeSet, ReportPeriod, WeeklyReport
from pharmastock.services.narrative_service import (
    NarrativeClient,
    compact_json,
    forecast_messages,
    report_messages,
)


def _chunk(content, with_choice=True):
    if not with_choice:
        return SimpleNamespace(choices=[])
    return SimpleNamespace(choices=[SimpleNamespace(delta=SimpleNamespace(content=content))])


class FakeStream:
    def __init__(self, chunks, error=None):
        self.chunks = chunks
        self.error = error
        self.closed = False

    def __aiter__(self):
        return self._iterate()

    async def _iterate(self):
        for chunk in self.chunks:
            yield chunk
        if self.error:
            raise self.error

    async def close(self):
        self.closed = True


class FakeCompletions:
    def __init__(self, response=None, error=None):
        self.response = response
        self.error = error
        self.calls = []

    async def create(self, **kwargs):
        self.calls.append(kwargs)
        if self.error:
            raise self.error
        return self.response


def fake_openai(completions):
    return SimpleNamespace(chat=SimpleNamespace(completions=completions))


def connection_error():
    return openai.APIConnectionError(request=httpx.Request("POST", "https://api.openai.com/v1/chat/completions"))


def _run():
    return ForecastRun(
        alpha=0.4,
        results=[
            ForecastResult(
                batch_id=1,
                forecast=12.4,
                name="Amoxicillin",
                strength="500mg",
                batch_number="AMX-001",
                reorder_threshold=20,
                supplier_lead_time=7,
                initial_stock=200,
                current_stock=124,
                quantity_used_total=40,
                estimated_stockout_days=10.0,
                dates=[date(2024, 3, 1)],
            )
        ],
    )


def test_forecast_messages_embed_compact_json():
    messages = forecast_messages(_run())

    assert [m["role"] for m in messages] == ["system", "user"]
    user = messages[1]["content"]
    assert "PREDICTIVE OUTLOOK:" in user
    payload = user.split("Data: ", 1)[1]
    assert ", " not in payload
    data = json.loads(payload)
    assert data[0]["batch_number"] == "AMX-001"
    assert data[0]["estimated_stockout_days"] == 10.0
    assert data[0]["dates"] == ["2024-03-01"]


def test_report_messages_embed_report():
    report = WeeklyReport(
        period=ReportPeriod(start=datetime(2024, 3, 4), end=datetime(2024, 3, 10)),
        inventory_changes=ChangeSet(),
        usage_summary=[],
        expiring_soon=[],
    )

    user = report_messages(report)[1]["content"]

    data = json.loads(user.split("Data: ", 1)[1])
    assert data["period"] == {"start": "2024-03-04T00:00:00", "end": "2024-03-10T00:00:00"}
    assert data["inventory_changes"] == {"added": [], "removed": [], "stock_changes": []}


def test_compact_json_has_no_padding():
    assert compact_json({"a": [1, 2]}) == '{"a":[1,2]}'


def test_missing_api_key_is_an_upstream_failure():
    narrator = NarrativeClient(api_key="", model="gpt-4o-mini")
    with pytest.raises(UpstreamFailure):
        asyncio.run(narrator.complete([{"role": "user", "content": "hi"}]))


def test_complete_returns_text():
    response = SimpleNamespace(choices=[SimpleNamespace(message=SimpleNamespace(content="  All good.  "))])
    completions = FakeCompletions(response=response)
    narrator = NarrativeClient("sk-test", "gpt-4o-mini", client=fake_openai(completions))

    text = asyncio.run(narrator.complete([{"role": "user", "content": "hi"}]))

    assert text == "All good."
    assert completions.calls[0]["model"] == "gpt-4o-mini"


def test_complete_wraps_sdk_errors():
    narrator = NarrativeClient("sk-test", "gpt-4o-mini", client=fake_openai(FakeCompletions(error=connection_error())))
    with pytest.raises(UpstreamFailure):
        asyncio.run(narrator.complete([]))


def test_stream_yields_non_empty_deltas_and_closes():
    stream = FakeStream([_chunk("Key "), _chunk(None), _chunk(None, with_choice=False), _chunk("points")])
    completions = FakeCompletions(response=stream)
    narrator = NarrativeClient("sk-test", "gpt-4o-mini", client=fake_openai(completions))

    async def run():
        return [t async for t in narrator.stream([{"role": "user", "content": "hi"}])]

    assert asyncio.run(run()) == ["Key ", "points"]
    assert completions.calls[0]["stream"] is True
    assert stream.closed


def test_stream_error_mid_response():
    stream = FakeStream([_chunk("Key ")], error=connection_error())
    narrator = NarrativeClient("sk-test", "gpt-4o-mini", client=fake_openai(FakeCompletions(response=stream)))

    async def run():
        received = []
        with pytest.raises(UpstreamFailure):
            async for token in narrator.stream([]):
                received.append(token)
        return received

    assert asyncio.run(run()) == ["Key "]
    assert stream.closed
