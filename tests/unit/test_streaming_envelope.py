from __future__ import annotations

import json

import pytest

from scholarlens.api.streaming import StreamEvent, wrap_generator


async def _simple_stream():
    yield StreamEvent(type="search", data={"phase": "search", "message": "Finding sources"})
    yield StreamEvent(type="patch", data={"phase": "cover", "url": "https://a.example"})
    yield StreamEvent(type="result", data={"ok": True})


async def _broken_stream():
    yield StreamEvent(type="enrich", data={"phase": "enrich"})
    raise RuntimeError("stream broke")


async def _collect(generator):
    payloads = []
    async for raw in generator:
        if not raw.startswith("data: "):
            continue
        data = raw.removeprefix("data: ").strip()
        if data == "[DONE]":
            payloads.append("[DONE]")
            continue
        payloads.append(json.loads(data))
    return payloads


@pytest.mark.asyncio
async def test_wrap_generator_injects_envelope():
    payloads = await _collect(
        wrap_generator(
            _simple_stream(),
            workflow="research_search",
            run_id="run_x",
            trace_id="trace_x",
        )
    )

    assert payloads[-1] == "[DONE]"
    events = payloads[:-1]
    assert len(events) == 3
    for idx, payload in enumerate(events, start=1):
        env = payload["envelope"]
        assert env["workflow"] == "research_search"
        assert env["run_id"] == "run_x"
        assert env["trace_id"] == "trace_x"
        assert env["seq"] == idx
        assert isinstance(env["ts"], str)

    assert events[0]["event"] == "progress"
    assert events[0]["envelope"]["phase"] == "search"
    assert events[1]["event"] == "patch"
    assert events[1]["envelope"]["phase"] == "cover"
    assert events[2]["event"] == "result"


@pytest.mark.asyncio
async def test_wrap_generator_turns_exception_into_error_event():
    payloads = await _collect(wrap_generator(_broken_stream(), workflow="research_search"))

    assert payloads[-1] == "[DONE]"
    error = payloads[-2]
    assert error["event"] == "error"
    assert error["message"] == "stream broke"
    assert error["envelope"]["seq"] == 2
    assert error["envelope"]["run_id"].startswith("run_")


def test_stream_event_keeps_non_ascii_text():
    raw = StreamEvent(type="result", data={"query": "política climática"}).to_sse()

    assert "política climática" in raw
    assert raw.endswith("\n\n")
