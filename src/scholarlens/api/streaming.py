"""
Streaming utilities for Server-Sent Events (SSE).

Every event carries a normalized envelope:
- workflow
- run_id
- trace_id
- seq
- phase
- ts
"""

from __future__ import annotations

import json
from dataclasses import dataclass
from datetime import datetime, timezone
from enum import Enum
from typing import Any, AsyncGenerator, Dict, Optional
from uuid import uuid4


class StandardEvent(str, Enum):
    STATUS = "status"
    PROGRESS = "progress"
    PATCH = "patch"
    RESULT = "result"
    ERROR = "error"
    DONE = "done"


_PROGRESS_TYPES = {
    "progress",
    "search",
    "search_done",
    "enrich",
    "enrich_done",
    "saved",
    "covers",
    "final_saved",
}


def _new_stream_id(prefix: str) -> str:
    return f"{prefix}_{uuid4().hex[:12]}"


@dataclass
class StreamEvent:
    """SSE event structure."""

    type: str
    event: Optional[str] = None
    data: Any = None
    message: Optional[str] = None
    envelope: Optional[Dict[str, Any]] = None

    def to_sse(self) -> str:
        payload = {
            "type": self.type,
            "event": self.event,
            "data": self.data,
            "message": self.message,
            "envelope": self.envelope,
        }
        return f"data: {json.dumps(payload, ensure_ascii=False)}\n\n"


def sse_done() -> str:
    return "data: [DONE]\n\n"


def _canonical_event_kind(*, event_type: str, explicit_event: Optional[str]) -> str:
    if explicit_event:
        return str(explicit_event)

    t = str(event_type or "").strip().lower()
    if t in {"error", "failed", "failure"}:
        return StandardEvent.ERROR.value
    if t in {"result", "final", "final_result"}:
        return StandardEvent.RESULT.value
    if t in {"done", "completed", "complete"}:
        return StandardEvent.DONE.value
    if t in {"cover", "patch"}:
        return StandardEvent.PATCH.value
    if t in _PROGRESS_TYPES:
        return StandardEvent.PROGRESS.value
    return StandardEvent.STATUS.value


def _with_envelope(
    event: StreamEvent,
    *,
    workflow: str,
    run_id: str,
    trace_id: str,
    seq: int,
) -> StreamEvent:
    canonical_event = _canonical_event_kind(event_type=event.type, explicit_event=event.event)
    event.event = canonical_event

    phase = event.data.get("phase") if isinstance(event.data, dict) else None
    event.envelope = {
        "workflow": workflow or "unknown",
        "run_id": run_id,
        "trace_id": trace_id,
        "seq": seq,
        "phase": phase,
        "event": canonical_event,
        "ts": datetime.now(timezone.utc).isoformat(),
    }
    return event


async def wrap_generator(
    generator: AsyncGenerator[StreamEvent, None],
    *,
    workflow: str = "",
    run_id: Optional[str] = None,
    trace_id: Optional[str] = None,
) -> AsyncGenerator[str, None]:
    """Wrap a StreamEvent generator to SSE strings with a normalized envelope."""
    resolved_run_id = run_id or _new_stream_id("run")
    resolved_trace_id = trace_id or _new_stream_id("trace")
    seq = 0

    try:
        async for event in generator:
            seq += 1
            yield _with_envelope(
                event,
                workflow=workflow,
                run_id=resolved_run_id,
                trace_id=resolved_trace_id,
                seq=seq,
            ).to_sse()
        yield sse_done()
    except Exception as e:
        seq += 1
        yield _with_envelope(
            StreamEvent(type="error", message=str(e)),
            workflow=workflow,
            run_id=resolved_run_id,
            trace_id=resolved_trace_id,
            seq=seq,
        ).to_sse()
        yield sse_done()
