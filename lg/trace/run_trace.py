from __future__ import annotations

import json
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Dict, Iterator, Optional


RUN_STARTED = "run_started"
SINKS_OPENED = "sinks_opened"
CHILD_SPAWNED = "child_spawned"
STREAMS_DRAINED = "streams_drained"
CHILD_EXITED = "child_exited"
SINK_FINALIZED = "sink_finalized"
FINALIZE_FAILED = "finalize_failed"
ERROR = "error"
RUN_FINISHED = "run_finished"


class TraceStoreJSONL:
    """
    One JSON object per line, appended. Several runs may share a file; events
    are told apart by run_id.
    """

    def __init__(self, path: Path):
        self._path = path

    @property
    def path(self) -> Path:
        return self._path

    def append(self, event: Dict[str, Any]) -> None:
        self._path.parent.mkdir(parents=True, exist_ok=True)
        line = json.dumps(event, ensure_ascii=False, default=str)
        with self._path.open("a", encoding="utf-8") as f:
            f.write(line + "\n")


class TraceEmitter:
    """
    Stamps events with ts/run_id/event_type. Without a store emit() does nothing,
    so callers never need to check whether tracing is on.
    """

    def __init__(self, store: Optional[TraceStoreJSONL], run_id: str):
        self._store = store
        self._run_id = run_id

    @property
    def run_id(self) -> str:
        return self._run_id

    @property
    def enabled(self) -> bool:
        return self._store is not None

    def emit(self, event_type: str, *, message: str | None = None, data: dict[str, Any] | None = None) -> None:
        if self._store is None:
            return
        event: Dict[str, Any] = {
            "ts": datetime.now(timezone.utc).isoformat().replace("+00:00", "Z"),
            "run_id": self._run_id,
            "event_type": event_type,
        }
        if message is not None:
            event["message"] = message
        if data is not None:
            event["data"] = data
        self._store.append(event)


class Replay:
    def __init__(self, path: Path):
        self._path = path

    def iter_events(self, *, run_id: str | None = None, event_type: str | None = None) -> Iterator[Dict[str, Any]]:
        if not self._path.exists():
            return
        with self._path.open("r", encoding="utf-8") as f:
            for raw in f:
                raw = raw.strip()
                if not raw:
                    continue
                event = json.loads(raw)
                if run_id is not None and event.get("run_id") != run_id:
                    continue
                if event_type is not None and event.get("event_type") != event_type:
                    continue
                yield event

    def last_run(self) -> list[Dict[str, Any]]:
        """
        Events of the most recent run_id in the file.
        """
        events = list(self.iter_events())
        if not events:
            return []
        last = events[-1].get("run_id")
        return [e for e in events if e.get("run_id") == last]
