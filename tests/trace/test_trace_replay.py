import tempfile
import unittest
from pathlib import Path

from lg.trace import Replay, TraceEmitter, TraceStoreJSONL


class TestTrace(unittest.TestCase):
    def test_emit_and_replay(self) -> None:
        with tempfile.TemporaryDirectory() as td:
            p = Path(td) / "nested" / "t.jsonl"
            emitter = TraceEmitter(TraceStoreJSONL(p), run_id="run_1")
            emitter.emit("run_started", message="Run started")
            emitter.emit("child_exited", data={"exit_code": 2})
            events = list(Replay(p).iter_events())
            self.assertEqual([e["event_type"] for e in events], ["run_started", "child_exited"])
            self.assertEqual(events[1]["data"], {"exit_code": 2})
            self.assertTrue(events[0]["ts"].endswith("Z"))
            self.assertEqual({e["run_id"] for e in events}, {"run_1"})

    def test_replay_filters_and_last_run(self) -> None:
        with tempfile.TemporaryDirectory() as td:
            p = Path(td) / "t.jsonl"
            store = TraceStoreJSONL(p)
            first = TraceEmitter(store, run_id="run_a")
            second = TraceEmitter(store, run_id="run_b")
            first.emit("run_started")
            first.emit("run_finished", data={"paths": [Path(td) / "a.log"]})
            second.emit("run_started")
            second.emit("error", message="setup.output_dir: nope")

            replay = Replay(p)
            self.assertEqual(len(list(replay.iter_events(run_id="run_a"))), 2)
            errors = list(replay.iter_events(event_type="error"))
            self.assertEqual([e["run_id"] for e in errors], ["run_b"])
            self.assertEqual([e["event_type"] for e in replay.last_run()], ["run_started", "error"])
            finished = next(replay.iter_events(event_type="run_finished"))
            self.assertEqual(finished["data"]["paths"], [str(Path(td) / "a.log")])

    def test_disabled_emitter_writes_nothing(self) -> None:
        emitter = TraceEmitter(None, run_id="run_2")
        self.assertFalse(emitter.enabled)
        emitter.emit("run_started")

    def test_replay_missing_file(self) -> None:
        with tempfile.TemporaryDirectory() as td:
            self.assertEqual(list(Replay(Path(td) / "none.jsonl").iter_events()), [])


if __name__ == "__main__":
    unittest.main()
