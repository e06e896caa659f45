import gzip
import tempfile
import unittest
from pathlib import Path

from lg.core.errors import SetupError, SinkWriteError
from lg.sinks import SINK_GZ, SINK_PLAIN, open_sink


class TestFileSink(unittest.TestCase):
    def test_plain_sink_writes_bytes_verbatim(self) -> None:
        with tempfile.TemporaryDirectory() as td:
            p = Path(td) / "a.log"
            sink = open_sink(p, "none")
            self.assertEqual(sink.kind, SINK_PLAIN)
            self.assertEqual(sink.path, p)
            sink.append(b"one\n")
            sink.append_text("two é\n")
            sink.flush_and_close()
            self.assertEqual(p.read_bytes(), "one\ntwo é\n".encode("utf-8"))

    def test_gz_sink_decompresses_to_same_content(self) -> None:
        with tempfile.TemporaryDirectory() as td:
            plain = Path(td) / "a.log"
            gz = Path(td) / "a.log.gz"
            payload = [b"[STDOUT] hi\n", b"\n", b"[STDERR] " + b"x" * 5000 + b"\n"]
            sinks = [open_sink(plain, "none"), open_sink(gz, "gz")]
            self.assertEqual(sinks[1].kind, SINK_GZ)
            for s in sinks:
                for chunk in payload:
                    s.append(chunk)
                s.flush_and_close()
            with gzip.open(gz, "rb") as f:
                self.assertEqual(f.read(), plain.read_bytes())

    def test_gz_sink_is_complete_archive(self) -> None:
        with tempfile.TemporaryDirectory() as td:
            gz = Path(td) / "a.log.gz"
            sink = open_sink(gz, "gz")
            sink.append(b"data\n")
            sink.flush_and_close()
            # gzip.decompress fails on a truncated member.
            self.assertEqual(gzip.decompress(gz.read_bytes()), b"data\n")

    def test_flush_and_close_is_idempotent(self) -> None:
        with tempfile.TemporaryDirectory() as td:
            sink = open_sink(Path(td) / "a.log", "gz")
            sink.flush_and_close()
            sink.flush_and_close()
            self.assertTrue(sink.closed)

    def test_append_after_close_is_write_error(self) -> None:
        with tempfile.TemporaryDirectory() as td:
            sink = open_sink(Path(td) / "a.log", "none")
            sink.flush_and_close()
            with self.assertRaises(SinkWriteError):
                sink.append(b"late\n")

    def test_missing_directory_is_setup_error(self) -> None:
        with tempfile.TemporaryDirectory() as td:
            with self.assertRaises(SetupError) as ctx:
                open_sink(Path(td) / "missing" / "a.log", "none")
            self.assertEqual(ctx.exception.code, "sink.create_failed")

    def test_unknown_compression_is_setup_error(self) -> None:
        with tempfile.TemporaryDirectory() as td:
            with self.assertRaises(SetupError):
                open_sink(Path(td) / "a.log", "zstd")


if __name__ == "__main__":
    unittest.main()
