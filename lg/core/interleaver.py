from __future__ import annotations

import queue
import sys
import threading
from dataclasses import dataclass
from typing import BinaryIO, Callable, Dict, Iterator, List, Optional, Sequence, TextIO, Union

from lg.sinks import Sink

from .errors import CaptureError
from .formatting import STREAM_STDERR, STREAM_STDOUT, format_line


DEFAULT_QUEUE_SIZE = 1024


@dataclass(frozen=True)
class Line:
    stream: str
    text: str


@dataclass(frozen=True)
class _EndOfStream:
    stream: str
    error: Optional[BaseException] = None


def iter_lines(stream: BinaryIO) -> Iterator[str]:
    """
    Yield decoded lines without their terminator ("\\n" or "\\r\\n").
    A final unterminated line is yielded once at EOF; invalid UTF-8 is replaced.
    """
    for raw in iter(stream.readline, b""):
        if raw.endswith(b"\n"):
            raw = raw[:-1]
            if raw.endswith(b"\r"):
                raw = raw[:-1]
        yield raw.decode("utf-8", errors="replace")


def _pump(stream_name: str, stream: BinaryIO, q: "queue.Queue[Union[Line, _EndOfStream]]") -> None:
    error: Optional[BaseException] = None
    try:
        for text in iter_lines(stream):
            q.put(Line(stream_name, text))
    except (OSError, ValueError) as e:
        error = e
    finally:
        try:
            stream.close()
        except OSError:
            pass
        q.put(_EndOfStream(stream_name, error))


class StreamInterleaver:
    """
    Drains a child's stdout and stderr concurrently.

    One reader thread per pipe pushes lines into a bounded queue; the calling
    thread is the only consumer and the only writer to the sinks. Lines are
    handled in the order they come off the queue: per-stream order is kept,
    cross-stream order is whatever the OS delivered first.
    """

    def __init__(
        self,
        route: Callable[[str], Sequence[Sink]],
        *,
        tee: bool = True,
        timestamp_each_line: bool = True,
        plain_lines: bool = False,
        terminal_out: Optional[TextIO] = None,
        terminal_err: Optional[TextIO] = None,
        queue_size: int = DEFAULT_QUEUE_SIZE,
    ):
        self._route = route
        self._tee = tee
        self._timestamp_each_line = timestamp_each_line
        self._plain_lines = plain_lines
        self._terminal_out = terminal_out
        self._terminal_err = terminal_err
        self._queue_size = queue_size
        self.counts: Dict[str, int] = {STREAM_STDOUT: 0, STREAM_STDERR: 0}

    def _terminal(self, stream_name: str) -> TextIO:
        if stream_name == STREAM_STDERR:
            return self._terminal_err if self._terminal_err is not None else sys.stderr
        return self._terminal_out if self._terminal_out is not None else sys.stdout

    def dispatch(self, line: Line) -> None:
        if self._tee:
            term = self._terminal(line.stream)
            term.write(line.text + "\n")
            term.flush()
        formatted = format_line(line.stream, line.text, self._timestamp_each_line, self._plain_lines)
        for sink in self._route(line.stream):
            sink.append_text(formatted)
        self.counts[line.stream] += 1

    def drain(self, stdout: BinaryIO, stderr: BinaryIO) -> Dict[str, int]:
        """
        Block until both pipes reach EOF, dispatching every line exactly once.
        Returns per-stream line counts.
        """
        q: "queue.Queue[Union[Line, _EndOfStream]]" = queue.Queue(maxsize=self._queue_size)
        readers: List[threading.Thread] = []
        for name, stream in ((STREAM_STDOUT, stdout), (STREAM_STDERR, stderr)):
            t = threading.Thread(target=_pump, args=(name, stream, q), name=f"lg-{name.lower()}-reader", daemon=True)
            t.start()
            readers.append(t)

        open_streams = {STREAM_STDOUT, STREAM_STDERR}
        while open_streams:
            item = q.get()
            if isinstance(item, _EndOfStream):
                open_streams.discard(item.stream)
                if item.error is not None:
                    raise CaptureError(
                        code="capture.read_failed",
                        message=f"Failed reading child {item.stream}",
                        data={"stream": item.stream, "error": repr(item.error)},
                    ) from item.error
                continue
            self.dispatch(item)

        for t in readers:
            t.join()
        return dict(self.counts)
