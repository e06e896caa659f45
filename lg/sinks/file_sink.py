from __future__ import annotations

import gzip
import os
from dataclasses import dataclass
from pathlib import Path
from typing import BinaryIO

from lg.core.config import COMPRESS_GZ, COMPRESS_NONE
from lg.core.errors import SetupError, SinkWriteError


SINK_PLAIN = "plain"
SINK_GZ = "gz"

# zlib's default level; gzip.GzipFile would otherwise use 9.
GZ_COMPRESSLEVEL = 6


class Sink:
    """
    Append-only log file, plain or gzip-compressed.

    Exactly one writer at a time; no internal locking.
    """

    def __init__(self, kind: str, path: Path, raw: BinaryIO, writer: BinaryIO):
        self._kind = kind
        self._path = path
        self._raw = raw
        self._writer = writer
        self._closed = False

    @property
    def kind(self) -> str:
        return self._kind

    @property
    def path(self) -> Path:
        return self._path

    @property
    def closed(self) -> bool:
        return self._closed

    def append(self, data: bytes) -> None:
        try:
            self._writer.write(data)
        except (OSError, ValueError) as e:
            raise SinkWriteError(code="sink.write_failed", message=f"Failed to write log: {self._path}", data={"path": str(self._path), "error": repr(e)}) from e

    def append_text(self, text: str) -> None:
        self.append(text.encode("utf-8", errors="replace"))

    def flush_and_close(self) -> None:
        """
        Finish the compression stream (gz) and flush/close the file.
        Idempotent.
        """
        if self._closed:
            return
        self._closed = True
        try:
            try:
                if self._writer is not self._raw:
                    # Writes the gzip trailer; does not close the wrapped file.
                    self._writer.close()
                self._raw.flush()
                os.fsync(self._raw.fileno())
            finally:
                self._raw.close()
        except OSError as e:
            raise SinkWriteError(code="sink.flush_failed", message=f"Failed to flush log: {self._path}", data={"path": str(self._path), "error": repr(e)}) from e


def open_sink(path: Path, compression: str) -> Sink:
    if compression not in (COMPRESS_NONE, COMPRESS_GZ):
        raise SetupError(code="sink.invalid", message=f"Unknown compression: {compression!r}")
    try:
        raw = path.open("wb")
    except OSError as e:
        raise SetupError(code="sink.create_failed", message=f"Cannot create log file: {path}", data={"path": str(path), "error": repr(e)}) from e
    if compression == COMPRESS_GZ:
        writer = gzip.GzipFile(filename="", mode="wb", fileobj=raw, compresslevel=GZ_COMPRESSLEVEL)
        return Sink(SINK_GZ, path, raw, writer)
    return Sink(SINK_PLAIN, path, raw, raw)


ROLE_COMBINED = "combined"
ROLE_STDOUT = "stdout"
ROLE_STDERR = "stderr"


@dataclass
class SinkHandle:
    """
    One output destination for the run.

    `path` may be a hidden temporary name while `needs_rename` is set; the
    finalizer moves it to the name rendered with the exit code plus `suffix`.
    """

    role: str
    sink: Sink
    path: Path
    needs_rename: bool = False
    suffix: str = ""
