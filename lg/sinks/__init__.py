from .file_sink import (
    ROLE_COMBINED,
    ROLE_STDERR,
    ROLE_STDOUT,
    SINK_GZ,
    SINK_PLAIN,
    Sink,
    SinkHandle,
    open_sink,
)

__all__ = [
  "ROLE_COMBINED",
  "ROLE_STDERR",
  "ROLE_STDOUT",
  "SINK_GZ",
  "SINK_PLAIN",
  "Sink",
  "SinkHandle",
  "open_sink",
]
