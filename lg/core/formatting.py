from __future__ import annotations

import os
from datetime import datetime
from typing import Mapping, Optional

from lg.sinks import Sink

from .template import RenderContext


STREAM_STDOUT = "STDOUT"
STREAM_STDERR = "STDERR"

HEADER_MARKER = "# lg log"
BEGIN_OUTPUT = "----- BEGIN OUTPUT -----"


def line_timestamp(now: Optional[datetime] = None) -> str:
    now = now or datetime.now()
    return now.strftime("%H:%M:%S.") + f"{now.microsecond // 1000:03d}"


def format_line(stream: str, text: str, timestamp_each_line: bool, plain_mode: bool) -> str:
    if plain_mode:
        return f"{text}\n"
    if timestamp_each_line:
        return f"[{line_timestamp()}][{stream}] {text}\n"
    return f"[{stream}] {text}\n"


def format_trailer(exit_code: int) -> str:
    return f"\n[exit_code] {exit_code}\n"


def render_header(ctx: RenderContext, *, log_env: bool, environ: Optional[Mapping[str, str]] = None) -> str:
    lines = [
        HEADER_MARKER,
        f"cmd: {ctx.cmd}",
    ]
    if ctx.args:
        lines.append(f"args: {ctx.args}")
    lines.append(f"date: {ctx.date} {ctx.time}")
    lines.append(f"cwd: {ctx.cwd}")
    lines.append(f"host: {ctx.hostname}")
    if log_env:
        env = os.environ if environ is None else environ
        for k, v in env.items():
            lines.append(f"env[{k}]={v}")
    lines.append(BEGIN_OUTPUT)
    return "\n".join(lines) + "\n"


def write_header(sink: Sink, ctx: RenderContext, *, log_env: bool, environ: Optional[Mapping[str, str]] = None) -> None:
    sink.append_text(render_header(ctx, log_env=log_env, environ=environ))
