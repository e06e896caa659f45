from __future__ import annotations

import dataclasses
import os
import re
import socket
from dataclasses import dataclass
from datetime import datetime
from pathlib import Path
from typing import Dict, List, Optional, Sequence

from .config import Config


PLACEHOLDERS = ("cmd", "args", "date", "time", "ts", "hostname", "cwd", "exit_code")
EXIT_CODE_PENDING = "NA"

_TOKEN_RE = re.compile(r"\{(" + "|".join(PLACEHOLDERS) + r")\}")
_UNSAFE_RE = re.compile(r"[^A-Za-z0-9._-]")
_UNDERSCORE_RUN_RE = re.compile(r"_{2,}")


@dataclass(frozen=True)
class RenderContext:
    """
    Values available to filename templates and the log header.
    `exit_code` stays None until the child has terminated.
    """

    cmd: str
    args: str
    date: str
    time: str
    ts: str
    hostname: str
    cwd: str
    exit_code: Optional[int] = None

    def with_exit_code(self, exit_code: int) -> "RenderContext":
        return dataclasses.replace(self, exit_code=exit_code)


def resolve_hostname() -> str:
    try:
        name = socket.gethostname()
    except OSError:
        return "unknown"
    return name or "unknown"


def join_args(args: Sequence[str], include_full: bool) -> str:
    out: List[str] = []
    for a in args:
        if include_full or not a.startswith("-"):
            out.append(a)
    return " ".join(out)


def build_render_context(
    cfg: Config,
    command: str,
    args: Sequence[str],
    *,
    now: Optional[datetime] = None,
    cwd: Optional[Path] = None,
    hostname: Optional[str] = None,
) -> RenderContext:
    now = now or datetime.now().astimezone()
    if cwd is None:
        try:
            cwd = Path.cwd()
        except OSError:
            cwd = Path(".")
    return RenderContext(
        cmd=command,
        args=join_args(args, cfg.include_full_args),
        date=now.strftime(cfg.date_format),
        time=now.strftime(cfg.time_format),
        ts=str(int(now.timestamp())),
        hostname=hostname if hostname is not None else resolve_hostname(),
        cwd=os.fspath(cwd),
    )


def sanitize_component(s: str) -> str:
    """
    Replace characters outside [A-Za-z0-9._-] with "_", collapse runs of "_"
    and trim them from both ends.
    """
    out = _UNSAFE_RE.sub("_", s)
    out = _UNDERSCORE_RUN_RE.sub("_", out)
    return out.strip("_")


def _collapse_separators(s: str) -> str:
    # Applied to the whole rendered name, so it also touches separators written
    # literally in the template ("a__b" becomes "a_b").
    s = s.replace("..", ".")
    s = _UNDERSCORE_RUN_RE.sub("_", s)
    return s.strip("_.")


def render_template(template: str, ctx: RenderContext, *, sanitize: bool, include_args_in_name: bool) -> str:
    """
    Substitute the fixed placeholder set in a single left-to-right pass.

    Fields coming from the command line or the machine ({cmd}, {args},
    {hostname}, {cwd}) are sanitized before substitution; {args} renders empty
    unless include_args_in_name is set. Unknown "{...}" text is kept as is.
    """
    args = ctx.args if include_args_in_name else ""
    values: Dict[str, str] = {
        "cmd": ctx.cmd,
        "args": args,
        "date": ctx.date,
        "time": ctx.time,
        "ts": ctx.ts,
        "hostname": ctx.hostname,
        "cwd": ctx.cwd,
        "exit_code": str(ctx.exit_code) if ctx.exit_code is not None else EXIT_CODE_PENDING,
    }
    if sanitize:
        for key in ("cmd", "args", "hostname", "cwd"):
            values[key] = sanitize_component(values[key])

    parts: List[str] = []
    pos = 0
    for m in _TOKEN_RE.finditer(template):
        parts.append(template[pos : m.start()])
        parts.append(values[m.group(1)])
        pos = m.end()
    parts.append(template[pos:])
    return _collapse_separators("".join(parts))
