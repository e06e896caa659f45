from __future__ import annotations

import argparse
import json
import sys
from pathlib import Path
from typing import List, Optional

from lg import __version__
from lg.core.config import apply_overrides, load_config
from lg.core.errors import LgError, SetupError
from lg.core.session import run_logged


# Exit codes for failures of lg itself (the child's own code is passed through).
WRAPPER_FAILURE_EXIT_CODE = 125
COMMAND_NOT_FOUND_EXIT_CODE = 127
USAGE_EXIT_CODE = 2


def _format_cli_error(e: Exception) -> str:
    """
    Print-friendly error formatting.
    - Always includes code/message (via __str__) when it's an LgError
    - Includes structured `data` payload when present
    """
    if isinstance(e, LgError) and isinstance(e.data, dict) and e.data:
        return "lg: " + str(e) + "\n" + json.dumps(e.data, ensure_ascii=False, indent=2)
    return f"lg: {e}"


def normalize_command(command: List[str]) -> List[str]:
    if command and command[0] == "--":
        return command[1:]
    return command


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="lg", description="Log any command's output and metadata")
    parser.add_argument("--version", action="version", version=f"lg {__version__}")
    parser.add_argument("--config", help="Config file (YAML). Default: $LG_CONFIG or XDG config")
    parser.add_argument("--output", help="Override output directory")
    parser.add_argument("--filename-template", help="Override filename template, e.g. '{cmd}_{date}_{exit_code}.log'")
    parser.add_argument("-a", "--include-args", action="store_true", help="Include arguments in filename")
    parser.add_argument("--split-streams", action="store_true", help="Split stdout/stderr into separate files")
    parser.add_argument("--plain-lines", action="store_true", help="Write logged lines without timestamps or stream markers")
    parser.add_argument("--no-timestamps", action="store_true", help="Do not prefix logged lines with a timestamp")
    parser.add_argument("--compress", help="Compress logs: none|gz")
    parser.add_argument("--no-tee", action="store_true", help="Disable tee to terminal")
    parser.add_argument("--log-env", action="store_true", help="Record environment variables in the log header")
    parser.add_argument("--trace", help="Append run events to this JSONL file")
    parser.add_argument("cmd", nargs=argparse.REMAINDER, help="The command and its arguments to run")
    return parser


def main(argv: Optional[List[str]] = None) -> int:
    parser = build_parser()
    ns = parser.parse_args(argv)

    command = normalize_command(list(ns.cmd))
    if not command:
        print("lg: missing command (usage: lg [options] <command> [args...])", file=sys.stderr)
        return USAGE_EXIT_CODE

    try:
        cfg = load_config(Path(ns.config) if ns.config else None)
        cfg = apply_overrides(
            cfg,
            output=Path(ns.output).expanduser() if ns.output else None,
            filename_template=ns.filename_template,
            include_args=ns.include_args,
            split_streams=ns.split_streams,
            plain_lines=ns.plain_lines,
            no_timestamps=ns.no_timestamps,
            compress=ns.compress,
            no_tee=ns.no_tee,
            log_env=ns.log_env,
            trace_path=Path(ns.trace).expanduser() if ns.trace else None,
        )
        result = run_logged(cfg, command[0], command[1:])
    except SetupError as e:
        print(_format_cli_error(e), file=sys.stderr)
        if e.code == "spawn.not_found":
            return COMMAND_NOT_FOUND_EXIT_CODE
        return WRAPPER_FAILURE_EXIT_CODE
    except Exception as e:  # noqa: BLE001
        print(_format_cli_error(e), file=sys.stderr)
        return WRAPPER_FAILURE_EXIT_CODE
    return result.exit_code


if __name__ == "__main__":
    raise SystemExit(main())
