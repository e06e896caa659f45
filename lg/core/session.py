from __future__ import annotations

import signal
import sys
import threading
import uuid
from contextlib import contextmanager
from dataclasses import dataclass
from pathlib import Path
from typing import Callable, Dict, Iterator, List, Mapping, Optional, Sequence, TextIO, Tuple

from lg.sinks import ROLE_COMBINED, ROLE_STDERR, ROLE_STDOUT, Sink, SinkHandle, open_sink
from lg.trace import run_trace

from .config import Config
from .errors import FinalizeError, LgError, SetupError, SinkWriteError
from .finalizer import Finalizer
from .formatting import STREAM_STDERR, STREAM_STDOUT, format_trailer, write_header
from .interleaver import StreamInterleaver
from .naming import ERR_SUFFIX, OUT_SUFFIX, combined_file_name, render_name, split_file_name, temp_file_name
from .runner import ProcessRunner
from .template import RenderContext, build_render_context


@contextmanager
def _interrupts_deferred_to_child() -> Iterator[None]:
    """
    Ignore SIGINT in lg while the child runs. The terminal delivers Ctrl-C to
    the child too; lg keeps draining until EOF and logs the resulting exit.
    Must be entered after spawn, since an ignored disposition is inherited.
    """
    if threading.current_thread() is not threading.main_thread():
        yield
        return
    previous = signal.signal(signal.SIGINT, signal.SIG_IGN)
    if previous is None:
        previous = signal.SIG_DFL
    try:
        yield
    finally:
        signal.signal(signal.SIGINT, previous)


@dataclass(frozen=True)
class RunResult:
    exit_code: int
    paths: Tuple[Path, ...]


class LogSession:
    """
    One logged run: plan paths -> open sinks -> headers -> spawn -> drain ->
    wait -> trailers -> close -> finalize.

    Setup, capture and write errors propagate (LgError subclasses); rename
    failures at the end only produce a warning.
    """

    def __init__(
        self,
        cfg: Config,
        command: str,
        args: Sequence[str] = (),
        *,
        ctx: Optional[RenderContext] = None,
        terminal_out: Optional[TextIO] = None,
        terminal_err: Optional[TextIO] = None,
        environ: Optional[Mapping[str, str]] = None,
        run_id: Optional[str] = None,
    ):
        self._cfg = cfg
        self._argv = [command, *args]
        self._ctx = ctx or build_render_context(cfg, command, args)
        self._terminal_out = terminal_out
        self._terminal_err = terminal_err
        self._environ = environ
        store = run_trace.TraceStoreJSONL(cfg.trace_path) if cfg.trace_path is not None else None
        self._trace = run_trace.TraceEmitter(store=store, run_id=run_id or f"run_{uuid.uuid4().hex[:12]}")

    @property
    def context(self) -> RenderContext:
        return self._ctx

    def output_dir(self) -> Path:
        if self._cfg.output_dir is not None:
            return self._cfg.output_dir
        return Path(self._ctx.cwd)

    def plan(self, out_dir: Path) -> List[Tuple[str, Path, str]]:
        """
        Return (role, path to open, stream suffix) per sink. Names depending on
        {exit_code} get a hidden temporary variant.
        """
        rendered = render_name(self._cfg, self._ctx)
        if self._cfg.split:
            specs = [
                (ROLE_STDOUT, split_file_name(rendered, OUT_SUFFIX, self._cfg), OUT_SUFFIX),
                (ROLE_STDERR, split_file_name(rendered, ERR_SUFFIX, self._cfg), ERR_SUFFIX),
            ]
        else:
            specs = [(ROLE_COMBINED, combined_file_name(rendered, self._cfg), "")]
        out = []
        for role, name, suffix in specs:
            if self._cfg.needs_rename:
                name = temp_file_name(name)
            out.append((role, out_dir / name, suffix))
        return out

    def _open_handles(self, out_dir: Path) -> List[SinkHandle]:
        handles: List[SinkHandle] = []
        try:
            for role, path, suffix in self.plan(out_dir):
                sink = open_sink(path, self._cfg.compress)
                handles.append(SinkHandle(role=role, sink=sink, path=path, needs_rename=self._cfg.needs_rename, suffix=suffix))
        except SetupError:
            self._discard(handles)
            raise
        return handles

    @staticmethod
    def _router(handles: Sequence[SinkHandle]) -> Callable[[str], Sequence[Sink]]:
        by_role: Dict[str, Sink] = {h.role: h.sink for h in handles}
        if ROLE_COMBINED in by_role:
            combined = [by_role[ROLE_COMBINED]]
            return lambda _stream: combined
        routes = {STREAM_STDOUT: [by_role[ROLE_STDOUT]], STREAM_STDERR: [by_role[ROLE_STDERR]]}
        return lambda stream: routes[stream]

    @staticmethod
    def _close_after_failure(handles: Sequence[SinkHandle]) -> None:
        # The first error is what gets reported; keep closing the rest so
        # whatever was written stays readable.
        for h in handles:
            try:
                h.sink.flush_and_close()
            except SinkWriteError as e:
                print(f"lg: warning: {e}", file=sys.stderr)

    def _discard(self, handles: Sequence[SinkHandle]) -> None:
        self._close_after_failure(handles)
        for h in handles:
            try:
                h.path.unlink()
            except FileNotFoundError:
                pass
            except OSError as e:
                print(f"lg: warning: could not remove {h.path}: {e}", file=sys.stderr)

    def _warn(self, e: LgError) -> None:
        print(f"lg: warning: {e}", file=sys.stderr)

    def run(self) -> RunResult:
        cfg = self._cfg
        trace = self._trace
        trace.emit(
            run_trace.RUN_STARTED,
            message="Run started",
            data={"argv": list(self._argv), "split": cfg.split, "compress": cfg.compress, "needs_rename": cfg.needs_rename},
        )

        out_dir = self.output_dir()
        try:
            out_dir.mkdir(parents=True, exist_ok=True)
        except OSError as e:
            err = SetupError(code="setup.output_dir", message=f"Cannot create output directory: {out_dir}", data={"path": str(out_dir), "error": repr(e)})
            trace.emit(run_trace.ERROR, message=str(err), data=err.data)
            raise err from e

        try:
            handles = self._open_handles(out_dir)
        except SetupError as e:
            trace.emit(run_trace.ERROR, message=str(e), data=e.data)
            raise
        trace.emit(run_trace.SINKS_OPENED, data={"paths": [str(h.path) for h in handles]})

        try:
            for h in handles:
                write_header(h.sink, self._ctx, log_env=cfg.log_env, environ=self._environ)

            runner = ProcessRunner(self._argv)
            try:
                stdout, stderr = runner.spawn()
            except SetupError:
                self._discard(handles)
                handles = []
                raise
            trace.emit(run_trace.CHILD_SPAWNED, data={"pid": runner.pid})

            interleaver = StreamInterleaver(
                self._router(handles),
                tee=cfg.tee,
                timestamp_each_line=cfg.timestamp_each_line,
                plain_lines=cfg.plain_lines,
                terminal_out=self._terminal_out,
                terminal_err=self._terminal_err,
            )
            with _interrupts_deferred_to_child():
                counts = interleaver.drain(stdout, stderr)
                trace.emit(run_trace.STREAMS_DRAINED, data={"lines": counts})
                exit_code = runner.wait()
            trace.emit(run_trace.CHILD_EXITED, data={"exit_code": exit_code})

            trailer = format_trailer(exit_code)
            for h in handles:
                h.sink.append_text(trailer)
            for h in handles:
                h.sink.flush_and_close()
        except BaseException as e:
            # Sinks are closed before tracing so a failing trace write cannot
            # leave a gzip member unfinished.
            self._close_after_failure([h for h in handles if not h.sink.closed])
            if isinstance(e, LgError):
                trace.emit(run_trace.ERROR, message=str(e), data=e.data)
            raise

        finalizer = Finalizer(cfg, self._ctx, out_dir)
        paths: List[Path] = []
        for h in handles:
            try:
                path = finalizer.finalize(h, exit_code)
            except FinalizeError as e:
                self._warn(e)
                trace.emit(run_trace.FINALIZE_FAILED, message=str(e), data=e.data)
                paths.append(h.path)
                continue
            if h.path != h.sink.path:
                trace.emit(run_trace.SINK_FINALIZED, data={"from": str(h.sink.path), "to": str(path)})
            paths.append(path)

        trace.emit(run_trace.RUN_FINISHED, message="Run finished", data={"exit_code": exit_code, "paths": [str(p) for p in paths]})
        return RunResult(exit_code=exit_code, paths=tuple(paths))


def run_logged(cfg: Config, command: str, args: Sequence[str] = (), **kwargs) -> RunResult:
    return LogSession(cfg, command, args, **kwargs).run()
