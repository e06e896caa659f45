from __future__ import annotations

from pathlib import Path

from lg.sinks import ROLE_COMBINED, SinkHandle

from .config import Config
from .errors import FinalizeError
from .naming import combined_file_name, render_name, split_file_name
from .template import RenderContext


class Finalizer:
    """
    Moves logs written under a temporary name to the name rendered with the
    child's exit code. Never overwrites an existing file.
    """

    def __init__(self, cfg: Config, ctx: RenderContext, out_dir: Path):
        self._cfg = cfg
        self._ctx = ctx
        self._out_dir = out_dir

    def final_path(self, handle: SinkHandle, exit_code: int) -> Path:
        rendered = render_name(self._cfg, self._ctx.with_exit_code(exit_code))
        if handle.role == ROLE_COMBINED:
            name = combined_file_name(rendered, self._cfg)
        else:
            name = split_file_name(rendered, handle.suffix, self._cfg)
        return self._out_dir / name

    def finalize(self, handle: SinkHandle, exit_code: int) -> Path:
        """
        Rename `handle.path` to its final name and return the path now holding
        the log. No-op when the name does not depend on the exit code.
        """
        if not handle.needs_rename:
            return handle.path

        src = handle.path
        dst = self.final_path(handle, exit_code)
        # Existence check then rename; the race with another writer is accepted.
        if dst.exists():
            raise FinalizeError(
                code="finalize.dst_exists",
                message=f"Destination exists, keeping {src}",
                data={"from": str(src), "to": str(dst)},
            )
        try:
            src.rename(dst)
        except OSError as e:
            raise FinalizeError(
                code="finalize.rename_failed",
                message=f"Rename failed, keeping {src}",
                data={"from": str(src), "to": str(dst), "error": repr(e)},
            ) from e
        handle.path = dst
        handle.needs_rename = False
        return dst
