from __future__ import annotations

from pathlib import Path

from .config import COMPRESS_GZ, Config
from .template import RenderContext, render_template


LOG_EXT = ".log"
GZ_EXT = ".gz"
OUT_SUFFIX = ".out.log"
ERR_SUFFIX = ".err.log"
PARTIAL_SUFFIX = ".partial"
FALLBACK_NAME = "lg"


def render_name(cfg: Config, ctx: RenderContext) -> str:
    name = render_template(
        cfg.filename_template,
        ctx,
        sanitize=cfg.sanitize_filename,
        include_args_in_name=cfg.include_args_in_name,
    )
    return name or FALLBACK_NAME


def compression_suffix(cfg: Config) -> str:
    return GZ_EXT if cfg.compress == COMPRESS_GZ else ""


def combined_file_name(rendered: str, cfg: Config) -> str:
    """
    "x" -> "x.log"; "x.txt" stays; ".gz" is appended for gzip unless present.
    """
    name = rendered if Path(rendered).suffix else rendered + LOG_EXT
    gz = compression_suffix(cfg)
    if gz and not name.endswith(gz):
        name += gz
    return name


def split_stem(rendered: str) -> str:
    for ext in (LOG_EXT + GZ_EXT, LOG_EXT, GZ_EXT):
        if rendered.endswith(ext) and len(rendered) > len(ext):
            return rendered[: -len(ext)]
    return rendered


def split_file_name(rendered: str, stream_suffix: str, cfg: Config) -> str:
    return split_stem(rendered) + stream_suffix + compression_suffix(cfg)


def temp_file_name(name: str) -> str:
    return f".{name}{PARTIAL_SUFFIX}"
