from __future__ import annotations

import dataclasses
import json
import os
import sys
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Dict, Optional

import jsonschema
import yaml

from lg.resources import config_schema_path, config_template_path

from .errors import ConfigError


DEFAULT_FILENAME_TEMPLATE = "{cmd}_{date}_{time}.log"
DEFAULT_DATE_FORMAT = "%Y-%m-%d"
DEFAULT_TIME_FORMAT = "%H-%M-%S"

COMPRESS_NONE = "none"
COMPRESS_GZ = "gz"
_COMPRESS_ALIASES = {"none": COMPRESS_NONE, "": COMPRESS_NONE, "gz": COMPRESS_GZ, "gzip": COMPRESS_GZ}


@dataclass(frozen=True)
class Config:
    """
    Fully resolved policy for one run (config file merged with CLI overrides).
    """

    output_dir: Optional[Path] = None
    include_args_in_name: bool = False
    include_full_args: bool = True
    sanitize_filename: bool = True
    filename_template: str = DEFAULT_FILENAME_TEMPLATE
    date_format: str = DEFAULT_DATE_FORMAT
    time_format: str = DEFAULT_TIME_FORMAT
    timestamp_each_line: bool = True
    plain_lines: bool = False
    combine_streams: bool = True
    split_streams: bool = False
    tee: bool = True
    log_env: bool = False
    compress: str = COMPRESS_NONE
    trace_path: Optional[Path] = None

    @property
    def split(self) -> bool:
        return self.split_streams or not self.combine_streams

    @property
    def needs_rename(self) -> bool:
        return "{exit_code}" in self.filename_template


def normalize_compress(value: str) -> str:
    v = value.strip().lower()
    if v not in _COMPRESS_ALIASES:
        raise ConfigError(code="config.invalid", message=f"Unknown compression: {value!r} (expected none|gz)", data={"compress": value})
    return _COMPRESS_ALIASES[v]


def default_config_path() -> Path:
    """
    Default per-user config location.

    - If LG_CONFIG is set, use it.
    - Else if XDG_CONFIG_HOME is set, use it.
    - Else use ~/.config
    """
    explicit = os.environ.get("LG_CONFIG")
    if isinstance(explicit, str) and explicit.strip():
        return Path(explicit).expanduser()
    base = os.environ.get("XDG_CONFIG_HOME")
    if isinstance(base, str) and base.strip():
        return Path(base).expanduser() / "lg" / "config.yml"
    return Path("~/.config").expanduser() / "lg" / "config.yml"


def ensure_config_file(path: Path) -> bool:
    """
    Write the commented default config if `path` does not exist yet.
    Returns True when the file exists afterwards.
    """
    if path.exists():
        return True
    try:
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_text(config_template_path().read_text(encoding="utf-8"), encoding="utf-8")
    except OSError as e:
        print(f"lg: warning: failed to create default config at {path}: {e}", file=sys.stderr)
        return False
    return True


def validate_config_mapping(raw: Any) -> None:
    schema = json.loads(config_schema_path().read_text(encoding="utf-8"))
    validator = jsonschema.Draft202012Validator(schema)
    errors = [e.message for e in sorted(validator.iter_errors(raw), key=str)]
    if errors:
        raise ConfigError(code="config.invalid", message="Config does not validate against config.schema.json", data={"errors": errors})


def config_from_mapping(raw: Dict[str, Any]) -> Config:
    validate_config_mapping(raw)
    kwargs: Dict[str, Any] = dict(raw)
    for key in ("output_dir", "trace_path"):
        v = kwargs.get(key)
        kwargs[key] = Path(v).expanduser() if isinstance(v, str) and v else None
    if "compress" in kwargs:
        kwargs["compress"] = normalize_compress(kwargs["compress"])
    return Config(**kwargs)


def load_config(path: Optional[Path] = None, *, create_missing: bool = True) -> Config:
    """
    Load the YAML config file, creating the default one on first use.
    A missing file yields the built-in defaults.
    """
    p = path.expanduser() if path is not None else default_config_path()
    if create_missing and path is None:
        ensure_config_file(p)
    if not p.exists():
        return Config()
    try:
        raw = yaml.safe_load(p.read_text(encoding="utf-8"))
    except yaml.YAMLError as e:
        raise ConfigError(code="config.invalid_yaml", message=f"Config is not valid YAML: {p}", data={"error": repr(e)}) from e
    except OSError as e:
        raise ConfigError(code="config.unreadable", message=f"Cannot read config: {p}", data={"error": repr(e)}) from e
    if raw is None:
        return Config()
    if not isinstance(raw, dict):
        raise ConfigError(code="config.invalid", message="Config must be a YAML mapping/object at top-level")
    return config_from_mapping(raw)


def apply_overrides(
    cfg: Config,
    *,
    output: Optional[Path] = None,
    filename_template: Optional[str] = None,
    include_args: bool = False,
    split_streams: bool = False,
    plain_lines: bool = False,
    no_timestamps: bool = False,
    compress: Optional[str] = None,
    no_tee: bool = False,
    log_env: bool = False,
    trace_path: Optional[Path] = None,
) -> Config:
    """
    Merge command-line overrides into a loaded config. Flags only ever switch a
    policy on (or tee/timestamps off); absent flags keep the config value.
    """
    changes: Dict[str, Any] = {}
    if output is not None:
        changes["output_dir"] = output
    if filename_template:
        changes["filename_template"] = filename_template
    if include_args:
        changes["include_args_in_name"] = True
    if split_streams:
        changes["split_streams"] = True
        changes["combine_streams"] = False
    if plain_lines:
        changes["plain_lines"] = True
    if no_timestamps:
        changes["timestamp_each_line"] = False
    if compress is not None:
        try:
            changes["compress"] = normalize_compress(compress)
        except ConfigError:
            print(f"lg: warning: unknown --compress value {compress!r}, using 'none'", file=sys.stderr)
            changes["compress"] = COMPRESS_NONE
    if no_tee:
        changes["tee"] = False
    if log_env:
        changes["log_env"] = True
    if trace_path is not None:
        changes["trace_path"] = trace_path
    return dataclasses.replace(cfg, **changes)
