from .errors import CaptureError, ConfigError, FinalizeError, LgError, SetupError, SinkWriteError
from .config import Config, load_config, apply_overrides
from .template import RenderContext, build_render_context, render_template

__all__ = [
  "CaptureError",
  "ConfigError",
  "FinalizeError",
  "LgError",
  "SetupError",
  "SinkWriteError",
  "Config",
  "load_config",
  "apply_overrides",
  "RenderContext",
  "build_render_context",
  "render_template",
]
