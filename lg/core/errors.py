from __future__ import annotations

from dataclasses import dataclass
from typing import Any


@dataclass(frozen=True)
class LgError(Exception):
    code: str
    message: str
    data: dict[str, Any] | None = None

    def __str__(self) -> str:
        return f"{self.code}: {self.message}"


class SetupError(LgError):
    pass


class CaptureError(LgError):
    pass


class SinkWriteError(LgError):
    pass


class FinalizeError(LgError):
    pass


class ConfigError(LgError):
    pass
