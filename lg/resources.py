from __future__ import annotations

from pathlib import Path


def schemas_dir() -> Path:
    """
    Directory with files shipped inside the package (config schema + template).
    Assumes a filesystem-backed install (wheel or editable), not a zip import.
    """
    return Path(__file__).resolve().parent / "schemas"


def config_schema_path() -> Path:
    return schemas_dir() / "config.schema.json"


def config_template_path() -> Path:
    # Written on first run when no user config exists.
    return schemas_dir() / "config.example.yml"
