"""Helpers for resolving model file paths."""

from __future__ import annotations

import os
from pathlib import Path
from typing import Mapping

DEFAULT_ENV = "SR_STUDIO_MODEL_STORE"


def resolve_models_root(
    plugin_settings: Mapping[str, object] | None,
    *,
    base_dir: Path,
) -> Path:
    """Return the directory model files are looked up in.

    Precedence: the environment variable named by ``models_root_env`` (default
    ``SR_STUDIO_MODEL_STORE``), then ``models_root`` from the plugin settings,
    then ``models/`` under ``base_dir``.
    """

    plugin_settings = plugin_settings or {}
    env_var = str(plugin_settings.get("models_root_env") or DEFAULT_ENV)
    env_root = os.getenv(env_var)
    root = env_root or plugin_settings.get("models_root") or "models"

    root_path = Path(str(root)).expanduser()
    if not root_path.is_absolute():
        root_path = base_dir / root_path
    return root_path.resolve()


def resolve_model_path(root: Path, model_file: str) -> Path:
    path = Path(model_file).expanduser()
    if path.is_absolute():
        return path
    return root / path


__all__ = ["resolve_models_root", "resolve_model_path"]
