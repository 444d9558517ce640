"""Configuration helpers for super-resolution."""

from __future__ import annotations

from dataclasses import dataclass
from pathlib import Path
from typing import Mapping

from common.model_store import resolve_model_path, resolve_models_root

from .engine import MODEL_KINDS, ModelSpec
from .errors import ProviderError
from .providers import ExecutionProvider, parse_provider

DEFAULT_MODEL_NAME = "super-resolution-10"
DEFAULT_MODEL_FILE = "super_resolution/super-resolution-10.onnx"
DEFAULT_SAMPLE_IMAGE = "app/ui/static/img/sample.png"


@dataclass(frozen=True)
class SuperResolutionSettings:
    enabled: bool
    preload: bool
    default_provider: ExecutionProvider
    max_upload_mb: int
    max_input_side: int
    sample_image: Path
    intra_op_threads: int
    graph_optimization: str
    model: ModelSpec


def _resolve_path(root: Path, value: str) -> Path:
    path = Path(value)
    if path.is_absolute():
        return path
    return (root / path).resolve()


def _as_int(value: object, default: int) -> int:
    if value is None or value == "":
        return default
    try:
        return int(float(value))
    except (TypeError, ValueError):
        return default


def _model_spec(raw: Mapping[str, object], *, models_root: Path) -> ModelSpec:
    name = str(raw.get("name") or DEFAULT_MODEL_NAME)
    kind = str(raw.get("kind") or "tensor").lower()
    if kind not in MODEL_KINDS:
        kind = "tensor"
    output_format = str(raw.get("output_format") or "png").lower()
    if output_format not in {"png", "jpg", "jpeg"}:
        output_format = "png"
    return ModelSpec(
        name=name,
        path=resolve_model_path(models_root, str(raw.get("path") or DEFAULT_MODEL_FILE)),
        kind=kind,
        input_name=str(raw["input_name"]) if raw.get("input_name") else None,
        output_name=str(raw["output_name"]) if raw.get("output_name") else None,
        input_size=max(0, _as_int(raw.get("input_size"), 224)),
        output_format=output_format,
    )


def load_settings(raw: Mapping[str, object] | None, *, root: Path) -> SuperResolutionSettings:
    raw = raw or {}
    max_upload_mb = raw.get("max_upload_mb")
    if max_upload_mb is None:
        upload = raw.get("upload")
        if isinstance(upload, Mapping):
            max_upload_mb = upload.get("max_mb", 20)
        else:
            max_upload_mb = 20

    try:
        default_provider = parse_provider(str(raw.get("default_provider") or "CPU"))
    except ProviderError:
        default_provider = ExecutionProvider.CPU

    model_raw = raw.get("model")
    models_root = resolve_models_root(raw, base_dir=root)
    model = _model_spec(model_raw if isinstance(model_raw, Mapping) else {}, models_root=models_root)

    return SuperResolutionSettings(
        enabled=bool(raw.get("enabled", True)),
        preload=bool(raw.get("preload", True)),
        default_provider=default_provider,
        max_upload_mb=max(1, _as_int(max_upload_mb, 20)),
        max_input_side=max(0, _as_int(raw.get("max_input_side"), 1024)),
        sample_image=_resolve_path(root, str(raw.get("sample_image") or DEFAULT_SAMPLE_IMAGE)),
        intra_op_threads=max(0, _as_int(raw.get("intra_op_threads"), 0)),
        graph_optimization=str(raw.get("graph_optimization") or "all").lower(),
        model=model,
    )


__all__ = ["SuperResolutionSettings", "load_settings"]
