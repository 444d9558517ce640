"""ONNX Runtime powered super-resolution sessions."""

from __future__ import annotations

from dataclasses import dataclass
from functools import partial
from pathlib import Path
from typing import Any, Callable, Sequence

import numpy as np
from PIL import Image

from common.imaging import ImageDecodeError, decode_image, image_to_bytes, prepare_rgb
from common.logging import get_logger

from .errors import (
    SuperResolutionInputError,
    SuperResolutionModelError,
    SuperResolutionUnavailableError,
)
from .providers import ExecutionProvider, session_providers

ORT_AVAILABLE = False
IMPORT_ERROR: str | None = None

try:  # Optional dependency (heavy)
    import onnxruntime as ort

    ORT_AVAILABLE = True
except Exception as exc:  # pragma: no cover - exercised in integration
    IMPORT_ERROR = repr(exc)

EXTENSIONS_AVAILABLE = False

try:  # Only needed by models with embedded pre/post processing
    from onnxruntime_extensions import get_library_path as extensions_library_path

    EXTENSIONS_AVAILABLE = True
except Exception:  # pragma: no cover - exercised in integration
    extensions_library_path = None

MODEL_KINDS = {"tensor", "bytes"}

_GRAPH_LEVELS = {
    "disabled": "ORT_DISABLE_ALL",
    "basic": "ORT_ENABLE_BASIC",
    "extended": "ORT_ENABLE_EXTENDED",
    "all": "ORT_ENABLE_ALL",
}

logger = get_logger("engine")


@dataclass(frozen=True)
class ModelSpec:
    """Where the model lives and which I/O convention it follows.

    ``kind="tensor"`` models take a ``[1, 1, H, W]`` float Y channel and return
    the upscaled Y channel. ``kind="bytes"`` models embed their own image
    decoding and encoding (onnxruntime-extensions custom ops) and map encoded
    image bytes to encoded image bytes.
    """

    name: str
    path: Path
    kind: str = "tensor"
    input_name: str | None = None
    output_name: str | None = None
    input_size: int = 224
    output_format: str = "png"


def is_available() -> bool:
    return ORT_AVAILABLE


def import_error() -> str | None:
    return IMPORT_ERROR


def runtime_providers() -> list[str]:
    if not ORT_AVAILABLE:
        return []
    return list(ort.get_available_providers())


def _graph_level(name: str) -> Any:
    attr = _GRAPH_LEVELS.get((name or "all").lower(), "ORT_ENABLE_ALL")
    return getattr(ort.GraphOptimizationLevel, attr)


def _fixed_hw(shape: Sequence[Any]) -> tuple[int, int] | None:
    if len(shape) != 4:
        return None
    height, width = shape[2], shape[3]
    if isinstance(height, int) and isinstance(width, int) and height > 0 and width > 0:
        return height, width
    return None


def _fit_aspect(size: tuple[int, int], aspect: tuple[int, int]) -> tuple[int, int]:
    """Largest size inside ``size`` with the aspect ratio of ``aspect``."""

    box_w, box_h = size
    src_w, src_h = aspect
    if src_w * box_h >= src_h * box_w:
        return box_w, max(1, round(box_w * src_h / src_w))
    return max(1, round(box_h * src_w / src_h)), box_h


class OrtSuperResolutionSession:
    """A loaded model bound to one execution provider."""

    def __init__(self, spec: ModelSpec, provider: ExecutionProvider, session: Any):
        self.spec = spec
        self.provider = provider
        self._session = session
        inputs = session.get_inputs()
        outputs = session.get_outputs()
        self.input_name = spec.input_name or inputs[0].name
        self.output_name = spec.output_name or outputs[0].name
        self.input_hw = _fixed_hw(inputs[0].shape) if spec.kind == "tensor" else None

    @property
    def active_providers(self) -> list[str]:
        return list(self._session.get_providers())

    def run(self, data: bytes) -> bytes:
        if self.spec.kind == "bytes":
            return self._run_bytes(data)
        return self._run_tensor(data)

    def _run_bytes(self, data: bytes) -> bytes:
        if not data:
            raise SuperResolutionInputError("Image stream is empty")
        tensor = np.frombuffer(data, dtype=np.uint8)
        outputs = self._session.run([self.output_name], {self.input_name: tensor})
        return np.asarray(outputs[0], dtype=np.uint8).tobytes()

    def _model_input_size(self, image: Image.Image) -> tuple[int, int]:
        if self.input_hw is not None:
            height, width = self.input_hw
            return width, height
        if self.spec.input_size > 0:
            return self.spec.input_size, self.spec.input_size
        return image.size

    def _run_tensor(self, data: bytes) -> bytes:
        try:
            image = prepare_rgb(decode_image(data))
        except ImageDecodeError as exc:
            raise SuperResolutionInputError(str(exc)) from exc

        model_size = self._model_input_size(image)
        resized = image.resize(model_size, Image.BICUBIC) if image.size != model_size else image
        y, cb, cr = resized.convert("YCbCr").split()
        tensor = (np.asarray(y, dtype=np.float32) / 255.0)[np.newaxis, np.newaxis, :, :]

        outputs = self._session.run([self.output_name], {self.input_name: tensor})
        result = np.asarray(outputs[0])
        if result.ndim != 4 or result.shape[0] != 1 or result.shape[1] != 1:
            raise SuperResolutionModelError(
                f"Unexpected model output shape {tuple(result.shape)}; expected (1, 1, H, W)"
            )

        y_out = Image.fromarray(np.clip(result[0, 0] * 255.0, 0, 255).round().astype(np.uint8))
        out_size = y_out.size
        merged = Image.merge(
            "YCbCr",
            [y_out, cb.resize(out_size, Image.BICUBIC), cr.resize(out_size, Image.BICUBIC)],
        ).convert("RGB")
        if resized is not image:
            # undo the squeeze into the fixed model input
            merged = merged.resize(_fit_aspect(out_size, image.size), Image.BICUBIC)
        return image_to_bytes(merged, self.spec.output_format)


def create_session(
    spec: ModelSpec,
    provider: ExecutionProvider,
    *,
    intra_op_threads: int = 0,
    graph_optimization: str = "all",
) -> OrtSuperResolutionSession:
    """Load ``spec`` into a new ONNX Runtime session on ``provider``.

    This reloads the model from disk every time, so callers keep the session
    and only recreate it when the provider changes.
    """

    if not ORT_AVAILABLE:
        raise SuperResolutionUnavailableError(
            "ONNX Runtime is unavailable. Install onnxruntime."
        )
    if spec.kind not in MODEL_KINDS:
        raise SuperResolutionModelError(f"Unsupported model kind '{spec.kind}'")
    if not spec.path.exists():
        raise SuperResolutionModelError(f"Missing model file: {spec.path}")

    options = ort.SessionOptions()
    options.graph_optimization_level = _graph_level(graph_optimization)
    if provider is ExecutionProvider.XNNPACK:
        # XNNPACK owns its thread pool; keep ORT's pool from competing with it
        options.intra_op_num_threads = 1
        options.add_session_config_entry("session.intra_op.allow_spinning", "0")
    elif intra_op_threads > 0:
        options.intra_op_num_threads = intra_op_threads

    if spec.kind == "bytes":
        if not EXTENSIONS_AVAILABLE:
            raise SuperResolutionUnavailableError(
                f"Model '{spec.name}' needs onnxruntime-extensions. Install onnxruntime-extensions."
            )
        options.register_custom_ops_library(extensions_library_path())

    providers, provider_options = session_providers(provider, intra_op_threads=intra_op_threads)
    try:
        session = ort.InferenceSession(
            str(spec.path),
            sess_options=options,
            providers=providers,
            provider_options=provider_options,
        )
    except Exception as exc:
        raise SuperResolutionModelError(
            f"Failed to create {provider.value} session for '{spec.name}': {exc}"
        ) from exc

    logger.info(
        "loaded model %s with providers %s", spec.name, ", ".join(session.get_providers())
    )
    return OrtSuperResolutionSession(spec, provider, session)


SessionFactory = Callable[[ExecutionProvider], Any]


def make_session_factory(
    spec: ModelSpec, *, intra_op_threads: int = 0, graph_optimization: str = "all"
) -> SessionFactory:
    return partial(
        create_session,
        spec,
        intra_op_threads=intra_op_threads,
        graph_optimization=graph_optimization,
    )


__all__ = [
    "MODEL_KINDS",
    "ModelSpec",
    "OrtSuperResolutionSession",
    "SessionFactory",
    "create_session",
    "import_error",
    "is_available",
    "make_session_factory",
    "runtime_providers",
]
