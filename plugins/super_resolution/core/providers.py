"""Execution providers the inference runtime can run the model on."""

from __future__ import annotations

import platform
import sys
from enum import Enum
from typing import Any, Iterable

from .errors import ProviderError

CPU_PROVIDER_NAME = "CPUExecutionProvider"


class ExecutionProvider(str, Enum):
    CPU = "CPU"
    NNAPI = "NNAPI"
    COREML = "CoreML"
    XNNPACK = "XNNPACK"

    @property
    def ort_name(self) -> str:
        return _ORT_NAMES[self]


_ORT_NAMES = {
    ExecutionProvider.CPU: CPU_PROVIDER_NAME,
    ExecutionProvider.NNAPI: "NnapiExecutionProvider",
    ExecutionProvider.COREML: "CoreMLExecutionProvider",
    ExecutionProvider.XNNPACK: "XnnpackExecutionProvider",
}

_ARM_MACHINES = {"arm64", "aarch64", "armv7l", "armv8l", "arm"}


def parse_provider(value: str | ExecutionProvider | None) -> ExecutionProvider:
    """Look up a provider by name, ignoring case. ``None`` means CPU."""

    if isinstance(value, ExecutionProvider):
        return value
    if value is None or str(value).strip() == "":
        return ExecutionProvider.CPU
    normalized = str(value).strip().lower()
    for provider in ExecutionProvider:
        if normalized in {provider.value.lower(), provider.ort_name.lower()}:
            return provider
    raise ProviderError(f"Unknown execution provider '{value}'")


def _platform_allows(provider: ExecutionProvider, system: str, machine: str) -> bool:
    if provider is ExecutionProvider.CPU:
        return True
    if provider is ExecutionProvider.NNAPI:
        return system == "android"
    if provider is ExecutionProvider.COREML:
        return system in {"ios", "darwin"}
    # XNNPACK targets ARM CPUs
    return machine in _ARM_MACHINES


def available_providers(
    runtime_providers: Iterable[str] | None = None,
    *,
    system: str | None = None,
    machine: str | None = None,
) -> list[ExecutionProvider]:
    """Providers selectable on this machine, CPU first.

    A provider is offered when the platform supports it and the installed
    ONNX Runtime build reports it. ``runtime_providers`` defaults to
    ``onnxruntime.get_available_providers()``.
    """

    if runtime_providers is None:
        from .engine import runtime_providers as _runtime_providers

        runtime_providers = _runtime_providers()
    reported = set(runtime_providers)
    system = (system or sys.platform).lower()
    machine = (machine or platform.machine()).lower()

    options = [ExecutionProvider.CPU]
    for provider in ExecutionProvider:
        if provider is ExecutionProvider.CPU:
            continue
        if _platform_allows(provider, system, machine) and provider.ort_name in reported:
            options.append(provider)
    return options


def session_providers(
    provider: ExecutionProvider, *, intra_op_threads: int = 0
) -> tuple[list[str], list[dict[str, Any]]]:
    """Return ``(providers, provider_options)`` for ``InferenceSession``.

    Non-CPU providers get the CPU provider appended so nodes they cannot run
    fall back to it.
    """

    if provider is ExecutionProvider.CPU:
        return [CPU_PROVIDER_NAME], [{}]
    options: dict[str, Any] = {}
    if provider is ExecutionProvider.XNNPACK and intra_op_threads > 0:
        options["intra_op_num_threads"] = str(intra_op_threads)
    return [provider.ort_name, CPU_PROVIDER_NAME], [options, {}]


__all__ = [
    "CPU_PROVIDER_NAME",
    "ExecutionProvider",
    "available_providers",
    "parse_provider",
    "session_providers",
]
