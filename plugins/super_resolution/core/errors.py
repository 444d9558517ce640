"""Exceptions raised by the super-resolution core."""

from __future__ import annotations


class SuperResolutionError(RuntimeError):
    """Base error for super-resolution failures."""


class SuperResolutionUnavailableError(SuperResolutionError):
    """Raised when ONNX Runtime (or a needed extension) is not installed."""


class SuperResolutionModelError(SuperResolutionError):
    """Raised when the model file is missing or cannot be loaded."""


class SuperResolutionInputError(SuperResolutionError):
    """Raised when the input image is invalid."""


class ProviderError(SuperResolutionError):
    """Raised for unknown or unavailable execution providers."""


class SelectorBusyError(SuperResolutionError):
    """Raised when a provider is selected while a session is still being created."""


__all__ = [
    "SuperResolutionError",
    "SuperResolutionUnavailableError",
    "SuperResolutionModelError",
    "SuperResolutionInputError",
    "ProviderError",
    "SelectorBusyError",
]
