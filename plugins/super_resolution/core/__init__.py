"""Super resolution core functionality."""

from .acquisition import AcquisitionMode, ImageAcquirer, mode_from_text, normalize_image, synthetic_sample
from .controller import RESULT_CAPTION, RUNNING_CAPTION, Alert, RunResult, SuperResolutionPage
from .engine import (
    ModelSpec,
    OrtSuperResolutionSession,
    create_session,
    import_error,
    is_available,
    make_session_factory,
    runtime_providers,
)
from .errors import (
    ProviderError,
    SelectorBusyError,
    SuperResolutionError,
    SuperResolutionInputError,
    SuperResolutionModelError,
    SuperResolutionUnavailableError,
)
from .lifecycle import SessionLifecycle, SessionState
from .providers import ExecutionProvider, available_providers, parse_provider, session_providers
from .settings import SuperResolutionSettings, load_settings

__all__ = [
    "AcquisitionMode",
    "Alert",
    "ExecutionProvider",
    "ImageAcquirer",
    "ModelSpec",
    "OrtSuperResolutionSession",
    "ProviderError",
    "RESULT_CAPTION",
    "RUNNING_CAPTION",
    "RunResult",
    "SelectorBusyError",
    "SessionLifecycle",
    "SessionState",
    "SuperResolutionError",
    "SuperResolutionInputError",
    "SuperResolutionModelError",
    "SuperResolutionPage",
    "SuperResolutionSettings",
    "SuperResolutionUnavailableError",
    "available_providers",
    "create_session",
    "import_error",
    "is_available",
    "load_settings",
    "make_session_factory",
    "mode_from_text",
    "normalize_image",
    "parse_provider",
    "runtime_providers",
    "session_providers",
    "synthetic_sample",
]
