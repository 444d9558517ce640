"""Page controller behind the super-resolution demo page."""

from __future__ import annotations

import time
from collections import deque
from concurrent.futures import Future
from dataclasses import dataclass
from threading import Lock
from typing import Any, Callable

from common.logging import get_logger
from common.tasks import BackgroundWorker

from .acquisition import AcquisitionMode, ImageAcquirer
from .errors import ProviderError, SelectorBusyError
from .lifecycle import SessionLifecycle, SessionState
from .providers import ExecutionProvider, available_providers, parse_provider

logger = get_logger("controller")

RUNNING_CAPTION = "Running inference... please be patient"
RESULT_CAPTION = "Super Resolution Result"
MAX_ALERTS = 20


@dataclass(frozen=True)
class Alert:
    message: str
    title: str = "Error"

    def to_dict(self) -> dict[str, str]:
        return {"title": self.title, "message": self.message}


@dataclass(frozen=True)
class RunResult:
    before: bytes
    after: bytes
    provider: ExecutionProvider
    elapsed_ms: float


class SuperResolutionPage:
    """View state plus the session it exclusively owns.

    Mirrors the demo page: a provider selector, acquisition buttons, a busy
    indicator, before/after images with a caption and modal error alerts.
    """

    def __init__(
        self,
        session_factory: Callable[[ExecutionProvider], Any],
        acquirer: ImageAcquirer,
        *,
        provider_options: list[ExecutionProvider] | None = None,
        default_provider: ExecutionProvider = ExecutionProvider.CPU,
        preload: bool = True,
    ):
        self.provider_options = provider_options or available_providers()
        if default_provider not in self.provider_options:
            default_provider = ExecutionProvider.CPU
        self.acquirer = acquirer
        self.lifecycle = SessionLifecycle(session_factory, provider=default_provider)
        self._inference = BackgroundWorker("sr-inference")
        self._lock = Lock()
        self._alerts: deque[Alert] = deque(maxlen=MAX_ALERTS)
        self.selector_enabled = True
        self.busy = False
        self.before: bytes | None = None
        self.after: bytes | None = None
        self.caption = ""

        if preload:
            future = self.lifecycle.start_creation()
            future.add_done_callback(self._report_failure)

    @property
    def selected_provider(self) -> ExecutionProvider:
        return self.lifecycle.provider

    def post_alert(self, message: str) -> None:
        with self._lock:
            self._alerts.append(Alert(message=message))

    def alerts(self) -> list[Alert]:
        with self._lock:
            return list(self._alerts)

    def dismiss_alerts(self) -> int:
        with self._lock:
            count = len(self._alerts)
            self._alerts.clear()
            return count

    def _report_failure(self, future: Future) -> None:
        if future.cancelled():
            return
        exc = future.exception()
        if exc is not None:
            self.post_alert(str(exc))

    def select_provider(self, name: str | ExecutionProvider) -> Future:
        """Switch providers; the selector stays disabled until the new session resolves."""

        provider = parse_provider(name)
        if provider not in self.provider_options:
            raise ProviderError(f"{provider.value} is not available on this platform")
        with self._lock:
            if not self.selector_enabled:
                raise SelectorBusyError("A session is already being created; please wait")
            self.selector_enabled = False

        logger.info("provider selected: %s", provider.value)
        future = self.lifecycle.start_creation(provider)
        future.add_done_callback(self._creation_resolved)
        return future

    def _creation_resolved(self, future: Future) -> None:
        with self._lock:
            self.selector_enabled = True
        self._report_failure(future)

    def clear_result(self) -> None:
        with self._lock:
            self.before = None
            self.after = None
            self.caption = ""

    def run(self, mode: AcquisitionMode, upload: bytes | None = None) -> RunResult | None:
        """Acquire an image and upscale it.

        Returns ``None`` when nothing was acquired. Failures are posted as an
        alert and re-raised.
        """

        self.clear_result()
        try:
            image = self.acquirer.acquire(mode, upload)
            if image is None:
                return None

            with self._lock:
                self.before = image
                self.caption = RUNNING_CAPTION
                self.busy = True
            try:
                session = self.lifecycle.ensure_session()
                started = time.perf_counter()
                output = self._inference.run(lambda: session.run(image))
                elapsed_ms = (time.perf_counter() - started) * 1000
            finally:
                with self._lock:
                    self.busy = False
        except Exception as exc:
            logger.error("super-resolution run (%s) failed: %s", mode.value, exc)
            self.post_alert(str(exc))
            raise

        with self._lock:
            self.after = output
            self.caption = RESULT_CAPTION
        provider = getattr(session, "provider", self.lifecycle.session_provider)
        logger.info("inference on %s took %.1f ms", getattr(provider, "value", provider), elapsed_ms)
        return RunResult(before=image, after=output, provider=provider, elapsed_ms=elapsed_ms)

    def snapshot(self) -> dict[str, Any]:
        state: SessionState = self.lifecycle.state
        session_provider = self.lifecycle.session_provider
        with self._lock:
            return {
                "provider_options": [provider.value for provider in self.provider_options],
                "selected_provider": self.selected_provider.value,
                "session_provider": session_provider.value if session_provider else None,
                "session_state": state.value,
                "selector_enabled": self.selector_enabled,
                "busy": self.busy,
                "caption": self.caption,
                "has_before": self.before is not None,
                "has_after": self.after is not None,
                "alerts": [alert.to_dict() for alert in self._alerts],
            }

    def close(self) -> None:
        self.lifecycle.close()
        self._inference.shutdown(wait=False)


__all__ = [
    "Alert",
    "RESULT_CAPTION",
    "RUNNING_CAPTION",
    "RunResult",
    "SuperResolutionPage",
]
