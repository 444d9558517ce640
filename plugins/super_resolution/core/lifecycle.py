"""Inference session lifecycle: NoSession -> Creating -> Ready.

One session exists at a time, bound to the selected execution provider. It is
recreated when the selection changes. Creations run one at a time on a
dedicated worker thread, and the most recent one is tracked as the in-flight
creation. Anything that needs the session while a creation is pending waits
for it instead of starting another.
"""

from __future__ import annotations

import time
from concurrent.futures import Future
from enum import Enum
from threading import Lock
from typing import Any, Callable

from common.logging import get_logger
from common.tasks import BackgroundWorker

from .errors import SuperResolutionError
from .providers import ExecutionProvider

logger = get_logger("lifecycle")


class SessionState(str, Enum):
    NO_SESSION = "no_session"
    CREATING = "creating"
    READY = "ready"


class SessionLifecycle:
    def __init__(
        self,
        factory: Callable[[ExecutionProvider], Any],
        *,
        provider: ExecutionProvider = ExecutionProvider.CPU,
    ):
        self._factory = factory
        self._lock = Lock()
        self._worker = BackgroundWorker("sr-session")
        self._provider = provider
        self._session: Any | None = None
        self._session_provider: ExecutionProvider | None = None
        self._creation: Future | None = None
        self._closed = False

    @property
    def provider(self) -> ExecutionProvider:
        """The selected provider; the session is (or will be) bound to it."""

        return self._provider

    @property
    def session_provider(self) -> ExecutionProvider | None:
        return self._session_provider

    @property
    def state(self) -> SessionState:
        with self._lock:
            if self._creation is not None and not self._creation.done():
                return SessionState.CREATING
            if self._session is not None:
                return SessionState.READY
            return SessionState.NO_SESSION

    def start_creation(self, provider: ExecutionProvider | None = None) -> Future:
        """Select ``provider`` and queue a session creation for it.

        Returns the creation future; it resolves to the session or raises the
        creation error.
        """

        with self._lock:
            self._check_open()
            if provider is not None:
                self._provider = provider
            target = self._provider
            future = self._worker.submit(lambda: self._create(target))
            self._creation = future
        logger.info("session creation queued for %s", target.value)
        return future

    def ensure_session(self, provider: ExecutionProvider | None = None) -> Any:
        """Return a ready session for the selected provider.

        Waits on an in-flight creation. If there is none and the current
        session is missing or bound to another provider, creates one and
        waits for it. Creation errors propagate to the caller.
        """

        if provider is not None:
            with self._lock:
                self._provider = provider
        while True:
            with self._lock:
                self._check_open()
                pending = self._creation
                if pending is not None and not pending.done():
                    future = pending
                elif self._session is not None and self._session_provider is self._provider:
                    return self._session
                else:
                    target = self._provider
                    future = self._worker.submit(lambda: self._create(target))
                    self._creation = future
            # re-checked on the next pass: the selection may have moved on
            future.result()

    def _check_open(self) -> None:
        if self._closed:
            raise SuperResolutionError("Session lifecycle is closed")

    def _create(self, provider: ExecutionProvider) -> Any:
        with self._lock:
            self._check_open()
            if self._session is not None and self._session_provider is provider:
                return self._session
            # release the previous session before loading the next one
            self._session = None
            self._session_provider = None

        logger.info("creating inference session on %s", provider.value)
        started = time.perf_counter()
        try:
            session = self._factory(provider)
        except Exception as exc:
            logger.error("session creation on %s failed: %s", provider.value, exc)
            raise
        elapsed_ms = (time.perf_counter() - started) * 1000

        with self._lock:
            if self._closed:
                logger.info("discarding session on %s: lifecycle closed", provider.value)
                raise SuperResolutionError("Session lifecycle is closed")
            self._session = session
            self._session_provider = provider
        logger.info("session ready on %s after %.1f ms", provider.value, elapsed_ms)
        return session

    def close(self) -> None:
        with self._lock:
            self._closed = True
            self._session = None
            self._session_provider = None
            self._creation = None
        self._worker.shutdown(wait=False)


__all__ = ["SessionLifecycle", "SessionState"]
