import threading
import time
from io import BytesIO

import pytest
from PIL import Image


class FakeSession:
    """Stands in for an ONNX Runtime session: doubles the image size."""

    def __init__(self, provider, run_error=None):
        self.provider = provider
        self.run_error = run_error
        self.inputs = []

    def run(self, data: bytes) -> bytes:
        self.inputs.append(data)
        if self.run_error is not None:
            raise self.run_error
        image = Image.open(BytesIO(data)).convert("RGB")
        upscaled = image.resize((image.width * 2, image.height * 2))
        buffer = BytesIO()
        upscaled.save(buffer, format="PNG")
        return buffer.getvalue()


class FakeFactory:
    def __init__(self, *, gated=False, fail_with=None, run_error=None, delay=0.0):
        self.calls = []
        self.sessions = []
        self.fail_with = fail_with
        self.run_error = run_error
        self.delay = delay
        self.started = threading.Event()
        self.gate = threading.Event()
        if not gated:
            self.gate.set()
        self._lock = threading.Lock()
        self.active = 0
        self.max_active = 0

    def __call__(self, provider):
        with self._lock:
            self.calls.append(provider)
            self.active += 1
            self.max_active = max(self.max_active, self.active)
        self.started.set()
        try:
            assert self.gate.wait(5), "factory gate never opened"
            if self.delay:
                time.sleep(self.delay)
            if self.fail_with is not None:
                raise self.fail_with
            session = FakeSession(provider, run_error=self.run_error)
            self.sessions.append(session)
            return session
        finally:
            with self._lock:
                self.active -= 1


def wait_until(predicate, timeout=5.0):
    deadline = time.monotonic() + timeout
    while time.monotonic() < deadline:
        if predicate():
            return True
        time.sleep(0.01)
    return predicate()


def png_bytes(size=(12, 8), color=(40, 120, 200), mode="RGB") -> bytes:
    buffer = BytesIO()
    Image.new(mode, size, color=color).save(buffer, format="PNG")
    return buffer.getvalue()


@pytest.fixture
def factory_cls():
    return FakeFactory


@pytest.fixture
def waiter():
    return wait_until


@pytest.fixture
def make_png():
    return png_bytes
