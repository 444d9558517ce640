"""Background worker utilities."""

from __future__ import annotations

from concurrent.futures import Future, ThreadPoolExecutor
from typing import Callable, TypeVar


T = TypeVar("T")


class BackgroundWorker:
    """A named single-thread executor.

    Work submitted here runs in submission order, one item at a time, off the
    calling thread.
    """

    def __init__(self, name: str):
        self.name = name
        self._executor = ThreadPoolExecutor(max_workers=1, thread_name_prefix=name)

    def submit(self, func: Callable[[], T]) -> "Future[T]":
        return self._executor.submit(func)

    def run(self, func: Callable[[], T]) -> T:
        """Run ``func`` on the worker and block until it finishes."""

        return self.submit(func).result()

    def shutdown(self, *, wait: bool = False) -> None:
        self._executor.shutdown(wait=wait, cancel_futures=True)


__all__ = ["BackgroundWorker"]
