"""Cancellation and deadline context shared by every call of a deployment session."""

from __future__ import annotations

import threading
import time
from collections.abc import Callable

from notehub_dfu.core.errors import DeadlineExceededError, RequestCancelledError


class DeploymentContext:
    """Carries a cancellation flag and an optional deadline.

    One context is threaded through authenticate, upload and trigger. Cancelling
    it from another thread (or a signal handler) aborts the in-flight request
    and makes it raise `RequestCancelledError`.
    """

    def __init__(self, *, timeout_s: float | None = None) -> None:
        self._event = threading.Event()
        self._lock = threading.Lock()
        self._callbacks: list[Callable[[], None]] = []
        self.deadline: float | None = None
        if timeout_s is not None:
            self.deadline = time.monotonic() + timeout_s

    @property
    def cancelled(self) -> bool:
        return self._event.is_set()

    @property
    def expired(self) -> bool:
        return self.deadline is not None and time.monotonic() >= self.deadline

    def remaining(self) -> float | None:
        if self.deadline is None:
            return None
        return max(0.0, self.deadline - time.monotonic())

    def cancel(self) -> None:
        with self._lock:
            if self._event.is_set():
                return
            self._event.set()
            callbacks = list(self._callbacks)
        for callback in callbacks:
            callback()

    def on_cancel(self, callback: Callable[[], None]) -> Callable[[], None]:
        """Register a callback run once on cancel; returns an unregister function."""
        with self._lock:
            already = self._event.is_set()
            if not already:
                self._callbacks.append(callback)
        if already:
            callback()

        def _unregister() -> None:
            with self._lock:
                if callback in self._callbacks:
                    self._callbacks.remove(callback)

        return _unregister

    def raise_if_done(self, operation: str = "request") -> None:
        if self.cancelled:
            raise RequestCancelledError(f"{operation} cancelled")
        if self.expired:
            raise DeadlineExceededError(f"{operation} exceeded the deployment deadline")


def background() -> DeploymentContext:
    """A context that is never cancelled and has no deadline."""
    return DeploymentContext()
