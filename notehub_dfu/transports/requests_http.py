"""HTTP transport implementation using requests."""

from __future__ import annotations

import contextlib
import logging
import socket
import threading
from collections.abc import Mapping
from concurrent.futures import Future, ThreadPoolExecutor, wait
from typing import Any

import requests
from requests.adapters import HTTPAdapter
from urllib3 import HTTPConnectionPool, HTTPSConnectionPool

from notehub_dfu.core.context import DeploymentContext
from notehub_dfu.core.errors import (
    DeadlineExceededError,
    RequestCancelledError,
    TransportConnectError,
    TransportError,
    TransportTimeoutError,
)
from notehub_dfu.transports.base import HttpResponse

_POLL_INTERVAL_S = 0.05
LOGGER = logging.getLogger(__name__)


class _InFlightConnections:
    """Connections checked out by the worker thread.

    `abort()` shuts down their sockets so a blocked connect, send or read
    returns at once. Connections that finish connecting after an abort are
    shut down as soon as their socket exists.
    """

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._connections: set[Any] = set()
        self._aborted = False

    def begin(self) -> None:
        with self._lock:
            self._aborted = False
            self._connections.clear()

    def checkout(self, conn: Any) -> None:
        with self._lock:
            self._connections.add(conn)
            aborted = self._aborted
        if aborted:
            _shutdown(conn)

    def checkin(self, conn: Any) -> None:
        with self._lock:
            self._connections.discard(conn)

    def connected(self, conn: Any) -> None:
        with self._lock:
            aborted = self._aborted
        if aborted:
            _shutdown(conn)

    def abort(self) -> None:
        with self._lock:
            self._aborted = True
            connections = list(self._connections)
        for conn in connections:
            _shutdown(conn)


def _shutdown(conn: Any) -> None:
    sock = getattr(conn, "sock", None)
    if sock is None:
        return
    # already closed by the worker
    with contextlib.suppress(OSError):
        sock.shutdown(socket.SHUT_RDWR)


def _tracked_pool(pool_cls: type, in_flight: _InFlightConnections) -> type:
    class _Connection(pool_cls.ConnectionCls):
        def connect(self) -> None:
            super().connect()
            in_flight.connected(self)

    class _Pool(pool_cls):
        ConnectionCls = _Connection

        def _get_conn(self, timeout=None):
            conn = super()._get_conn(timeout)
            in_flight.checkout(conn)
            return conn

        def _put_conn(self, conn):
            in_flight.checkin(conn)
            super()._put_conn(conn)

    return _Pool


class _AbortableAdapter(HTTPAdapter):
    def __init__(self, in_flight: _InFlightConnections, **kwargs: Any) -> None:
        self._in_flight = in_flight
        super().__init__(**kwargs)

    def init_poolmanager(self, *args: Any, **kwargs: Any) -> None:
        super().init_poolmanager(*args, **kwargs)
        self.poolmanager.pool_classes_by_scheme = {
            "http": _tracked_pool(HTTPConnectionPool, self._in_flight),
            "https": _tracked_pool(HTTPSConnectionPool, self._in_flight),
        }


class RequestsTransport:
    """Blocking requests calls made cancellable.

    Each call runs on a single worker thread while the caller waits in short
    slices. Cancelling the context, or leaving the wait any other way (Ctrl-C
    included), shuts down the socket the worker is blocked on. Only sessions
    that are `requests.Session` instances get the abortable adapter mounted.
    """

    def __init__(self, session: requests.Session | None = None) -> None:
        self._in_flight = _InFlightConnections()
        self._session = session or requests.Session()
        if isinstance(self._session, requests.Session):
            adapter = _AbortableAdapter(self._in_flight)
            self._session.mount("https://", adapter)
            self._session.mount("http://", adapter)
        self._executor = ThreadPoolExecutor(max_workers=1, thread_name_prefix="notehub-http")

    def request(
        self,
        method: str,
        url: str,
        *,
        context: DeploymentContext,
        headers: Mapping[str, str] | None = None,
        data: bytes | Mapping[str, str] | None = None,
        timeout_s: float = 30.0,
    ) -> HttpResponse:
        operation = f"{method} {url}"
        context.raise_if_done(operation)

        remaining = context.remaining()
        # urllib3 rejects a zero timeout
        timeout = timeout_s if remaining is None else max(min(timeout_s, remaining), 0.001)

        LOGGER.debug("%s %s (timeout %.1fs)", method, url, timeout)
        future: Future | None = None
        abandoned = threading.Event()
        unregister = context.on_cancel(self._in_flight.abort)
        try:
            future = self._executor.submit(
                self._send,
                context,
                abandoned,
                method,
                url,
                headers=dict(headers or {}),
                data=data,
                timeout=timeout,
            )
            while not future.done():
                if context.cancelled:
                    raise RequestCancelledError(f"{operation} cancelled")
                wait((future,), timeout=_POLL_INTERVAL_S)

            try:
                response = future.result()
            except requests.exceptions.Timeout as exc:
                if context.expired:
                    raise DeadlineExceededError(f"{operation} exceeded the deployment deadline") from exc
                raise TransportTimeoutError(f"{operation} timed out after {timeout:.1f}s") from exc
            except requests.exceptions.ConnectionError as exc:
                if context.cancelled:
                    raise RequestCancelledError(f"{operation} cancelled") from exc
                raise TransportConnectError(f"Could not reach {url}: {exc}") from exc
            except requests.exceptions.RequestException as exc:
                if context.cancelled:
                    raise RequestCancelledError(f"{operation} cancelled") from exc
                raise TransportError(f"{operation} failed: {exc}") from exc
            except TimeoutError as exc:
                # socket timeout that escaped requests' own wrapping
                raise TransportTimeoutError(f"{operation} timed out") from exc
        finally:
            unregister()
            if future is not None and not future.done():
                abandoned.set()
                future.cancel()
                self._in_flight.abort()

        if context.cancelled:
            raise RequestCancelledError(f"{operation} cancelled")

        return HttpResponse(
            status_code=response.status_code,
            body=response.content or b"",
            headers=dict(response.headers),
        )

    def _send(
        self,
        context: DeploymentContext,
        abandoned: threading.Event,
        method: str,
        url: str,
        **kwargs: Any,
    ) -> requests.Response:
        self._in_flight.begin()
        # an abort that landed before begin() was cleared by it
        if abandoned.is_set():
            raise RequestCancelledError(f"{method} {url} abandoned")
        context.raise_if_done(f"{method} {url}")
        return self._session.request(method, url, **kwargs)

    def close(self) -> None:
        self._in_flight.abort()
        self._executor.shutdown(wait=False)
        self._session.close()
