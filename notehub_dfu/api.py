"""Stable public API for building tooling on top of notehub-dfu.

This module is the supported integration surface for third-party callers.
Avoid importing from private/internal modules unless intentionally depending on
non-stable internals.
"""

from __future__ import annotations

from collections.abc import Mapping
from pathlib import Path

from notehub_dfu.core.client import BASE_URL, TOKEN_URL, NotehubClient
from notehub_dfu.core.config_loader import build_config, config_from_env, load_config_file
from notehub_dfu.core.context import DeploymentContext
from notehub_dfu.core.errors import (
    AuthenticationError,
    AuthorizationError,
    BackendError,
    ConfigError,
    DeadlineExceededError,
    FirmwareReadError,
    NotehubDfuError,
    RequestCancelledError,
    SessionStateError,
    TransportConnectError,
    TransportError,
    TransportTimeoutError,
)
from notehub_dfu.core.model import DeploymentConfig, DeploymentResult, SessionState
from notehub_dfu.core.params import build_targeting_query, encode_query, split_values
from notehub_dfu.core.service import DeploymentService, DeploymentSession
from notehub_dfu.transports.base import HttpResponse, HttpTransport
from notehub_dfu.transports.requests_http import RequestsTransport

__all__ = [
    "NotehubDfuError",
    "ConfigError",
    "FirmwareReadError",
    "AuthenticationError",
    "SessionStateError",
    "TransportError",
    "TransportConnectError",
    "TransportTimeoutError",
    "DeadlineExceededError",
    "RequestCancelledError",
    "BackendError",
    "AuthorizationError",
    "DeploymentConfig",
    "DeploymentResult",
    "SessionState",
    "DeploymentContext",
    "DeploymentSession",
    "NotehubClient",
    "HttpResponse",
    "HttpTransport",
    "RequestsTransport",
    "build_targeting_query",
    "encode_query",
    "split_values",
    "Client",
]


class Client:
    """Public client for deploying host firmware through Notehub.

    A `Client` wraps configuration loading, URL planning and the
    authenticate/upload/trigger sequence behind a stable API intended for
    third-party tools (CI steps, scripts, services).
    """

    def __init__(
        self,
        *,
        transport: HttpTransport | None = None,
        base_url: str = BASE_URL,
        token_url: str = TOKEN_URL,
    ) -> None:
        self._service = DeploymentService(transport=transport, base_url=base_url, token_url=token_url)

    @staticmethod
    def load_config(
        path: str | Path | None = None,
        *,
        overrides: Mapping[str, str | None] | None = None,
        use_env: bool = True,
    ) -> DeploymentConfig:
        """Build a config from (in increasing precedence) a YAML file, INPUT_* variables and overrides."""
        sources: list[Mapping[str, str | None]] = []
        if path is not None:
            sources.append(load_config_file(path))
        if use_env:
            sources.append(config_from_env())
        if overrides:
            sources.append(overrides)
        return build_config(*sources)

    def dfu_url(self, config: DeploymentConfig) -> str:
        return self._service.dfu_url(config.project_uid, config.targeting())

    def deploy(
        self,
        config: DeploymentConfig,
        *,
        context: DeploymentContext | None = None,
    ) -> DeploymentResult:
        return self._service.deploy(config, context=context)
