"""Notehub API client: OAuth2 authentication, firmware upload and DFU trigger."""

from __future__ import annotations

import json
import logging
import time
from collections.abc import Mapping
from pathlib import Path
from typing import Any
from urllib.parse import quote

from notehub_dfu import __version__
from notehub_dfu.core.context import DeploymentContext, background
from notehub_dfu.core.errors import (
    AuthenticationError,
    AuthorizationError,
    BackendError,
    FirmwareReadError,
    TransportError,
)
from notehub_dfu.core.model import DeploymentConfig
from notehub_dfu.core.params import build_targeting_query, dfu_update_url
from notehub_dfu.transports.base import HttpResponse, HttpTransport
from notehub_dfu.transports.requests_http import RequestsTransport

BASE_URL = "https://api.notefile.net/v1"
TOKEN_URL = "https://notehub.io/oauth2/token"
DEFAULT_TIMEOUT_S = 30.0
FIRMWARE_TYPE = "host"
LOGGER = logging.getLogger(__name__)


class NotehubClient:
    """Session-scoped client for one deployment.

    Holds the API base URL, an HTTP transport with a bounded timeout and the
    bearer token obtained by `authenticate`. Not meant to be shared between
    concurrent deployments.
    """

    def __init__(
        self,
        *,
        transport: HttpTransport | None = None,
        base_url: str = BASE_URL,
        token_url: str = TOKEN_URL,
        timeout_s: float = DEFAULT_TIMEOUT_S,
    ) -> None:
        self.base_url = base_url.rstrip("/")
        self.token_url = token_url
        self.timeout_s = timeout_s
        self.transport = transport or RequestsTransport()
        self.access_token = ""
        self.token_expires_at: float | None = None
        self._headers = {
            "Accept": "application/json",
            "User-Agent": f"notehub-dfu/{__version__}",
        }

    def __enter__(self) -> NotehubClient:
        return self

    def __exit__(self, *exc_info: object) -> None:
        self.close()

    def close(self) -> None:
        self.transport.close()

    @property
    def authenticated(self) -> bool:
        return bool(self.access_token)

    @property
    def token_expired(self) -> bool:
        return self.token_expires_at is not None and time.time() >= self.token_expires_at

    def authenticate(
        self,
        client_id: str,
        client_secret: str,
        *,
        context: DeploymentContext | None = None,
    ) -> None:
        """Exchange OAuth2 client credentials for a bearer token.

        The token is stored on the client only when the exchange fully
        succeeds; a failed attempt keeps whatever token was held before.
        """
        if not client_id or not client_secret:
            raise AuthenticationError("authenticate failed: client ID and client secret are required")

        response = self._send(
            "authenticate",
            "POST",
            self.token_url,
            context=context,
            headers={"Content-Type": "application/x-www-form-urlencoded"},
            data={
                "grant_type": "client_credentials",
                "client_id": client_id,
                "client_secret": client_secret,
            },
        )
        if not response.ok:
            raise AuthenticationError(
                f"authenticate failed: HTTP {response.status_code}: {response.text}"
            )

        try:
            payload = json.loads(response.text)
        except json.JSONDecodeError as exc:
            raise AuthenticationError(f"authenticate failed: token response is not JSON: {exc}") from exc

        token = payload.get("access_token") if isinstance(payload, dict) else None
        if not isinstance(token, str) or not token:
            raise AuthenticationError("authenticate failed: token response has no access_token")

        expires_in = payload.get("expires_in")
        self.access_token = token
        self.token_expires_at = (
            time.time() + float(expires_in) if isinstance(expires_in, (int, float)) else None
        )
        LOGGER.info("Authenticated with Notehub")

    def upload_firmware(
        self,
        project_uid: str,
        file_path: str | Path,
        *,
        context: DeploymentContext | None = None,
    ) -> str:
        """Upload a host firmware binary; the base filename is returned as the artifact reference."""
        path = Path(file_path)
        try:
            with path.open("rb") as handle:
                payload = handle.read()
        except OSError as exc:
            raise FirmwareReadError(f"failed to read firmware file {path}: {exc}") from exc

        filename = path.name
        url = f"{self.base_url}/projects/{project_uid}/firmware/{FIRMWARE_TYPE}/{quote(filename)}"
        response = self._send(
            "upload firmware",
            "PUT",
            url,
            context=context,
            headers={**self._auth_headers(), "Content-Type": "application/octet-stream"},
            data=payload,
        )
        self._raise_for_status("upload firmware", response)

        metadata = _json_or_empty(response)
        stored_as = metadata.get("filename")
        if stored_as and stored_as != filename:
            LOGGER.warning("Notehub reported firmware stored as '%s' (uploaded '%s')", stored_as, filename)
        LOGGER.debug("Upload metadata: %s", metadata)
        LOGGER.info("Uploaded firmware %s (%d bytes) to project %s", filename, len(payload), project_uid)
        return filename

    def dfu_url(self, config: DeploymentConfig) -> str:
        return dfu_update_url(self.base_url, config.project_uid, build_targeting_query(config.targeting()))

    def trigger_dfu(
        self,
        config: DeploymentConfig,
        artifact_filename: str,
        *,
        context: DeploymentContext | None = None,
    ) -> None:
        """Ask Notehub to schedule the uploaded firmware on every device matching the config."""
        url = self.dfu_url(config)
        response = self._send(
            "trigger DFU",
            "POST",
            url,
            context=context,
            headers={**self._auth_headers(), "Content-Type": "application/json"},
            data=json.dumps({"filename": artifact_filename}).encode("utf-8"),
        )
        self._raise_for_status("trigger DFU", response)
        LOGGER.info("Triggered DFU of %s for project %s", artifact_filename, config.project_uid)

    def _auth_headers(self) -> dict[str, str]:
        if not self.access_token:
            return {}
        if self.token_expired:
            LOGGER.warning("Notehub token expired; the request will likely be rejected")
        return {"Authorization": f"Bearer {self.access_token}"}

    def _send(
        self,
        operation: str,
        method: str,
        url: str,
        *,
        context: DeploymentContext | None,
        headers: Mapping[str, str],
        data: bytes | Mapping[str, str],
    ) -> HttpResponse:
        try:
            return self.transport.request(
                method,
                url,
                context=context or background(),
                headers={**self._headers, **headers},
                data=data,
                timeout_s=self.timeout_s,
            )
        except TransportError as exc:
            raise exc.__class__(f"{operation} failed: {exc}") from exc

    @staticmethod
    def _raise_for_status(operation: str, response: HttpResponse) -> None:
        if response.ok:
            return
        if response.status_code in (401, 403):
            raise AuthorizationError(operation, response.status_code, response.text)
        raise BackendError(operation, response.status_code, response.text)


def _json_or_empty(response: HttpResponse) -> dict[str, Any]:
    if not response.body:
        return {}
    try:
        loaded = json.loads(response.text)
    except json.JSONDecodeError:
        LOGGER.warning("Notehub returned a non-JSON body (HTTP %d)", response.status_code)
        return {}
    return loaded if isinstance(loaded, dict) else {}
