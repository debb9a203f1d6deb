"""Service layer used by CLI and API frontends."""

from __future__ import annotations

import logging
from collections.abc import Mapping

from notehub_dfu.core.client import BASE_URL, TOKEN_URL, NotehubClient
from notehub_dfu.core.context import DeploymentContext, background
from notehub_dfu.core.errors import SessionStateError
from notehub_dfu.core.model import DeploymentConfig, DeploymentResult, SessionState
from notehub_dfu.core.params import build_targeting_query, dfu_update_url
from notehub_dfu.transports.base import HttpTransport

DEPLOYMENT_SUCCESS = "success"
LOGGER = logging.getLogger(__name__)


class DeploymentSession:
    """One authenticate → upload → trigger run against a single client.

    A failing step leaves `state` where it was and re-raises; later steps
    refuse to run until the earlier ones have succeeded.
    """

    def __init__(
        self,
        client: NotehubClient,
        config: DeploymentConfig,
        *,
        context: DeploymentContext | None = None,
    ) -> None:
        self.client = client
        self.config = config
        self.context = context or background()
        self.state = SessionState.UNAUTHENTICATED
        self.firmware_filename: str | None = None

    def authenticate(self) -> None:
        self._require(SessionState.UNAUTHENTICATED, "authenticate")
        self.client.authenticate(
            self.config.client_id,
            self.config.client_secret,
            context=self.context,
        )
        self._advance(SessionState.AUTHENTICATED)

    def upload_firmware(self) -> str:
        self._require(SessionState.AUTHENTICATED, "upload firmware")
        filename = self.client.upload_firmware(
            self.config.project_uid,
            self.config.firmware_file,
            context=self.context,
        )
        self.firmware_filename = filename
        self._advance(SessionState.FIRMWARE_UPLOADED)
        return filename

    def trigger_dfu(self) -> None:
        self._require(SessionState.FIRMWARE_UPLOADED, "trigger DFU")
        if self.firmware_filename is None:
            raise SessionStateError("Cannot trigger DFU before a firmware upload returned a filename")
        self.client.trigger_dfu(self.config, self.firmware_filename, context=self.context)
        self._advance(SessionState.DFU_TRIGGERED)

    def run(self) -> DeploymentResult:
        self.authenticate()
        filename = self.upload_firmware()
        self.trigger_dfu()
        return DeploymentResult(
            status=DEPLOYMENT_SUCCESS,
            firmware_filename=filename,
            dfu_url=self.client.dfu_url(self.config),
        )

    def _require(self, expected: SessionState, operation: str) -> None:
        if self.state is not expected:
            raise SessionStateError(
                f"Cannot {operation} while session is {self.state.value}; expected {expected.value}"
            )

    def _advance(self, state: SessionState) -> None:
        LOGGER.debug("Session %s -> %s", self.state.value, state.value)
        self.state = state


class DeploymentService:
    def __init__(
        self,
        *,
        transport: HttpTransport | None = None,
        base_url: str = BASE_URL,
        token_url: str = TOKEN_URL,
    ) -> None:
        self.transport = transport
        self.base_url = base_url
        self.token_url = token_url

    def dfu_url(self, project_uid: str, criteria: Mapping[str, str | None]) -> str:
        return dfu_update_url(self.base_url.rstrip("/"), project_uid, build_targeting_query(criteria))

    def deploy(
        self,
        config: DeploymentConfig,
        *,
        context: DeploymentContext | None = None,
    ) -> DeploymentResult:
        client = NotehubClient(transport=self.transport, base_url=self.base_url, token_url=self.token_url)
        try:
            result = DeploymentSession(client, config, context=context).run()
        finally:
            # injected transports are owned by the caller
            if self.transport is None:
                client.close()
        LOGGER.info(
            "Deployment of %s to project %s: %s",
            result.firmware_filename,
            config.project_uid,
            result.status,
        )
        return result
