"""Core data models used across client, service, and CLI."""

from __future__ import annotations

from dataclasses import dataclass, fields
from enum import Enum

from notehub_dfu.core.errors import ConfigError

REQUIRED_FIELDS = ("project_uid", "firmware_file", "client_id", "client_secret")
TARGETING_FIELDS = (
    "device_uid",
    "tag",
    "serial_number",
    "fleet_uid",
    "product_uid",
    "notecard_firmware",
    "location",
    "sku",
)


@dataclass(frozen=True)
class DeploymentConfig:
    project_uid: str
    firmware_file: str
    client_id: str
    client_secret: str
    device_uid: str = ""
    tag: str = ""
    serial_number: str = ""
    fleet_uid: str = ""
    product_uid: str = ""
    notecard_firmware: str = ""
    location: str = ""
    sku: str = ""

    def __post_init__(self) -> None:
        for field in fields(self):
            if not isinstance(getattr(self, field.name), str):
                raise ConfigError(f"Configuration field '{field.name}' must be a string")
        missing = [name for name in REQUIRED_FIELDS if not getattr(self, name).strip()]
        if missing:
            raise ConfigError(f"Missing required configuration: {', '.join(missing)}")

    def targeting(self) -> dict[str, str]:
        """Raw targeting criteria keyed by field name, in trigger order."""
        return {name: getattr(self, name) for name in TARGETING_FIELDS}

    def __repr__(self) -> str:
        return (
            f"DeploymentConfig(project_uid={self.project_uid!r}, "
            f"firmware_file={self.firmware_file!r}, client_id={self.client_id!r}, "
            f"client_secret='***', targeting={self.targeting()!r})"
        )


class SessionState(str, Enum):
    UNAUTHENTICATED = "unauthenticated"
    AUTHENTICATED = "authenticated"
    FIRMWARE_UPLOADED = "firmware_uploaded"
    DFU_TRIGGERED = "dfu_triggered"


@dataclass(frozen=True)
class DeploymentResult:
    status: str
    firmware_filename: str
    dfu_url: str
