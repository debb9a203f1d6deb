"""Typer CLI entrypoint."""

from __future__ import annotations

import logging
import os
import signal
from pathlib import Path

import typer

from notehub_dfu.core.config_loader import build_config, load_config_file
from notehub_dfu.core.context import DeploymentContext
from notehub_dfu.core.errors import NotehubDfuError
from notehub_dfu.core.model import DeploymentResult
from notehub_dfu.core.service import DeploymentService

app = typer.Typer(help="Deploy outboard host firmware to Notecard devices via the Notehub API")

_TARGETING_HELP = "comma-separated for several values"


def _configure_logging(verbose: bool) -> None:
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.INFO,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )


def _write_outputs(result: DeploymentResult) -> None:
    lines = [
        f"deployment_status={result.status}",
        f"firmware_filename={result.firmware_filename}",
    ]
    for line in lines:
        typer.echo(line)

    github_output = os.environ.get("GITHUB_OUTPUT")
    if github_output:
        with open(github_output, "a", encoding="utf-8") as handle:
            handle.write("\n".join(lines) + "\n")


def _targeting(
    device_uid: str,
    tag: str,
    serial_number: str,
    fleet_uid: str,
    product_uid: str,
    notecard_firmware: str,
    location: str,
    sku: str,
) -> dict[str, str]:
    return {
        "device_uid": device_uid,
        "tag": tag,
        "serial_number": serial_number,
        "fleet_uid": fleet_uid,
        "product_uid": product_uid,
        "notecard_firmware": notecard_firmware,
        "location": location,
        "sku": sku,
    }


@app.command("deploy")
def deploy(
    project_uid: str = typer.Option("", "--project-uid", envvar="INPUT_PROJECT_UID", help="Notehub project UID"),
    firmware_file: str = typer.Option("", "--firmware-file", envvar="INPUT_FIRMWARE_FILE", help="Path to firmware binary"),
    client_id: str = typer.Option("", "--client-id", envvar="INPUT_CLIENT_ID", help="Notehub OAuth2 client ID"),
    client_secret: str = typer.Option(
        "",
        "--client-secret",
        envvar="INPUT_CLIENT_SECRET",
        help="Notehub OAuth2 client secret",
        show_default=False,
    ),
    device_uid: str = typer.Option("", "--device-uid", envvar="INPUT_DEVICE_UID", help=f"Device UID(s), {_TARGETING_HELP}"),
    tag: str = typer.Option("", "--tag", envvar="INPUT_TAG", help=f"Device tag(s), {_TARGETING_HELP}"),
    serial_number: str = typer.Option("", "--serial-number", envvar="INPUT_SERIAL_NUMBER", help=f"Serial number(s), {_TARGETING_HELP}"),
    fleet_uid: str = typer.Option("", "--fleet-uid", envvar="INPUT_FLEET_UID", help=f"Fleet UID(s), {_TARGETING_HELP}"),
    product_uid: str = typer.Option("", "--product-uid", envvar="INPUT_PRODUCT_UID", help=f"Product UID(s), {_TARGETING_HELP}"),
    notecard_firmware: str = typer.Option(
        "", "--notecard-firmware", envvar="INPUT_NOTECARD_FIRMWARE", help=f"Notecard firmware version(s), {_TARGETING_HELP}"
    ),
    location: str = typer.Option("", "--location", envvar="INPUT_LOCATION", help=f"Device location(s), {_TARGETING_HELP}"),
    sku: str = typer.Option("", "--sku", envvar="INPUT_SKU", help=f"Notecard SKU(s), {_TARGETING_HELP}"),
    config_file: Path | None = typer.Option(None, "--config", help="YAML deployment file; options override it"),
    timeout: float | None = typer.Option(None, "--timeout", help="Overall deadline in seconds"),
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Debug logging"),
) -> None:
    """Upload a firmware binary and trigger a host DFU on the matching devices."""
    _configure_logging(verbose)
    context = DeploymentContext(timeout_s=timeout)
    previous_handler = signal.signal(signal.SIGTERM, lambda *_: context.cancel())
    try:
        file_values = load_config_file(config_file) if config_file else {}
        config = build_config(
            file_values,
            {
                "project_uid": project_uid,
                "firmware_file": firmware_file,
                "client_id": client_id,
                "client_secret": client_secret,
                **_targeting(device_uid, tag, serial_number, fleet_uid, product_uid, notecard_firmware, location, sku),
            },
        )
        result = DeploymentService().deploy(config, context=context)
        _write_outputs(result)
    except NotehubDfuError as exc:
        typer.echo(f"Error: {exc}", err=True)
        raise typer.Exit(code=1) from None
    except KeyboardInterrupt:
        context.cancel()
        typer.echo("Cancelled", err=True)
        raise typer.Exit(code=130) from None
    finally:
        if previous_handler is not None:
            signal.signal(signal.SIGTERM, previous_handler)


@app.command("url")
def dfu_url(
    project_uid: str = typer.Option(..., "--project-uid", envvar="INPUT_PROJECT_UID", help="Notehub project UID"),
    device_uid: str = typer.Option("", "--device-uid", envvar="INPUT_DEVICE_UID"),
    tag: str = typer.Option("", "--tag", envvar="INPUT_TAG"),
    serial_number: str = typer.Option("", "--serial-number", envvar="INPUT_SERIAL_NUMBER"),
    fleet_uid: str = typer.Option("", "--fleet-uid", envvar="INPUT_FLEET_UID"),
    product_uid: str = typer.Option("", "--product-uid", envvar="INPUT_PRODUCT_UID"),
    notecard_firmware: str = typer.Option("", "--notecard-firmware", envvar="INPUT_NOTECARD_FIRMWARE"),
    location: str = typer.Option("", "--location", envvar="INPUT_LOCATION"),
    sku: str = typer.Option("", "--sku", envvar="INPUT_SKU"),
) -> None:
    """Print the DFU trigger URL for the given targeting without contacting Notehub."""
    criteria = _targeting(device_uid, tag, serial_number, fleet_uid, product_uid, notecard_firmware, location, sku)
    typer.echo(DeploymentService().dfu_url(project_uid, criteria))


def run() -> None:
    app()


if __name__ == "__main__":
    run()
