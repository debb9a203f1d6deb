from __future__ import annotations

from pathlib import Path

import pytest
from typer.testing import CliRunner

from notehub_dfu import cli
from notehub_dfu.core.config_loader import CONFIG_FIELDS
from notehub_dfu.core.errors import AuthorizationError
from notehub_dfu.core.model import DeploymentResult

REQUIRED_ARGS = [
    "deploy",
    "--project-uid",
    "app:1234",
    "--firmware-file",
    "fw.bin",
    "--client-id",
    "id",
    "--client-secret",
    "secret",
]


class FakeService:
    deployed: list = []

    def __init__(self) -> None:
        pass

    def deploy(self, config, context=None):
        FakeService.deployed.append(config)
        return DeploymentResult(
            status="success",
            firmware_filename=Path(config.firmware_file).name,
            dfu_url="https://api.notefile.net/v1/projects/app:1234/dfu/host/update",
        )


runner = CliRunner()


@pytest.fixture(autouse=True)
def _clean_env(monkeypatch: pytest.MonkeyPatch) -> None:
    for name in CONFIG_FIELDS:
        monkeypatch.delenv(f"INPUT_{name.upper()}", raising=False)
    monkeypatch.delenv("GITHUB_OUTPUT", raising=False)
    FakeService.deployed = []


def test_deploy_command_prints_outputs(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setattr(cli, "DeploymentService", FakeService)
    result = runner.invoke(cli.app, [*REQUIRED_ARGS, "--tag", "production,sensor"])
    assert result.exit_code == 0
    assert "deployment_status=success" in result.stdout
    assert "firmware_filename=fw.bin" in result.stdout
    assert FakeService.deployed[0].tag == "production,sensor"


def test_deploy_reads_action_inputs_from_env(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setattr(cli, "DeploymentService", FakeService)
    monkeypatch.setenv("INPUT_PROJECT_UID", "app:env")
    monkeypatch.setenv("INPUT_FIRMWARE_FILE", "env.bin")
    monkeypatch.setenv("INPUT_CLIENT_ID", "id")
    monkeypatch.setenv("INPUT_CLIENT_SECRET", "secret")
    monkeypatch.setenv("INPUT_DEVICE_UID", "dev:1, dev:2")

    result = runner.invoke(cli.app, ["deploy"])

    assert result.exit_code == 0
    config = FakeService.deployed[0]
    assert config.project_uid == "app:env"
    assert config.device_uid == "dev:1, dev:2"


def test_deploy_writes_github_output(monkeypatch: pytest.MonkeyPatch, tmp_path: Path) -> None:
    monkeypatch.setattr(cli, "DeploymentService", FakeService)
    output = tmp_path / "github_output"
    output.write_text("existing=1\n", encoding="utf-8")
    monkeypatch.setenv("GITHUB_OUTPUT", str(output))

    result = runner.invoke(cli.app, REQUIRED_ARGS)

    assert result.exit_code == 0
    assert output.read_text(encoding="utf-8") == (
        "existing=1\ndeployment_status=success\nfirmware_filename=fw.bin\n"
    )


def test_deploy_config_file_is_overridden_by_options(monkeypatch: pytest.MonkeyPatch, tmp_path: Path) -> None:
    monkeypatch.setattr(cli, "DeploymentService", FakeService)
    config_file = tmp_path / "deploy.yaml"
    config_file.write_text("project_uid: app:file\nfirmware_file: file.bin\ntag: [a, b]\nsku: SKU-1\n", encoding="utf-8")

    result = runner.invoke(
        cli.app,
        ["deploy", "--config", str(config_file), "--client-id", "id", "--client-secret", "secret", "--tag", "c"],
    )

    assert result.exit_code == 0
    config = FakeService.deployed[0]
    assert config.project_uid == "app:file"
    assert config.tag == "c"
    assert config.sku == "SKU-1"


def test_deploy_missing_required_is_clean_error(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setattr(cli, "DeploymentService", FakeService)
    result = runner.invoke(cli.app, ["deploy", "--project-uid", "app:1"])
    assert result.exit_code == 1
    assert "Error: Missing required configuration" in result.stderr
    assert FakeService.deployed == []


def test_deploy_error_is_clean(monkeypatch: pytest.MonkeyPatch) -> None:
    class FailingService(FakeService):
        def deploy(self, config, context=None):
            raise AuthorizationError("upload firmware", 401, "unauthorized")

    monkeypatch.setattr(cli, "DeploymentService", FailingService)
    result = runner.invoke(cli.app, REQUIRED_ARGS)
    assert result.exit_code == 1
    assert "Error: upload firmware failed: HTTP 401: unauthorized" in result.stderr
    assert "deployment_status" not in result.stdout
    assert "Traceback" not in result.stdout
    assert "Traceback" not in result.stderr


def test_deploy_interrupt_exits_130(monkeypatch: pytest.MonkeyPatch) -> None:
    class InterruptedService(FakeService):
        def deploy(self, config, context=None):
            raise KeyboardInterrupt

    monkeypatch.setattr(cli, "DeploymentService", InterruptedService)
    result = runner.invoke(cli.app, REQUIRED_ARGS)
    assert result.exit_code == 130
    assert "Cancelled" in result.stderr


def test_url_command() -> None:
    result = runner.invoke(
        cli.app,
        ["url", "--project-uid", "app:1234", "--tag", "production,sensor", "--device-uid", "dev-1"],
    )
    assert result.exit_code == 0
    assert result.stdout.strip() == (
        "https://api.notefile.net/v1/projects/app:1234/dfu/host/update"
        "?deviceUID=dev-1&tags=production&tags=sensor"
    )
