from contextlib import nullcontext
from unittest.mock import Mock

import pytest
from ape.exceptions import ProviderError
from ape.utils import ZERO_ADDRESS
from click.testing import CliRunner

from bridge_deployment.constants import CANXIUM_BRIDGE
from bridge_deployment.exceptions import DeploymentFailed
from bridge_deployment.params import Deployer
from scripts import deploy_bridge
from tests.conftest import FIRST_ADDRESS, SECOND_ADDRESS

LOCAL_PARAMS_YAML = f"""
deployment:
  network: local

contracts:
  - CanxiumBridge:
      constructor:
        - "{FIRST_ADDRESS}"
        - "{SECOND_ADDRESS}"
        - $deployer
      fees:
        max_fee: 280000000000
        max_priority_fee: 1000000000
"""


@pytest.fixture
def connect(monkeypatch):
    mock_connect = Mock(return_value=nullcontext())
    monkeypatch.setattr(deploy_bridge, "connect", mock_connect)
    monkeypatch.setattr(deploy_bridge, "validate_chain_id", Mock())
    return mock_connect


@pytest.fixture
def local_deployment(monkeypatch, fake_account, canxium_bridge_container, connect):
    monkeypatch.setattr(deploy_bridge, "get_signing_account", Mock(return_value=fake_account))
    monkeypatch.setattr(Deployer, "get_container", lambda self, name: canxium_bridge_container)
    monkeypatch.setattr(Deployer, "print_deployment_info", lambda self: None)


@pytest.fixture
def params_filepath(tmp_path):
    filepath = tmp_path / "local.yml"
    filepath.write_text(LOCAL_PARAMS_YAML)
    return filepath


def test_unknown_network(connect):
    runner = CliRunner()
    result = runner.invoke(
        deploy_bridge.cli, ["--network", "unknown", "--contract", CANXIUM_BRIDGE]
    )
    assert result.exit_code == 1
    assert "Network 'unknown' is not registered" in result.output
    connect.assert_not_called()


def test_unknown_contract_choice(connect):
    runner = CliRunner()
    result = runner.invoke(deploy_bridge.cli, ["--network", "local", "--contract", "Lock"])
    assert result.exit_code != 0
    connect.assert_not_called()


def test_deploy(local_deployment, fake_account, connect, params_filepath):
    runner = CliRunner()
    result = runner.invoke(
        deploy_bridge.cli,
        [
            "--network",
            "local",
            "--contract",
            CANXIUM_BRIDGE,
            "--params-filepath",
            str(params_filepath),
            "--autosign",
        ],
    )
    assert result.exit_code == 0, result.output
    connect.assert_called_once()

    (call,) = fake_account.calls
    _, args, kwargs = call
    assert args == (FIRST_ADDRESS, SECOND_ADDRESS, fake_account.address)
    assert kwargs == {"max_fee": 280000000000, "max_priority_fee": 1000000000}
    assert "Deployed to 0x" in result.output


def test_fee_overrides(local_deployment, fake_account, params_filepath):
    runner = CliRunner()
    result = runner.invoke(
        deploy_bridge.cli,
        [
            "-n",
            "local",
            "-c",
            CANXIUM_BRIDGE,
            "-p",
            str(params_filepath),
            "--autosign",
            "--max-fee",
            "300 gwei",
            "--max-priority-fee",
            "2000000000",
        ],
    )
    assert result.exit_code == 0, result.output
    _, _, kwargs = fake_account.calls[0]
    assert kwargs == {"max_fee": 300000000000, "max_priority_fee": 2000000000}


def test_priority_fee_above_cap(local_deployment, fake_account, connect, params_filepath):
    runner = CliRunner()
    result = runner.invoke(
        deploy_bridge.cli,
        [
            "-n",
            "local",
            "-c",
            CANXIUM_BRIDGE,
            "-p",
            str(params_filepath),
            "--autosign",
            "--max-priority-fee",
            "281 gwei",
        ],
    )
    assert result.exit_code == 1
    assert "exceeds the fee cap" in result.output
    assert fake_account.calls == []
    connect.assert_not_called()


def test_argument_mismatch(local_deployment, fake_account, connect, tmp_path):
    filepath = tmp_path / "local.yml"
    filepath.write_text(LOCAL_PARAMS_YAML.replace("        - $deployer\n", ""))

    runner = CliRunner()
    result = runner.invoke(
        deploy_bridge.cli,
        ["-n", "local", "-c", CANXIUM_BRIDGE, "-p", str(filepath), "--autosign"],
    )
    assert result.exit_code == 1
    assert "Constructor parameters length mismatch" in result.output
    assert fake_account.calls == []
    connect.assert_not_called()


def test_deployment_failed(local_deployment, fake_account, params_filepath):
    fake_account.error = TimeoutError("receipt not available")
    runner = CliRunner()
    result = runner.invoke(
        deploy_bridge.cli,
        ["-n", "local", "-c", CANXIUM_BRIDGE, "-p", str(params_filepath), "--autosign"],
    )
    assert result.exit_code == 1
    assert "Deployment of CanxiumBridge failed: receipt not available" in result.output
    assert "Deployed to" not in result.output
    assert len(fake_account.calls) == 1


def test_rpc_unreachable(local_deployment, fake_account, connect, params_filepath):
    cause = ProviderError("No (supported) node found on 'http://127.0.0.1:1'.")
    connect.side_effect = cause
    runner = CliRunner()
    result = runner.invoke(
        deploy_bridge.cli,
        ["-n", "local", "-c", CANXIUM_BRIDGE, "-p", str(params_filepath), "--autosign"],
    )
    assert result.exit_code == 1
    assert "Could not connect to network 'local'" in result.output
    assert "No (supported) node found" in result.output
    assert fake_account.calls == []


def test_rpc_unreachable_keeps_cause(local_deployment, connect, params_filepath):
    cause = ProviderError("No (supported) node found on 'http://127.0.0.1:1'.")
    connect.side_effect = cause
    with pytest.raises(DeploymentFailed) as exc_info:
        deploy_bridge.deploy_bridge(
            network_name="local",
            contract_name=CANXIUM_BRIDGE,
            params_filepath=params_filepath,
            autosign=True,
        )
    assert exc_info.value.cause is cause


def test_deployment_declined(local_deployment, fake_account, params_filepath):
    runner = CliRunner()
    result = runner.invoke(
        deploy_bridge.cli,
        ["-n", "local", "-c", CANXIUM_BRIDGE, "-p", str(params_filepath)],
        input="y\nn\n",
    )
    assert result.exit_code == 1
    assert f"Deploy {CANXIUM_BRIDGE}?" in result.output
    assert "Aborted!" in result.output
    assert "Deployed to" not in result.output
    assert fake_account.calls == []


def test_deployment_confirmed(local_deployment, fake_account, params_filepath):
    runner = CliRunner()
    result = runner.invoke(
        deploy_bridge.cli,
        ["-n", "local", "-c", CANXIUM_BRIDGE, "-p", str(params_filepath)],
        input="y\ny\n",
    )
    assert result.exit_code == 0, result.output
    assert f"[0]={FIRST_ADDRESS}" in result.output
    assert "Fees: max_fee=280 gwei, max_priority_fee=1 gwei" in result.output
    assert "Zero Address detected" not in result.output
    assert len(fake_account.calls) == 1


def test_zero_address_needs_second_confirmation(local_deployment, fake_account, tmp_path):
    filepath = tmp_path / "local.yml"
    filepath.write_text(LOCAL_PARAMS_YAML.replace(f'"{SECOND_ADDRESS}"', f'"{ZERO_ADDRESS}"'))

    runner = CliRunner()
    result = runner.invoke(
        deploy_bridge.cli,
        ["-n", "local", "-c", CANXIUM_BRIDGE, "-p", str(filepath)],
        input="y\ny\nn\n",
    )
    assert result.exit_code == 1
    assert "Zero Address detected" in result.output
    assert fake_account.calls == []

    result = runner.invoke(
        deploy_bridge.cli,
        ["-n", "local", "-c", CANXIUM_BRIDGE, "-p", str(filepath)],
        input="y\ny\ny\n",
    )
    assert result.exit_code == 0, result.output
    (call,) = fake_account.calls
    assert call[1][1] == ZERO_ADDRESS
