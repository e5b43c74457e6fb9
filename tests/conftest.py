from types import SimpleNamespace

import pytest
from ape.contracts import ContractContainer
from eth_utils import keccak, to_checksum_address
from ethpm_types import ContractType

from bridge_deployment import params
from bridge_deployment.constants import CANXIUM_BRIDGE, SIDE_CHAIN_BRIDGE
from bridge_deployment.fees import FeePolicy
from bridge_deployment.networks import CustomChain, NetworkProfile
from bridge_deployment.params import ContractDeploymentRequest, Deployer, DeploymentConfig

# Common constants
DEPLOYER_ADDRESS = "0xf39Fd6e51aad88F6F4ce6aB8827279cffFb92266"
FIRST_ADDRESS = "0x4C8414F37793A01E5E391642E75f9Ed8e7B63C49"
SECOND_ADDRESS = "0xF26417eCf894678B58feda327DC01A60041856fB"
SIDE_CHAIN_ADDRESS = "0xe408" + "0" * 31 + "fb0b7"

CANXIUM_BRIDGE_ARGS = (FIRST_ADDRESS, SECOND_ADDRESS, SECOND_ADDRESS)
SIDE_CHAIN_BRIDGE_ARGS = (FIRST_ADDRESS, SIDE_CHAIN_ADDRESS)

MAX_FEE = 280_000_000_000
MAX_PRIORITY_FEE = 1_000_000_000

CERIUM_CHAIN_ID = 30103

# copies one STOP byte as runtime code; constructor arguments appended to it are ignored
CREATION_BYTECODE = "0x6001600c60003960016000f300"

NETWORKS_YAML = """
networks:
  cerium:
    network_choice: canxium:cerium:node
    rpc_url: https://cerium-rpc.canxium.net
    accounts:
      - cerium-deployer
      - cerium-backup
    explorer_api_key: $CERIUM_TEST_EXPLORER_KEY
    custom_chain:
      chain_id: 30103
      api_url: https://cerium-explorer.canxium.net/api
      browser_url: https://cerium-explorer.canxium.net
  local:
    network_choice: ethereum:local:test
"""


# Utility functions
def bridge_contract_type(name, input_names, bytecode=CREATION_BYTECODE):
    return ContractType.model_validate(
        {
            "contractName": name,
            "abi": [
                {
                    "type": "constructor",
                    "stateMutability": "nonpayable",
                    "inputs": [
                        {"name": input_name, "type": "address", "internalType": "address"}
                        for input_name in input_names
                    ],
                }
            ],
            "deploymentBytecode": {"bytecode": bytecode},
        }
    )


def hardhat_artifact(name, input_names):
    return {
        "_format": "hh-sol-artifact-1",
        "contractName": name,
        "sourceName": f"contracts/{name}.sol",
        "abi": [
            {
                "type": "constructor",
                "stateMutability": "nonpayable",
                "inputs": [
                    {"name": input_name, "type": "address", "internalType": "address"}
                    for input_name in input_names
                ],
            }
        ],
        "bytecode": CREATION_BYTECODE,
        "deployedBytecode": "0x00",
    }


class FakeProvider:
    """Stands in for the connected ape provider: serves the receipts of fake deployments."""

    def __init__(self, chain_id=CERIUM_CHAIN_ID):
        self.chain_id = chain_id
        self.receipts = dict()

    def get_receipt(self, txn_hash):
        return self.receipts[txn_hash]


class FakeAccount:
    """
    Stands in for an ape account: records every creation call and returns a
    new contract instance for each one. Like ape's, the instance only carries
    the transaction hash; the receipt is held by the provider.
    """

    def __init__(self, provider=None, address=DEPLOYER_ADDRESS, error=None, on_deploy=None):
        self.provider = provider or FakeProvider()
        self.address = address
        self.error = error
        self.on_deploy = on_deploy
        self.calls = list()

    def deploy(self, container, *args, **kwargs):
        self.calls.append((container, args, kwargs))
        if self.on_deploy:
            self.on_deploy()
        if self.error:
            raise self.error
        nonce = len(self.calls)
        contract_address = "0x" + keccak(text=f"{self.address}:{nonce}")[-20:].hex()
        txn_hash = "0x" + keccak(text=f"tx:{self.address}:{nonce}").hex()
        self.provider.receipts[txn_hash] = SimpleNamespace(
            txn_hash=txn_hash, block_number=100 + nonce
        )
        return SimpleNamespace(address=to_checksum_address(contract_address), txn_hash=txn_hash)


# Fixtures
@pytest.fixture
def canxium_bridge_container():
    return ContractContainer(
        bridge_contract_type(CANXIUM_BRIDGE, ["_token", "_owner", "_feeReceiver"])
    )


@pytest.fixture
def side_chain_bridge_container():
    return ContractContainer(bridge_contract_type(SIDE_CHAIN_BRIDGE, ["_token", "_owner"]))


@pytest.fixture
def cerium_profile():
    return NetworkProfile(
        name="cerium",
        network_choice="canxium:cerium:node",
        rpc_url="https://cerium-rpc.canxium.net",
        signing_accounts=("cerium-deployer",),
        explorer_api_key="abc",
        custom_chain=CustomChain(
            chain_id=CERIUM_CHAIN_ID,
            api_url="https://cerium-explorer.canxium.net/api",
            browser_url="https://cerium-explorer.canxium.net",
        ),
    )


@pytest.fixture
def deployment_config(cerium_profile):
    return DeploymentConfig(profile=cerium_profile, autosign=True)


@pytest.fixture
def fake_provider(monkeypatch):
    provider = FakeProvider()
    monkeypatch.setattr(params, "networks", SimpleNamespace(provider=provider))
    return provider


@pytest.fixture
def fake_account(fake_provider):
    return FakeAccount(provider=fake_provider)


@pytest.fixture
def deployer(deployment_config, fake_account):
    return Deployer(config=deployment_config, account=fake_account)


@pytest.fixture
def fee_policy():
    return FeePolicy.create(max_fee=MAX_FEE, max_priority_fee=MAX_PRIORITY_FEE)


@pytest.fixture
def canxium_bridge_request(fee_policy):
    return ContractDeploymentRequest(
        contract_name=CANXIUM_BRIDGE, constructor_args=CANXIUM_BRIDGE_ARGS, fee_policy=fee_policy
    )


@pytest.fixture
def side_chain_bridge_request(fee_policy):
    return ContractDeploymentRequest(
        contract_name=SIDE_CHAIN_BRIDGE,
        constructor_args=SIDE_CHAIN_BRIDGE_ARGS,
        fee_policy=fee_policy,
    )


@pytest.fixture
def networks_filepath(tmp_path):
    filepath = tmp_path / "networks.yml"
    filepath.write_text(NETWORKS_YAML)
    return filepath
