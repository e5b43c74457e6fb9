from pathlib import Path
from types import MappingProxyType
from typing import Dict, List, Mapping, NamedTuple, Optional, Tuple

import click
from ape import accounts, networks
from ape.api import AccountAPI

from bridge_deployment.constants import LOCAL_NETWORKS, NETWORKS_FILEPATH
from bridge_deployment.exceptions import DeploymentConfigError, UnknownNetwork
from bridge_deployment.utils import load_config_file, resolve_environment_value

NETWORKS_KEY = "networks"
CUSTOM_CHAIN_FIELDS = ("chain_id", "api_url", "browser_url")


class CustomChain(NamedTuple):
    """Maps a chain id to its block explorer; only used for source verification."""

    chain_id: int
    api_url: str
    browser_url: str


class NetworkProfile(NamedTuple):
    name: str
    network_choice: str
    rpc_url: Optional[str]
    signing_accounts: Tuple[str, ...]
    explorer_api_key: Optional[str] = None
    custom_chain: Optional[CustomChain] = None
    required_confirmations: Optional[int] = None

    @property
    def chain_id(self) -> Optional[int]:
        return self.custom_chain.chain_id if self.custom_chain else None

    @property
    def is_local(self) -> bool:
        choice = self.network_choice.split(":")
        return len(choice) > 1 and choice[1] in LOCAL_NETWORKS

    @property
    def verification(self) -> Optional[Tuple[str, CustomChain]]:
        """The explorer API key and chain descriptor, or None if either is missing."""
        if not self.explorer_api_key or not self.custom_chain:
            return None
        return self.explorer_api_key, self.custom_chain


def _parse_custom_chain(network_name: str, data: Optional[Dict]) -> Optional[CustomChain]:
    if data is None:
        return None
    if not isinstance(data, dict):
        raise DeploymentConfigError(f"Malformed custom_chain for network '{network_name}'.")

    missing = [field for field in CUSTOM_CHAIN_FIELDS if not data.get(field)]
    if missing:
        raise DeploymentConfigError(
            f"custom_chain for network '{network_name}' must provide "
            f"{', '.join(CUSTOM_CHAIN_FIELDS)}; missing {', '.join(missing)}."
        )

    chain_id = data["chain_id"]
    if not isinstance(chain_id, int) or isinstance(chain_id, bool) or chain_id <= 0:
        raise DeploymentConfigError(
            f"chain_id for network '{network_name}' must be a positive integer; got {chain_id!r}."
        )
    return CustomChain(chain_id=chain_id, api_url=data["api_url"], browser_url=data["browser_url"])


def _parse_profile(name: str, data: Dict) -> NetworkProfile:
    if not isinstance(data, dict):
        raise DeploymentConfigError(f"Malformed profile for network '{name}'.")

    network_choice = data.get("network_choice")
    if not network_choice:
        raise DeploymentConfigError(f"network_choice is not set for network '{name}'.")

    signing_accounts = data.get("accounts") or list()
    if not isinstance(signing_accounts, list) or not all(
        isinstance(alias, str) for alias in signing_accounts
    ):
        raise DeploymentConfigError(f"accounts for network '{name}' must be a list of aliases.")

    required_confirmations = data.get("required_confirmations")
    if required_confirmations is not None and (
        not isinstance(required_confirmations, int) or required_confirmations < 0
    ):
        raise DeploymentConfigError(
            f"required_confirmations for network '{name}' must be a non-negative integer."
        )

    return NetworkProfile(
        name=name,
        network_choice=network_choice,
        rpc_url=data.get("rpc_url"),
        signing_accounts=tuple(signing_accounts),
        explorer_api_key=resolve_environment_value(data.get("explorer_api_key")),
        custom_chain=_parse_custom_chain(name, data.get("custom_chain")),
        required_confirmations=required_confirmations,
    )


class NetworkRegistry:
    """Read-only mapping of network names to their deployment profiles."""

    def __init__(self, profiles: Dict[str, NetworkProfile]):
        self._profiles = MappingProxyType(dict(profiles))

    @classmethod
    def from_config(cls, config: Dict) -> "NetworkRegistry":
        networks_config = config.get(NETWORKS_KEY)
        if not networks_config or not isinstance(networks_config, dict):
            raise DeploymentConfigError("Network registry is missing the 'networks' field.")
        profiles = {
            name: _parse_profile(name=name, data=data) for name, data in networks_config.items()
        }
        return cls(profiles=profiles)

    @classmethod
    def from_yaml(cls, filepath: Path) -> "NetworkRegistry":
        return cls.from_config(load_config_file(filepath))

    @property
    def profiles(self) -> Mapping[str, NetworkProfile]:
        return self._profiles

    @property
    def names(self) -> List[str]:
        return list(self._profiles)

    def __contains__(self, name: str) -> bool:
        return name in self._profiles

    def get(self, name: str) -> NetworkProfile:
        try:
            return self._profiles[name]
        except KeyError:
            raise UnknownNetwork(
                f"Network '{name}' is not registered; "
                f"expected one of: {', '.join(self.names)}."
            )


def load_network_registry(filepath: Path = NETWORKS_FILEPATH) -> NetworkRegistry:
    return NetworkRegistry.from_yaml(filepath)


def connect(profile: NetworkProfile):
    """Returns the provider context for the profile, pointing the provider at its RPC URL."""
    provider_settings = {"uri": profile.rpc_url} if profile.rpc_url else None
    return networks.parse_network_choice(
        profile.network_choice, provider_settings=provider_settings
    )


def is_local_network() -> bool:
    return networks.provider.network.name in LOCAL_NETWORKS


def validate_chain_id(profile: NetworkProfile) -> None:
    """Checks that the connected chain is the one the profile describes."""
    if profile.chain_id is None or is_local_network():
        return
    connected_chain_id = networks.provider.chain_id
    if connected_chain_id != profile.chain_id:
        raise DeploymentConfigError(
            f"chain_id of network '{profile.name}' ({profile.chain_id}) does not match "
            f"chain_id of the connected provider ({connected_chain_id})."
        )


def get_signing_account(profile: NetworkProfile) -> AccountAPI:
    """Returns the first signing account of the profile that is available locally."""
    if profile.is_local:
        return accounts.test_accounts[0]
    available_aliases = set(accounts.aliases)
    for alias in profile.signing_accounts:
        if alias in available_aliases:
            return accounts.load(alias)
    raise DeploymentConfigError(
        f"None of the signing accounts for network '{profile.name}' are available: "
        f"{', '.join(profile.signing_accounts) or '(none configured)'}."
    )


def check_explorer(profile: NetworkProfile) -> None:
    """
    Checks that the ape-etherscan plugin is installed and that the
    profile carries a complete explorer descriptor.
    """
    if profile.is_local:
        # unnecessary for local deployment
        return
    try:
        import ape_etherscan  # noqa: F401
    except ImportError:
        raise ImportError("Please install the ape-etherscan plugin to verify contracts.")
    if profile.verification is None:
        raise DeploymentConfigError(
            f"Explorer verification is not configured for network '{profile.name}'; "
            f"it needs an explorer API key and a custom_chain descriptor."
        )


def verify_contracts(profile: NetworkProfile, contracts: Dict[str, str]) -> None:
    """Publishes the sources of deployed contracts (name -> address) to the explorer."""
    if profile.is_local:
        click.echo("(i) Skipping verification on a local network.", err=True)
        return
    check_explorer(profile)
    explorer = networks.provider.network.explorer
    if explorer is None:
        raise DeploymentConfigError(f"No explorer available for network '{profile.name}'.")
    _, custom_chain = profile.verification
    for contract_name, address in contracts.items():
        click.echo(f"(i) Verifying {contract_name} at {address}...", err=True)
        explorer.publish_contract(address)
        click.echo(f"(i) {custom_chain.browser_url}/address/{address}", err=True)
