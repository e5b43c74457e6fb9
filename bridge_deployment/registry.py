import json
from collections import defaultdict
from pathlib import Path
from typing import Dict, List, NamedTuple, Optional

import click
from ape.contracts import ContractInstance
from eth_typing import ChecksumAddress
from eth_utils import to_checksum_address
from ethpm_types import ContractType
from eth_typing import ABI

from bridge_deployment.utils import _load_json, get_contract_container

ChainId = int
ContractName = str


STANDARD_REGISTRY_JSON_FORMAT = {"indent": 4, "separators": (",", ": ")}


class RegistryEntry(NamedTuple):
    """Represents a single deployed contract in a registry file."""

    chain_id: ChainId
    name: ContractName
    address: ChecksumAddress
    abi: ABI
    tx_hash: str
    block_number: int
    deployer: str


def _get_abi(contract_type: ContractType) -> ABI:
    """Returns the JSON ABI of a contract type."""
    contract_abi = list()
    for entry in contract_type.abi:
        contract_abi.append(entry.model_dump(mode="json", by_alias=True, exclude_none=True))
    return contract_abi


def _get_entry(result, contract_type: ContractType, chain_id: ChainId) -> RegistryEntry:
    entry = RegistryEntry(
        name=result.contract_name,
        address=to_checksum_address(result.contract_address),
        abi=_get_abi(contract_type),
        chain_id=chain_id,
        tx_hash=result.transaction_hash,
        block_number=result.block_number,
        deployer=result.deployer,
    )
    return entry


def read_registry(filepath: Path) -> List[RegistryEntry]:
    data = _load_json(filepath)
    registry_entries = list()
    for chain_id, entries in data.items():
        for contract_name, artifacts in entries.items():
            registry_entry = RegistryEntry(
                chain_id=int(chain_id),
                name=contract_name,
                address=artifacts["address"],
                abi=artifacts["abi"],
                tx_hash=artifacts["tx_hash"],
                block_number=artifacts["block_number"],
                deployer=artifacts["deployer"],
            )
            registry_entries.append(registry_entry)
    return registry_entries


def write_registry(entries: List[RegistryEntry], filepath: Path, silent: bool = False) -> Path:
    """
    Writes registry entries to a file, merging them into an existing registry.
    Entries that would replace an existing (chain id, contract name) pair are
    written to a separate '.unmerged.json' file instead.
    """

    if not entries:
        if not silent:
            click.echo("No entries provided.", err=True)
        return filepath

    # Sort registry entries to enforce common order
    entries = sorted(entries, key=lambda entry: (str(entry.chain_id), entry.name))

    data = defaultdict(dict)
    for entry in entries:
        entry_abi = list(entry.abi)
        entry_abi.sort(key=lambda d: (d["type"], d.get("name", "")))

        data[str(entry.chain_id)][entry.name] = {
            "address": entry.address,
            "abi": entry_abi,
            "tx_hash": entry.tx_hash,
            "block_number": int(entry.block_number),
            "deployer": entry.deployer,
        }

    # Create the parent directory if it does not exist
    filepath.parent.mkdir(parents=True, exist_ok=True)

    if filepath.exists():
        if not silent:
            click.echo(f"Updating existing registry at {filepath}.", err=True)
        existing_data = _load_json(filepath)

        overlapping = [
            f"{name} (chain id {chain_id})"
            for chain_id, chain_entries in data.items()
            for name in chain_entries
            if name in existing_data.get(chain_id, {})
        ]
        if overlapping:
            filepath = filepath.with_suffix(".unmerged.json")
            if not silent:
                click.echo(
                    f"Registry already contains {', '.join(overlapping)}.\n"
                    f"Writing to {filepath} to avoid overwriting existing data.",
                    err=True,
                )
        else:
            for chain_id, chain_entries in data.items():
                existing_data.setdefault(chain_id, {}).update(chain_entries)
            data = existing_data
    elif not silent:
        click.echo(f"Creating new registry at {filepath}.", err=True)

    with open(filepath, "w") as file:
        json.dump(data, file, **STANDARD_REGISTRY_JSON_FORMAT)

    return filepath


def registry_from_results(
    results: list,
    contract_types: Dict[ContractName, ContractType],
    chain_id: ChainId,
    output_filepath: Path,
) -> Path:
    """Writes the results of a deployment run to a registry file."""
    entries = [
        _get_entry(result, contract_types[result.contract_name], chain_id) for result in results
    ]
    output_filepath = write_registry(entries=entries, filepath=output_filepath)
    click.echo(f"(i) Registry written to {output_filepath}!", err=True)
    return output_filepath


def contracts_from_registry(
    filepath: Path, chain_id: ChainId, artifacts_dir: Optional[Path] = None
) -> Dict[str, ContractInstance]:
    """Returns a dictionary of contract instances from a registry file."""
    registry_entries = read_registry(filepath=filepath)
    deployments = dict()
    for registry_entry in registry_entries:
        if registry_entry.chain_id != chain_id:
            continue
        container = get_contract_container(registry_entry.name, artifacts_dir=artifacts_dir)
        deployments[registry_entry.name] = container.at(registry_entry.address)
    return deployments
