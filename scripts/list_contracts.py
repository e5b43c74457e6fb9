#!/usr/bin/python3

from itertools import groupby
from pathlib import Path
from typing import Dict, List

import click

from bridge_deployment.networks import NetworkRegistry, load_network_registry
from bridge_deployment.registry import RegistryEntry, read_registry


def _chain_names(network_registry: NetworkRegistry) -> Dict[int, str]:
    """Maps chain ids to the names of the network profiles describing them."""
    return {
        profile.chain_id: name
        for name, profile in network_registry.profiles.items()
        if profile.chain_id is not None
    }


def _display_registry_entries(entries: List[RegistryEntry], chain_names: Dict[int, str]) -> None:
    """Display registry entries grouped by chain ID."""
    entries = sorted(entries, key=lambda e: (e.chain_id, e.name))
    for chain_id, chain_entries in groupby(entries, key=lambda e: e.chain_id):
        chain_name = chain_names.get(chain_id, "unknown network")
        click.secho(f"\n{chain_name.capitalize()} (chain id {chain_id})", fg="yellow")

        for index, entry in enumerate(chain_entries, start=1):
            click.secho(f"    {index}. {entry.name} {entry.address}", fg="cyan")


@click.command(name="list-contracts")
@click.option(
    "--registry-filepath",
    "-f",
    type=click.Path(dir_okay=False, exists=True, path_type=Path),
    help="Registry file to list",
    required=True,
)
def cli(registry_filepath):
    """List all contracts in a registry file."""
    entries = read_registry(filepath=registry_filepath)
    _display_registry_entries(entries, chain_names=_chain_names(load_network_registry()))


if __name__ == "__main__":
    cli()
