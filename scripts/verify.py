from pathlib import Path

import click
from ape import networks

from bridge_deployment.exceptions import BridgeDeploymentError
from bridge_deployment.networks import connect, load_network_registry, verify_contracts
from bridge_deployment.options import artifacts_dir_option, network_name_option
from bridge_deployment.registry import contracts_from_registry


@click.command()
@network_name_option
@click.option(
    "--contract-name",
    "-c",
    "contract_names",
    help="Contract to verify",
    type=click.STRING,
    required=True,
    multiple=True,
)
@click.option(
    "--registry-filepath",
    "-f",
    type=click.Path(dir_okay=False, exists=True, path_type=Path),
    help="Registry file the contracts were recorded in",
    required=True,
)
@artifacts_dir_option
def cli(network_name, contract_names, registry_filepath, artifacts_dir):
    """Verify deployed contracts on the network's block explorer."""
    try:
        profile = load_network_registry().get(network_name)
        with connect(profile):
            chain_id = networks.active_provider.chain_id
            contracts = contracts_from_registry(
                registry_filepath, chain_id=chain_id, artifacts_dir=artifacts_dir
            )

            to_verify = dict()
            for contract_name in contract_names:
                try:
                    contract_instance = contracts[contract_name]
                except KeyError:
                    raise click.BadParameter(
                        f"Contract '{contract_name}' not found in registry, "
                        f"'{registry_filepath}', for chain {chain_id}"
                    )
                to_verify[contract_name] = contract_instance.address

            verify_contracts(profile=profile, contracts=to_verify)
    except BridgeDeploymentError as error:
        raise click.ClickException(str(error))


if __name__ == "__main__":
    cli()
