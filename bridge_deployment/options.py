from pathlib import Path

import click

from bridge_deployment.constants import BRIDGE_CONTRACTS
from bridge_deployment.types import FeeAmount

network_name_option = click.option(
    "--network",
    "-n",
    "network_name",
    help="Name of a network profile in the network registry",
    type=click.STRING,
    required=True,
)

contract_option = click.option(
    "--contract",
    "-c",
    "contract_name",
    help="Bridge contract to deploy",
    type=click.Choice(BRIDGE_CONTRACTS),
    required=True,
)

params_filepath_option = click.option(
    "--params-filepath",
    "-p",
    help="Constructor parameters file; defaults to constructor_params/<network>.yml",
    type=click.Path(dir_okay=False, path_type=Path),
    required=False,
)

registry_filepath_option = click.option(
    "--registry-filepath",
    "-f",
    help="Registry file to record deployments in",
    type=click.Path(dir_okay=False, path_type=Path),
    required=False,
)

artifacts_dir_option = click.option(
    "--artifacts-dir",
    help="Directory of precompiled contract artifacts",
    type=click.Path(file_okay=False, exists=True, path_type=Path),
    required=False,
)

verify_option = click.option(
    "--verify/--no-verify",
    help="Publish contract sources to the network's block explorer",
    default=False,
)

autosign_option = click.option(
    "--autosign",
    help="Sign transactions without prompting",
    is_flag=True,
    default=False,
)

max_fee_option = click.option(
    "--max-fee",
    help="Override the fee cap (wei, or e.g. '300 gwei')",
    type=FeeAmount(),
    required=False,
)

max_priority_fee_option = click.option(
    "--max-priority-fee",
    help="Override the priority fee (wei, or e.g. '2 gwei')",
    type=FeeAmount(),
    required=False,
)
