#!/usr/bin/python3

from contextlib import ExitStack
from pathlib import Path
from typing import Optional

import click

from bridge_deployment.constants import CONSTRUCTOR_PARAMS_DIR
from bridge_deployment.exceptions import BridgeDeploymentError, DeploymentFailed
from bridge_deployment.networks import (
    check_explorer,
    connect,
    get_signing_account,
    load_network_registry,
    validate_chain_id,
)
from bridge_deployment.options import (
    artifacts_dir_option,
    autosign_option,
    contract_option,
    max_fee_option,
    max_priority_fee_option,
    network_name_option,
    params_filepath_option,
    registry_filepath_option,
    verify_option,
)
from bridge_deployment.params import (
    SUBMISSION_ERRORS,
    ConstructorParameters,
    Deployer,
    DeploymentConfig,
    DeploymentResult,
    validate_request,
)


def deploy_bridge(
    network_name: str,
    contract_name: str,
    params_filepath: Optional[Path] = None,
    registry_filepath: Optional[Path] = None,
    artifacts_dir: Optional[Path] = None,
    verify: bool = False,
    autosign: bool = False,
    max_fee: Optional[int] = None,
    max_priority_fee: Optional[int] = None,
) -> DeploymentResult:
    """
    Deploys one bridge contract. Everything that can be checked locally
    (network name, parameters, account, constructor arguments) is checked
    before connecting to the network.
    """
    profile = load_network_registry().get(network_name)
    params_filepath = params_filepath or CONSTRUCTOR_PARAMS_DIR / f"{profile.name}.yml"
    parameters = ConstructorParameters.from_yaml(params_filepath, network_name=profile.name)
    config = DeploymentConfig(
        profile=profile,
        params_filepath=params_filepath,
        verify=verify,
        autosign=autosign,
        registry_filepath=registry_filepath,
        artifacts_dir=artifacts_dir,
    )
    if verify:
        check_explorer(profile)

    account = get_signing_account(profile)
    deployer = Deployer(config=config, account=account)
    request = parameters.request(
        contract_name,
        deployer_address=account.address,
        max_fee=max_fee,
        max_priority_fee=max_priority_fee,
    )
    container = deployer.get_container(contract_name)
    validate_request(request, container)

    with ExitStack() as stack:
        try:
            stack.enter_context(connect(profile))
            validate_chain_id(profile)
        except SUBMISSION_ERRORS as error:
            raise DeploymentFailed(
                f"Could not connect to network '{profile.name}': {error}", cause=error
            ) from error

        deployer.print_deployment_info()
        deployer.confirm_start()
        result = deployer.deploy(request, container=container)
        deployer.finalize()

    return result


@click.command()
@network_name_option
@contract_option
@params_filepath_option
@registry_filepath_option
@artifacts_dir_option
@verify_option
@autosign_option
@max_fee_option
@max_priority_fee_option
def cli(
    network_name,
    contract_name,
    params_filepath,
    registry_filepath,
    artifacts_dir,
    verify,
    autosign,
    max_fee,
    max_priority_fee,
):
    """Deploy a bridge contract with pinned fees and report its address."""
    try:
        deploy_bridge(
            network_name=network_name,
            contract_name=contract_name,
            params_filepath=params_filepath,
            registry_filepath=registry_filepath,
            artifacts_dir=artifacts_dir,
            verify=verify,
            autosign=autosign,
            max_fee=max_fee,
            max_priority_fee=max_priority_fee,
        )
    except BridgeDeploymentError as error:
        raise click.ClickException(str(error))


if __name__ == "__main__":
    cli()
