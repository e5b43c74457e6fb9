import click
from ape.utils import ZERO_ADDRESS


def _continue() -> None:
    """Asks the user to continue."""
    click.confirm("Continue?", default=False, abort=True, err=True)


def _confirm_deployment(contract_name: str) -> None:
    """Asks the user to confirm the deployment of a single contract."""
    click.confirm(f"Deploy {contract_name}?", default=False, abort=True, err=True)


def _confirm_zero_address() -> None:
    click.confirm(
        "Zero Address detected for deployment parameter; Continue?",
        default=False,
        abort=True,
        err=True,
    )


def _confirm_request(request) -> None:
    """Asks the user to confirm the constructor arguments and fees of a deployment request."""
    contract_name = request.contract_name
    if not request.constructor_args:
        click.echo(f"\n(i) No constructor parameters for {contract_name}", err=True)
    else:
        click.echo(f"\nConstructor parameters for {contract_name}", err=True)
        names = request.parameter_names or [
            f"[{position}]" for position in range(len(request.constructor_args))
        ]
        for name, value in zip(names, request.constructor_args):
            click.echo(f"\t{name}={value}", err=True)
    click.echo(f"Fees: {request.fee_policy}", err=True)

    _confirm_deployment(contract_name)
    if any(value == ZERO_ADDRESS for value in request.constructor_args):
        _confirm_zero_address()
