import click

from bridge_deployment.fees import FeePolicy, _to_wei


class FeeAmount(click.ParamType):
    """A non-negative fee in wei; also accepts ape value strings such as '280 gwei'."""

    name = "fee"

    def convert(self, value, param, ctx):
        if isinstance(value, int):
            amount = value
        else:
            value = value.strip()
            try:
                amount = int(value) if value.isdigit() else _to_wei(value)
            except FeePolicy.Invalid:
                self.fail(f"{value} is not a valid fee amount", param, ctx)
        if amount < 0:
            self.fail(f"{value} is less than the minimum allowed value of 0", param, ctx)
        return amount
