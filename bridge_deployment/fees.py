from typing import Any, Dict, NamedTuple, Optional, Union

from ape import convert
from ape.exceptions import ConversionError

from bridge_deployment.constants import DEFAULT_MAX_FEE, DEFAULT_MAX_PRIORITY_FEE, GWEI
from bridge_deployment.exceptions import BridgeDeploymentError

FeeValue = Union[int, str]

MAX_FEE_KEY = "max_fee"
MAX_PRIORITY_FEE_KEY = "max_priority_fee"


def _to_wei(value: FeeValue) -> int:
    """Converts an integer or an ape value string (e.g. '280 gwei') to wei."""
    if isinstance(value, bool):
        raise FeePolicy.Invalid(f"Invalid fee value {value!r}")
    if isinstance(value, int):
        return value
    try:
        return convert(value, int)
    except ConversionError as error:
        raise FeePolicy.Invalid(f"Invalid fee value {value!r}") from error


class FeePolicy(NamedTuple):
    """
    Pinned EIP-1559 fee parameters for a creation transaction, in wei.
    These replace the provider's fee estimation entirely.
    """

    max_fee: int
    max_priority_fee: int

    class Invalid(BridgeDeploymentError, ValueError):
        """Raised when the fee parameters are invalid"""

    @classmethod
    def create(cls, max_fee: FeeValue, max_priority_fee: FeeValue) -> "FeePolicy":
        policy = cls(max_fee=_to_wei(max_fee), max_priority_fee=_to_wei(max_priority_fee))
        policy.validate()
        return policy

    @classmethod
    def default(cls) -> "FeePolicy":
        return cls.create(DEFAULT_MAX_FEE, DEFAULT_MAX_PRIORITY_FEE)

    @classmethod
    def from_config(cls, config: Optional[Dict[str, Any]]) -> "FeePolicy":
        """Loads a fee policy from a 'fees' section; omitted values fall back to the defaults."""
        config = config or dict()
        unexpected = set(config) - {MAX_FEE_KEY, MAX_PRIORITY_FEE_KEY}
        if unexpected:
            raise cls.Invalid(f"Unexpected fee parameters: {', '.join(sorted(unexpected))}")
        return cls.create(
            max_fee=config.get(MAX_FEE_KEY, DEFAULT_MAX_FEE),
            max_priority_fee=config.get(MAX_PRIORITY_FEE_KEY, DEFAULT_MAX_PRIORITY_FEE),
        )

    def validate(self) -> None:
        if self.max_fee < 0 or self.max_priority_fee < 0:
            raise self.Invalid(f"Fee parameters must be non-negative; got {self}")
        if self.max_priority_fee > self.max_fee:
            raise self.Invalid(
                f"Priority fee ({self.max_priority_fee} wei) exceeds "
                f"the fee cap ({self.max_fee} wei)."
            )

    def override(
        self, max_fee: Optional[FeeValue] = None, max_priority_fee: Optional[FeeValue] = None
    ) -> "FeePolicy":
        """Returns a new policy with the given values replaced."""
        return self.create(
            max_fee=self.max_fee if max_fee is None else max_fee,
            max_priority_fee=self.max_priority_fee if max_priority_fee is None else max_priority_fee,
        )

    def as_transaction_kwargs(self) -> Dict[str, int]:
        return {MAX_FEE_KEY: self.max_fee, MAX_PRIORITY_FEE_KEY: self.max_priority_fee}

    def __str__(self) -> str:
        return (
            f"max_fee={self.max_fee / GWEI:g} gwei, "
            f"max_priority_fee={self.max_priority_fee / GWEI:g} gwei"
        )
