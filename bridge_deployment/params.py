import typing
from abc import ABC, abstractmethod
from collections import OrderedDict
from pathlib import Path
from typing import Any, Dict, List, NamedTuple, Optional, Tuple

import click
from ape import networks
from ape.api import AccountAPI, ReceiptAPI
from ape.contracts.base import ContractContainer, ContractInstance
from ape.exceptions import ApeException
from ape.utils import ZERO_ADDRESS
from ape_accounts import KeyfileAccount
from eth_typing import ChecksumAddress
from eth_utils import to_checksum_address
from ethpm_types import ContractType
from requests.exceptions import RequestException
from web3.auto import w3

from bridge_deployment.confirm import _confirm_request, _continue
from bridge_deployment.constants import STATE_TRANSITIONS, TERMINAL_STATES, DeploymentState
from bridge_deployment.exceptions import (
    ArgumentMismatch,
    DeploymentConfigError,
    DeploymentFailed,
)
from bridge_deployment.fees import FeePolicy, FeeValue
from bridge_deployment.networks import NetworkProfile, verify_contracts
from bridge_deployment.registry import registry_from_results
from bridge_deployment.utils import get_contract_container, load_config_file

CONTRACT_CONSTRUCTOR_PARAMETER_KEY = "constructor"
CONTRACT_FEES_PARAMETER_KEY = "fees"
CONTRACT_PARAMETER_KEYS = (CONTRACT_CONSTRUCTOR_PARAMETER_KEY, CONTRACT_FEES_PARAMETER_KEY)

# failures of submission or confirmation; anything else is a bug and propagates as is
SUBMISSION_ERRORS = (ApeException, RequestException, TimeoutError)


class VariableContext:
    def __init__(
        self,
        contract_name: str,
        constants: typing.Dict[str, Any] = None,
        deployer_address: ChecksumAddress = ZERO_ADDRESS,
    ):
        self.contract_name = contract_name
        self.constants = constants or dict()
        self.deployer_address = deployer_address


# Variables


class Variable(ABC):
    VARIABLE_PREFIX = "$"

    @abstractmethod
    def resolve(self) -> Any:
        raise NotImplementedError

    @classmethod
    def is_variable(cls, param: Any) -> bool:
        """Returns True if the param is a variable."""
        result = isinstance(param, str) and param.startswith(cls.VARIABLE_PREFIX)
        return result


class DeployerAccount(Variable):
    DEPLOYER_INDICATOR = "deployer"

    def __init__(self, context: VariableContext):
        self.deployer_address = context.deployer_address

    @classmethod
    def is_deployer(cls, value: str) -> bool:
        """Returns True if the variable is a special deployer variable."""
        return value == cls.DEPLOYER_INDICATOR

    def resolve(self) -> Any:
        return self.deployer_address


class Constant(Variable):
    def __init__(self, constant_name: str, context: VariableContext):
        try:
            self.constant_value = context.constants[constant_name]
        except KeyError:
            raise DeploymentConfigError(
                f"Constant '{constant_name}' used by {context.contract_name} "
                f"not found in deployment file."
            )

    @classmethod
    def is_constant(cls, value: str) -> bool:
        """Returns True if the variable is a deployment constant."""
        return value.isupper()

    def resolve(self) -> Any:
        return self.constant_value


def _variable_from_value(variable: str, context: VariableContext) -> Variable:
    variable = variable[len(Variable.VARIABLE_PREFIX) :]
    if DeployerAccount.is_deployer(variable):
        return DeployerAccount(context)
    elif Constant.is_constant(variable):
        return Constant(variable, context)
    raise DeploymentConfigError(
        f"Unknown variable '${variable}' in constructor parameters for {context.contract_name}."
    )


def _resolve_param(value: Any, context: VariableContext) -> Any:
    """Resolves a single parameter value or a list of parameter values."""
    if isinstance(value, list):
        return [_resolve_param(v, context) for v in value]

    if Variable.is_variable(value):
        return _variable_from_value(value, context).resolve()

    return value  # literally a value


# Requests and results


class ContractDeploymentRequest(NamedTuple):
    """A single contract creation: what to deploy, with which arguments, at which fees."""

    contract_name: str
    constructor_args: Tuple[Any, ...]
    fee_policy: FeePolicy
    parameter_names: Optional[Tuple[str, ...]] = None


class DeploymentResult(NamedTuple):
    contract_name: str
    contract_address: ChecksumAddress
    transaction_hash: str
    block_number: int
    deployer: ChecksumAddress


class DeploymentOutcome(NamedTuple):
    """
    The lifecycle of a single request: IDLE until handed to the account, SUBMITTED
    while the account broadcasts and waits for the receipt, then CONFIRMED with a
    result or FAILED with the cause.
    """

    request: ContractDeploymentRequest
    state: DeploymentState = DeploymentState.IDLE
    result: Optional[DeploymentResult] = None
    error: Optional[Exception] = None

    def advance(
        self,
        state: DeploymentState,
        result: Optional[DeploymentResult] = None,
        error: Optional[Exception] = None,
    ) -> "DeploymentOutcome":
        """Returns the outcome moved to the next state; terminal states never move."""
        if self.state in TERMINAL_STATES or state not in STATE_TRANSITIONS[self.state]:
            raise ValueError(
                f"Deployment of {self.request.contract_name} cannot move "
                f"from {self.state.name} to {state.name}."
            )
        return self._replace(state=state, result=result, error=error)

    @property
    def confirmed(self) -> bool:
        return self.state == DeploymentState.CONFIRMED

    def unwrap(self) -> DeploymentResult:
        if self.confirmed:
            return self.result
        raise DeploymentFailed(
            f"Deployment of {self.request.contract_name} failed: {self.error}", cause=self.error
        ) from self.error


class DeploymentConfig(NamedTuple):
    """Settings of a single deployment run, resolved once at startup."""

    profile: NetworkProfile
    params_filepath: Optional[Path] = None
    verify: bool = False
    autosign: bool = False
    registry_filepath: Optional[Path] = None
    artifacts_dir: Optional[Path] = None


# Validation


def _validate_constructor_abi_inputs(
    contract_name: str,
    abi_inputs: List[Any],
    args: typing.Sequence[Any],
    names: Optional[typing.Sequence[str]] = None,
) -> None:
    """Validates the constructor arguments against the constructor ABI."""
    if len(args) != len(abi_inputs):
        raise ArgumentMismatch(
            f"Constructor parameters length mismatch - "
            f"{contract_name} ABI requires {len(abi_inputs)}, Got {len(args)}."
        )
    if not abi_inputs:
        return  # no constructor parameters

    names = names or [None] * len(args)
    codex = enumerate(zip(abi_inputs, names, args), start=0)
    for position, (abi_input, name, value) in codex:
        # validate name
        if name is not None and abi_input.name != name:
            raise ArgumentMismatch(
                f"{contract_name} constructor parameter '{name}' at position {position} does not "
                f"match the expected ABI name '{abi_input.name}'."
            )

        # validate value type
        if not w3.is_encodable(abi_input.canonical_type, value):
            raise ArgumentMismatch(
                f"{contract_name} constructor parameter at position {position} has a value "
                f"'{value}' whose type does not match expected ABI type '{abi_input.type}'"
            )


def validate_request(request: ContractDeploymentRequest, container: ContractContainer) -> None:
    """Checks a request against the container's constructor before anything is sent."""
    request.fee_policy.validate()
    _validate_constructor_abi_inputs(
        contract_name=request.contract_name,
        abi_inputs=container.contract_type.constructor.inputs,
        args=request.constructor_args,
        names=request.parameter_names,
    )


# Constructor parameters


class ContractParameters(NamedTuple):
    raw_constructor_params: Any
    fee_policy: FeePolicy


def _get_contract_entries(config: typing.Dict) -> List[Tuple[str, Dict]]:
    contracts = config.get("contracts")
    if not contracts or not isinstance(contracts, list):
        raise DeploymentConfigError("Constructor parameters file missing 'contracts' field.")

    entries = list()
    for contract_info in contracts:
        if isinstance(contract_info, str):
            entries.append((contract_info, dict()))
        elif isinstance(contract_info, dict) and len(contract_info) == 1:
            contract_name, contract_data = list(contract_info.items())[0]  # only one entry
            entries.append((contract_name, contract_data or dict()))
        else:
            raise DeploymentConfigError("Malformed constructor parameters YAML.")
    return entries


class ConstructorParameters:
    """Represents the constructor parameters and fee policies of the contracts for one network."""

    def __init__(
        self,
        network_name: str,
        parameters: typing.OrderedDict[str, ContractParameters],
        constants: Optional[Dict[str, Any]] = None,
    ):
        self.network_name = network_name
        self.parameters = parameters
        self.constants = constants or dict()
        for contract_name in self.parameters:
            # eager validation of variables; the deployer resolves to the zero address
            self._resolve(contract_name, deployer_address=ZERO_ADDRESS)

    @classmethod
    def from_config(
        cls, config: typing.Dict, network_name: Optional[str] = None
    ) -> "ConstructorParameters":
        """Loads the constructor parameters from a parsed YAML file."""
        deployment = config.get("deployment")
        if not deployment or not deployment.get("network"):
            raise DeploymentConfigError("deployment network is not set in params file.")
        config_network_name = deployment["network"]
        if network_name and network_name != config_network_name:
            raise DeploymentConfigError(
                f"Params file is for network '{config_network_name}', not '{network_name}'."
            )

        parameters = OrderedDict()
        for contract_name, contract_data in _get_contract_entries(config):
            if contract_name in parameters:
                raise DeploymentConfigError(f"Duplicate entry for contract {contract_name}.")
            if not isinstance(contract_data, dict) or set(contract_data) - set(
                CONTRACT_PARAMETER_KEYS
            ):
                raise DeploymentConfigError(
                    f"Malformed constructor parameter config for {contract_name}."
                )

            raw_constructor_params = contract_data.get(CONTRACT_CONSTRUCTOR_PARAMETER_KEY) or list()
            if not isinstance(raw_constructor_params, (list, dict)):
                raise DeploymentConfigError(
                    f"Constructor parameters for {contract_name} must be a list or a mapping."
                )
            fee_policy = FeePolicy.from_config(contract_data.get(CONTRACT_FEES_PARAMETER_KEY))
            parameters[contract_name] = ContractParameters(
                raw_constructor_params=raw_constructor_params, fee_policy=fee_policy
            )

        return cls(
            network_name=config_network_name,
            parameters=parameters,
            constants=config.get("constants"),
        )

    @classmethod
    def from_yaml(cls, filepath: Path, network_name: Optional[str] = None) -> "ConstructorParameters":
        return cls.from_config(load_config_file(filepath), network_name=network_name)

    @property
    def contract_names(self) -> List[str]:
        return list(self.parameters)

    def _resolve(
        self, contract_name: str, deployer_address: ChecksumAddress
    ) -> Tuple[Tuple[Any, ...], Optional[Tuple[str, ...]]]:
        context = VariableContext(
            contract_name=contract_name,
            constants=self.constants,
            deployer_address=deployer_address,
        )
        raw_params = self.parameters[contract_name].raw_constructor_params
        if isinstance(raw_params, dict):
            names = tuple(raw_params)
            values = tuple(_resolve_param(value, context) for value in raw_params.values())
            return values, names
        return tuple(_resolve_param(value, context) for value in raw_params), None

    def request(
        self,
        contract_name: str,
        deployer_address: ChecksumAddress,
        max_fee: Optional[FeeValue] = None,
        max_priority_fee: Optional[FeeValue] = None,
    ) -> ContractDeploymentRequest:
        """Builds the deployment request of a single contract, with optional fee overrides."""
        if contract_name not in self.parameters:
            raise DeploymentConfigError(
                f"No constructor parameters for {contract_name} on network '{self.network_name}'."
            )
        args, names = self._resolve(contract_name, deployer_address=deployer_address)
        fee_policy = self.parameters[contract_name].fee_policy.override(
            max_fee=max_fee, max_priority_fee=max_priority_fee
        )
        return ContractDeploymentRequest(
            contract_name=contract_name,
            constructor_args=args,
            fee_policy=fee_policy,
            parameter_names=names,
        )


# Execution


class Transactor:
    """
    Represents an ape account plus confirmed transaction execution.
    """

    def __init__(self, account: AccountAPI, autosign: bool = False):
        self._account = account
        if autosign:
            click.echo(
                "WARNING: Autosign is enabled. Transactions will be signed automatically.",
                err=True,
            )
        self._autosign = autosign
        if isinstance(self._account, KeyfileAccount):
            self._account.set_autosign(autosign)

    def get_account(self) -> AccountAPI:
        """Returns the transactor account."""
        return self._account


class Deployer(Transactor):
    """
    Submits contract creation transactions for deployment requests with
    pinned fees, waits for their receipts and reports the deployed addresses.
    """

    def __init__(self, config: DeploymentConfig, account: AccountAPI):
        super().__init__(account=account, autosign=config.autosign)
        self.config = config
        self.results: List[DeploymentResult] = list()
        self._outcome: Optional[DeploymentOutcome] = None
        self._contract_types: Dict[str, ContractType] = dict()

    @property
    def state(self) -> DeploymentState:
        """State of the most recent request."""
        if self._outcome is None:
            return DeploymentState.IDLE
        return self._outcome.state

    def get_container(self, contract_name: str) -> ContractContainer:
        return get_contract_container(contract_name, artifacts_dir=self.config.artifacts_dir)

    def _get_kwargs(self, request: ContractDeploymentRequest) -> Dict[str, Any]:
        """Returns the transaction kwargs; fees always come from the request."""
        kwargs = request.fee_policy.as_transaction_kwargs()
        required_confirmations = self.config.profile.required_confirmations
        if required_confirmations is not None:
            kwargs["required_confirmations"] = required_confirmations
        return kwargs

    def _get_result(
        self, request: ContractDeploymentRequest, instance: ContractInstance, receipt: ReceiptAPI
    ) -> DeploymentResult:
        return DeploymentResult(
            contract_name=request.contract_name,
            contract_address=to_checksum_address(instance.address),
            transaction_hash=str(receipt.txn_hash),
            block_number=receipt.block_number,
            deployer=to_checksum_address(self._account.address),
        )

    def submit(
        self, request: ContractDeploymentRequest, container: Optional[ContractContainer] = None
    ) -> DeploymentOutcome:
        """
        Submits exactly one creation transaction for the request and blocks until it is
        mined. Invalid requests raise before anything is sent; failures after that are
        returned as a FAILED outcome carrying the cause, and are never retried.
        """
        container = container or self.get_container(request.contract_name)
        validate_request(request, container)
        if not self._autosign:
            _confirm_request(request)

        kwargs = self._get_kwargs(request)
        outcome = DeploymentOutcome(request=request).advance(DeploymentState.SUBMITTED)
        self._outcome = outcome
        try:
            # the account signs, broadcasts and waits for the receipt; no timeout of our own
            instance = self._account.deploy(container, *request.constructor_args, **kwargs)
            receipt = networks.provider.get_receipt(instance.txn_hash)
        except SUBMISSION_ERRORS as error:
            self._outcome = outcome.advance(DeploymentState.FAILED, error=error)
            return self._outcome

        result = self._get_result(request, instance, receipt)
        self._contract_types[request.contract_name] = container.contract_type
        self._outcome = outcome.advance(DeploymentState.CONFIRMED, result=result)
        return self._outcome

    def deploy(
        self, request: ContractDeploymentRequest, container: Optional[ContractContainer] = None
    ) -> DeploymentResult:
        """Deploys a single contract and writes its address to stdout."""
        result = self.submit(request, container=container).unwrap()
        self.results.append(result)
        click.echo(f"Deployed to {result.contract_address}")
        return result

    def finalize(self) -> None:
        """
        Publishes the deployments to the registry and optionally to the block explorer.
        """
        if self.config.registry_filepath:
            registry_from_results(
                results=self.results,
                contract_types=self._contract_types,
                chain_id=networks.provider.chain_id,
                output_filepath=self.config.registry_filepath,
            )
        if self.config.verify:
            contracts = {result.contract_name: result.contract_address for result in self.results}
            verify_contracts(profile=self.config.profile, contracts=contracts)

    def confirm_start(self) -> None:
        if not self._autosign:
            # Confirms the start of the deployment.
            _continue()

    def print_deployment_info(self) -> None:
        click.echo(
            "\n".join(
                [
                    f"Account: {self.get_account().address}",
                    f"Network profile: {self.config.profile.name}",
                    f"Config: {self.config.params_filepath}",
                    f"Registry: {self.config.registry_filepath}",
                    f"Verify: {self.config.verify}",
                    f"Ecosystem: {networks.provider.network.ecosystem.name}",
                    f"Network: {networks.provider.network.name}",
                    f"Chain ID: {networks.provider.chain_id}",
                ]
            ),
            err=True,
        )
