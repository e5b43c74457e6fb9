import json
import os
from pathlib import Path
from typing import Dict, Optional

import yaml
from ape import project
from ape.contracts import ContractContainer
from ethpm_types import ContractType

from bridge_deployment.constants import ARTIFACTS_DIR
from bridge_deployment.exceptions import ContractNotFound, DeploymentConfigError

ENVIRONMENT_VARIABLE_PREFIX = "$"


def _load_yaml(filepath: Path) -> dict:
    """Loads a YAML file."""
    with open(filepath, "r") as file:
        return yaml.safe_load(file)


def _load_json(filepath: Path) -> dict:
    """Loads a JSON file."""
    with open(filepath, "r") as file:
        return json.load(file)


def load_config_file(filepath: Path) -> Dict:
    """Loads a YAML configuration file, failing on anything but a mapping at the top level."""
    if not filepath.exists():
        raise DeploymentConfigError(f"Configuration file not found at {filepath}")
    config = _load_yaml(filepath)
    if not isinstance(config, dict):
        raise DeploymentConfigError(f"Malformed configuration file {filepath}.")
    return config


def _contract_type_from_artifact(data: Dict, default_name: str) -> ContractType:
    """
    Builds a contract type from either an ethpm contract type or a
    hardhat artifact (which keeps the creation code under 'bytecode').
    """
    if "bytecode" in data:
        hardhat_artifact = data
        data = {
            "contractName": hardhat_artifact.get("contractName", default_name),
            "sourceId": hardhat_artifact.get("sourceName"),
            "abi": hardhat_artifact["abi"],
            "deploymentBytecode": {"bytecode": hardhat_artifact["bytecode"]},
        }
        if hardhat_artifact.get("deployedBytecode"):
            data["runtimeBytecode"] = {"bytecode": hardhat_artifact["deployedBytecode"]}
    else:
        data = dict(data)
        data.setdefault("contractName", default_name)

    return ContractType.model_validate(data)


def load_contract_container(filepath: Path) -> ContractContainer:
    """Loads a contract container from a precompiled JSON artifact."""
    contract_type = _contract_type_from_artifact(_load_json(filepath), default_name=filepath.stem)
    if not contract_type.deployment_bytecode or not contract_type.deployment_bytecode.bytecode:
        raise ContractNotFound(f"Artifact {filepath} has no creation bytecode.")
    return ContractContainer(contract_type)


def _get_dependency_contract_container(contract: str) -> Optional[ContractContainer]:
    for dependency_name, dependency_versions in project.dependencies.items():
        if len(dependency_versions) > 1:
            raise ContractNotFound(f"Ambiguous {dependency_name} dependency for {contract}")
        try:
            dependency_api = list(dependency_versions.values())[0]
            contract_container = getattr(dependency_api, contract)
            return contract_container
        except AttributeError:
            continue
    return None


def get_contract_container(contract: str, artifacts_dir: Optional[Path] = None) -> ContractContainer:
    """
    Resolves a contract name to its container: compiled project sources first,
    then project dependencies, then precompiled artifacts.
    """
    try:
        return getattr(project, contract)
    except AttributeError:
        # not in root project; check dependencies
        contract_container = _get_dependency_contract_container(contract)
    if contract_container is not None:
        return contract_container

    artifact_filepath = Path(artifacts_dir or ARTIFACTS_DIR) / f"{contract}.json"
    if artifact_filepath.exists():
        return load_contract_container(artifact_filepath)

    raise ContractNotFound(f"No contract found with name '{contract}'.")


def resolve_environment_value(value):
    """Returns the environment variable named by a '$NAME' value, or the value itself."""
    if isinstance(value, str) and value.startswith(ENVIRONMENT_VARIABLE_PREFIX):
        return os.environ.get(value[len(ENVIRONMENT_VARIABLE_PREFIX) :])
    return value
