class BridgeDeploymentError(Exception):
    """Base exception for failures of a deployment run."""


class DeploymentConfigError(BridgeDeploymentError, ValueError):
    """Raised when a network or constructor parameters file is malformed."""


class UnknownNetwork(BridgeDeploymentError, ValueError):
    """Raised when a network name is not in the network registry."""


class ContractNotFound(BridgeDeploymentError, ValueError):
    """Raised when no compiled container or artifact exists for a contract name."""


class ArgumentMismatch(BridgeDeploymentError, ValueError):
    """Raised when constructor arguments do not match the constructor ABI."""


class DeploymentFailed(BridgeDeploymentError):
    """Raised when a creation transaction could not be submitted or confirmed."""

    def __init__(self, message: str, cause: Exception = None):
        super().__init__(message)
        self.cause = cause
