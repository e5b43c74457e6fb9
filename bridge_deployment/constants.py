from enum import IntEnum
from pathlib import Path

import bridge_deployment

#
# Filesystem
#

DEPLOYMENT_DIR = Path(bridge_deployment.__file__).parent
CONSTRUCTOR_PARAMS_DIR = DEPLOYMENT_DIR / "constructor_params"
ARTIFACTS_DIR = DEPLOYMENT_DIR / "artifacts"
NETWORKS_FILEPATH = DEPLOYMENT_DIR / "networks.yml"

#
# Networks
#

CERIUM = "cerium"
CERIUM_CHAIN_ID = 30103

LOCAL_NETWORKS = ["local"]

#
# Contracts
#

CANXIUM_BRIDGE = "CanxiumBridge"
SIDE_CHAIN_BRIDGE = "SideChainBridge"

BRIDGE_CONTRACTS = [CANXIUM_BRIDGE, SIDE_CHAIN_BRIDGE]

#
# Fees (wei)
#

GWEI = 10**9

# pinned for cerium; low traffic network so estimation is never used
DEFAULT_MAX_FEE = 280 * GWEI
DEFAULT_MAX_PRIORITY_FEE = 1 * GWEI

#
# Deployment lifecycle of a single creation transaction
#


class DeploymentState(IntEnum):
    IDLE = 0
    SUBMITTED = 1
    CONFIRMED = 2
    FAILED = 3


TERMINAL_STATES = (DeploymentState.CONFIRMED, DeploymentState.FAILED)

STATE_TRANSITIONS = {
    DeploymentState.IDLE: (DeploymentState.SUBMITTED,),
    DeploymentState.SUBMITTED: (DeploymentState.CONFIRMED, DeploymentState.FAILED),
}
