from pathlib import Path

import alonea_deployment

#
# Filesystem
#

DEPLOYMENT_DIR = Path(alonea_deployment.__file__).parent
CATALOGS_DIR = DEPLOYMENT_DIR / "catalogs"
ARTIFACTS_DIR = DEPLOYMENT_DIR / "artifacts"

DEFAULT_CATALOG_FILEPATH = CATALOGS_DIR / "alonea.yml"

#
# Modules
#

TOKEN = "ALONEAToken"
STAKING = "ALONEAStaking"
BUYBACK = "ALONEABuyback"
TIMELOCK = "TimelockController"
GOVERNANCE = "ALONEAGovernance"

MODULE_NAMES = [TOKEN, STAKING, BUYBACK, TIMELOCK, GOVERNANCE]

#
# Networks
#

BSC_MAINNET_CHAIN_ID = 56
BSC_TESTNET_CHAIN_ID = 97

LOCAL_NETWORK_NAMES = ["local", "localhost", "foundry", "hardhat"]

# PancakeSwap v2 routers
PANCAKESWAP_ROUTER_MAINNET = "0x10ED43C718714eb63d5aA57B78B54704E256024E"
PANCAKESWAP_ROUTER_TESTNET = "0xD99D1c33F9fC3444f8101754aBC46c52416550D1"

NETWORK_CONSTANTS = {
    BSC_MAINNET_CHAIN_ID: {
        "ROUTER": PANCAKESWAP_ROUTER_MAINNET,
        "TIMELOCK_MIN_DELAY": 0,
    },
    BSC_TESTNET_CHAIN_ID: {
        "ROUTER": PANCAKESWAP_ROUTER_TESTNET,
        "TIMELOCK_MIN_DELAY": 0,
    },
}

# any chain not listed above (local development chains included)
DEFAULT_NETWORK_CONSTANTS = NETWORK_CONSTANTS[BSC_TESTNET_CHAIN_ID]

#
# Contracts
#

OZ_DEPENDENCY_NAME = "openzeppelin"
OZ_DEPENDENCY_VERSION = "5.0.0"

DEFAULT_INITIALIZER = "initialize"
VERSION_METHOD = "version"

# EIP1967 Admin slot - https://eips.ethereum.org/EIPS/eip-1967#admin-address
EIP1967_ADMIN_SLOT = 0xB53127684A568B3173AE13B9F8A6016E243E63B6E8EE1178D6A717850B5D6103

# EIP1967 Logic slot - https://eips.ethereum.org/EIPS/eip-1967#logic-contract-address
EIP1967_IMPLEMENTATION_SLOT = 0x360894A13BA1A3210667C828492DB98DCA3E2076CC3735A920A3CA505D382BBC

#
# Registry
#

REGISTRY_JSON_FORMAT = {"indent": 2, "separators": (",", ": ")}
