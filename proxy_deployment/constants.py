from pathlib import Path

from ape import project

import proxy_deployment

#
# Filesystem
#

DEPLOYMENT_DIR = Path(proxy_deployment.__file__).parent
PARAMS_DIR = DEPLOYMENT_DIR / "params_files"
ARTIFACTS_DIR = DEPLOYMENT_DIR / "artifacts"

#
# Networks
#

LOCAL_NETWORKS = ["local"]

#
# Contracts
#

POOLS = "Pools"
PRIVATES = "Privates"
VALIDATORS_REGISTRY = "ValidatorsRegistry"

INITIALIZER_METHOD = "initialize"

OZ_DEPENDENCY_NAME = "openzeppelin"
OZ_DEPENDENCY_VERSION = "5.0.0"
PROXY_CONTRACT_NAME = "TransparentUpgradeableProxy"

SALT_SIZE = 32

# OpenZeppelin SDK ProxyFactory; the proxy address depends on sender and salt only.
PROXY_FACTORY_ABI = [
    {
        "type": "function",
        "name": "deploy",
        "stateMutability": "nonpayable",
        "inputs": [
            {"name": "_salt", "type": "uint256"},
            {"name": "_logic", "type": "address"},
            {"name": "_admin", "type": "address"},
            {"name": "_data", "type": "bytes"},
        ],
        "outputs": [{"name": "", "type": "address"}],
    },
    {
        "type": "function",
        "name": "getDeploymentAddress",
        "stateMutability": "view",
        "inputs": [
            {"name": "_salt", "type": "uint256"},
            {"name": "_sender", "type": "address"},
        ],
        "outputs": [{"name": "", "type": "address"}],
    },
]


def get_oz_dependency():
    return project.dependencies[OZ_DEPENDENCY_NAME][OZ_DEPENDENCY_VERSION]
