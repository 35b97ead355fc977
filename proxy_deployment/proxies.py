"""
Deployment of the Pools, Privates and ValidatorsRegistry upgradeable proxies.

Each proxy kind fixes its contract alias, its initializer and the order of the
initializer arguments. The upgrade framework itself is injected through
ProxyCreationService so that it can be substituted in tests.
"""

import typing
from abc import ABC, abstractmethod
from enum import Enum
from typing import Any, Callable, List, NamedTuple, Optional

from ape.exceptions import ApeException
from eth_typing import ChecksumAddress
from eth_utils import is_address, to_checksum_address
from hexbytes import HexBytes

from proxy_deployment.constants import (
    INITIALIZER_METHOD,
    POOLS,
    PRIVATES,
    SALT_SIZE,
    VALIDATORS_REGISTRY,
)

# Errors raised by the upgrade framework are not reclassified.
DeploymentError = ApeException

NetworkConfig = typing.Mapping[str, Any]
Reporter = Callable[[str], None]


class InvalidInitializerArguments(ValueError):
    """Raised when arguments do not match the initializer signature of a proxy."""


def to_salt(value: Any) -> Optional[bytes]:
    """Normalizes an int, hex string or bytes value to a 32 byte deployment salt."""
    if value is None:
        return None
    if isinstance(value, int):
        if value < 0:
            raise ValueError(f"Salt must not be negative, got {value}")
        try:
            return value.to_bytes(SALT_SIZE, "big")
        except OverflowError:
            raise ValueError(f"Salt {value} does not fit in {SALT_SIZE} bytes")

    salt = bytes(HexBytes(value))
    if len(salt) > SALT_SIZE:
        raise ValueError(f"Salt must be at most {SALT_SIZE} bytes, got {len(salt)}")
    return salt.rjust(SALT_SIZE, b"\x00")


class PoolsArguments(NamedTuple):
    deposits_proxy: ChecksumAddress
    settings_proxy: ChecksumAddress
    operators_proxy: ChecksumAddress
    vrc: ChecksumAddress
    validators_registry_proxy: ChecksumAddress


class PrivatesArguments(NamedTuple):
    deposits_proxy: ChecksumAddress
    settings_proxy: ChecksumAddress
    operators_proxy: ChecksumAddress
    vrc: ChecksumAddress
    validators_registry_proxy: ChecksumAddress


class ValidatorsRegistryArguments(NamedTuple):
    # pools and privates come first, settings last
    pools_proxy: ChecksumAddress
    privates_proxy: ChecksumAddress
    settings_proxy: ChecksumAddress


class ProxyKind(Enum):
    """The proxies that can be deployed, in dependency order."""

    POOLS = (POOLS, "Pools", PoolsArguments)
    PRIVATES = (PRIVATES, "Privates", PrivatesArguments)
    VALIDATORS_REGISTRY = (VALIDATORS_REGISTRY, "Validators Registry", ValidatorsRegistryArguments)

    def __init__(self, contract_alias: str, display_name: str, arguments_type: type):
        self.contract_alias = contract_alias
        self.display_name = display_name
        self.arguments_type = arguments_type
        self.initializer = INITIALIZER_METHOD

    @classmethod
    def from_alias(cls, contract_alias: str) -> "ProxyKind":
        for kind in cls:
            if kind.contract_alias == contract_alias:
                return kind
        raise ValueError(f"Unexpected contract to proxy: {contract_alias}")

    @property
    def parameter_names(self) -> typing.Tuple[str, ...]:
        return self.arguments_type._fields

    def arguments(self, **values: Any) -> NamedTuple:
        """Builds the typed initializer arguments, checksumming every address."""
        missing = [name for name in self.parameter_names if name not in values]
        unexpected = [name for name in values if name not in self.parameter_names]
        if missing or unexpected:
            raise InvalidInitializerArguments(
                f"{self.contract_alias}.{self.initializer} expects parameters "
                f"{', '.join(self.parameter_names)}; "
                f"missing: {missing or 'none'}, unexpected: {unexpected or 'none'}"
            )

        checked = dict()
        for position, name in enumerate(self.parameter_names):
            value = values[name]
            if not is_address(value):
                raise InvalidInitializerArguments(
                    f"{self.contract_alias}.{self.initializer} parameter '{name}' at position "
                    f"{position} has a value '{value}' which is not an address"
                )
            checked[name] = to_checksum_address(value)
        return self.arguments_type(**checked)


class ProxyDeploymentRequest(NamedTuple):
    """Describes a single proxy deployment."""

    display_name: str
    contract_alias: str
    initializer: str
    args: tuple
    salt: Optional[bytes] = None
    network_config: Optional[NetworkConfig] = None

    @classmethod
    def build(
        cls,
        kind: ProxyKind,
        arguments: NamedTuple,
        salt: Any = None,
        network_config: Optional[NetworkConfig] = None,
    ) -> "ProxyDeploymentRequest":
        if type(arguments) is not kind.arguments_type:
            raise InvalidInitializerArguments(
                f"{kind.contract_alias} expects {kind.arguments_type.__name__}, "
                f"got {type(arguments).__name__}"
            )
        return cls(
            display_name=kind.display_name,
            contract_alias=kind.contract_alias,
            initializer=kind.initializer,
            args=tuple(arguments),
            salt=to_salt(salt),
            network_config=dict(network_config or {}),
        )


class DeployedProxy(NamedTuple):
    name: str
    address: ChecksumAddress
    salt: Optional[bytes] = None


class ProxyCreationService(ABC):
    """The upgrade framework capability used to create initialized proxies."""

    @abstractmethod
    def create(
        self,
        contract_alias: str,
        initializer: str,
        args: List[Any],
        salt: Optional[bytes],
        network_config: NetworkConfig,
    ) -> ChecksumAddress:
        """
        Creates a proxy delegating to the logic contract named by `contract_alias`
        and calls `initializer` on it with `args`. Returns the proxy address.
        """
        raise NotImplementedError

    def predict_address(self, salt: bytes) -> ChecksumAddress:
        """Returns the address a proxy created with `salt` will have."""
        raise NotImplementedError(f"{self.__class__.__name__} cannot predict proxy addresses")


class ProxyDeployer:
    """Creates proxies through a ProxyCreationService and reports their addresses."""

    def __init__(self, service: ProxyCreationService, reporter: Reporter = print):
        self.service = service
        self.reporter = reporter

    def deploy(self, request: ProxyDeploymentRequest) -> DeployedProxy:
        address = self.service.create(
            request.contract_alias,
            request.initializer,
            list(request.args),
            request.salt,
            dict(request.network_config or {}),
        )
        proxy = DeployedProxy(
            name=request.contract_alias,
            address=to_checksum_address(address),
            salt=request.salt,
        )
        self.reporter(f"{request.display_name} contract: {proxy.address}")
        return proxy


def _deploy(
    deployer: ProxyDeployer,
    kind: ProxyKind,
    salt: Any,
    network_config: Optional[NetworkConfig],
    **values: Any,
) -> ChecksumAddress:
    arguments = kind.arguments(**values)
    request = ProxyDeploymentRequest.build(kind, arguments, salt, network_config)
    return deployer.deploy(request).address


def deploy_pools_proxy(
    deployer: ProxyDeployer,
    deposits_proxy: str,
    settings_proxy: str,
    operators_proxy: str,
    vrc: str,
    validators_registry_proxy: str,
    salt: Any = None,
    network_config: Optional[NetworkConfig] = None,
) -> ChecksumAddress:
    return _deploy(
        deployer,
        ProxyKind.POOLS,
        salt,
        network_config,
        deposits_proxy=deposits_proxy,
        settings_proxy=settings_proxy,
        operators_proxy=operators_proxy,
        vrc=vrc,
        validators_registry_proxy=validators_registry_proxy,
    )


def deploy_privates_proxy(
    deployer: ProxyDeployer,
    deposits_proxy: str,
    settings_proxy: str,
    operators_proxy: str,
    vrc: str,
    validators_registry_proxy: str,
    salt: Any = None,
    network_config: Optional[NetworkConfig] = None,
) -> ChecksumAddress:
    return _deploy(
        deployer,
        ProxyKind.PRIVATES,
        salt,
        network_config,
        deposits_proxy=deposits_proxy,
        settings_proxy=settings_proxy,
        operators_proxy=operators_proxy,
        vrc=vrc,
        validators_registry_proxy=validators_registry_proxy,
    )


def deploy_validators_registry(
    deployer: ProxyDeployer,
    settings_proxy: str,
    pools_proxy: str,
    privates_proxy: str,
    salt: Any = None,
    network_config: Optional[NetworkConfig] = None,
) -> ChecksumAddress:
    return _deploy(
        deployer,
        ProxyKind.VALIDATORS_REGISTRY,
        salt,
        network_config,
        pools_proxy=pools_proxy,
        privates_proxy=privates_proxy,
        settings_proxy=settings_proxy,
    )
