from typing import Any, Dict, List, Optional

from ape import Contract, chain
from ape.api import AccountAPI
from ape.contracts import ContractInstance
from ape.exceptions import ApeException
from eth_typing import ChecksumAddress
from eth_utils import to_checksum_address

from proxy_deployment.constants import PROXY_CONTRACT_NAME, PROXY_FACTORY_ABI, get_oz_dependency
from proxy_deployment.proxies import NetworkConfig, ProxyCreationService
from proxy_deployment.utils import get_contract_container


class ProxyAddressCollision(ApeException):
    """Raised when the address derived from a salt already holds a contract."""


class ProxyDeploymentFailed(ApeException):
    """Raised when no code is found at a proxy address after its creation."""


class ApeProxyCreationService(ProxyCreationService):
    """
    Creates initialized proxies with ape.

    Unsalted proxies are OpenZeppelin TransparentUpgradeableProxy instances
    deployed directly by the account. Salted proxies are created through a
    ProxyFactory, which derives the address from the sender and the salt only,
    so the address is known before the initializer arguments are.
    """

    def __init__(
        self,
        account: AccountAPI,
        proxy_admin_owner: Optional[ChecksumAddress] = None,
        proxy_factory: Optional[ChecksumAddress] = None,
    ):
        self.account = account
        self.proxy_admin_owner = proxy_admin_owner or account.address
        self.proxy_factory = to_checksum_address(proxy_factory) if proxy_factory else None
        self._implementations: Dict[str, ContractInstance] = dict()

    @property
    def implementations(self) -> List[ContractInstance]:
        """Logic contracts deployed so far, one per contract alias."""
        return list(self._implementations.values())

    def create(
        self,
        contract_alias: str,
        initializer: str,
        args: List[Any],
        salt: Optional[bytes],
        network_config: NetworkConfig,
    ) -> ChecksumAddress:
        # salted checks run before the implementation is deployed
        address = None
        if salt is not None:
            address = self._check_salted_address(contract_alias, salt)

        implementation = self._get_implementation(contract_alias, network_config)
        method_handler = getattr(implementation, initializer)
        data = method_handler.encode_input(*args)
        if address is None:
            return self._deploy_proxy(contract_alias, implementation, data, network_config)
        return self._deploy_salted_proxy(
            contract_alias, implementation, data, salt, address, network_config
        )

    def predict_address(self, salt: bytes) -> ChecksumAddress:
        factory = self._get_factory()
        address = factory.getDeploymentAddress(int.from_bytes(salt, "big"), self.account.address)
        return to_checksum_address(address)

    def _get_implementation(
        self, contract_alias: str, network_config: NetworkConfig
    ) -> ContractInstance:
        implementation = self._implementations.get(contract_alias)
        if implementation is not None:
            return implementation

        container = get_contract_container(contract_alias)
        print(f"\nDeploying {contract_alias} implementation contract.")
        implementation = self.account.deploy(container, **network_config)
        self._implementations[contract_alias] = implementation
        return implementation

    def _get_factory(self) -> ContractInstance:
        if not self.proxy_factory:
            raise ValueError("A ProxyFactory address is required for salted proxy deployments.")
        return Contract(self.proxy_factory, abi=PROXY_FACTORY_ABI)

    def _check_salted_address(self, contract_alias: str, salt: bytes) -> ChecksumAddress:
        address = self.predict_address(salt)
        if chain.provider.get_code(address):
            raise ProxyAddressCollision(
                f"{contract_alias} proxy address {address} for salt 0x{salt.hex()} "
                "already holds a contract."
            )
        return address

    def _deploy_proxy(
        self,
        contract_alias: str,
        implementation: ContractInstance,
        data: bytes,
        network_config: NetworkConfig,
    ) -> ChecksumAddress:
        proxy_container = getattr(get_oz_dependency(), PROXY_CONTRACT_NAME)
        print(f"\nDeploying {PROXY_CONTRACT_NAME} contract to proxy {contract_alias}.")
        proxy = self.account.deploy(
            proxy_container,
            implementation.address,
            self.proxy_admin_owner,
            data,
            **network_config,
        )
        return proxy.address

    def _deploy_salted_proxy(
        self,
        contract_alias: str,
        implementation: ContractInstance,
        data: bytes,
        salt: bytes,
        address: ChecksumAddress,
        network_config: NetworkConfig,
    ) -> ChecksumAddress:
        factory = self._get_factory()
        print(
            f"\nDeploying {contract_alias} proxy through ProxyFactory[{factory.address[:10]}] "
            f"with salt 0x{salt.hex()}."
        )
        factory.deploy(
            int.from_bytes(salt, "big"),
            implementation.address,
            self.proxy_admin_owner,
            data,
            sender=self.account,
            **network_config,
        )
        if not chain.provider.get_code(address):
            raise ProxyDeploymentFailed(
                f"No contract code found at {address} after creating the {contract_alias} proxy."
            )
        return address
