import typing
from abc import ABC, abstractmethod
from collections import OrderedDict, namedtuple
from pathlib import Path
from typing import Any, Callable, Dict, List, Optional

from ape import networks
from ape.api import AccountAPI
from ape.cli.choices import select_account
from ape.utils import ZERO_ADDRESS
from eth_typing import ChecksumAddress

from proxy_deployment.confirm import _confirm_resolution, _continue
from proxy_deployment.proxies import (
    DeployedProxy,
    InvalidInitializerArguments,
    ProxyCreationService,
    ProxyDeployer,
    ProxyDeploymentRequest,
    ProxyKind,
    Reporter,
    to_salt,
)
from proxy_deployment.registry import registry_from_deployments
from proxy_deployment.upgrades import ApeProxyCreationService
from proxy_deployment.utils import _load_yaml, check_plugins, validate_config, verify_contracts

PROXY_SALT_KEY = "salt"
PROXY_ADMIN_OWNER_CONSTANT = "PROXY_ADMIN_OWNER"


class VariableContext:
    def __init__(
        self,
        contract_names: List[str],
        contract_name: str,
        constants: typing.Dict[str, Any] = None,
        deployments: typing.Dict[str, DeployedProxy] = None,
        salts: typing.Dict[str, Optional[bytes]] = None,
        predict_address: Optional[Callable[[bytes], ChecksumAddress]] = None,
    ):
        self.contract_names = contract_names or list()
        self.contract_name = contract_name
        self.constants = constants or dict()
        self.deployments = deployments if deployments is not None else dict()
        self.salts = salts or dict()
        self.predict_address = predict_address


# Variables


class Variable(ABC):
    VARIABLE_PREFIX = "$"

    @abstractmethod
    def resolve(self) -> Any:
        raise NotImplementedError

    @classmethod
    def is_variable(cls, param: Any) -> bool:
        """Returns True if the param is a variable."""
        return isinstance(param, str) and param.startswith(cls.VARIABLE_PREFIX)


class DeployerAccount(Variable):
    DEPLOYER_INDICATOR = "deployer"

    @classmethod
    def is_deployer(cls, value: str) -> bool:
        """Returns True if the variable is a special deployer variable."""
        return value == cls.DEPLOYER_INDICATOR

    def resolve(self) -> Any:
        deployer_account = Deployer.get_account()
        if deployer_account is None:
            return ZERO_ADDRESS
        return deployer_account.address


class Constant(Variable):
    def __init__(self, constant_name: str, context: VariableContext):
        try:
            self.constant_value = context.constants[constant_name]
        except KeyError:
            raise ValueError(f"Constant '{constant_name}' not found in deployment file.")

    @classmethod
    def is_constant(cls, value: str) -> bool:
        """Returns True if the variable is a deployment constant."""
        return value.isupper()

    def resolve(self) -> Any:
        return self.constant_value


class ProxyName(Variable):
    """The address of another proxy of the same deployment."""

    def __init__(self, contract_name: str, context: VariableContext):
        if contract_name not in context.contract_names:
            raise ValueError(f"Contract name {contract_name} not found")
        if contract_name == context.contract_name:
            raise ValueError(f"{contract_name} cannot reference its own proxy")

        self.contract_name = contract_name
        self.context = context

    def is_available(self) -> bool:
        """Returns True if the proxy is deployed, or its address can be derived from a salt."""
        if self.contract_name in self.context.deployments:
            return True
        salt = self.context.salts.get(self.contract_name)
        return salt is not None and self.context.predict_address is not None

    def resolve(self) -> Any:
        deployment = self.context.deployments.get(self.contract_name)
        if deployment is not None:
            return deployment.address

        salt = self.context.salts.get(self.contract_name)
        if salt is not None and self.context.predict_address is not None:
            return self.context.predict_address(salt)

        # eager validation
        return ZERO_ADDRESS


def _resolve_param(value: Any) -> Any:
    if isinstance(value, Variable):
        return value.resolve()
    return value  # literally a value


def _resolve_params(parameters: OrderedDict) -> OrderedDict:
    resolved_parameters = OrderedDict()
    for name, value in parameters.items():
        resolved_parameters[name] = _resolve_param(value)
    return resolved_parameters


def _variable_from_value(variable: Any, context: VariableContext) -> Variable:
    variable = variable.strip(Variable.VARIABLE_PREFIX)
    if DeployerAccount.is_deployer(variable):
        return DeployerAccount()
    elif Constant.is_constant(variable):
        return Constant(variable, context)
    else:
        return ProxyName(variable, context)


def _process_raw_value(value: Any, variable_context: VariableContext) -> Any:
    if Variable.is_variable(value):
        value = _variable_from_value(value, variable_context)
    return value


def _process_raw_values(values: typing.Dict, variable_context: VariableContext) -> OrderedDict:
    processed_parameters = OrderedDict()
    for name, value in values.items():
        processed_parameters[name] = _process_raw_value(value, variable_context)
    return processed_parameters


def _validate_parameter_names(kind: ProxyKind, parameters: OrderedDict) -> None:
    """Checks parameter names against the initializer signature, position by position."""
    expected = kind.parameter_names
    if len(parameters) != len(expected):
        raise InvalidInitializerArguments(
            f"Initializer parameters length mismatch - "
            f"{kind.contract_alias}.{kind.initializer} requires {len(expected)}, "
            f"Got {len(parameters)}."
        )
    for position, (expected_name, name) in enumerate(zip(expected, parameters)):
        if expected_name != name:
            raise InvalidInitializerArguments(
                f"{kind.contract_alias} {kind.initializer} parameter '{name}' at position "
                f"{position} does not match the expected name '{expected_name}'."
            )


class InitializerParameters:
    """Represents the initializer parameters and salts for a set of proxies."""

    def __init__(self, parameters: OrderedDict, salts: typing.Dict[str, Optional[bytes]]):
        self.parameters = parameters
        self.salts = salts
        self.validate()

    @classmethod
    def from_config(
        cls,
        config: typing.Dict,
        deployments: typing.Dict[str, DeployedProxy],
        predict_address: Optional[Callable[[bytes], ChecksumAddress]] = None,
    ) -> "InitializerParameters":
        """Loads the initializer parameters from a parameters YAML config."""
        print("Processing proxy initializer parameters...")
        constants = config.get("constants")
        contract_names, contracts_data = list(), OrderedDict()
        for contract_info in config["contracts"]:
            if isinstance(contract_info, str):
                contract_name, contract_data = contract_info, dict()
            elif isinstance(contract_info, dict) and len(contract_info) == 1:
                contract_name, contract_data = list(contract_info.items())[0]
                contract_data = contract_data or dict()
            else:
                raise ValueError("Malformed proxy parameters YAML.")
            contract_names.append(contract_name)
            contracts_data[contract_name] = contract_data

        salts = {name: to_salt(data.get(PROXY_SALT_KEY)) for name, data in contracts_data.items()}

        parameters = OrderedDict()
        for contract_name, contract_data in contracts_data.items():
            kind = ProxyKind.from_alias(contract_name)
            context = VariableContext(
                contract_names=contract_names,
                contract_name=contract_name,
                constants=constants,
                deployments=deployments,
                salts=salts,
                predict_address=predict_address,
            )
            raw_values = contract_data.get(kind.initializer) or dict()
            parameters[contract_name] = _process_raw_values(raw_values, context)

        return cls(parameters=parameters, salts=salts)

    def validate(self) -> None:
        for contract_name, parameters in self.parameters.items():
            kind = ProxyKind.from_alias(contract_name)
            _validate_parameter_names(kind, parameters)
            kind.arguments(**_resolve_params(parameters))

    def unavailable_dependencies(self, contract_name: str) -> List[str]:
        """Returns the proxies referenced by `contract_name` that have no address yet."""
        return [
            value.contract_name
            for value in self.parameters[contract_name].values()
            if isinstance(value, ProxyName) and not value.is_available()
        ]

    def resolve(self, contract_name: str) -> OrderedDict:
        """Resolves the initializer parameters for a single proxy."""
        try:
            parameters = self.parameters[contract_name]
        except KeyError:
            raise ValueError(f"No parameters found for {contract_name} proxy.")
        return _resolve_params(parameters)


class Transactor:
    """
    Represents an ape account plus confirmation of transactions.
    """

    def __init__(self, account: typing.Optional[AccountAPI] = None, autosign: bool = False):
        if account is None:
            self._account = select_account()
        else:
            self._account = account
        if autosign:
            print("WARNING: Autosign is enabled. Transactions will be signed automatically.")
        self._autosign = autosign
        self._account.set_autosign(autosign)

    def get_account(self) -> AccountAPI:
        """Returns the transactor account."""
        return self._account


class Deployer(Transactor):
    """
    Represents an ape account plus initializer parameters for the Pools,
    Privates and ValidatorsRegistry proxies, plus validated/annotated execution.
    """

    __DEPLOYER_ACCOUNT: AccountAPI = None

    def __init__(
        self,
        config: typing.Dict,
        path: Path,
        verify: bool,
        account: typing.Optional[AccountAPI] = None,
        autosign: bool = False,
        proxy_admin_owner: Optional[ChecksumAddress] = None,
        service: Optional[ProxyCreationService] = None,
        reporter: Reporter = print,
    ):
        super().__init__(account, autosign)

        self.path = path
        self.config = config
        self.verify = verify
        check_plugins(verify=verify)
        self.registry_filepath = validate_config(config=self.config)
        self.chain_id = int(config["deployment"]["chain_id"])
        self._set_account(self._account)

        # Little trick to expose constants as attributes (e.g., deployer.constants.SETTINGS)
        constants = config.get("constants") or {}
        _Constants = namedtuple("_Constants", list(constants))
        self.constants = _Constants(**constants)

        if service is None:
            service = ApeProxyCreationService(
                account=self._account,
                proxy_admin_owner=proxy_admin_owner or constants.get(PROXY_ADMIN_OWNER_CONSTANT),
                proxy_factory=config["deployment"].get("proxy_factory"),
            )
        self.service = service
        self.proxy_deployer = ProxyDeployer(service=service, reporter=reporter)
        self.network_config = dict(config.get("network") or {})

        self.deployments: Dict[str, DeployedProxy] = OrderedDict()
        self.initializer_parameters = InitializerParameters.from_config(
            config,
            deployments=self.deployments,
            predict_address=self._get_address_predictor(),
        )
        self._check_salted_proxies()
        self._print_deployment_info()

        if not self._autosign:
            # Confirms the start of the deployment.
            _continue()

    @classmethod
    def from_yaml(cls, filepath: Path, *args, **kwargs) -> "Deployer":
        config = _load_yaml(filepath)
        return cls(config=config, path=filepath, *args, **kwargs)

    @classmethod
    def get_account(cls) -> AccountAPI:
        """Returns the deployer account."""
        return cls.__DEPLOYER_ACCOUNT

    @classmethod
    def _set_account(cls, deployer: AccountAPI) -> None:
        """Sets the deployer account."""
        cls.__DEPLOYER_ACCOUNT = deployer

    def _get_address_predictor(self) -> Optional[Callable[[bytes], ChecksumAddress]]:
        if isinstance(self.service, ApeProxyCreationService) and not self.service.proxy_factory:
            return None
        if type(self.service).predict_address is ProxyCreationService.predict_address:
            return None
        return self.service.predict_address

    def _check_salted_proxies(self) -> None:
        salts = self.initializer_parameters.salts
        salted = [name for name, salt in salts.items() if salt is not None]
        if not salted:
            return
        if isinstance(self.service, ApeProxyCreationService) and not self.service.proxy_factory:
            raise ValueError(
                "deployment.proxy_factory is not set in params file; "
                f"it is required for salted proxies: {', '.join(salted)}."
            )

    def deploy(self, kind: ProxyKind) -> DeployedProxy:
        contract_name = kind.contract_alias
        if contract_name in self.deployments:
            raise ValueError(f"{contract_name} proxy is already deployed in this run.")

        unavailable = self.initializer_parameters.unavailable_dependencies(contract_name)
        if unavailable:
            raise ValueError(
                f"{contract_name} proxy depends on {', '.join(unavailable)} which must be "
                "deployed first or given a salt."
            )

        resolved_params = self.initializer_parameters.resolve(contract_name)
        salt = self.initializer_parameters.salts.get(contract_name)
        if not self._autosign:
            _confirm_resolution(resolved_params, contract_name, kind.initializer, salt)

        arguments = kind.arguments(**resolved_params)
        request = ProxyDeploymentRequest.build(
            kind, arguments, salt=salt, network_config=self.network_config
        )
        proxy = self.proxy_deployer.deploy(request)
        self.deployments[contract_name] = proxy
        return proxy

    def finalize(self, deployments: List[DeployedProxy]) -> None:
        """
        Publishes the deployments to the registry and optionally
        verifies the implementation contracts on the block explorer.
        """
        registry_from_deployments(
            deployments=deployments,
            chain_id=self.chain_id,
            deployer=self.get_account().address,
            output_filepath=self.registry_filepath,
        )
        if self.verify:
            verify_contracts(contracts=getattr(self.service, "implementations", []))

    def _print_deployment_info(self):
        print(
            f"Account: {self.get_account().address}",
            f"Config: {self.path}",
            f"Registry: {self.registry_filepath}",
            f"Verify: {self.verify}",
            f"Proxies: {', '.join(self.initializer_parameters.parameters)}",
            f"Ecosystem: {networks.provider.network.ecosystem.name}",
            f"Network: {networks.provider.network.name}",
            f"Chain ID: {networks.provider.network.chain_id}",
            sep="\n",
        )


def deploy_proxies(deployer: Deployer) -> List[DeployedProxy]:
    """Deploys the Pools, Privates and ValidatorsRegistry proxies in dependency order."""
    configured = deployer.initializer_parameters.parameters
    return [deployer.deploy(kind) for kind in ProxyKind if kind.contract_alias in configured]
