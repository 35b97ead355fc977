import json
import os
from pathlib import Path
from typing import Dict, List

import yaml
from ape import networks, project
from ape.contracts import ContractContainer, ContractInstance

from proxy_deployment.constants import ARTIFACTS_DIR
from proxy_deployment.networks import is_local_network
from proxy_deployment.proxies import ProxyKind


def _load_yaml(filepath: Path) -> dict:
    """Loads a YAML file."""
    with open(filepath, "r") as file:
        return yaml.safe_load(file)


def _load_json(filepath: Path) -> dict:
    """Loads a JSON file."""
    with open(filepath, "r") as file:
        return json.load(file)


def get_registry_filepath(config: Dict) -> Path:
    """Returns the filepath of the proxy registry written after deployment."""
    artifact_config = config.get("artifacts") or {}
    artifact_dir = Path(artifact_config.get("dir", ARTIFACTS_DIR))
    filename = artifact_config.get("filename")
    if not filename:
        raise ValueError("artifacts filename is not set in params file.")
    return artifact_dir / filename


def _get_proxy_names(contracts: List) -> List[str]:
    names = list()
    for contract_info in contracts:
        if isinstance(contract_info, str):
            names.append(contract_info)
        elif isinstance(contract_info, dict) and len(contract_info) == 1:
            names.extend(contract_info.keys())
        else:
            raise ValueError("Malformed proxy parameters YAML.")
    return names


def validate_config(config: Dict) -> Path:
    """
    Checks the params file against the connected network and returns the registry filepath.
    Fails if proxies for the configured chain_id were already published.
    """
    print("Validating parameters YAML...")

    deployment = config.get("deployment")
    if not deployment:
        raise ValueError("deployment is not set in params file.")

    config_chain_id = deployment.get("chain_id")
    if not config_chain_id:
        raise ValueError("chain_id is not set in params file.")
    config_chain_id = int(config_chain_id)

    contracts = config.get("contracts")
    if not contracts:
        raise ValueError("Parameters file missing 'contracts' field.")
    names = _get_proxy_names(contracts)
    for name in names:
        ProxyKind.from_alias(name)
    duplicates = sorted({name for name in names if names.count(name) > 1})
    if duplicates:
        raise ValueError(f"Proxies listed more than once: {', '.join(duplicates)}")

    network_config = config.get("network")
    if network_config is not None and not isinstance(network_config, dict):
        raise ValueError("'network' must be a mapping of transaction parameters.")

    network_chain_id = networks.provider.network.chain_id
    if config_chain_id != network_chain_id and not is_local_network():
        raise ValueError(
            f"chain_id in params file ({config_chain_id}) does not match "
            f"chain_id of current network ({network_chain_id})."
        )

    registry_filepath = get_registry_filepath(config=config)
    if registry_filepath.exists():
        published_chain_ids = map(int, _load_json(registry_filepath).keys())
        if config_chain_id in published_chain_ids:
            raise ValueError(f"Proxies are already published for chain_id {config_chain_id}.")

    return registry_filepath


def check_etherscan_plugin() -> None:
    """
    Checks that the ape-etherscan plugin is installed and that
    the appropriate API key environment variable is set.
    """
    if is_local_network():
        # unnecessary for local deployment
        return
    try:
        from ape_etherscan.utils import API_KEY_ENV_KEY_MAP
    except ImportError:
        raise ImportError("Please install the ape-etherscan plugin to verify implementations.")
    ecosystem_name = networks.provider.network.ecosystem.name
    explorer_envvar = API_KEY_ENV_KEY_MAP.get(ecosystem_name)
    if not os.environ.get(explorer_envvar):
        raise ValueError(f"{explorer_envvar} is not set.")


def check_plugins(verify: bool) -> None:
    if verify:
        print("Checking plugins...")
        check_etherscan_plugin()


def verify_contracts(contracts: List[ContractInstance]) -> None:
    explorer = networks.provider.network.explorer
    for instance in contracts:
        print(f"(i) Verifying {instance.contract_type.name} implementation...")
        explorer.publish_contract(instance.address)


def get_contract_container(contract_alias: str) -> ContractContainer:
    """Looks up a compiled contract by alias, in the root project first, then in dependencies."""
    try:
        return getattr(project, contract_alias)
    except AttributeError:
        pass

    for dependency_name, dependency_versions in project.dependencies.items():
        if len(dependency_versions) > 1:
            raise ValueError(f"Ambiguous {dependency_name} dependency for {contract_alias}")
        dependency_api = list(dependency_versions.values())[0]
        try:
            return getattr(dependency_api, contract_alias)
        except AttributeError:
            continue
    raise ValueError(f"No compiled contract found for alias '{contract_alias}'.")
