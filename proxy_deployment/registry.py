import json
from collections import OrderedDict, defaultdict
from enum import Enum
from pathlib import Path
from typing import List, NamedTuple, Optional

from eth_typing import ChecksumAddress
from eth_utils import to_checksum_address

from proxy_deployment.proxies import DeployedProxy
from proxy_deployment.utils import _load_json

ChainId = int
ContractName = str


STANDARD_REGISTRY_JSON_FORMAT = {"indent": 4, "separators": (",", ": ")}


class RegistryEntry(NamedTuple):
    """Represents a single proxy in a registry file."""

    chain_id: ChainId
    name: ContractName
    address: ChecksumAddress
    salt: Optional[str]
    deployer: ChecksumAddress


def _get_entry(proxy: DeployedProxy, chain_id: ChainId, deployer: str) -> RegistryEntry:
    return RegistryEntry(
        chain_id=chain_id,
        name=proxy.name,
        address=to_checksum_address(proxy.address),
        salt=f"0x{proxy.salt.hex()}" if proxy.salt is not None else None,
        deployer=to_checksum_address(deployer),
    )


def read_registry(filepath: Path) -> List[RegistryEntry]:
    data = _load_json(filepath)
    registry_entries = list()
    for chain_id, entries in data.items():
        for contract_name, artifacts in entries.items():
            registry_entry = RegistryEntry(
                chain_id=int(chain_id),
                name=contract_name,
                address=artifacts["address"],
                salt=artifacts.get("salt"),
                deployer=artifacts["deployer"],
            )
            registry_entries.append(registry_entry)
    return registry_entries


def write_registry(entries: List[RegistryEntry], filepath: Path) -> Path:
    """Writes a proxy registry to a file, merging it into an existing one when possible."""

    if not entries:
        print("No entries provided.")
        return filepath

    # common order regardless of deployment order
    entries.sort(key=lambda entry: (str(entry.chain_id), entry.name))

    data = defaultdict(dict)
    for entry in entries:
        data[str(entry.chain_id)][entry.name] = {
            "address": entry.address,
            "salt": entry.salt,
            "deployer": entry.deployer,
        }

    filepath.parent.mkdir(parents=True, exist_ok=True)

    if filepath.exists():
        print(f"Updating existing registry at {filepath}.")
        existing_data = _load_json(filepath)

        if any(chain_id in existing_data for chain_id in data):
            filepath = filepath.with_suffix(".unmerged.json")
            print(
                "Cannot merge registries with overlapping chain IDs.\n"
                f"Writing to {filepath} to avoid overwriting existing data."
            )
        else:
            existing_data.update(data)
            data = existing_data
    else:
        print(f"Creating new registry at {filepath}.")

    with open(filepath, "w") as file:
        json.dump(data, file, **STANDARD_REGISTRY_JSON_FORMAT)

    return filepath


def registry_from_deployments(
    deployments: List[DeployedProxy],
    chain_id: ChainId,
    deployer: str,
    output_filepath: Path,
) -> Path:
    """Creates a proxy registry from the proxies deployed in a single run."""
    entries = [_get_entry(proxy, chain_id=chain_id, deployer=deployer) for proxy in deployments]
    output_filepath = write_registry(entries=entries, filepath=output_filepath)
    print(f"(i) Registry written to {output_filepath}!")
    return output_filepath


class ConflictResolution(Enum):
    USE_1 = 1
    USE_2 = 2


def _select_conflict_resolution(
    registry_1_entry, registry_1_filepath, registry_2_entry, registry_2_filepath
) -> ConflictResolution:
    print(
        f"\n! Conflict detected for {registry_1_entry.name} "
        f"on chain id {registry_1_entry.chain_id}:"
    )
    print(f"[1]: {registry_1_entry.name} at {registry_1_entry.address} for {registry_1_filepath}")
    print(f"[2]: {registry_2_entry.name} at {registry_2_entry.address} for {registry_2_filepath}")
    print("[A]: Abort merge")

    valid_str_answers = [
        str(ConflictResolution.USE_1.value),
        str(ConflictResolution.USE_2.value),
        "A",
    ]
    answer = None
    while answer not in valid_str_answers:
        answer = input(f"Merge resolution, {valid_str_answers}? ")

    if answer == "A":
        print("Merge Aborted!")
        exit(-1)
    return ConflictResolution(int(answer))


def merge_registries(
    registry_1_filepath: Path,
    registry_2_filepath: Path,
    output_filepath: Path,
    deprecated_contracts: Optional[List[ContractName]] = None,
) -> Path:
    """Merges two proxy registries; identical entries never prompt."""
    deprecated_contracts = deprecated_contracts or []

    reg1 = defaultdict(OrderedDict)
    reg2 = defaultdict(OrderedDict)
    for registry, filepath in ((reg1, registry_1_filepath), (reg2, registry_2_filepath)):
        for e in read_registry(filepath):
            if e.name not in deprecated_contracts:
                registry[e.chain_id][e.name] = e

    merged: List[RegistryEntry] = list()
    for chain_id in set(reg1) | set(reg2):
        reg1_chain_entries, reg2_chain_entries = reg1.get(chain_id, {}), reg2.get(chain_id, {})
        for name in set(reg1_chain_entries) | set(reg2_chain_entries):
            entry_1, entry_2 = reg1_chain_entries.get(name), reg2_chain_entries.get(name)
            if entry_1 and entry_2 and entry_1 != entry_2:
                resolution = _select_conflict_resolution(
                    registry_1_entry=entry_1,
                    registry_2_entry=entry_2,
                    registry_1_filepath=registry_1_filepath,
                    registry_2_filepath=registry_2_filepath,
                )
                selected_entry = entry_1 if resolution == ConflictResolution.USE_1 else entry_2
            else:
                selected_entry = entry_1 or entry_2
            merged.append(selected_entry)

    write_registry(entries=merged, filepath=output_filepath)
    print(f"Merged registry output to {output_filepath}")
    return output_filepath
