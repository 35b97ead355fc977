import json

import pytest
from eth_utils import to_checksum_address

from conftest import DEPLOYER
from proxy_deployment.proxies import DeployedProxy, to_salt
from proxy_deployment.registry import (
    RegistryEntry,
    merge_registries,
    read_registry,
    registry_from_deployments,
    write_registry,
)

POOLS = to_checksum_address("0x" + "a1" * 20)
PRIVATES = to_checksum_address("0x" + "a2" * 20)
OTHER_POOLS = to_checksum_address("0x" + "b1" * 20)


def entry(chain_id, name, address, salt=None):
    return RegistryEntry(chain_id=chain_id, name=name, address=address, salt=salt, deployer=DEPLOYER)


def test_registry_from_deployments(tmp_path):
    filepath = tmp_path / "registry.json"
    deployments = [
        DeployedProxy(name="Privates", address=PRIVATES),
        DeployedProxy(name="Pools", address=POOLS, salt=to_salt(1)),
    ]

    output = registry_from_deployments(
        deployments=deployments, chain_id=5, deployer=DEPLOYER.lower(), output_filepath=filepath
    )

    assert output == filepath
    data = json.loads(filepath.read_text())
    assert list(data) == ["5"]
    assert list(data["5"]) == ["Pools", "Privates"]
    assert data["5"]["Pools"] == {
        "address": POOLS,
        "salt": "0x" + "00" * 31 + "01",
        "deployer": DEPLOYER,
    }
    assert data["5"]["Privates"]["salt"] is None
    assert read_registry(filepath) == [
        entry(5, "Pools", POOLS, "0x" + "00" * 31 + "01"),
        entry(5, "Privates", PRIVATES),
    ]


def test_write_registry_merges_other_chains(tmp_path):
    filepath = tmp_path / "registry.json"
    write_registry([entry(5, "Pools", POOLS)], filepath)

    output = write_registry([entry(1, "Pools", OTHER_POOLS)], filepath)

    assert output == filepath
    entries = read_registry(filepath)
    assert {(e.chain_id, e.address) for e in entries} == {(5, POOLS), (1, OTHER_POOLS)}


def test_write_registry_does_not_overwrite_same_chain(tmp_path, capsys):
    filepath = tmp_path / "registry.json"
    write_registry([entry(5, "Pools", POOLS)], filepath)
    assert f"Creating new registry at {filepath}." in capsys.readouterr().out

    output = write_registry([entry(5, "Pools", OTHER_POOLS)], filepath)

    assert "Cannot merge registries with overlapping chain IDs." in capsys.readouterr().out
    assert output == tmp_path / "registry.unmerged.json"
    assert read_registry(filepath) == [entry(5, "Pools", POOLS)]
    assert read_registry(output) == [entry(5, "Pools", OTHER_POOLS)]


def test_write_empty_registry(tmp_path, capsys):
    filepath = tmp_path / "registry.json"
    assert write_registry([], filepath) == filepath
    assert not filepath.exists()
    assert "No entries provided." in capsys.readouterr().out


def test_merge_registries(tmp_path):
    registry_1 = write_registry(
        [entry(5, "Pools", POOLS), entry(5, "Privates", PRIVATES)], tmp_path / "1.json"
    )
    registry_2 = write_registry(
        [entry(5, "Pools", POOLS), entry(1, "Pools", OTHER_POOLS)], tmp_path / "2.json"
    )
    output = tmp_path / "merged.json"

    merge_registries(registry_1, registry_2, output, deprecated_contracts=["Privates"])

    entries = read_registry(output)
    assert entries == [entry(1, "Pools", OTHER_POOLS), entry(5, "Pools", POOLS)]


@pytest.mark.parametrize("answer,expected", [("1", POOLS), ("2", OTHER_POOLS)])
def test_merge_registries_conflict(tmp_path, monkeypatch, answer, expected):
    registry_1 = write_registry([entry(5, "Pools", POOLS)], tmp_path / "1.json")
    registry_2 = write_registry([entry(5, "Pools", OTHER_POOLS)], tmp_path / "2.json")
    answers = iter(["x", answer])
    monkeypatch.setattr("builtins.input", lambda prompt: next(answers))

    merge_registries(registry_1, registry_2, tmp_path / "merged.json")

    assert read_registry(tmp_path / "merged.json") == [entry(5, "Pools", expected)]


def test_merge_registries_abort(tmp_path, monkeypatch):
    registry_1 = write_registry([entry(5, "Pools", POOLS)], tmp_path / "1.json")
    registry_2 = write_registry([entry(5, "Pools", OTHER_POOLS)], tmp_path / "2.json")
    monkeypatch.setattr("builtins.input", lambda prompt: "A")

    with pytest.raises(SystemExit):
        merge_registries(registry_1, registry_2, tmp_path / "merged.json")
    assert not (tmp_path / "merged.json").exists()
