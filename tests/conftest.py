from types import SimpleNamespace

import pytest
from eth_utils import keccak, to_checksum_address

from proxy_deployment.proxies import ProxyCreationService, ProxyDeployer

# Common constants
CHAIN_ID = 1337

DEPOSITS = to_checksum_address("0x" + "d1" * 20)
SETTINGS = to_checksum_address("0x" + "51" * 20)
OPERATORS = to_checksum_address("0x" + "0f" * 20)
VRC = to_checksum_address("0x" + "0c" * 20)
VALIDATORS_REGISTRY = to_checksum_address("0x" + "e1" * 20)
DEPLOYER = to_checksum_address("0x" + "de" * 20)


# Utility functions
def stub_address(*parts: bytes) -> str:
    return to_checksum_address(keccak(b"".join(parts))[-20:])


class StubProxyCreationService(ProxyCreationService):
    """Returns a fixed address per (alias, salt) and records every call."""

    def __init__(self, addresses=None, error=None):
        self.addresses = addresses or dict()
        self.error = error
        self.calls = list()

    def create(self, contract_alias, initializer, args, salt, network_config):
        self.calls.append(
            SimpleNamespace(
                contract_alias=contract_alias,
                initializer=initializer,
                args=args,
                salt=salt,
                network_config=network_config,
            )
        )
        if self.error is not None:
            raise self.error
        return self.address_for(contract_alias, salt)

    def address_for(self, contract_alias, salt=None):
        if (contract_alias, salt) in self.addresses:
            return self.addresses[(contract_alias, salt)]
        if salt is not None:
            return self.predict_address(salt)
        return stub_address(contract_alias.encode())

    def predict_address(self, salt):
        return stub_address(b"factory", salt)

    def recorded_args(self, contract_alias):
        return [call.args for call in self.calls if call.contract_alias == contract_alias]


class FakeAccount:
    def __init__(self, address=DEPLOYER):
        self.address = address
        self.autosign = None

    def set_autosign(self, enabled):
        self.autosign = enabled


# Fixtures
@pytest.fixture
def service():
    return StubProxyCreationService()


@pytest.fixture
def reports():
    return list()


@pytest.fixture
def proxy_deployer(service, reports):
    return ProxyDeployer(service=service, reporter=reports.append)


@pytest.fixture
def account():
    return FakeAccount()


@pytest.fixture
def fake_network(monkeypatch):
    """A connected local network, without a running provider."""
    network = SimpleNamespace(
        name="local",
        chain_id=CHAIN_ID,
        ecosystem=SimpleNamespace(name="ethereum"),
        explorer=None,
    )
    fake_networks = SimpleNamespace(provider=SimpleNamespace(name="test", network=network))
    monkeypatch.setattr("proxy_deployment.utils.networks", fake_networks)
    monkeypatch.setattr("proxy_deployment.params.networks", fake_networks)
    monkeypatch.setattr("proxy_deployment.utils.is_local_network", lambda: network.name == "local")
    return network


@pytest.fixture
def params_config(tmp_path):
    return {
        "deployment": {"name": "pools-test", "chain_id": CHAIN_ID},
        "artifacts": {"dir": str(tmp_path / "artifacts"), "filename": "test.json"},
        "constants": {
            "DEPOSITS": DEPOSITS,
            "SETTINGS": SETTINGS,
            "OPERATORS": OPERATORS,
            "VALIDATOR_DEPOSIT_CONTRACT": VRC,
        },
        "network": {"required_confirmations": 0},
        "contracts": [
            {
                "Pools": {
                    "initialize": {
                        "deposits_proxy": "$DEPOSITS",
                        "settings_proxy": "$SETTINGS",
                        "operators_proxy": "$OPERATORS",
                        "vrc": "$VALIDATOR_DEPOSIT_CONTRACT",
                        "validators_registry_proxy": "$ValidatorsRegistry",
                    }
                }
            },
            {
                "Privates": {
                    "initialize": {
                        "deposits_proxy": "$DEPOSITS",
                        "settings_proxy": "$SETTINGS",
                        "operators_proxy": "$OPERATORS",
                        "vrc": "$VALIDATOR_DEPOSIT_CONTRACT",
                        "validators_registry_proxy": "$ValidatorsRegistry",
                    }
                }
            },
            {
                "ValidatorsRegistry": {
                    "salt": 1,
                    "initialize": {
                        "pools_proxy": "$Pools",
                        "privates_proxy": "$Privates",
                        "settings_proxy": "$SETTINGS",
                    },
                }
            },
        ],
    }
