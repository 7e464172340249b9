import json

import pytest
from eth_utils import to_checksum_address

from alonea_deployment.constants import TIMELOCK, TOKEN
from alonea_deployment.errors import RegistryError, RegistryMismatchError
from alonea_deployment.registry import (
    DeploymentRecord,
    Registry,
    load_registry,
    normalize_registry,
    read_registry,
    write_registry,
)

PROXY = "0x0000000000000000000000000000000000001001"
IMPLEMENTATION = "0x0000000000000000000000000000000000001000"
TIMELOCK_ADDRESS = "0x0000000000000000000000000000000000001002"


@pytest.fixture
def populated_registry(registry):
    registry.record(
        TOKEN, DeploymentRecord(address=PROXY, implementation=IMPLEMENTATION, version="1.0.0")
    )
    registry.record(TIMELOCK, DeploymentRecord(address=TIMELOCK_ADDRESS))
    return registry


def test_record_properties():
    proxied = DeploymentRecord(address=PROXY, implementation=IMPLEMENTATION)
    assert proxied.is_proxied
    assert proxied.proxy == PROXY
    assert not proxied.is_confirmed
    assert proxied._replace(version="1.0.0").is_confirmed

    plain = DeploymentRecord(address=TIMELOCK_ADDRESS)
    assert not plain.is_proxied
    assert plain.proxy is None
    assert plain.is_confirmed


def test_round_trip(populated_registry, registry_filepath):
    assert Registry.from_json(populated_registry.to_json()) == populated_registry

    populated_registry.save()
    restored = read_registry(registry_filepath)
    assert restored == populated_registry
    assert restored.timestamp == populated_registry.timestamp
    assert restored.contracts == populated_registry.contracts


def test_persisted_format(populated_registry, registry_filepath):
    write_registry(populated_registry, registry_filepath)
    with open(registry_filepath) as file:
        data = json.load(file)

    assert data["network"] == "bsc-testnet"
    assert data["chainId"] == 97
    assert data["timestamp"].endswith("Z")
    assert data["contracts"] == {
        TOKEN: {"proxy": PROXY, "implementation": IMPLEMENTATION, "version": "1.0.0"},
        TIMELOCK: {"address": TIMELOCK_ADDRESS},
    }
    # nothing is left behind by the atomic write
    assert [path.name for path in registry_filepath.parent.iterdir()] == [registry_filepath.name]


def test_unconfirmed_record_round_trip(registry, registry_filepath):
    registry.record(TOKEN, DeploymentRecord(address=PROXY, implementation=IMPLEMENTATION))
    registry.save()

    with open(registry_filepath) as file:
        assert json.load(file)["contracts"][TOKEN]["version"] is None
    assert not read_registry(registry_filepath).contracts[TOKEN].is_confirmed


def test_recorded_address_never_changes(populated_registry):
    moved = DeploymentRecord(
        address="0x0000000000000000000000000000000000009999",
        implementation=IMPLEMENTATION,
        version="1.0.0",
    )
    with pytest.raises(RegistryError, match="Refusing to replace") as exc_info:
        populated_registry.record(TOKEN, moved)
    assert exc_info.value.module == TOKEN
    assert populated_registry.contracts[TOKEN].address == PROXY

    # new implementation behind the same proxy is fine
    upgraded = DeploymentRecord(
        address=PROXY,
        implementation="0x0000000000000000000000000000000000002000",
        version="2.0.0",
    )
    populated_registry.record(TOKEN, upgraded)
    assert populated_registry.contracts[TOKEN] == upgraded


def test_load_missing_registry(registry_filepath, capsys):
    registry = load_registry(registry_filepath, network_name="bsc-testnet", chain_id=97)
    assert registry.contracts == {}
    assert registry.filepath == registry_filepath
    assert not registry_filepath.exists()
    assert "starting a new one" in capsys.readouterr().out


def test_load_existing_registry(populated_registry, registry_filepath):
    populated_registry.save()
    loaded = load_registry(registry_filepath, network_name="bsc-testnet", chain_id=97)
    assert loaded == populated_registry
    assert loaded.filepath == registry_filepath


@pytest.mark.parametrize(
    "network_name, chain_id, message",
    [
        ("bsc-mainnet", 56, "chain id 97"),
        ("bsc-other", 97, "network 'bsc-testnet'"),
    ],
)
def test_load_mismatched_registry(
    populated_registry, registry_filepath, network_name, chain_id, message
):
    populated_registry.save()
    with pytest.raises(RegistryMismatchError, match=message):
        load_registry(registry_filepath, network_name=network_name, chain_id=chain_id)


def test_read_invalid_registry(registry_filepath):
    registry_filepath.write_text("{not json")
    with pytest.raises(RegistryError, match="not valid JSON"):
        read_registry(registry_filepath)


def test_read_malformed_record(registry_filepath):
    data = {"network": "bsc-testnet", "chainId": 97, "contracts": {TOKEN: {"proxy": PROXY}}}
    registry_filepath.write_text(json.dumps(data))
    with pytest.raises(RegistryError, match="has no implementation") as exc_info:
        read_registry(registry_filepath)
    assert exc_info.value.module == TOKEN


def test_addresses_are_checksummed(registry_filepath):
    lowercase = "0x" + "ab" * 20
    data = {
        "network": "bsc-testnet",
        "chainId": 97,
        "timestamp": "2024-05-01T10:00:00.000Z",
        "contracts": {TIMELOCK: {"address": lowercase}},
    }
    registry_filepath.write_text(json.dumps(data))
    record = read_registry(registry_filepath).contracts[TIMELOCK]
    assert record.address == to_checksum_address(lowercase)


def test_normalize_registry(registry_filepath, capsys):
    data = {
        "network": "bsc-testnet",
        "chainId": 97,
        "timestamp": "2024-05-01T10:00:00.000Z",
        "contracts": {TIMELOCK: {"address": TIMELOCK_ADDRESS}},
    }
    registry_filepath.write_text(json.dumps(data, separators=(",", ":")))
    normalize_registry(registry_filepath)

    assert json.loads(registry_filepath.read_text()) == data
    assert registry_filepath.read_text() == json.dumps(data, indent=2) + "\n"
    assert "Successfully normalized" in capsys.readouterr().out
