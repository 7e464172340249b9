import json
from collections import OrderedDict
from datetime import datetime, timezone
from pathlib import Path
from typing import Dict, NamedTuple, Optional

from eth_typing import ChecksumAddress
from eth_utils import to_checksum_address

from alonea_deployment.constants import REGISTRY_JSON_FORMAT
from alonea_deployment.errors import RegistryError, RegistryMismatchError
from alonea_deployment.utils import _load_json

ChainId = int
ModuleName = str


def _now() -> str:
    """ISO-8601 UTC timestamp with millisecond precision, e.g. 2024-05-01T10:00:00.000Z"""
    timestamp = datetime.now(timezone.utc).isoformat(timespec="milliseconds")
    return timestamp.replace("+00:00", "Z")


class DeploymentRecord(NamedTuple):
    """
    Represents a single deployed module.

    For proxied modules ``address`` is the proxy, the module's permanent
    identity, and ``implementation`` the logic contract it currently
    delegates to. Plain modules only have an ``address``.
    A proxied record without a ``version`` is unconfirmed: the deployment
    transaction was mined but the run stopped before the version was queried.
    """

    address: ChecksumAddress
    implementation: Optional[ChecksumAddress] = None
    version: Optional[str] = None

    @property
    def is_proxied(self) -> bool:
        return self.implementation is not None

    @property
    def proxy(self) -> Optional[ChecksumAddress]:
        return self.address if self.is_proxied else None

    @property
    def is_confirmed(self) -> bool:
        return not self.is_proxied or self.version is not None

    def to_json(self) -> Dict:
        if not self.is_proxied:
            return {"address": self.address}
        return {
            "proxy": self.address,
            "implementation": self.implementation,
            "version": self.version,
        }

    @classmethod
    def from_json(cls, data: Dict) -> "DeploymentRecord":
        if "proxy" in data:
            if not data.get("implementation"):
                raise RegistryError(f"Proxy record {data['proxy']} has no implementation")
            version = data.get("version")
            return cls(
                address=to_checksum_address(data["proxy"]),
                implementation=to_checksum_address(data["implementation"]),
                version=None if version is None else str(version),
            )
        if "address" in data:
            return cls(address=to_checksum_address(data["address"]))
        raise RegistryError(f"Malformed registry record: {data}")


class Registry:
    """
    The persisted record of every deployed module on a single network.

    Loaded once per run and passed explicitly to the orchestrators, which
    save it after every mutating step.
    """

    def __init__(
        self,
        network: str,
        chain_id: ChainId,
        timestamp: Optional[str] = None,
        contracts: Optional[Dict[ModuleName, DeploymentRecord]] = None,
        filepath: Optional[Path] = None,
    ):
        self.network = network
        self.chain_id = int(chain_id)
        self.timestamp = timestamp or _now()
        self.contracts: "OrderedDict[ModuleName, DeploymentRecord]" = OrderedDict(contracts or {})
        self.filepath = filepath

    def __contains__(self, name: ModuleName) -> bool:
        return name in self.contracts

    def __eq__(self, other) -> bool:
        if not isinstance(other, Registry):
            return NotImplemented
        return self.to_json() == other.to_json()

    def __repr__(self) -> str:
        return (
            f"Registry(network={self.network}, chain_id={self.chain_id}, "
            f"contracts={list(self.contracts)})"
        )

    def get(self, name: ModuleName) -> Optional[DeploymentRecord]:
        return self.contracts.get(name)

    def touch(self) -> None:
        self.timestamp = _now()

    def record(self, name: ModuleName, record: DeploymentRecord) -> None:
        """Adds or replaces a module record; a recorded proxy address never changes."""
        existing = self.contracts.get(name)
        if existing is not None and existing.address != record.address:
            raise RegistryError(
                f"Refusing to replace recorded address {existing.address} with {record.address}",
                module=name,
            )
        self.contracts[name] = record
        self.touch()

    def to_json(self) -> Dict:
        return {
            "network": self.network,
            "chainId": self.chain_id,
            "timestamp": self.timestamp,
            "contracts": {name: record.to_json() for name, record in self.contracts.items()},
        }

    @classmethod
    def from_json(cls, data: Dict, filepath: Optional[Path] = None) -> "Registry":
        try:
            network, chain_id = data["network"], data["chainId"]
        except (KeyError, TypeError):
            raise RegistryError(f"Registry at {filepath} is missing 'network' or 'chainId'")
        contracts = OrderedDict()
        for name, entry in (data.get("contracts") or {}).items():
            try:
                contracts[name] = DeploymentRecord.from_json(entry)
            except RegistryError as error:
                error.module = name
                raise
        return cls(
            network=network,
            chain_id=chain_id,
            timestamp=data.get("timestamp"),
            contracts=contracts,
            filepath=filepath,
        )

    def save(self, silent: bool = True) -> Path:
        if self.filepath is None:
            raise RegistryError("Registry has no filepath to be saved to")
        return write_registry(self, self.filepath, silent=silent)


def read_registry(filepath: Path) -> Registry:
    try:
        data = _load_json(filepath)
    except json.JSONDecodeError as error:
        raise RegistryError(f"Registry at {filepath} is not valid JSON: {error}")
    return Registry.from_json(data, filepath=filepath)


def write_registry(registry: Registry, filepath: Path, silent: bool = False) -> Path:
    """
    Writes the registry to a file.

    The data is written to a temporary sibling first and then moved over the
    target so that an interrupted write never leaves a truncated registry.
    """
    filepath.parent.mkdir(parents=True, exist_ok=True)
    if not silent:
        action = "Updating existing" if filepath.exists() else "Creating new"
        print(f"{action} registry at {filepath}.")

    temp_filepath = filepath.with_suffix(".temp.json")
    with open(temp_filepath, "w") as file:
        json.dump(registry.to_json(), file, **REGISTRY_JSON_FORMAT)
        file.write("\n")
    temp_filepath.replace(filepath)
    return filepath


def load_registry(filepath: Path, network_name: str, chain_id: ChainId) -> Registry:
    """
    Returns the registry at filepath, or a new empty registry bound to filepath
    if none exists. An existing registry must belong to the given network.
    """
    if not filepath.exists():
        print(f"(i) No registry at {filepath}; starting a new one.")
        return Registry(network=network_name, chain_id=chain_id, filepath=filepath)

    registry = read_registry(filepath)
    if registry.chain_id != int(chain_id):
        raise RegistryMismatchError(
            f"Registry at {filepath} is for chain id {registry.chain_id}, "
            f"but the connected network has chain id {chain_id}."
        )
    if registry.network != network_name:
        raise RegistryMismatchError(
            f"Registry at {filepath} is for network '{registry.network}', "
            f"but the connected network is '{network_name}'."
        )
    return registry


def normalize_registry(filepath: Path) -> None:
    """Normalizes a potentially non-standard registry file."""
    try:
        registry = read_registry(filepath=filepath)
    except Exception:
        print(f"Error when reading registry at {filepath}.")
        raise

    write_registry(registry=registry, filepath=filepath, silent=True)
    print(f"Successfully normalized registry at {filepath}.")
