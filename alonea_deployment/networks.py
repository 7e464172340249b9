from typing import Any, Dict, NamedTuple, Optional

from ape import networks
from eth_typing import ChecksumAddress
from eth_utils import to_checksum_address

from alonea_deployment.constants import (
    DEFAULT_NETWORK_CONSTANTS,
    LOCAL_NETWORK_NAMES,
    NETWORK_CONSTANTS,
)


def is_local_network() -> bool:
    network_name = networks.provider.network.name
    return network_name in LOCAL_NETWORK_NAMES or network_name.endswith("-fork")


def get_network_constants(
    chain_id: int, overrides: Optional[Dict[str, Any]] = None
) -> Dict[str, Any]:
    """
    Returns the constants used to resolve $UPPER_CASE catalog variables on a chain.
    Overrides with a value of None are ignored.
    """
    constants = dict(NETWORK_CONSTANTS.get(chain_id, DEFAULT_NETWORK_CONSTANTS))
    for name, value in (overrides or dict()).items():
        if value is not None:
            constants[name] = value
    return constants


class NetworkContext(NamedTuple):
    """Identity of the connected network plus the deployer and its network constants."""

    name: str
    chain_id: int
    deployer: ChecksumAddress
    constants: Dict[str, Any]
    provider_uri: Optional[str] = None

    @classmethod
    def from_provider(
        cls, deployer: str, overrides: Optional[Dict[str, Any]] = None
    ) -> "NetworkContext":
        provider = networks.provider
        network = provider.network
        chain_id = provider.chain_id
        return cls(
            name=f"{network.ecosystem.name}-{network.name}",
            chain_id=chain_id,
            deployer=to_checksum_address(deployer),
            constants=get_network_constants(chain_id, overrides),
            provider_uri=getattr(provider, "uri", None),
        )
