from abc import ABC, abstractmethod
from collections import OrderedDict
from typing import Any, NamedTuple, Optional

from eth_typing import ChecksumAddress

from alonea_deployment.catalog import ModuleSpec


class Deployment(NamedTuple):
    proxy: ChecksumAddress
    implementation: ChecksumAddress


class ChainClient(ABC):
    """
    The chain capability the orchestrators depend on.

    Every transacting method blocks until its transaction is mined and
    raises TransactionFailure if it is rejected or reverted.
    """

    @property
    @abstractmethod
    def deployer(self) -> ChecksumAddress:
        raise NotImplementedError

    @abstractmethod
    def deploy_upgradeable(self, spec: ModuleSpec, args: OrderedDict) -> Deployment:
        """Deploys an implementation and a proxy that calls the initializer with args."""
        raise NotImplementedError

    @abstractmethod
    def deploy_implementation(self, spec: ModuleSpec) -> ChecksumAddress:
        """Deploys new logic for a module without initializing it."""
        raise NotImplementedError

    @abstractmethod
    def upgrade(
        self, spec: ModuleSpec, proxy: ChecksumAddress, implementation: ChecksumAddress
    ) -> ChecksumAddress:
        """
        Points the proxy at the new implementation using the call path of the
        module's proxy kind, and returns the implementation observed on chain.
        """
        raise NotImplementedError

    @abstractmethod
    def deploy_plain(self, spec: ModuleSpec, args: OrderedDict) -> ChecksumAddress:
        raise NotImplementedError

    @abstractmethod
    def call(self, spec: ModuleSpec, address: ChecksumAddress, method: str, *args) -> Any:
        raise NotImplementedError

    @abstractmethod
    def get_implementation_address(self, proxy: ChecksumAddress) -> Optional[ChecksumAddress]:
        """Reads the EIP-1967 implementation slot; None if it is empty."""
        raise NotImplementedError

    def publish(self, spec: ModuleSpec, address: ChecksumAddress) -> None:
        """Publishes verified source code to the network's block explorer."""
        raise NotImplementedError(f"{type(self).__name__} cannot publish contracts")
