import typing
from collections import OrderedDict
from typing import Any, List, Optional

from ape import chain
from ape.api import AccountAPI, ReceiptAPI
from ape.cli.choices import select_account
from ape.contracts.base import ContractContainer, ContractInstance, ContractTransactionHandler
from ape.exceptions import TransactionError, VirtualMachineError
from ape.utils import EMPTY_BYTES32
from eth_typing import ChecksumAddress
from eth_utils import to_checksum_address, to_int
from ethpm_types import MethodABI
from web3.auto import w3

from alonea_deployment.catalog import ModuleSpec, ProxyKind
from alonea_deployment.chain import ChainClient, Deployment
from alonea_deployment.confirm import _confirm_deployment, _confirm_resolution, _continue
from alonea_deployment.constants import EIP1967_ADMIN_SLOT, EIP1967_IMPLEMENTATION_SLOT
from alonea_deployment.errors import (
    CatalogError,
    NotUpgradeableError,
    TransactionFailure,
    UpgradeAuthorizationError,
    UpgradeVerificationError,
)
from alonea_deployment.utils import get_contract_container, get_oz_dependency, verify_contract

TRANSPARENT_PROXY_NAME = "TransparentUpgradeableProxy"
ERC1967_PROXY_NAME = "ERC1967Proxy"


def _validate_method_args(
    method_abis: List[MethodABI], args: typing.Sequence[Any]
) -> typing.Dict[str, Any]:
    """Validates the transaction arguments against the function ABI."""
    if len(method_abis) == 0:
        raise ValueError("No method abis provided for validation of args")

    abis_matching_args_length = [abi for abi in method_abis if len(abi.inputs) == len(args)]
    for abi in abis_matching_args_length:
        named_args = {}
        for arg, abi_input in zip(args, abi.inputs):
            if not w3.is_encodable(abi_input.type, arg):
                break
            named_args[abi_input.name] = arg
        else:
            return named_args
    raise ValueError(
        f"Could not find ABI for '{method_abis[0].name}' with {len(args)} arg(s) and given type(s)"
    )


def _revert_message(error: Exception) -> str:
    return getattr(error, "revert_message", None) or str(error)


def _read_slot_address(address: ChecksumAddress, slot: int) -> Optional[ChecksumAddress]:
    """Returns the address stored in a storage slot, or None if the slot is empty."""
    value = chain.provider.get_storage(address, slot)
    if value == EMPTY_BYTES32:
        return None
    return to_checksum_address(value[-20:])


class Transactor:
    """
    Represents an ape account plus validated/annotated transaction execution.
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

    def transact(self, method: ContractTransactionHandler, *args) -> ReceiptAPI:
        named_args = _validate_method_args(method_abis=method.abis, args=args)
        base_message = (
            f"\nTransacting {method.contract.contract_type.name}"
            f"[{method.contract.address[:10]}].{method}"
        )
        if named_args:
            pretty_args = "\n\t".join(f"{k}={v}" for k, v in named_args.items())
            message = f"{base_message} with arguments:\n\t{pretty_args}"
        else:
            message = f"{base_message} with no arguments"
        print(message)
        if not self._autosign:
            _continue()

        try:
            return method(*args, sender=self._account)
        except (VirtualMachineError, TransactionError) as error:
            raise TransactionFailure(
                f"Transaction {method} failed", revert_message=_revert_message(error)
            ) from error


class ApeChainClient(Transactor, ChainClient):
    """
    Deploys and upgrades modules with an ape account.

    Transparent modules sit behind an OpenZeppelin TransparentUpgradeableProxy
    whose ProxyAdmin is owned by the deployer; self-upgrading (UUPS) modules
    sit behind a bare ERC1967Proxy and authorize upgrades themselves.
    """

    @property
    def deployer(self) -> ChecksumAddress:
        return to_checksum_address(self._account.address)

    def _deploy_contract(self, container: ContractContainer, *args) -> ContractInstance:
        name = container.contract_type.name
        try:
            return self._account.deploy(container, *args)
        except (VirtualMachineError, TransactionError) as error:
            raise TransactionFailure(
                f"Deployment of {name} failed", revert_message=_revert_message(error)
            ) from error

    def _proxy_container(self, kind: ProxyKind) -> ContractContainer:
        oz_dependency = get_oz_dependency()
        if kind is ProxyKind.TRANSPARENT:
            return getattr(oz_dependency, TRANSPARENT_PROXY_NAME)
        elif kind is ProxyKind.SELF_UPGRADING:
            return getattr(oz_dependency, ERC1967_PROXY_NAME)
        raise NotUpgradeableError(f"Unsupported proxy kind {kind}")

    def _validate_initializer_args(
        self, container: ContractContainer, spec: ModuleSpec, args: OrderedDict
    ) -> None:
        method_abis = [
            abi for abi in container.contract_type.methods if abi.name == spec.initializer
        ]
        try:
            _validate_method_args(method_abis=method_abis, args=list(args.values()))
        except ValueError as error:
            raise CatalogError(f"Invalid {spec.initializer} arguments: {error}", module=spec.name)

    def deploy_implementation(self, spec: ModuleSpec) -> ChecksumAddress:
        container = get_contract_container(spec.name)
        if not self._autosign:
            _confirm_deployment(f"{spec.name} implementation")
        implementation = self._deploy_contract(container)
        print(f"{spec.name} implementation deployed to: {implementation.address}")
        return to_checksum_address(implementation.address)

    def deploy_upgradeable(self, spec: ModuleSpec, args: OrderedDict) -> Deployment:
        if not self._autosign:
            _confirm_resolution(args, spec.name)
        container = get_contract_container(spec.name)
        self._validate_initializer_args(container, spec, args)
        implementation = self._deploy_contract(container)
        calldata = getattr(implementation, spec.initializer).encode_input(*args.values())

        proxy_container = self._proxy_container(spec.proxy_kind)
        print(
            f"\nDeploying {proxy_container.contract_type.name} contract to proxy {spec.name} "
            f"and call {spec.initializer}."
        )
        if spec.proxy_kind is ProxyKind.TRANSPARENT:
            proxy = self._deploy_contract(
                proxy_container, implementation.address, self.deployer, calldata
            )
        else:
            proxy = self._deploy_contract(proxy_container, implementation.address, calldata)

        proxy_address = to_checksum_address(proxy.address)
        observed = self.get_implementation_address(proxy_address)
        if observed != to_checksum_address(implementation.address):
            raise UpgradeVerificationError(
                f"Proxy {proxy_address} points to {observed}, "
                f"expected {implementation.address}",
                proxy=proxy_address,
                implementation=to_checksum_address(implementation.address),
            )
        return Deployment(proxy=proxy_address, implementation=observed)

    def deploy_plain(self, spec: ModuleSpec, args: OrderedDict) -> ChecksumAddress:
        if not self._autosign:
            _confirm_resolution(args, spec.name)
        container = get_contract_container(spec.name)
        instance = self._deploy_contract(container, *args.values())
        return to_checksum_address(instance.address)

    def upgrade(
        self, spec: ModuleSpec, proxy: ChecksumAddress, implementation: ChecksumAddress
    ) -> ChecksumAddress:
        admin = _read_slot_address(proxy, EIP1967_ADMIN_SLOT)
        if spec.proxy_kind is ProxyKind.TRANSPARENT:
            self._upgrade_transparent(proxy, implementation, admin)
        elif spec.proxy_kind is ProxyKind.SELF_UPGRADING:
            self._upgrade_self(spec, proxy, implementation, admin)
        else:
            raise NotUpgradeableError(f"Unsupported proxy kind {spec.proxy_kind}")
        return self.get_implementation_address(proxy)

    def _upgrade_transparent(
        self,
        proxy: ChecksumAddress,
        implementation: ChecksumAddress,
        admin: Optional[ChecksumAddress],
    ) -> None:
        if admin is None:
            raise UpgradeAuthorizationError(
                f"Admin slot for contract at {proxy} is empty; "
                "it is not a transparent proxy and cannot be upgraded through a ProxyAdmin."
            )
        proxy_admin = get_oz_dependency().ProxyAdmin.at(admin)
        owner = to_checksum_address(proxy_admin.owner())
        if owner != self.deployer:
            raise UpgradeAuthorizationError(
                f"ProxyAdmin {admin} of {proxy} is owned by {owner}, not by {self.deployer}."
            )
        self.transact(proxy_admin.upgradeAndCall, proxy, implementation, b"")

    def _upgrade_self(
        self,
        spec: ModuleSpec,
        proxy: ChecksumAddress,
        implementation: ChecksumAddress,
        admin: Optional[ChecksumAddress],
    ) -> None:
        if admin is not None:
            raise UpgradeAuthorizationError(
                f"Contract at {proxy} has a proxy admin ({admin}); "
                "a transparent proxy cannot be upgraded from within the module."
            )
        container = get_contract_container(spec.name)
        uuid = container.at(implementation).proxiableUUID()
        if to_int(primitive=bytes(uuid)) != EIP1967_IMPLEMENTATION_SLOT:
            raise UpgradeAuthorizationError(
                f"Implementation {implementation} is not a self-upgrading (UUPS) implementation."
            )
        self.transact(container.at(proxy).upgradeToAndCall, implementation, b"")

    def call(self, spec: ModuleSpec, address: ChecksumAddress, method: str, *args) -> Any:
        instance = get_contract_container(spec.name).at(address)
        try:
            return getattr(instance, method)(*args)
        except (VirtualMachineError, TransactionError) as error:
            raise TransactionFailure(
                f"Call to {method} at {address} failed", revert_message=_revert_message(error)
            ) from error

    def get_implementation_address(self, proxy: ChecksumAddress) -> Optional[ChecksumAddress]:
        return _read_slot_address(proxy, EIP1967_IMPLEMENTATION_SLOT)

    def publish(self, spec: ModuleSpec, address: ChecksumAddress) -> None:
        verify_contract(name=spec.name, address=address)
