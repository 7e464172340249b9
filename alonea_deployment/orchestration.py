from typing import Callable, Iterable, List, Optional

from eth_typing import ChecksumAddress

from alonea_deployment.catalog import ModuleCatalog, ModuleSpec, ResolutionContext
from alonea_deployment.chain import ChainClient
from alonea_deployment.constants import VERSION_METHOD
from alonea_deployment.errors import (
    DeploymentError,
    NotDeployedError,
    NotUpgradeableError,
    PartialDeploymentError,
    UnresolvedDependencyError,
    UpgradeVerificationError,
)
from alonea_deployment.networks import NetworkContext
from alonea_deployment.planner import DeploymentPlan
from alonea_deployment.registry import DeploymentRecord, Registry
from alonea_deployment.scheduling import SerialStepQueue


def _same_address(a: Optional[str], b: Optional[str]) -> bool:
    if a is None or b is None:
        return a is b
    return a.lower() == b.lower()


class _Orchestrator:
    def __init__(
        self,
        client: ChainClient,
        catalog: ModuleCatalog,
        network: NetworkContext,
        registry: Registry,
        before_step: Optional[Callable[[str], bool]] = None,
    ):
        self.client = client
        self.catalog = catalog
        self.network = network
        self.registry = registry
        self.before_step = before_step

    def _run(self, steps: Iterable[str], worker: Callable[[str], str]) -> List[str]:
        queue = SerialStepQueue(
            account=self.network.deployer, steps=steps, before_step=self.before_step
        )
        return queue.run(worker)

    def _query_version(self, spec: ModuleSpec, address: ChecksumAddress) -> str:
        return str(self.client.call(spec, address, VERSION_METHOD))

    def _commit(self, name: str, record: DeploymentRecord) -> None:
        """Records a module and saves the registry straight away."""
        self.registry.record(name, record)
        self.registry.save()


class DeploymentOrchestrator(_Orchestrator):
    """
    Deploys the modules of a plan in order, saving the registry after every
    module so an interrupted run can be resumed by running it again.
    """

    def deploy_all(self, plan: DeploymentPlan) -> List[str]:
        self._check_constants(plan.steps)
        for name in plan.unconfirmed:
            self._reconcile(name)
        return self._run(plan.steps, self._deploy_module)

    def _check_constants(self, names: Iterable[str]) -> None:
        """Fails before the first transaction if a planned module needs an undefined constant."""
        for name in names:
            for constant in self.catalog[name].constants:
                if constant not in self.network.constants:
                    raise UnresolvedDependencyError(
                        f"Constant '{constant}' is not defined for network {self.network.name}",
                        module=name,
                    )

    def _deploy_module(self, name: str) -> str:
        spec = self.catalog[name]
        try:
            context = ResolutionContext(network=self.network, registry=self.registry)
            args = spec.resolve_args(context)
            if spec.is_upgradeable:
                self._deploy_upgradeable(spec, args)
            else:
                self._deploy_plain(spec, args)
        except DeploymentError as error:
            error.module = error.module or name
            raise
        return name

    def _deploy_upgradeable(self, spec: ModuleSpec, args) -> None:
        print(f"\nDeploying {spec.name} behind a {spec.proxy_kind.value} proxy...")
        try:
            deployment = self.client.deploy_upgradeable(spec, args)
        except UpgradeVerificationError as error:
            # the proxy is mined; record it unconfirmed
            if error.proxy is not None:
                record = DeploymentRecord(address=error.proxy, implementation=error.implementation)
                self._commit(spec.name, record)
            raise

        # saved before the version query; an interrupted run leaves an unconfirmed record
        record = DeploymentRecord(
            address=deployment.proxy, implementation=deployment.implementation
        )
        self._commit(spec.name, record)

        version = self._query_version(spec, deployment.proxy)
        self._commit(spec.name, record._replace(version=version))
        print(
            f"{spec.name} v{version} deployed to: {deployment.proxy} "
            f"(implementation {deployment.implementation})"
        )

    def _deploy_plain(self, spec: ModuleSpec, args) -> None:
        print(f"\nDeploying {spec.name}...")
        address = self.client.deploy_plain(spec, args)
        self._commit(spec.name, DeploymentRecord(address=address))
        print(f"{spec.name} deployed to: {address}")

    def _reconcile(self, name: str) -> None:
        """Confirms a record left behind by a run that stopped after its deployment was mined."""
        spec = self.catalog[name]
        record = self.registry.contracts[name]
        print(f"\nRe-verifying unconfirmed record for {name} at {record.address}...")
        observed = self.client.get_implementation_address(record.address)
        if observed is None:
            raise PartialDeploymentError(
                f"No implementation found behind recorded proxy {record.address}; "
                "the record must be repaired manually",
                module=name,
            )
        if not _same_address(observed, record.implementation):
            print(
                f"(i) Recorded implementation {record.implementation} differs from "
                f"on-chain implementation {observed}; using the on-chain value."
            )
        try:
            version = self._query_version(spec, record.address)
        except DeploymentError as error:
            error.module = error.module or name
            raise
        self._commit(name, record._replace(implementation=observed, version=version))


class UpgradeOrchestrator(_Orchestrator):
    """Replaces the implementation behind already deployed module proxies."""

    def upgrade_all(self, module_names: Optional[Iterable[str]] = None) -> List[str]:
        names = self._select(module_names)
        return self._run(names, self._upgrade_module)

    def _select(self, module_names: Optional[Iterable[str]]) -> List[str]:
        """Returns the modules to upgrade in catalog order, checking all of them up front."""
        if module_names is None:
            # every deployed proxy
            module_names = [
                spec.name
                for spec in self.catalog
                if spec.is_upgradeable and spec.name in self.registry
            ]
            if not module_names:
                raise NotDeployedError(
                    f"No upgradeable modules recorded for network {self.network.name}; "
                    "deploy before upgrade"
                )

        requested = set(self.catalog[name].name for name in module_names)
        names = [name for name in self.catalog.names if name in requested]
        for name in names:
            spec = self.catalog[name]
            record = self.registry.get(name)
            if record is None:
                raise NotDeployedError(
                    "not found in the registry; deploy before upgrade", module=name
                )
            if not spec.is_upgradeable or not record.is_proxied:
                raise NotUpgradeableError("is not deployed behind a proxy", module=name)
            if not record.is_confirmed:
                raise PartialDeploymentError(
                    "deployment was never confirmed; re-run the deployment first", module=name
                )
        return names

    def _upgrade_module(self, name: str) -> str:
        spec = self.catalog[name]
        record = self.registry.contracts[name]
        try:
            print(f"\nUpgrading {name} ({spec.proxy_kind.value} proxy at {record.proxy})...")
            implementation = self.client.deploy_implementation(spec)
            observed = self.client.upgrade(spec, record.proxy, implementation)
            if not _same_address(observed, implementation):
                raise UpgradeVerificationError(
                    f"proxy {record.proxy} points to {observed} after upgrading to {implementation}"
                )
            # the proxy already delegates to the new implementation
            upgraded = record._replace(implementation=implementation, version=None)
            self._commit(name, upgraded)
            version = self._query_version(spec, record.proxy)
        except DeploymentError as error:
            error.module = error.module or name
            raise

        self._commit(name, upgraded._replace(version=version))
        print(f"{name} upgraded to v{version} (implementation {implementation})")
        return name


def print_summary(registry: Registry) -> None:
    print("\n=== Deployment Summary ===")
    print(f"Network: {registry.network} (chain id {registry.chain_id})")
    for name, record in registry.contracts.items():
        if record.is_proxied:
            print(
                f"{name}: {record.proxy} "
                f"(implementation {record.implementation}, v{record.version})"
            )
        else:
            print(f"{name}: {record.address}")
