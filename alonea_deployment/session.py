import typing
from pathlib import Path
from typing import Any, Iterable, List, Optional

from ape import networks
from ape.api import AccountAPI

from alonea_deployment.catalog import ModuleCatalog
from alonea_deployment.chain import ChainClient
from alonea_deployment.confirm import _confirm_step, _continue
from alonea_deployment.constants import DEFAULT_CATALOG_FILEPATH
from alonea_deployment.networks import NetworkContext
from alonea_deployment.orchestration import (
    DeploymentOrchestrator,
    UpgradeOrchestrator,
    print_summary,
)
from alonea_deployment.planner import DeploymentPlan, DeploymentPlanner
from alonea_deployment.registry import load_registry
from alonea_deployment.transactor import ApeChainClient
from alonea_deployment.utils import check_plugins, registry_filepath_from_network


def print_plan(plan: DeploymentPlan) -> None:
    if plan.recorded:
        print(f"Already deployed: {', '.join(plan.recorded)}")
    if plan.unconfirmed:
        print(f"Unconfirmed (will be re-verified): {', '.join(plan.unconfirmed)}")
    if not plan.steps:
        print("Nothing to deploy.")
        return
    print("Deployment plan:")
    for position, name in enumerate(plan.steps, start=1):
        print(f"\t{position}. {name}")


class DeploymentSession:
    """
    Represents an ape account plus the module catalog, network context and
    registry of one deployment or upgrade run.
    """

    def __init__(
        self,
        catalog_filepath: Path = DEFAULT_CATALOG_FILEPATH,
        registry_filepath: Optional[Path] = None,
        account: typing.Optional[AccountAPI] = None,
        autosign: bool = False,
        verify: bool = False,
        constants: Optional[typing.Dict[str, Any]] = None,
        client: Optional[ChainClient] = None,
    ):
        check_plugins(verify=verify)
        self.client = client or ApeChainClient(account=account, autosign=autosign)
        self.catalog = ModuleCatalog.from_yaml(catalog_filepath)
        self.network = NetworkContext.from_provider(
            deployer=self.client.deployer, overrides=constants
        )
        self.catalog_filepath = catalog_filepath
        self.registry_filepath = registry_filepath or registry_filepath_from_network(
            self.network.name
        )
        self.registry = load_registry(
            filepath=self.registry_filepath,
            network_name=self.network.name,
            chain_id=self.network.chain_id,
        )
        self.autosign = autosign
        self.verify = verify
        self._print_deployment_info()

    def _before_step(self):
        return None if self.autosign else _confirm_step

    def plan(self, modules: Optional[Iterable[str]] = None) -> DeploymentPlan:
        planner = DeploymentPlanner(catalog=self.catalog, registry=self.registry)
        return planner.plan(modules)

    def deploy(self, modules: Optional[Iterable[str]] = None) -> List[str]:
        plan = self.plan(modules)
        print_plan(plan)
        if plan.is_empty:
            return []
        if not self.autosign:
            _continue()

        orchestrator = DeploymentOrchestrator(
            client=self.client,
            catalog=self.catalog,
            network=self.network,
            registry=self.registry,
            before_step=self._before_step(),
        )
        deployed = orchestrator.deploy_all(plan)
        print_summary(self.registry)
        print(f"(i) Registry written to {self.registry_filepath}!")
        if self.verify:
            self.publish(deployed)
        return deployed

    def upgrade(self, modules: Optional[Iterable[str]] = None) -> List[str]:
        orchestrator = UpgradeOrchestrator(
            client=self.client,
            catalog=self.catalog,
            network=self.network,
            registry=self.registry,
            before_step=self._before_step(),
        )
        upgraded = orchestrator.upgrade_all(modules)
        print_summary(self.registry)
        print(f"(i) Registry written to {self.registry_filepath}!")
        if self.verify:
            self.publish(upgraded)
        return upgraded

    def publish(self, modules: Iterable[str]) -> None:
        """Publishes the current implementation (or plain contract) of each module."""
        for name in modules:
            record = self.registry.contracts[name]
            self.client.publish(self.catalog[name], record.implementation or record.address)

    def _print_deployment_info(self):
        print(
            f"Account: {self.network.deployer}",
            f"Catalog: {self.catalog_filepath}",
            f"Registry: {self.registry_filepath}",
            f"Verify: {self.verify}",
            f"Network: {self.network.name}",
            f"Chain ID: {self.network.chain_id}",
            f"Gas Price: {networks.provider.gas_price}",
            sep="\n",
        )
