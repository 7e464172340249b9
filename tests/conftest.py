from collections import OrderedDict

import pytest
from eth_utils import to_checksum_address

from alonea_deployment.catalog import ModuleCatalog, ModuleSpec
from alonea_deployment.chain import ChainClient, Deployment
from alonea_deployment.constants import BSC_TESTNET_CHAIN_ID, DEFAULT_CATALOG_FILEPATH
from alonea_deployment.errors import (
    TransactionFailure,
    UpgradeAuthorizationError,
    UpgradeVerificationError,
)
from alonea_deployment.networks import NetworkContext, get_network_constants
from alonea_deployment.orchestration import DeploymentOrchestrator, UpgradeOrchestrator
from alonea_deployment.planner import DeploymentPlanner
from alonea_deployment.registry import Registry

DEPLOYER = to_checksum_address("0x" + "de" * 20)
NETWORK_NAME = "bsc-testnet"
INITIAL_VERSION = "1.0.0"


class FakeChainClient(ChainClient):
    """
    In-memory chain: every deployment gets the next sequential address and
    every transaction is appended to ``transactions`` as (action, module).
    """

    def __init__(self, deployer=DEPLOYER):
        self._deployer = deployer
        self._nonce = 0x1000
        self.transactions = list()
        self.arguments = dict()
        self.implementations = dict()  # proxy -> implementation slot
        self.proxy_kinds = dict()
        self.implementation_versions = dict()
        self.versions = dict()  # module -> version of the next implementation deployed
        self.fail_on = set()  # (action, module) pairs that revert
        self.ignore_upgrades = set()  # modules whose proxies keep their implementation
        self.uninitialized = set()  # modules whose proxies come up with an empty slot
        self.published = list()

    @property
    def deployer(self):
        return self._deployer

    def _next_address(self):
        self._nonce += 1
        return to_checksum_address(f"0x{self._nonce:040x}")

    def _check(self, action, spec):
        if (action, spec.name) in self.fail_on:
            raise TransactionFailure(f"{action} failed", revert_message="execution reverted")

    def _new_implementation(self, spec):
        implementation = self._next_address()
        self.implementation_versions[implementation] = self.versions.get(
            spec.name, INITIAL_VERSION
        )
        return implementation

    def deploy_upgradeable(self, spec: ModuleSpec, args: OrderedDict) -> Deployment:
        self._check("deploy", spec)
        implementation = self._new_implementation(spec)
        proxy = self._next_address()
        self.proxy_kinds[proxy] = spec.proxy_kind
        self.arguments[spec.name] = args
        self.transactions.append(("deploy", spec.name))
        if spec.name in self.uninitialized:
            raise UpgradeVerificationError(
                f"Proxy {proxy} points to None, expected {implementation}",
                proxy=proxy,
                implementation=implementation,
            )
        self.implementations[proxy] = implementation
        return Deployment(proxy=proxy, implementation=implementation)

    def deploy_implementation(self, spec: ModuleSpec):
        self._check("deploy_implementation", spec)
        self.transactions.append(("deploy_implementation", spec.name))
        return self._new_implementation(spec)

    def upgrade(self, spec: ModuleSpec, proxy, implementation):
        self._check("upgrade", spec)
        if self.proxy_kinds.get(proxy) is not spec.proxy_kind:
            raise UpgradeAuthorizationError(f"{proxy} is not a {spec.proxy_kind.value} proxy")
        self.transactions.append(("upgrade", spec.name))
        if spec.name not in self.ignore_upgrades:
            self.implementations[proxy] = implementation
        return self.implementations[proxy]

    def deploy_plain(self, spec: ModuleSpec, args: OrderedDict):
        self._check("deploy", spec)
        self.arguments[spec.name] = args
        self.transactions.append(("deploy", spec.name))
        return self._next_address()

    def call(self, spec: ModuleSpec, address, method, *args):
        self._check("call", spec)
        assert method == "version"
        return self.implementation_versions[self.implementations[address]]

    def get_implementation_address(self, proxy):
        return self.implementations.get(proxy)

    def publish(self, spec: ModuleSpec, address):
        self.published.append((spec.name, address))


@pytest.fixture
def client():
    return FakeChainClient()


@pytest.fixture(scope="session")
def catalog():
    return ModuleCatalog.from_yaml(DEFAULT_CATALOG_FILEPATH)


@pytest.fixture
def network():
    return NetworkContext(
        name=NETWORK_NAME,
        chain_id=BSC_TESTNET_CHAIN_ID,
        deployer=DEPLOYER,
        constants=get_network_constants(BSC_TESTNET_CHAIN_ID),
    )


@pytest.fixture
def registry_filepath(tmp_path):
    return tmp_path / f"{NETWORK_NAME}.json"


@pytest.fixture
def registry(registry_filepath):
    return Registry(network=NETWORK_NAME, chain_id=BSC_TESTNET_CHAIN_ID, filepath=registry_filepath)


@pytest.fixture
def deploy(client, catalog, network, registry):
    def _deploy(modules=None, before_step=None):
        plan = DeploymentPlanner(catalog=catalog, registry=registry).plan(modules)
        orchestrator = DeploymentOrchestrator(
            client=client,
            catalog=catalog,
            network=network,
            registry=registry,
            before_step=before_step,
        )
        return orchestrator.deploy_all(plan)

    return _deploy


@pytest.fixture
def upgrade(client, catalog, network, registry):
    def _upgrade(modules=None):
        orchestrator = UpgradeOrchestrator(
            client=client, catalog=catalog, network=network, registry=registry
        )
        return orchestrator.upgrade_all(modules)

    return _upgrade
