from collections import OrderedDict

import pytest

from alonea_deployment.catalog import (
    AddressOf,
    Constant,
    DeployerAddress,
    Literal,
    ModuleCatalog,
    ModuleSpec,
    ProxyKind,
    ResolutionContext,
    find_cycle,
)
from alonea_deployment.constants import (
    BUYBACK,
    GOVERNANCE,
    MODULE_NAMES,
    PANCAKESWAP_ROUTER_TESTNET,
    STAKING,
    TIMELOCK,
    TOKEN,
)
from alonea_deployment.errors import (
    CatalogError,
    CyclicDependencyError,
    UnresolvedDependencyError,
)
from alonea_deployment.registry import DeploymentRecord


def test_shipped_catalog(catalog):
    assert catalog.names == MODULE_NAMES
    assert catalog[TOKEN].proxy_kind is ProxyKind.TRANSPARENT
    assert catalog[STAKING].proxy_kind is ProxyKind.SELF_UPGRADING
    assert catalog[BUYBACK].proxy_kind is ProxyKind.SELF_UPGRADING
    assert catalog[GOVERNANCE].proxy_kind is ProxyKind.TRANSPARENT

    timelock = catalog[TIMELOCK]
    assert not timelock.is_upgradeable
    assert timelock.args["proposers"] == [DeployerAddress()]
    assert timelock.args["minDelay"] == Constant("TIMELOCK_MIN_DELAY")

    assert catalog[TOKEN].dependencies == []
    assert catalog[STAKING].dependencies == [TOKEN]
    assert catalog[BUYBACK].dependencies == [TOKEN]
    assert catalog[GOVERNANCE].dependencies == [TOKEN, TIMELOCK]
    assert all(spec.initializer == "initialize" for spec in catalog if spec.is_upgradeable)


def test_unknown_module(catalog):
    assert "ALONEANft" not in catalog
    with pytest.raises(CatalogError, match="Unknown module 'ALONEANft'"):
        _ = catalog["ALONEANft"]


def test_resolve_args(catalog, network, registry):
    token = DeploymentRecord(
        address="0x0000000000000000000000000000000000001001",
        implementation="0x0000000000000000000000000000000000001000",
        version="1.0.0",
    )
    registry.record(TOKEN, token)
    context = ResolutionContext(network=network, registry=registry)

    args = catalog[BUYBACK].resolve_args(context)
    assert list(args.items()) == [
        ("token", token.address),
        ("router", PANCAKESWAP_ROUTER_TESTNET),
        ("initialOwner", network.deployer),
    ]

    timelock_args = catalog[TIMELOCK].resolve_args(context)
    assert timelock_args["minDelay"] == 0
    assert timelock_args["executors"] == [network.deployer]


def test_resolve_unrecorded_dependency(catalog, network, registry):
    context = ResolutionContext(network=network, registry=registry)
    with pytest.raises(UnresolvedDependencyError, match=TOKEN):
        catalog[STAKING].resolve_args(context)


def test_resolve_undefined_constant(network, registry):
    context = ResolutionContext(network=network._replace(constants={}), registry=registry)
    with pytest.raises(UnresolvedDependencyError, match="ROUTER"):
        Constant("ROUTER").resolve(context)


def test_literals_are_passed_through():
    config = {
        "contracts": [
            {"Vault": {"constructor": {"cap": 1000, "labels": ["a", "$deployer"], "name": "v"}}}
        ]
    }
    spec = ModuleCatalog.from_config(config)["Vault"]
    assert spec.args == OrderedDict(
        cap=Literal(1000), labels=[Literal("a"), DeployerAddress()], name=Literal("v")
    )


def test_initializer_name_override():
    config = {
        "contracts": [
            {"Vault": {"proxy": {"kind": "self-upgrading"}, "initializer_name": "setUp"}}
        ]
    }
    spec = ModuleCatalog.from_config(config)["Vault"]
    assert spec.initializer == "setUp"
    assert spec.args == OrderedDict()


def test_default_proxy_kind_is_transparent():
    spec = ModuleCatalog.from_config({"contracts": [{"Vault": {"proxy": None}}]})["Vault"]
    assert spec.proxy_kind is ProxyKind.TRANSPARENT


@pytest.mark.parametrize(
    "config, message",
    [
        (None, "missing the 'contracts' field"),
        ({"contracts": []}, "missing the 'contracts' field"),
        ({"contracts": ["A", "A"]}, "declared more than once"),
        ({"contracts": [{"A": {"proxy": {"kind": "beacon"}}}]}, "Unknown proxy kind 'beacon'"),
        ({"contracts": [{"A": {"proxy": None, "constructor": {}}}]}, "not 'constructor'"),
        ({"contracts": [{"A": {"initializer": {"x": 1}}}]}, "take 'constructor' arguments"),
        ({"contracts": [{"A": {"constructor": {"b": "$Bee"}}}]}, r"Variable \$Bee does not name"),
        ({"contracts": [{"A": None, "B": None}]}, "Malformed catalog entry"),
    ],
)
def test_invalid_catalog(config, message):
    with pytest.raises(CatalogError, match=message):
        ModuleCatalog.from_config(config)


def test_cyclic_catalog():
    config = {
        "contracts": [
            {"A": {"constructor": {"b": "$B"}}},
            {"B": {"proxy": None, "initializer": {"c": "$C"}}},
            {"C": {"constructor": {"a": "$A"}}},
        ]
    }
    with pytest.raises(CyclicDependencyError) as exc_info:
        ModuleCatalog.from_config(config)
    assert exc_info.value.cycle == ["A", "B", "C", "A"]
    assert "A -> B -> C -> A" in str(exc_info.value)


def test_reference_outside_catalog():
    spec = ModuleSpec(name="A", proxy_kind=None, args=OrderedDict(b=AddressOf("B")))
    with pytest.raises(CatalogError, match="references unknown module 'B'"):
        ModuleCatalog([spec])


def test_find_cycle():
    assert find_cycle({"A": [], "B": ["A"], "C": ["A", "B"]}) is None
    assert find_cycle({"A": ["A"]}) == ["A", "A"]
    assert find_cycle({"A": ["B"], "B": ["C"], "C": ["B"]}) == ["B", "C", "B"]
    # edges leaving the graph are ignored
    assert find_cycle({"A": ["Z"]}) is None


def test_module_constants(catalog):
    assert catalog[TOKEN].constants == []
    assert catalog[BUYBACK].constants == ["ROUTER"]
    assert catalog[TIMELOCK].constants == ["TIMELOCK_MIN_DELAY"]
