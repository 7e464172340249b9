import typing
from collections import OrderedDict
from enum import Enum
from pathlib import Path
from typing import Any, Dict, Iterator, List, NamedTuple, Optional

from alonea_deployment.constants import DEFAULT_INITIALIZER
from alonea_deployment.errors import CatalogError, CyclicDependencyError, UnresolvedDependencyError
from alonea_deployment.utils import _load_yaml

CONTRACT_PROXY_PARAMETER_KEY = "proxy"
CONTRACT_INITIALIZER_PARAMETER_KEY = "initializer"
CONTRACT_CONSTRUCTOR_PARAMETER_KEY = "constructor"
CONTRACT_INITIALIZER_NAME_KEY = "initializer_name"

VARIABLE_PREFIX = "$"


class ProxyKind(Enum):
    TRANSPARENT = "transparent"
    SELF_UPGRADING = "self-upgrading"


class ResolutionContext(NamedTuple):
    """Everything an argument reference may be resolved against."""

    network: typing.Any  # NetworkContext
    registry: typing.Any  # Registry


# Argument references


class ArgRef:
    """A single (unresolved) initializer or constructor argument."""

    def resolve(self, context: ResolutionContext) -> Any:
        raise NotImplementedError

    def dependencies(self) -> List[str]:
        return []

    def __eq__(self, other):
        return type(self) is type(other) and vars(self) == vars(other)

    def __repr__(self):
        fields = ", ".join(repr(v) for v in vars(self).values())
        return f"{type(self).__name__}({fields})"


class Literal(ArgRef):
    def __init__(self, value: Any):
        self.value = value

    def resolve(self, context: ResolutionContext) -> Any:
        return self.value


class DeployerAddress(ArgRef):
    DEPLOYER_INDICATOR = "deployer"

    @classmethod
    def is_deployer(cls, value: str) -> bool:
        """Returns True if the variable is the special deployer variable."""
        return value == cls.DEPLOYER_INDICATOR

    def resolve(self, context: ResolutionContext) -> Any:
        return context.network.deployer


class Constant(ArgRef):
    def __init__(self, name: str):
        self.name = name

    @classmethod
    def is_constant(cls, value: str) -> bool:
        """Returns True if the variable is a network constant."""
        return value.isupper()

    def resolve(self, context: ResolutionContext) -> Any:
        try:
            return context.network.constants[self.name]
        except KeyError:
            raise UnresolvedDependencyError(
                f"Constant '{self.name}' is not defined for network {context.network.name}"
            )


class AddressOf(ArgRef):
    def __init__(self, module: str):
        self.module = module

    def dependencies(self) -> List[str]:
        return [self.module]

    def resolve(self, context: ResolutionContext) -> Any:
        record = context.registry.contracts.get(self.module)
        if record is None:
            raise UnresolvedDependencyError(
                f"Address of {self.module} requested but it is not in the registry"
            )
        return record.address


def _resolve_param(value: Any, context: ResolutionContext) -> Any:
    """Resolves a single parameter value or a list of parameter values."""
    if isinstance(value, list):
        return [_resolve_param(v, context) for v in value]

    if isinstance(value, ArgRef):
        return value.resolve(context)

    return value


def _param_refs(value: Any) -> List[ArgRef]:
    """Flattens a parameter value into the argument references it contains."""
    if isinstance(value, list):
        refs = list()
        for v in value:
            refs.extend(_param_refs(v))
        return refs
    if isinstance(value, ArgRef):
        return [value]
    return []


def _variable_from_value(value: str, module_names: List[str]) -> ArgRef:
    variable = value[len(VARIABLE_PREFIX) :]
    if DeployerAddress.is_deployer(variable):
        return DeployerAddress()
    elif variable in module_names:
        return AddressOf(variable)
    elif Constant.is_constant(variable):
        return Constant(variable)
    raise CatalogError(f"Variable {value} does not name a deployer, constant or catalog module")


def _process_raw_value(value: Any, module_names: List[str]) -> Any:
    if isinstance(value, list):
        return [_process_raw_value(v, module_names) for v in value]

    if isinstance(value, str) and value.startswith(VARIABLE_PREFIX):
        return _variable_from_value(value, module_names)

    return Literal(value)


def _process_raw_values(values: Optional[Dict], module_names: List[str]) -> OrderedDict:
    processed_parameters = OrderedDict()
    for name, value in (values or dict()).items():
        processed_parameters[name] = _process_raw_value(value, module_names)
    return processed_parameters


# Modules


class ModuleSpec(NamedTuple):
    """Static description of one deployable module."""

    name: str
    proxy_kind: Optional[ProxyKind]
    args: OrderedDict
    initializer: str = DEFAULT_INITIALIZER

    @property
    def is_upgradeable(self) -> bool:
        return self.proxy_kind is not None

    @property
    def dependencies(self) -> List[str]:
        """Modules whose addresses this module needs, in argument order."""
        dependencies = list()
        for ref in self.arg_refs():
            for dependency in ref.dependencies():
                if dependency not in dependencies:
                    dependencies.append(dependency)
        return dependencies

    @property
    def constants(self) -> List[str]:
        """Network constants this module needs, in argument order."""
        constants = list()
        for ref in self.arg_refs():
            if isinstance(ref, Constant) and ref.name not in constants:
                constants.append(ref.name)
        return constants

    def arg_refs(self) -> List[ArgRef]:
        refs = list()
        for value in self.args.values():
            refs.extend(_param_refs(value))
        return refs

    def resolve_args(self, context: ResolutionContext) -> OrderedDict:
        resolved = OrderedDict()
        for name, value in self.args.items():
            resolved[name] = _resolve_param(value, context)
        return resolved


def find_cycle(graph: Dict[str, List[str]]) -> Optional[List[str]]:
    """
    Returns one dependency cycle of the graph as a path that starts and ends
    with the same node, or None if the graph is acyclic.
    Edges pointing outside of the graph are ignored.
    """
    visiting, visited = set(), set()
    path: List[str] = list()

    def visit(node: str) -> Optional[List[str]]:
        visiting.add(node)
        path.append(node)
        for dependency in graph[node]:
            if dependency not in graph or dependency in visited:
                continue
            if dependency in visiting:
                return path[path.index(dependency) :] + [dependency]
            cycle = visit(dependency)
            if cycle:
                return cycle
        visiting.discard(node)
        visited.add(node)
        path.pop()
        return None

    for node in graph:
        if node not in visited:
            cycle = visit(node)
            if cycle:
                return cycle
    return None


class ModuleCatalog:
    """The ordered set of known modules; declaration order is the plan tie-break."""

    def __init__(self, specs: List[ModuleSpec], validate: bool = True):
        self._specs: "OrderedDict[str, ModuleSpec]" = OrderedDict()
        for spec in specs:
            if spec.name in self._specs:
                raise CatalogError(f"Module {spec.name} is declared more than once")
            self._specs[spec.name] = spec
        if validate:
            self.validate()

    def __getitem__(self, name: str) -> ModuleSpec:
        try:
            return self._specs[name]
        except KeyError:
            raise CatalogError(f"Unknown module '{name}'")

    def __contains__(self, name: str) -> bool:
        return name in self._specs

    def __iter__(self) -> Iterator[ModuleSpec]:
        return iter(self._specs.values())

    def __len__(self) -> int:
        return len(self._specs)

    @property
    def names(self) -> List[str]:
        return list(self._specs)

    def index(self, name: str) -> int:
        return self.names.index(name)

    def dependency_graph(self) -> Dict[str, List[str]]:
        return OrderedDict((spec.name, spec.dependencies) for spec in self)

    def validate(self) -> None:
        """Checks that every address reference names a module and that there are no cycles."""
        graph = self.dependency_graph()
        for name, dependencies in graph.items():
            for dependency in dependencies:
                if dependency not in graph:
                    raise CatalogError(
                        f"{name} references unknown module '{dependency}'", module=name
                    )
        cycle = find_cycle(graph)
        if cycle:
            raise CyclicDependencyError(cycle)

    @classmethod
    def from_config(cls, config: typing.Dict) -> "ModuleCatalog":
        contracts = config.get("contracts") if config else None
        if not contracts:
            raise CatalogError("Catalog is missing the 'contracts' field.")

        module_names = _get_module_names(contracts)
        specs = list()
        for contract_info in contracts:
            if isinstance(contract_info, str):
                specs.append(ModuleSpec(name=contract_info, proxy_kind=None, args=OrderedDict()))
                continue
            name = list(contract_info.keys())[0]  # only one entry
            specs.append(_spec_from_data(name, contract_info[name] or dict(), module_names))
        return cls(specs=specs)

    @classmethod
    def from_yaml(cls, filepath: Path) -> "ModuleCatalog":
        print(f"Processing module catalog {filepath}...")
        config = _load_yaml(filepath)
        return cls.from_config(config)


def _get_module_names(contracts: List[Any]) -> List[str]:
    module_names = list()
    for contract_info in contracts:
        if isinstance(contract_info, str):
            module_names.append(contract_info)
        elif isinstance(contract_info, dict) and len(contract_info) == 1:
            module_names.extend(list(contract_info.keys()))
        else:
            raise CatalogError("Malformed catalog entry; expected a name or a single-key mapping.")
    return module_names


def _spec_from_data(name: str, data: typing.Dict, module_names: List[str]) -> ModuleSpec:
    if CONTRACT_PROXY_PARAMETER_KEY not in data:
        if CONTRACT_INITIALIZER_PARAMETER_KEY in data:
            raise CatalogError("Plain modules take 'constructor' arguments", module=name)
        args = _process_raw_values(data.get(CONTRACT_CONSTRUCTOR_PARAMETER_KEY), module_names)
        return ModuleSpec(name=name, proxy_kind=None, args=args)

    if CONTRACT_CONSTRUCTOR_PARAMETER_KEY in data:
        raise CatalogError(
            "Upgradeable modules take 'initializer' arguments, not 'constructor'", module=name
        )
    proxy_data = data[CONTRACT_PROXY_PARAMETER_KEY] or dict()
    kind = proxy_data.get("kind", ProxyKind.TRANSPARENT.value)
    try:
        proxy_kind = ProxyKind(kind)
    except ValueError:
        valid = ", ".join(k.value for k in ProxyKind)
        raise CatalogError(f"Unknown proxy kind '{kind}'; expected one of {valid}", module=name)

    args = _process_raw_values(data.get(CONTRACT_INITIALIZER_PARAMETER_KEY), module_names)
    initializer = data.get(CONTRACT_INITIALIZER_NAME_KEY, DEFAULT_INITIALIZER)
    return ModuleSpec(name=name, proxy_kind=proxy_kind, args=args, initializer=initializer)
