import heapq
from collections import defaultdict
from typing import Iterable, List, NamedTuple, Optional, Tuple

from alonea_deployment.catalog import ModuleCatalog, find_cycle
from alonea_deployment.errors import CyclicDependencyError
from alonea_deployment.registry import Registry


class DeploymentPlan(NamedTuple):
    steps: Tuple[str, ...]  # modules to deploy, dependencies first
    recorded: Tuple[str, ...] = ()  # modules needed by the request that are already deployed
    unconfirmed: Tuple[str, ...] = ()  # recorded modules whose deployment was never confirmed

    @property
    def is_empty(self) -> bool:
        return not self.steps and not self.unconfirmed


class DeploymentPlanner:
    def __init__(self, catalog: ModuleCatalog, registry: Registry):
        self.catalog = catalog
        self.registry = registry

    def plan(self, requested: Optional[Iterable[str]] = None) -> DeploymentPlan:
        """
        Orders the requested modules (all catalog modules by default) so that
        every module comes after the modules it references. Modules already in
        the registry are treated as satisfied and are not planned again;
        referenced modules that are not deployed yet are added to the plan.
        Independent modules keep their catalog order.
        """
        requested = list(requested) if requested else self.catalog.names
        wanted = self._with_dependencies(requested)

        ordered = [name for name in self.catalog.names if name in wanted]
        pending = [name for name in ordered if name not in self.registry]
        recorded = [name for name in ordered if name in self.registry]
        unconfirmed = [name for name in recorded if not self.registry.contracts[name].is_confirmed]

        steps = self._topological_order(pending)
        return DeploymentPlan(
            steps=tuple(steps), recorded=tuple(recorded), unconfirmed=tuple(unconfirmed)
        )

    def _with_dependencies(self, requested: List[str]) -> set:
        wanted = set()
        stack = [(name, None) for name in reversed(requested)]
        while stack:
            name, dependent = stack.pop()
            spec = self.catalog[name]  # raises on unknown modules
            if name in wanted:
                continue
            if dependent is not None and name not in self.registry:
                print(f"(i) Including {name} as a dependency of {dependent}.")
            wanted.add(name)
            if name in self.registry:
                continue
            for dependency in reversed(spec.dependencies):
                stack.append((dependency, name))
        return wanted

    def _topological_order(self, pending: List[str]) -> List[str]:
        indegree = {name: 0 for name in pending}
        dependents = defaultdict(list)
        for name in pending:
            for dependency in self.catalog[name].dependencies:
                if dependency in indegree:
                    indegree[name] += 1
                    dependents[dependency].append(name)

        # lowest catalog position first among the modules that are ready
        ready = [self.catalog.index(name) for name in pending if indegree[name] == 0]
        heapq.heapify(ready)
        ordered = list()
        while ready:
            name = self.catalog.names[heapq.heappop(ready)]
            ordered.append(name)
            for dependent in dependents[name]:
                indegree[dependent] -= 1
                if indegree[dependent] == 0:
                    heapq.heappush(ready, self.catalog.index(dependent))

        if len(ordered) != len(pending):
            remaining = {
                name: self.catalog[name].dependencies for name in pending if name not in ordered
            }
            raise CyclicDependencyError(find_cycle(remaining) or sorted(remaining))
        return ordered
