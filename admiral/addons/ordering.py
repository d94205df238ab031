"""
Addon Ordering
Dependency map merging and topological sort with cycle detection
"""

from typing import Dict, List, Sequence, Tuple

from admiral.addons.types import AddonDependency, AddonSpec
from admiral.errors import CycleError

_UNVISITED, _VISITING, _DONE = 0, 1, 2


def merge_dependencies(addons: Sequence[AddonSpec],
                       dependencies: Sequence[AddonDependency]) -> Dict[str, List[str]]:
    """
    Union external dependency entries with each addon's inline depends_on

    Args:
        addons: Addon set in declaration order
        dependencies: External dependency declarations

    Returns:
        Map of addon name to the names it depends on (external entries first)
    """
    merged: Dict[str, List[str]] = {}
    for dependency in dependencies:
        merged.setdefault(dependency.addon, []).extend(dependency.depends_on)
    for addon in addons:
        if addon.depends_on:
            merged.setdefault(addon.name, []).extend(addon.depends_on)
    return merged


def resolve_deployment_order(names: Sequence[str],
                             dependency_map: Dict[str, List[str]]) -> Tuple[List[str], List[Tuple[str, str]]]:
    """
    Order addon names so every dependency precedes its dependents

    Depth-first, post-order traversal over names in declaration order.
    Dependencies that are not in `names` are skipped.

    Args:
        names: All addon names, enabled or not, in declaration order
        dependency_map: Merged dependency map

    Returns:
        Tuple of (deployment order, skipped (addon, dependency) references)

    Raises:
        CycleError: If a name is reached again while still on the DFS path
    """
    known = set(names)
    state = {name: _UNVISITED for name in names}
    order: List[str] = []
    skipped: List[Tuple[str, str]] = []

    for root in names:
        if state[root] != _UNVISITED:
            continue

        # Explicit stack so long dependency chains do not hit the recursion limit
        state[root] = _VISITING
        path = [root]
        pending = [iter(dependency_map.get(root, []))]
        while pending:
            name = path[-1]
            for dependency in pending[-1]:
                if dependency not in known:
                    if (name, dependency) not in skipped:
                        skipped.append((name, dependency))
                    continue
                if state[dependency] == _VISITING:
                    cycle_start = path.index(dependency)
                    raise CycleError(dependency, path[cycle_start:] + [dependency])
                if state[dependency] == _UNVISITED:
                    state[dependency] = _VISITING
                    path.append(dependency)
                    pending.append(iter(dependency_map.get(dependency, [])))
                    break
            else:
                pending.pop()
                path.pop()
                state[name] = _DONE
                order.append(name)

    return order, skipped
