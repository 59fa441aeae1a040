"""Per-group dependency ordering of modules.

Modules declare `requires` as "group.name" keys. Only same-group requires
create ordering edges; cross-group requires are checked at activation time
against the set of already active modules.
"""

import heapq
from dataclasses import dataclass, field
from typing import AbstractSet, Iterable

from apogee.core.errors import ConfigurationError, DependencyCycleError

DEFAULT_PRIORITY = 1000


@dataclass
class DepNode:
    """A module as seen by the topological sort."""

    key: str                                            # e.g. "apps.uv"
    name: str                                           # e.g. "uv"
    priority: int = DEFAULT_PRIORITY                    # tie-break only
    requires: list[str] = field(default_factory=list)   # normalized keys

    @property
    def sort_key(self) -> tuple[int, str, str]:
        return (self.priority, self.name, self.key)


def module_key(group: str, name: str) -> str:
    return f"{group}.{name}"


def normalize_require_key(raw: str) -> str:
    """Normalize a requires entry to "group.name".

    Accepts "apps.uv", "cloud.dropbox" and the same with a leading
    "modules." prefix. The group part is lowercased.

    Raises:
        ConfigurationError: If the entry is not exactly two dotted parts
    """
    value = raw.strip()
    if not value:
        raise ConfigurationError("requires entry cannot be empty")

    if value.startswith("modules."):
        value = value[len("modules."):]

    parts = value.split(".")
    if len(parts) != 2:
        raise ConfigurationError(
            "requires must be like 'apps.uv' or 'cloud.dropbox' "
            f"(optionally prefixed with 'modules.'): got '{raw}'"
        )

    group, name = parts[0].strip().lower(), parts[1].strip()
    if not group or not name:
        raise ConfigurationError(f"invalid requires key '{raw}'")

    return module_key(group, name)


def normalize_requires_list(raw: Iterable[str], owner: str = "") -> list[str]:
    """Normalize every requires entry of one module.

    Args:
        raw: Entries as written in the config
        owner: Module key used to prefix error messages

    Raises:
        ConfigurationError: Naming the module and the requires field
    """
    out = []
    for entry in raw:
        try:
            out.append(normalize_require_key(entry))
        except ConfigurationError as e:
            if owner:
                raise ConfigurationError(f"{owner}: requires: {e}") from e
            raise
    return out


def requires_satisfied(active: AbstractSet[str], requires: Iterable[str]) -> bool:
    return all(key in active for key in requires)


def topo_sort_group(nodes: Iterable[DepNode], group: str) -> list[DepNode]:
    """Order one group's nodes so every same-group dependency comes first.

    Kahn's algorithm; the ready set is ordered by (priority, name, key) so
    the result does not depend on input order.

    Args:
        nodes: Enabled, platform-eligible nodes of one group
        group: Group name, used to recognize same-group requires

    Returns:
        Nodes in activation order

    Raises:
        ConfigurationError: A same-group require names an unknown module
        DependencyCycleError: The same-group requires contain a cycle
    """
    prefix = f"{group}."
    by_key: dict[str, DepNode] = {}
    for node in nodes:
        by_key[node.key] = node

    indegree = {key: 0 for key in by_key}
    outgoing: dict[str, list[str]] = {key: [] for key in by_key}

    for key in sorted(by_key):
        for dep in by_key[key].requires:
            if not dep.startswith(prefix):
                continue
            if dep not in by_key:
                raise ConfigurationError(
                    f"{key}: requires unknown {group} module '{dep}'"
                )
            outgoing[dep].append(key)
            indegree[key] += 1

    ready = [by_key[k].sort_key for k, d in indegree.items() if d == 0]
    heapq.heapify(ready)

    ordered: list[DepNode] = []
    while ready:
        _, _, key = heapq.heappop(ready)
        ordered.append(by_key[key])
        for child in outgoing[key]:
            indegree[child] -= 1
            if indegree[child] == 0:
                heapq.heappush(ready, by_key[child].sort_key)

    if len(ordered) != len(by_key):
        stuck = [k for k, d in indegree.items() if d > 0]
        raise DependencyCycleError(group, stuck)

    return ordered
