"""Dependency ordering of env assignments inside one emitted block."""

import re
from collections import deque
from typing import Mapping

_REF_RE = re.compile(r"\$([A-Za-z_][A-Za-z0-9_]*)|\$\{([A-Za-z_][A-Za-z0-9_]*)\}")


def extract_refs(value: str) -> set[str]:
    """Names referenced as $NAME or ${NAME} in a value."""
    return {m.group(1) or m.group(2) for m in _REF_RE.finditer(value)}


def order_env_assignments(assigns: Mapping[str, str]) -> list[tuple[str, str]]:
    """Order assignments so referenced keys of the same block come first.

    Kahn's algorithm over lexically sorted keys. Keys caught in a cycle
    are appended last in lexical order; the shell still expands them
    lazily, so a cycle is not an error.

    Args:
        assigns: Resolved key -> value map

    Returns:
        (key, value) pairs in emission order
    """
    keys = sorted(assigns)
    deps = {k: extract_refs(assigns[k]) & set(keys) - {k} for k in keys}
    indegree = {k: len(deps[k]) for k in keys}

    queue = deque(k for k in keys if indegree[k] == 0)
    ordered: list[str] = []

    while queue:
        current = queue.popleft()
        ordered.append(current)
        for k in keys:
            if current in deps[k]:
                indegree[k] -= 1
                if indegree[k] == 0:
                    queue.append(k)

    if len(ordered) != len(keys):
        placed = set(ordered)
        ordered.extend(k for k in keys if k not in placed)

    return [(k, assigns[k]) for k in ordered]
