"""Exception hierarchy for apogee.

Fatal errors derive from ApogeeError and abort the run. Soft detection
failures (a probe that cannot spawn, exits non-zero, or prints nothing)
are never raised; they degrade to "not detected" or "no version".
"""

from typing import Iterable


class ApogeeError(Exception):
    """Base class for all fatal apogee errors."""


class ConfigurationError(ApogeeError):
    """Malformed configuration: bad requires key, unknown dependency, invalid regex."""


class ResolutionError(ApogeeError):
    """A {token} placeholder could not be resolved."""

    def __init__(self, message: str, raw: str):
        super().__init__(f"{message} in: {raw}")
        self.raw = raw


class DependencyCycleError(ApogeeError):
    """Same-group requires form a cycle.

    Attributes:
        group: Module group where the cycle was found
        nodes: Every module key left with a residual indegree, sorted
    """

    def __init__(self, group: str, nodes: Iterable[str]):
        self.group = group
        self.nodes = sorted(nodes)
        super().__init__(
            f"cycle detected in {group} requires graph: {', '.join(self.nodes)}"
        )


class TemplateError(ApogeeError):
    """A template module could not be read or rendered."""
