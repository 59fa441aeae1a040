"""Core engine: context, token resolution, dependency ordering, runtime and run orchestration.

Only the leaf modules are re-exported here; runtime and orchestrator
depend on apogee.emit and apogee.detect and are imported from their
own modules.
"""

from apogee.core.context import ContextEnv
from apogee.core.deps import DepNode, topo_sort_group
from apogee.core.errors import (
    ApogeeError,
    ConfigurationError,
    DependencyCycleError,
    ResolutionError,
    TemplateError,
)
from apogee.core.platform import Platform, Shell
from apogee.core.regex import compile_regex
from apogee.core.resolver import Resolver

__all__ = [
    "ApogeeError",
    "ConfigurationError",
    "ContextEnv",
    "DepNode",
    "DependencyCycleError",
    "Platform",
    "ResolutionError",
    "Resolver",
    "Shell",
    "TemplateError",
    "compile_regex",
    "topo_sort_group",
]
