"""Module presence detection.

Strategies run in a fixed order, env > commands > files > paths, and the
first one that matches short-circuits the rest.
"""

import logging
from dataclasses import dataclass
from typing import Callable, Mapping, Optional

from apogee.core.context import ContextEnv
from apogee.core.resolver import DetectionRecord, Resolver
from apogee.detect.commands import resolve_command
from apogee.detect.patterns import first_path_match
from apogee.detect.version import DEFAULT_PROBE_TIMEOUT, VersionProber
from apogee.models import ModuleSpec

logger = logging.getLogger(__name__)


@dataclass
class DetectedModule:
    """A module found on this host, with its detection record."""

    module: ModuleSpec
    record: DetectionRecord

    @property
    def key(self) -> str:
        return self.module.key

    @property
    def strategy(self) -> str:
        for name in ("env", "command", "file", "path"):
            if name in self.record:
                return name
        return "unknown"


Probe = Callable[[ModuleSpec, Resolver], Optional[DetectionRecord]]


class Detector:
    """Detects modules against the current runtime vars.

    Example:
        detector = Detector(ctx, probe_timeout=settings.probe_timeout)
        found = detector.detect(module, runtime.vars)
        if found:
            print(found.record.get("command_path"))
    """

    def __init__(self, ctx: ContextEnv, probe_timeout: float = DEFAULT_PROBE_TIMEOUT):
        self.ctx = ctx
        self.probe_timeout = probe_timeout

    def probes(self) -> list[tuple[str, Probe]]:
        return [
            ("env", self._probe_env),
            ("commands", self._probe_commands),
            ("files", self._probe_files),
            ("paths", self._probe_paths),
        ]

    def detect(self, module: ModuleSpec, env: Mapping[str, str]) -> Optional[DetectedModule]:
        """Detect one module.

        Args:
            module: Module to detect
            env: Current runtime vars, including earlier modules' effects

        Returns:
            DetectedModule, or None when no strategy matches

        Raises:
            ResolutionError: If a detect candidate has a bad token
            ConfigurationError: If a version regex is malformed
        """
        resolver = Resolver(self.ctx, env)

        for name, probe in self.probes():
            record = probe(module, resolver)
            if record is not None:
                logger.debug(f"{module.key}: detected via {name} {record}")
                self._attach_version(module, resolver, record)
                return DetectedModule(module=module, record=record)

        logger.debug(f"{module.key}: not detected")
        return None

    # ------------------------------------------------------------------
    # strategies
    # ------------------------------------------------------------------

    def _probe_env(self, module: ModuleSpec, resolver: Resolver) -> Optional[DetectionRecord]:
        for key in module.detect.env.any_of:
            value = resolver.env.get(key, "").strip()
            if value:
                # the value of such a variable is conventionally a path
                return {"env": key, "path": value}
        return None

    def _probe_commands(self, module: ModuleSpec, resolver: Resolver) -> Optional[DetectionRecord]:
        for raw in module.detect.commands.any_of:
            cmd = resolver.resolve(raw)
            found = resolve_command(self.ctx.platform, resolver.env, cmd)
            if found is not None:
                return {
                    "command": cmd,
                    "command_path": str(found),
                    "command_dir": str(found.parent),
                }
        return None

    def _probe_files(self, module: ModuleSpec, resolver: Resolver) -> Optional[DetectionRecord]:
        for raw in module.detect.files.for_platform(self.ctx.platform):
            found = first_path_match(resolver.resolve(raw))
            if found is not None:
                return {"file": found}
        return None

    def _probe_paths(self, module: ModuleSpec, resolver: Resolver) -> Optional[DetectionRecord]:
        for raw in module.detect.paths.for_platform(self.ctx.platform):
            found = first_path_match(resolver.resolve(raw))
            if found is not None:
                return {"path": found}
        return None

    # ------------------------------------------------------------------
    # version
    # ------------------------------------------------------------------

    def _attach_version(
        self,
        module: ModuleSpec,
        resolver: Resolver,
        record: DetectionRecord,
    ) -> None:
        spec = module.detect.version
        if spec is None:
            return

        prober = VersionProber(
            self.ctx.platform,
            resolver.with_detect(record),
            timeout=self.probe_timeout,
            owner=module.key,
        )
        for variant in spec.for_platform(self.ctx.platform):
            version = prober.probe(variant, record)
            if version:
                record["version"] = version
                logger.debug(f"{module.key}: version {version} via {variant.type}")
                return
