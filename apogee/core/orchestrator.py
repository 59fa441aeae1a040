"""Drives one generation run across all module groups.

Group sequence: dotenv delta, global aliases, cloud, apps, hooks,
templates. Within a group, modules are ordered by the requires graph and
processed one at a time against a single RuntimeEnv, so a module sees the
env and PATH effects of every module activated before it.
"""

import logging
from dataclasses import dataclass
from enum import Enum
from pathlib import Path
from typing import Iterator, Optional

from apogee.core.context import ContextEnv
from apogee.core.deps import (
    DepNode,
    normalize_requires_list,
    requires_satisfied,
    topo_sort_group,
)
from apogee.core.platform import Shell
from apogee.core.resolver import DetectionRecord, Resolver
from apogee.core.runtime import RuntimeEnv, emit_env_delta
from apogee.detect.detector import Detector
from apogee.detect.version import DEFAULT_PROBE_TIMEOUT
from apogee.emit.emitter import Emitter
from apogee.emit.ordering import order_env_assignments
from apogee.models import Config, EmitSpec, ModuleSpec
from apogee.templates import TemplateRenderer, template_context

logger = logging.getLogger(__name__)

DETECTED_GROUPS = ("cloud", "apps")

# Banner label per group: "# --- app: uv ---"
GROUP_LABELS = {
    "cloud": "cloud",
    "apps": "app",
    "hooks": "hook",
    "templates": "template",
}


class Outcome(str, Enum):
    """Terminal state of one module in a run."""

    INELIGIBLE = "ineligible"   # disabled, or filtered by platform/host/shell
    GATED = "gated"             # requires not all active
    INACTIVE = "inactive"       # not detected, or no template for this shell
    ACTIVE = "active"


@dataclass
class ModuleResult:
    """What happened to one module, for `apogee report`."""

    key: str
    group: str
    outcome: Outcome
    detail: str = ""
    version: str = ""
    kind: str = ""


class Orchestrator:
    """Generates the shell code for one shell and one config.

    Example:
        orch = Orchestrator(ctx, config, Shell.ZSH)
        for fragment in orch.iter_fragments():
            sys.stdout.write(fragment)
    """

    def __init__(
        self,
        ctx: ContextEnv,
        config: Config,
        shell: Shell,
        probe_timeout: float = DEFAULT_PROBE_TIMEOUT,
        renderer: Optional[TemplateRenderer] = None,
    ):
        self.ctx = ctx
        self.config = config
        self.shell = shell
        self.emitter = Emitter(shell)
        self.detector = Detector(ctx, probe_timeout=probe_timeout)
        self.renderer = renderer or TemplateRenderer()

        # The chosen shell is visible to tokens and to the dotenv baseline.
        self.baseline: dict[str, str] = {**ctx.vars, "APOGEE_SHELL": shell.value}
        self.runtime: Optional[RuntimeEnv] = None
        self.dotenv_vars: dict[str, str] = {}
        self.active: set[str] = set()
        self.results: list[ModuleResult] = []

    # ------------------------------------------------------------------
    # entry points
    # ------------------------------------------------------------------

    def iter_fragments(self) -> Iterator[str]:
        """Yield one non-empty text fragment per group, in sequence order.

        Fragments already yielded stay valid if a later group raises.

        Raises:
            ApogeeError: On any fatal configuration, resolution or template error
        """
        self.active = set()
        self.results = []
        self.runtime = RuntimeEnv.build(self.ctx, self.config, shell=self.shell)
        self.dotenv_vars = self.runtime.snapshot()

        steps = [
            lambda: emit_env_delta(self.shell, self.baseline, self.dotenv_vars),
            self.emit_global,
            lambda: self.emit_detected_group("cloud"),
            lambda: self.emit_detected_group("apps"),
            self.emit_hooks,
            self.emit_templates,
        ]
        for step in steps:
            fragment = step()
            if fragment.strip():
                yield fragment

    def render(self) -> str:
        """Whole output, groups separated by a blank line."""
        return "\n".join(self.iter_fragments())

    def run(self) -> list[ModuleResult]:
        """Process every group, discarding the text; used for reporting."""
        for _ in self.iter_fragments():
            pass
        return self.results

    # ------------------------------------------------------------------
    # global
    # ------------------------------------------------------------------

    def emit_global(self) -> str:
        aliases = self.config.global_.aliases
        platform_aliases = aliases.platform.get(self.ctx.platform, {})
        shell_aliases = aliases.shell.get(self.shell, {})
        if not platform_aliases and not shell_aliases:
            return ""

        em = self.emitter
        out = [em.header("apogee (global)")]
        for name, command in platform_aliases.items():
            out.append(em.alias(name, command))
        for name, command in shell_aliases.items():
            out.append(em.alias(name, command))
        out.append(em.blank())
        return "".join(out)

    # ------------------------------------------------------------------
    # cloud / apps
    # ------------------------------------------------------------------

    def emit_detected_group(self, group: str) -> str:
        """Detect, emit and activate one group of ModuleSpecs."""
        modules_root = self.config.modules
        if not modules_root.group_enabled(group):
            logger.debug(f"Group {group} disabled")
            return ""

        items = modules_root.group(group).items
        eligible: dict[str, ModuleSpec] = {}
        for module in items.values():
            if not module.enabled or not module.supports_platform(self.ctx.platform):
                self._record(module.key, group, Outcome.INELIGIBLE,
                             "disabled" if not module.enabled else f"not for {self.ctx.platform}")
                continue
            eligible[module.key] = module

        nodes = [self._node(m.key, m.name, m.priority, m.requires) for m in eligible.values()]

        em = self.emitter
        out = [em.header(f"apogee ({group})")]
        emitted = False

        for node in topo_sort_group(nodes, group):
            module = eligible[node.key]
            if not self._gate(node, group):
                continue

            found = self.detector.detect(module, self.runtime.vars)
            if found is None:
                self._record(module.key, group, Outcome.INACTIVE, "not detected")
                continue

            out.append(em.comment(f"--- {GROUP_LABELS[group]}: {module.name} ---"))
            out.append(self.emit_module(found.record, module.emit))
            self.apply_effects(found.record, module.emit)
            out.append(em.blank())
            emitted = True

            self.active.add(module.key)
            self._record(
                module.key, group, Outcome.ACTIVE,
                f"via {found.strategy}", found.record.get("version", ""),
            )

        return "".join(out) if emitted else ""

    def emit_module(self, record: DetectionRecord, emit: EmitSpec) -> str:
        """Shell code for one detected module's emit block."""
        em = self.emitter
        resolver = Resolver(self.ctx, self.runtime.vars, record)
        out: list[str] = []

        for key, value in self._resolved_assignments(resolver, emit):
            out.append(em.set_env(key, value))

        if emit.paths.prepend_if_exists or emit.paths.append_if_exists:
            out.append(em.blank())
            for raw in emit.paths.prepend_if_exists:
                out.append(em.path_prepend_if_exists(resolver.resolve(raw)))
            for raw in emit.paths.append_if_exists:
                out.append(em.path_append_if_exists(resolver.resolve(raw)))

        for files in (emit.functions.files, emit.source.files):
            if not files:
                continue
            out.append(em.blank())
            seen: set[str] = set()
            for raw in files:
                path = resolver.resolve(raw)
                if path not in seen:
                    seen.add(path)
                    out.append(em.source_if_exists(path))

        if emit.aliases:
            out.append(em.blank())
            for name, raw in emit.aliases.items():
                out.append(em.alias(name, resolver.resolve(raw)))

        if emit.init:
            out.append(em.blank())
            for init in emit.init:
                out.append(em.init_eval_if_exists(
                    resolver.resolve(init.command),
                    resolver.resolve_all(init.args),
                    init.pwsh_out_string,
                ))

        return "".join(out)

    def apply_effects(self, record: DetectionRecord, emit: EmitSpec) -> None:
        """Mirror a module's env and PATH effects into the runtime vars.

        Env values resolve against the vars before this module; PATH entries
        resolve against the vars after its env assignments.
        """
        before = Resolver(self.ctx, self.runtime.snapshot(), record)
        self.runtime.set_many(self._resolved_assignments(before, emit))

        after = Resolver(self.ctx, self.runtime.snapshot(), record)
        added = self.runtime.mutate_path(
            self.ctx.platform,
            prepend=after.resolve_all(emit.paths.prepend_if_exists),
            append=after.resolve_all(emit.paths.append_if_exists),
        )
        if added:
            logger.debug(f"PATH += {added}")

    def _resolved_assignments(self, resolver: Resolver, emit: EmitSpec) -> list[tuple[str, str]]:
        assigns = {key: resolver.resolve(raw) for key, raw in emit.env.items()}
        for key, raw in emit.env_derived.items():
            assigns[key] = resolver.resolve(raw)
        return order_env_assignments(assigns)

    # ------------------------------------------------------------------
    # hooks
    # ------------------------------------------------------------------

    def emit_hooks(self) -> str:
        if not self.config.modules.group_enabled("hooks"):
            return ""

        eligible = {}
        for hook in self.config.modules.hooks.items:
            reason = self._hook_filtered(hook)
            if reason:
                self._record(hook.key, "hooks", Outcome.INELIGIBLE, reason)
                continue
            eligible[hook.key] = hook

        nodes = [self._node(h.key, h.name, h.priority, h.requires) for h in eligible.values()]

        em = self.emitter
        out = [em.header("apogee (hooks)")]
        emitted = False

        for node in topo_sort_group(nodes, "hooks"):
            hook = eligible[node.key]
            if not self._gate(node, "hooks"):
                continue

            script = Resolver(self.ctx, self.runtime.vars).resolve(hook.script)
            out.append(em.comment(f"--- hook: {hook.name} ---"))
            out.append(em.source_if_exists(script))
            out.append(em.blank())
            emitted = True

            self.active.add(hook.key)
            self._record(hook.key, "hooks", Outcome.ACTIVE, script)

        return "".join(out) if emitted else ""

    def _hook_filtered(self, hook) -> str:
        if not hook.enabled:
            return "disabled"
        if hook.platforms and self.ctx.platform not in hook.platforms:
            return f"not for {self.ctx.platform}"
        if hook.hosts and self.ctx.host not in hook.hosts:
            return f"not for host {self.ctx.host}"
        if hook.shells and self.shell not in hook.shells:
            return f"not for {self.shell}"
        return ""

    # ------------------------------------------------------------------
    # templates
    # ------------------------------------------------------------------

    def emit_templates(self) -> str:
        if not self.config.modules.group_enabled("templates"):
            return ""

        eligible = {}
        for module in self.config.modules.templates.items.values():
            if not module.enabled or not module.supports_platform(self.ctx.platform):
                self._record(module.key, "templates", Outcome.INELIGIBLE,
                             "disabled" if not module.enabled else f"not for {self.ctx.platform}")
                continue
            eligible[module.key] = module

        nodes = [self._node(m.key, m.name, m.priority, m.requires) for m in eligible.values()]

        em = self.emitter
        out = [em.header("apogee (templates)")]
        emitted = False

        for node in topo_sort_group(nodes, "templates"):
            module = eligible[node.key]
            if not self._gate(node, "templates"):
                continue

            raw_path = module.templates.for_shell(self.shell)
            if raw_path is None:
                self._record(module.key, "templates", Outcome.INACTIVE, f"no template for {self.shell}")
                continue

            path = Path(Resolver(self.ctx, self.runtime.vars).resolve(raw_path))
            context = template_context(
                self.shell.value,
                self.ctx.platform.value,
                self.ctx.host,
                self.runtime.vars,
                module.data,
            )
            text = self.renderer.render_file(path, context, name=module.name)

            out.append(em.comment(f"--- template: {module.name} ---"))
            out.append(text if text.endswith("\n") else text + "\n")
            out.append(em.blank())
            emitted = True

            self.active.add(module.key)
            self._record(module.key, "templates", Outcome.ACTIVE, str(path))

        return "".join(out) if emitted else ""

    # ------------------------------------------------------------------
    # helpers
    # ------------------------------------------------------------------

    def _node(self, key: str, name: str, priority: int, requires: list[str]) -> DepNode:
        return DepNode(
            key=key,
            name=name,
            priority=priority,
            requires=normalize_requires_list(requires, owner=key),
        )

    def _gate(self, node: DepNode, group: str) -> bool:
        if requires_satisfied(self.active, node.requires):
            return True
        missing = sorted(set(node.requires) - self.active)
        logger.debug(f"{node.key}: skipped, requires not active: {missing}")
        self._record(node.key, group, Outcome.GATED, "requires " + ", ".join(missing))
        return False

    def _record(self, key: str, group: str, outcome: Outcome, detail: str = "", version: str = "") -> None:
        self.results.append(ModuleResult(key, group, outcome, detail, version, self._kind(key, group)))

    def _kind(self, key: str, group: str) -> str:
        if group not in DETECTED_GROUPS:
            return ""
        module = self.config.modules.group(group).items.get(key.partition(".")[2])
        return (module.kind or "") if module is not None else ""
