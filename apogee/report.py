"""`apogee report`: what apogee sees on this host and what it would activate."""

from enum import Enum

from rich.console import Console
from rich.json import JSON

from apogee.core.context import ContextEnv
from apogee.core.orchestrator import ModuleResult, Orchestrator, Outcome
from apogee.models import Config
from apogee.utils.display import key_value_table, module_table


class ReportMode(str, Enum):
    SUMMARY = "summary"
    FULL = "full"


def config_summary(config: Config) -> dict[str, str]:
    modules = config.modules

    def group_line(name: str, count: int) -> str:
        state = "enabled" if modules.group_enabled(name) else "disabled"
        return f"{count} ({state})"

    return {
        "schema_version": str(config.apogee.schema_version),
        "default_shell": config.apogee.default_shell.value,
        "platforms": ", ".join(p.value for p in config.apogee.platforms) or "<any>",
        "cloud": group_line("cloud", len(modules.cloud.items)),
        "apps": group_line("apps", len(modules.apps.items)),
        "hooks": group_line("hooks", len(modules.hooks.items)),
        "templates": group_line("templates", len(modules.templates.items)),
    }


def outcome_counts(results: list[ModuleResult]) -> dict[str, str]:
    counts = {outcome.value: 0 for outcome in Outcome}
    for result in results:
        counts[result.outcome.value] += 1
    return {k: str(v) for k, v in counts.items()}


def print_report(
    console: Console,
    ctx: ContextEnv,
    config: Config,
    orchestrator: Orchestrator,
    mode: ReportMode = ReportMode.SUMMARY,
) -> list[ModuleResult]:
    """Run the orchestrator without emitting and print tables.

    Args:
        console: Destination console
        ctx: Host context (config already located)
        config: Loaded config
        orchestrator: Orchestrator bound to the target shell
        mode: summary, or full to include the parsed config

    Returns:
        Per-module results of the run
    """
    results = orchestrator.run()

    context_rows = ctx.describe()
    context_rows["target shell"] = orchestrator.shell.value
    console.print(key_value_table("Context", context_rows))
    console.print(key_value_table("Config", config_summary(config)))
    console.print(module_table(results))
    console.print(key_value_table("Outcomes", outcome_counts(results)))

    if mode is ReportMode.FULL:
        console.print(JSON(config.model_dump_json(by_alias=True, indent=2)))

    return results
