"""Command-line interface for apogee using Typer.

`apogee` with no subcommand behaves like `apogee emit`, so a shell rc file
only needs `eval "$(apogee)"`.
"""

import logging
from pathlib import Path
from typing import Optional

import typer

from apogee import __version__
from apogee.config import ApogeeSettings, load_for_context, select_shell
from apogee.core.context import ContextEnv
from apogee.core.errors import ApogeeError
from apogee.core.orchestrator import Orchestrator
from apogee.installer import install
from apogee.report import ReportMode, print_report
from apogee.utils import display
from apogee.utils.log import configure_logging

logger = logging.getLogger(__name__)

app = typer.Typer(
    name="apogee",
    help="Generate shell init code for the tools present on this host",
    add_completion=False,
)


def version_callback(value: bool):
    """Print version and exit."""
    if value:
        typer.echo(f"apogee {__version__}")
        raise typer.Exit()


@app.callback(invoke_without_command=True)
def main_callback(
    ctx: typer.Context,
    version: bool = typer.Option(
        False,
        "--version",
        "-V",
        help="Show version and exit",
        callback=version_callback,
        is_eager=True,
    ),
    verbose: bool = typer.Option(
        False,
        "--verbose",
        help="Enable debug logging (on stderr)",
    ),
    shell: Optional[str] = typer.Option(
        None,
        "--shell",
        "-s",
        help="Target shell (zsh, bash, fish, pwsh)",
    ),
    config: Optional[Path] = typer.Option(
        None,
        "--config",
        "-c",
        help="Config file (overrides APOGEE_CONFIG)",
    ),
):
    """apogee - shell init generator for zsh, bash, fish and PowerShell."""
    settings = ApogeeSettings()
    configure_logging(verbose=verbose or settings.debug, log_file=settings.log_file)

    if ctx.invoked_subcommand is None:
        _emit(shell, config, settings)


@app.command(name="emit")
def emit_command(
    shell: Optional[str] = typer.Option(
        None,
        "--shell",
        "-s",
        help="Target shell (zsh, bash, fish, pwsh)",
    ),
    config: Optional[Path] = typer.Option(
        None,
        "--config",
        "-c",
        help="Config file (overrides APOGEE_CONFIG)",
    ),
):
    """Write shell init code to stdout.

    Examples:
        eval "$(apogee emit --shell zsh)"
        apogee emit --shell fish | source
    """
    _emit(shell, config, ApogeeSettings())


@app.command(name="init")
def init_command(
    shell: Optional[str] = typer.Option(
        None,
        "--shell",
        "-s",
        help="Shell whose rc file gets the hook",
    ),
    force: bool = typer.Option(
        False,
        "--force",
        "-f",
        help="Overwrite an existing config.yaml",
    ),
):
    """Install a starter config and hook apogee into the shell rc file.

    Examples:
        apogee init
        apogee init --shell fish
    """
    settings = ApogeeSettings()
    try:
        context = ContextEnv.from_environ()
        target = select_shell(shell, settings, context)
        result = install(context, target, force=force)
    except (ApogeeError, OSError) as e:
        display.print_error(str(e))
        raise typer.Exit(code=1)

    if result.config_written:
        display.print_success(f"Wrote {result.config_path}")
    else:
        display.print_warning(f"Config already exists: {result.config_path} (use --force to overwrite)")

    if result.rc_updated:
        display.print_success(f"Updated {result.rc_path}")
    else:
        display.print_info(f"Hook already present in {result.rc_path}")

    display.print_info("Done. Restart your shell (or source your rc file).")


@app.command(name="report")
def report_command(
    mode: ReportMode = typer.Option(
        ReportMode.SUMMARY,
        "--mode",
        "-m",
        help="summary, or full to include the parsed config",
        case_sensitive=False,
    ),
    shell: Optional[str] = typer.Option(
        None,
        "--shell",
        "-s",
        help="Target shell (zsh, bash, fish, pwsh)",
    ),
    config: Optional[Path] = typer.Option(
        None,
        "--config",
        "-c",
        help="Config file (overrides APOGEE_CONFIG)",
    ),
):
    """Show the host context, config summary and per-module outcomes.

    Examples:
        apogee report
        apogee report --mode full
    """
    settings = ApogeeSettings()
    if config is not None:
        settings.config = config

    try:
        context = ContextEnv.from_environ()
        cfg = load_for_context(context, settings)
        target = select_shell(shell, settings, context, cfg)
        orchestrator = Orchestrator(context, cfg, target, probe_timeout=settings.probe_timeout)
        print_report(display.console, context, cfg, orchestrator, mode)
    except ApogeeError as e:
        display.print_error(str(e))
        raise typer.Exit(code=1)


def _emit(shell: Optional[str], config: Optional[Path], settings: ApogeeSettings) -> None:
    """Stream generated shell code to stdout, one group at a time.

    Groups already written stay on stdout when a later group fails.
    """
    if config is not None:
        settings.config = config

    try:
        context = ContextEnv.from_environ()
        cfg = load_for_context(context, settings)
        target = select_shell(shell, settings, context, cfg)
        logger.debug(f"Emitting for {target} on {context.platform} ({context.host})")

        orchestrator = Orchestrator(context, cfg, target, probe_timeout=settings.probe_timeout)
        first = True
        for fragment in orchestrator.iter_fragments():
            if not first:
                typer.echo("", nl=True)
            typer.echo(fragment, nl=False)
            first = False
    except ApogeeError as e:
        display.print_error(str(e))
        raise typer.Exit(code=1)


def main():
    """Main entry point for the CLI."""
    app()


if __name__ == "__main__":
    main()
