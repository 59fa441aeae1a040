"""`apogee init`: starter config and rc-file hook installation."""

import logging
from dataclasses import dataclass, field
from importlib.resources import files
from pathlib import Path

from apogee.core.context import ContextEnv
from apogee.core.errors import ConfigurationError
from apogee.core.platform import Shell

logger = logging.getLogger(__name__)

MARK_BEGIN = "# >>> apogee >>>"
MARK_END = "# <<< apogee <<<"

STARTER_DIRS = ("functions", "hooks", "templates")


@dataclass
class InstallResult:
    """Paths touched by an install."""

    config_dir: Path
    config_path: Path
    config_written: bool
    rc_path: Path
    rc_updated: bool
    created_dirs: list[Path] = field(default_factory=list)


def default_config_text() -> str:
    return files("apogee.assets").joinpath("default_config.yaml").read_text(encoding="utf-8")


def rc_file_for_shell(ctx: ContextEnv, shell: Shell) -> Path:
    if shell is Shell.ZSH:
        return ctx.home / ".zshrc"
    if shell is Shell.BASH:
        return ctx.home / ".bashrc"
    if shell is Shell.FISH:
        return ctx.xdg_config_home / "fish" / "config.fish"
    return ctx.xdg_config_home / "powershell" / "Microsoft.PowerShell_profile.ps1"


def hook_block(shell: Shell) -> str:
    """Marker-delimited snippet that evaluates apogee's output on shell start."""
    if shell is Shell.FISH:
        body = (
            "if type -q apogee\n"
            "  env APOGEE_SHELL=fish apogee | source\n"
            "end\n"
        )
    elif shell is Shell.PWSH:
        body = (
            "if (Get-Command apogee -ErrorAction SilentlyContinue) {\n"
            '  $env:APOGEE_SHELL = "pwsh"\n'
            "  (& apogee) | Out-String | Invoke-Expression\n"
            "}\n"
        )
    else:
        body = (
            "if command -v apogee >/dev/null 2>&1; then\n"
            f'  eval "$(APOGEE_SHELL={shell.value} apogee)"\n'
            "fi\n"
        )
    return f"{MARK_BEGIN}\n{body}{MARK_END}\n"


def has_markers(text: str) -> bool:
    return MARK_BEGIN in text and MARK_END in text


def append_hook_if_missing(rc_path: Path, block: str) -> bool:
    """Append the hook block unless the rc file already has the markers.

    Returns:
        True if the file was changed
    """
    try:
        existing = rc_path.read_text(encoding="utf-8") if rc_path.exists() else ""
    except OSError as e:
        raise ConfigurationError(f"failed to read {rc_path}: {e}") from e

    if has_markers(existing):
        logger.debug(f"Hook already present in {rc_path}")
        return False

    rc_path.parent.mkdir(parents=True, exist_ok=True)
    with open(rc_path, "a", encoding="utf-8") as f:
        if existing and not existing.endswith("\n"):
            f.write("\n")
        f.write(block)
    return True


def install(ctx: ContextEnv, shell: Shell, force: bool = False) -> InstallResult:
    """Create the starter config layout and hook the shell rc file.

    Args:
        ctx: Host context (home and XDG config dir)
        shell: Shell whose rc file receives the hook
        force: Overwrite an existing config.yaml

    Returns:
        InstallResult describing what changed
    """
    config_dir = ctx.default_config_dir()
    config_dir.mkdir(parents=True, exist_ok=True)

    created = []
    for name in STARTER_DIRS:
        path = config_dir / name
        if not path.exists():
            path.mkdir(parents=True)
            created.append(path)

    config_path = config_dir / "config.yaml"
    written = force or not config_path.exists()
    if written:
        config_path.write_text(default_config_text(), encoding="utf-8")
        logger.info(f"Wrote {config_path}")
    else:
        logger.info(f"Config already exists: {config_path}")

    rc_path = rc_file_for_shell(ctx, shell)
    updated = append_hook_if_missing(rc_path, hook_block(shell))
    if updated:
        logger.info(f"Updated {rc_path}")

    return InstallResult(
        config_dir=config_dir,
        config_path=config_path,
        config_written=written,
        rc_path=rc_path,
        rc_updated=updated,
        created_dirs=created,
    )
