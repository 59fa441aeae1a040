"""Command lookup on PATH with per-platform fallback directories.

Lookup runs against the runtime vars rather than os.environ so that PATH
entries added by earlier modules are visible to later ones.
"""

import shutil
from pathlib import Path
from typing import Mapping, Optional

from apogee.core.platform import Platform

DEFAULT_PATHEXT = ".COM;.EXE;.BAT;.CMD"

_UNIX_SYSTEM_DIRS = (
    "/usr/local/sbin",
    "/usr/local/bin",
    "/usr/sbin",
    "/usr/bin",
    "/sbin",
    "/bin",
)

_MAC_SYSTEM_DIRS = (
    "/opt/homebrew/bin",
    "/usr/local/bin",
    "/usr/bin",
    "/bin",
    "/usr/sbin",
    "/sbin",
)


def is_explicit_path(cmd: str) -> bool:
    return "/" in cmd or "\\" in cmd


def resolve_command(
    platform: Platform,
    env: Mapping[str, str],
    cmd: str,
) -> Optional[Path]:
    """Locate a command the way the target shell would.

    Args:
        platform: Host platform (selects PATH key, delimiter and PATHEXT rules)
        env: Runtime vars holding PATH / Path / PATHEXT
        cmd: Command name, or an explicit path

    Returns:
        Path of the executable, or None if not found
    """
    if not cmd:
        return None

    if is_explicit_path(cmd):
        path = Path(cmd)
        return path if path.is_file() else None

    for directory in path_dirs(platform, env):
        found = resolve_in_dir(platform, env, directory, cmd)
        if found is not None:
            return found

    for directory in fallback_command_dirs(platform, env):
        found = resolve_in_dir(platform, env, directory, cmd)
        if found is not None:
            return found

    return None


def path_dirs(platform: Platform, env: Mapping[str, str]) -> list[Path]:
    """Split PATH (or Path) into directories, skipping blanks."""
    raw = env.get(platform.path_key) or env.get("PATH") or env.get("Path") or ""
    return [Path(p.strip()) for p in raw.split(platform.path_sep) if p.strip()]


def resolve_in_dir(
    platform: Platform,
    env: Mapping[str, str],
    directory: Path,
    cmd: str,
) -> Optional[Path]:
    if not directory.is_dir():
        return None

    if platform is not Platform.WINDOWS:
        found = shutil.which(cmd, path=str(directory))
        return Path(found) if found else None

    # A name that already carries an extension is tried as-is only.
    if "." in cmd:
        candidate = directory / cmd
        return candidate if candidate.is_file() else None

    try:
        listing = {entry.name.lower(): entry for entry in directory.iterdir()}
    except OSError:
        return None

    for ext in pathext_list(env):
        entry = listing.get(f"{cmd}{ext}".lower())
        if entry is not None and entry.is_file():
            return directory / f"{cmd}{ext}"

    return None


def pathext_list(env: Mapping[str, str]) -> list[str]:
    """PATHEXT entries, lowercased and dot-prefixed, in declared order."""
    raw = env.get("PATHEXT") or DEFAULT_PATHEXT
    exts = []
    for part in raw.split(";"):
        ext = part.strip()
        if not ext:
            continue
        if not ext.startswith("."):
            ext = "." + ext
        exts.append(ext.lower())
    return exts or [e.lower() for e in DEFAULT_PATHEXT.split(";")]


def fallback_command_dirs(platform: Platform, env: Mapping[str, str]) -> list[Path]:
    """Standard install locations searched when PATH lookup fails."""
    home = env.get("HOME") or env.get("USERPROFILE") or ""
    dirs: list[Path] = []

    if platform is Platform.WINDOWS:
        dirs += [Path(r"C:\Windows\System32"), Path(r"C:\Windows")]
        if home:
            dirs += [
                Path(home) / ".cargo" / "bin",
                Path(home) / "scoop" / "shims",
                Path(home) / "AppData" / "Local" / "Microsoft" / "WindowsApps",
            ]
        program_files = env.get("ProgramFiles", "").strip()
        if program_files:
            dirs.append(Path(program_files) / "Git" / "cmd")
    else:
        system = _MAC_SYSTEM_DIRS if platform is Platform.MAC else _UNIX_SYSTEM_DIRS
        dirs += [Path(d) for d in system]
        if home:
            dirs += [Path(home) / ".local" / "bin", Path(home) / ".cargo" / "bin"]
        if platform is Platform.WSL:
            user = (env.get("USERNAME") or env.get("USER") or "").strip()
            if user:
                dirs += [
                    Path(f"/mnt/c/Users/{user}/.cargo/bin"),
                    Path(f"/mnt/c/Users/{user}/scoop/shims"),
                ]

    seen: set[str] = set()
    unique = []
    for d in dirs:
        if str(d) not in seen:
            seen.add(str(d))
            unique.append(d)
    return unique
