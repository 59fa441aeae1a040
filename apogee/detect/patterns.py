"""Existence checks for detect.files / detect.paths patterns.

Only the final path segment may contain glob wildcards (`*`, `?`), as in
"/Applications/Houdini*.app" or "/opt/hfs*".
"""

import logging
import re
from pathlib import Path
from typing import Optional

logger = logging.getLogger(__name__)


def has_glob(pattern: str) -> bool:
    return "*" in pattern or "?" in pattern


def glob_to_regex(glob: str) -> re.Pattern:
    """Translate a single-segment glob into an anchored regex."""
    parts = []
    for ch in glob:
        if ch == "*":
            parts.append(".*")
        elif ch == "?":
            parts.append(".")
        else:
            parts.append(re.escape(ch))
    return re.compile("^" + "".join(parts) + "$")


def first_path_match(pattern: str) -> Optional[str]:
    """Return the first existing path matching a pattern.

    Plain patterns are a simple existence check. Glob patterns are matched
    against the sorted listing of their parent directory.

    Args:
        pattern: Resolved path, optionally with wildcards in the last segment

    Returns:
        Full path of the first match, or None
    """
    if not pattern:
        return None

    if not has_glob(pattern):
        return pattern if Path(pattern).exists() else None

    path = Path(pattern)
    directory = path.parent
    if not directory.is_dir():
        return None

    regex = glob_to_regex(path.name)
    try:
        names = sorted(entry.name for entry in directory.iterdir())
    except OSError as e:
        logger.debug(f"Cannot list {directory}: {e}")
        return None

    for name in names:
        if regex.match(name):
            return str(directory / name)
    return None
