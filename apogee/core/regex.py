"""User-supplied regex compilation."""

import re

from apogee.core.errors import ConfigurationError

# `(?<name>...)` is accepted as an alias of Python's `(?P<name>...)`
_BARE_NAMED_GROUP = re.compile(r"\(\?<(?=[A-Za-z_])")


def compile_regex(pattern: str, owner: str = "") -> re.Pattern:
    """Compile a user-supplied regex.

    Raises:
        ConfigurationError: If the pattern is not a valid regex
    """
    try:
        return re.compile(_BARE_NAMED_GROUP.sub("(?P<", pattern))
    except re.error as e:
        prefix = f"{owner}: " if owner else ""
        raise ConfigurationError(f"{prefix}invalid regex '{pattern}': {e}") from e
