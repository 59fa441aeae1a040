"""Quoting helpers for each shell dialect.

Double-quoted forms keep variable expansion working ($PATH, $env:PATH)
while escaping everything the dialect would otherwise interpret.
"""

import re

_IDENT_RE = re.compile(r"[A-Za-z_][A-Za-z0-9_]*")


def quote_posix(value: str) -> str:
    """Double-quote for sh/bash/zsh, escaping backslash, quote and backtick."""
    escaped = (
        value.replace("\\", "\\\\")
        .replace('"', '\\"')
        .replace("`", "\\`")
    )
    return f'"{escaped}"'


def quote_posix_single(value: str) -> str:
    """Single-quote for sh/bash/zsh; embedded quotes become '\\''."""
    return "'" + value.replace("'", "'\\''") + "'"


def quote_fish(value: str) -> str:
    """Double-quote for fish, escaping backslash and quote."""
    escaped = value.replace("\\", "\\\\").replace('"', '\\"')
    return f'"{escaped}"'


def quote_pwsh(value: str) -> str:
    """Double-quote for PowerShell, escaping backtick and quote with backticks."""
    escaped = value.replace("`", "``").replace('"', '`"')
    return f'"{escaped}"'


def is_valid_name(name: str) -> bool:
    return _IDENT_RE.fullmatch(name) is not None


def rewrite_env_refs_for_pwsh(value: str) -> str:
    """Rewrite POSIX $NAME / ${NAME} references into PowerShell env access.

    $NAME becomes $env:NAME and ${NAME} becomes ${env:NAME}. References
    already written as $env:NAME are left alone, as is any "$" not
    followed by a valid variable name.
    """
    out: list[str] = []
    i = 0
    n = len(value)

    while i < n:
        ch = value[i]
        if ch != "$":
            out.append(ch)
            i += 1
            continue

        if value.startswith("$env:", i):
            out.append("$env:")
            i += 5
            continue

        if i + 1 < n and value[i + 1] == "{":
            end = value.find("}", i + 2)
            if end != -1 and is_valid_name(value[i + 2:end]):
                out.append("${env:" + value[i + 2:end] + "}")
                i = end + 1
                continue
            out.append("$")
            i += 1
            continue

        match = _IDENT_RE.match(value, i + 1)
        if match:
            out.append("$env:" + match.group(0))
            i = match.end()
            continue

        out.append("$")
        i += 1

    return "".join(out)
