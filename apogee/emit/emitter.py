"""Shell code generation for one target dialect.

Every method returns complete lines of shell code (with trailing newline).
Guards (directory exists, command present, PATH already contains a dir)
are emitted as runtime checks: the shell that evaluates the output may
see a different filesystem and PATH than the process that generated it.
"""

from typing import Sequence

from apogee.core.platform import Shell
from apogee.emit.quoting import (
    quote_fish,
    quote_posix,
    quote_posix_single,
    quote_pwsh,
    rewrite_env_refs_for_pwsh,
)


class Emitter:
    """Generates shell snippets for exactly one shell.

    Example:
        em = Emitter(Shell.ZSH)
        em.set_env("UV_BIN", "/usr/local/bin/uv")
        # 'export UV_BIN="/usr/local/bin/uv"\\n'
    """

    def __init__(self, shell: Shell):
        self.shell = shell

    # ------------------------------------------------------------------
    # framing
    # ------------------------------------------------------------------

    def header(self, title: str) -> str:
        return f"# {title}\n\n"

    def comment(self, text: str) -> str:
        return f"# {text}\n"

    def blank(self) -> str:
        return "\n"

    # ------------------------------------------------------------------
    # primitives
    # ------------------------------------------------------------------

    def set_env(self, key: str, value: str) -> str:
        """Export an environment variable."""
        v = self._rewrite(value)
        if self.shell is Shell.FISH:
            return f"set -gx {key} {quote_fish(v)}\n"
        if self.shell is Shell.PWSH:
            return f"$env:{key} = {quote_pwsh(v)}\n"
        return f"export {key}={quote_posix(v)}\n"

    def alias(self, name: str, command: str) -> str:
        """Define an alias.

        fish and PowerShell get a one-line function that forwards its
        arguments; their native alias commands do not do that reliably.
        """
        cmd = self._rewrite(command)
        if self.shell is Shell.FISH:
            return f"function {name}; {cmd} $argv; end\n"
        if self.shell is Shell.PWSH:
            return f"function {name} {{ {cmd} @args }}\n"
        return f"alias {name}={quote_posix_single(cmd)}\n"

    def path_prepend_if_exists(self, directory: str) -> str:
        return self._path_mutation(directory, prepend=True)

    def path_append_if_exists(self, directory: str) -> str:
        return self._path_mutation(directory, prepend=False)

    def _path_mutation(self, directory: str, prepend: bool) -> str:
        d = self._rewrite(directory)

        if self.shell is Shell.FISH:
            q = quote_fish(d)
            new_path = f"{q} $PATH" if prepend else f"$PATH {q}"
            return (
                f"if test -d {q}; and not contains -- {q} $PATH; "
                f"set -gx PATH {new_path}; end\n"
            )

        if self.shell is Shell.PWSH:
            q = quote_pwsh(d)
            parts = f"{q}, $env:PATH" if prepend else f"$env:PATH, {q}"
            return (
                f"if (Test-Path -Path {q} -PathType Container) {{ "
                "$sep = [IO.Path]::PathSeparator; "
                "$parts = $env:PATH -split [regex]::Escape($sep); "
                f"if ($parts -notcontains {q}) {{ "
                f"$env:PATH = (@({parts}) | Where-Object {{ $_ }}) -join $sep }} }}\n"
            )

        q = quote_posix(d)
        new_path = "$__apogee_dir:$PATH" if prepend else "$PATH:$__apogee_dir"
        return (
            f"if [ -d {q} ]; then __apogee_dir={q}; "
            'case ":$PATH:" in *":$__apogee_dir:"*) ;; '
            f"*) export PATH={quote_posix(new_path)} ;; esac; "
            "unset __apogee_dir; fi\n"
        )

    def source_if_exists(self, path: str) -> str:
        p = self._rewrite(path)
        if self.shell is Shell.FISH:
            q = quote_fish(p)
            return f"if test -r {q}; source {q}; end\n"
        if self.shell is Shell.PWSH:
            q = quote_pwsh(p)
            return f"if (Test-Path -Path {q} -PathType Leaf) {{ . {q} }}\n"
        q = quote_posix(p)
        return f"if [ -r {q} ]; then source {q}; fi\n"

    def init_eval_if_exists(
        self,
        command: str,
        args: Sequence[str] = (),
        pwsh_out_string: bool = False,
    ) -> str:
        """Evaluate a tool's self-reported init script when the tool is present.

        Args:
            command: Command name or path
            args: Arguments of the init subcommand
            pwsh_out_string: PowerShell only, pipe through Out-String first
                for tools whose init output is not a single string
        """
        c = self._rewrite(command)
        rewritten = [self._rewrite(a) for a in args]
        is_path = "/" in c or "\\" in c

        if self.shell is Shell.FISH:
            q = quote_fish(c)
            words = " ".join([q] + [quote_fish(a) for a in rewritten])
            guard = f"test -x {q}" if is_path else f"type -q {q}"
            return f"if {guard}; {words} | source; end\n"

        if self.shell is Shell.PWSH:
            q = quote_pwsh(c)
            words = " ".join(["&", q] + [quote_pwsh(a) for a in rewritten])
            if is_path:
                guard = f"Test-Path -Path {q} -PathType Leaf"
            else:
                guard = f"Get-Command {q} -ErrorAction SilentlyContinue"
            if pwsh_out_string:
                body = f"Invoke-Expression (& {{ ({words} | Out-String) }})"
            else:
                body = f"Invoke-Expression ({words})"
            return f"if ({guard}) {{ {body} }}\n"

        q = quote_posix(c)
        words = " ".join([q] + [quote_posix(a) for a in rewritten])
        guard = f"[ -x {q} ]" if is_path else f"command -v {q} >/dev/null 2>&1"
        return f'if {guard}; then eval "$({words})"; fi\n'

    def _rewrite(self, value: str) -> str:
        if self.shell is Shell.PWSH:
            return rewrite_env_refs_for_pwsh(value)
        return value
