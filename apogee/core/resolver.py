"""Token resolution for {placeholder} strings in config values.

Grammar:
    "{{"          literal "{"
    "}}"          literal "}"
    "${...}"      copied verbatim so native shell expansions stay intact
    "{name}"      replaced by the token value; empty, unclosed or unknown
                  tokens raise ResolutionError
    lone "}"      literal

Tokens:
    detect.<key>  value from the detection record (only when attached)
    home, config_dir, config_path, host, platform, shell, shell_ext,
    shell_family, shell_family_ext, shell_init, xdg_config_home,
    xdg_cache_home, xdg_data_home, xdg_state_home, userprofile, username
"""

from typing import Mapping, Optional

from apogee.core.context import ContextEnv
from apogee.core.errors import ResolutionError
from apogee.core.platform import Shell

DetectionRecord = dict[str, str]

# Argument shape third-party `init` subcommands expect (starship, zoxide, ...).
SHELL_INIT_NAMES = {
    Shell.ZSH: "zsh",
    Shell.BASH: "bash",
    Shell.FISH: "fish",
    Shell.PWSH: "powershell",
}

SHELL_EXTENSIONS = {
    Shell.ZSH: "zsh",
    Shell.BASH: "bash",
    Shell.FISH: "fish",
    Shell.PWSH: "ps1",
}

FAMILY_EXTENSIONS = {
    "posix": "sh",
    "fish": "fish",
    "pwsh": "ps1",
}


class Resolver:
    """Expands {tokens} against context, runtime vars and a detection record.

    Resolution is pure: nothing here mutates the context or the vars.

    Example:
        resolver = Resolver(ctx, runtime.vars).with_detect(record)
        resolver.resolve("{detect.command_path} --version")
    """

    def __init__(
        self,
        ctx: ContextEnv,
        env: Mapping[str, str],
        detect: Optional[Mapping[str, str]] = None,
    ):
        self.ctx = ctx
        self.env = env
        self.detect = detect

    def with_detect(self, detect: Mapping[str, str]) -> "Resolver":
        """Return a resolver that also answers detect.* tokens."""
        return Resolver(self.ctx, self.env, detect)

    def resolve(self, raw: str) -> str:
        """Resolve every token in a string.

        Args:
            raw: Config value possibly containing {tokens}

        Returns:
            The resolved string

        Raises:
            ResolutionError: On empty, unclosed or unknown tokens
        """
        if "{" not in raw and "}" not in raw:
            return raw

        out: list[str] = []
        i = 0
        n = len(raw)

        while i < n:
            ch = raw[i]

            if ch == "{":
                if i + 1 < n and raw[i + 1] == "{":
                    out.append("{")
                    i += 2
                    continue

                if i > 0 and raw[i - 1] == "$":
                    end = raw.find("}", i + 1)
                    if end == -1:
                        # unclosed "${" stays literal
                        out.append("{")
                        i += 1
                        continue
                    out.append(raw[i:end + 1])
                    i = end + 1
                    continue

                end = raw.find("}", i + 1)
                if end == -1:
                    raise ResolutionError("unclosed token", raw)
                token = raw[i + 1:end]
                if not token:
                    raise ResolutionError("empty token", raw)

                value = self.token_value(token)
                if value is None:
                    raise ResolutionError(f"unknown token {{{token}}}", raw)
                out.append(value)
                i = end + 1
                continue

            if ch == "}":
                if i + 1 < n and raw[i + 1] == "}":
                    out.append("}")
                    i += 2
                    continue
                out.append("}")
                i += 1
                continue

            # copy the run of plain text up to the next brace
            j = i
            while j < n and raw[j] not in "{}":
                j += 1
            out.append(raw[i:j])
            i = j

        return "".join(out)

    def resolve_all(self, values: list[str]) -> list[str]:
        return [self.resolve(v) for v in values]

    def effective_shell(self) -> Optional[Shell]:
        """Shell from APOGEE_SHELL in the runtime vars, else the context guess."""
        return Shell.parse(self.env.get("APOGEE_SHELL")) or self.ctx.shell_type

    def token_value(self, token: str) -> Optional[str]:
        """Look up a single token name. Returns None when unknown."""
        if token.startswith("detect."):
            if self.detect is None:
                return None
            return self.detect.get(token[len("detect."):])

        shell = self.effective_shell()
        home = self.ctx.home

        if token == "home":
            return str(home)
        if token == "config_dir":
            return str(self.ctx.config_dir) if self.ctx.config_dir else None
        if token == "config_path":
            return str(self.ctx.config_path) if self.ctx.config_path else None
        if token == "host":
            return self.ctx.host
        if token == "platform":
            return self.ctx.platform.value
        if token == "shell":
            return shell.value if shell else "unknown"
        if token == "shell_ext":
            return SHELL_EXTENSIONS.get(shell, "sh")
        if token == "shell_family":
            return shell.family if shell else "posix"
        if token == "shell_family_ext":
            return FAMILY_EXTENSIONS[shell.family if shell else "posix"]
        if token == "shell_init":
            return SHELL_INIT_NAMES.get(shell, "sh")
        if token == "xdg_config_home":
            return self._env_nonempty("XDG_CONFIG_HOME") or str(self.ctx.xdg_config_home)
        if token == "xdg_cache_home":
            return self._env_nonempty("XDG_CACHE_HOME") or str(home / ".cache")
        if token == "xdg_data_home":
            return self._env_nonempty("XDG_DATA_HOME") or str(home / ".local" / "share")
        if token == "xdg_state_home":
            return self._env_nonempty("XDG_STATE_HOME") or str(home / ".local" / "state")
        if token == "userprofile":
            return self._env_nonempty("USERPROFILE") or self._env_nonempty("HOME")
        if token == "username":
            return self._env_nonempty("USERNAME") or self._env_nonempty("USER")

        return None

    def _env_nonempty(self, key: str) -> Optional[str]:
        value = self.env.get(key, "").strip()
        return value or None
