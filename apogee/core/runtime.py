"""The runtime variable snapshot threaded through one generation run.

RuntimeEnv starts as a copy of the context vars, receives bootstrap
defaults and dotenv/secrets files, and is then mutated by every module
activation so later modules detect against earlier modules' effects.
"""

import logging
from io import StringIO
from pathlib import Path
from typing import Iterable, Mapping, Optional

from dotenv.parser import parse_stream

from apogee.core.context import ContextEnv
from apogee.core.errors import ConfigurationError
from apogee.core.platform import Platform, Shell
from apogee.core.resolver import Resolver
from apogee.emit.emitter import Emitter
from apogee.models import Config, SecretsStrategy

logger = logging.getLogger(__name__)

DEFAULT_ENV_FILE = "{config_dir}/.env"


class RuntimeEnv:
    """Mutable, exclusively owned variable map for one run.

    Attributes:
        vars: Variable name -> value
    """

    def __init__(self, vars: Optional[dict[str, str]] = None):
        self.vars: dict[str, str] = dict(vars or {})

    @classmethod
    def build(cls, ctx: ContextEnv, config: Config, shell: Optional[Shell] = None) -> "RuntimeEnv":
        """Seed from the context, then merge bootstrap defaults and env files.

        Order: bootstrap defaults (fill-missing), env file, secrets file.
        Both files use the bootstrap secrets strategy. A given target shell
        overrides APOGEE_SHELL in the copy.

        Raises:
            ConfigurationError: On a malformed env file line
            ResolutionError: On a bad token in a default or file value
        """
        runtime = cls(ctx.vars)
        if shell is not None:
            runtime.vars["APOGEE_SHELL"] = shell.value
        meta = config.apogee
        bootstrap = meta.bootstrap

        if bootstrap is not None:
            for key, raw in bootstrap.defaults.env.items():
                if runtime.vars.get(key):
                    continue
                runtime.vars[key] = Resolver(ctx, runtime.vars).resolve(raw)

        strategy = bootstrap.secrets.strategy if bootstrap else SecretsStrategy.FILL_MISSING

        env_file_raw = meta.env_file
        if env_file_raw is None and ctx.config_dir is not None:
            env_file_raw = DEFAULT_ENV_FILE
        if env_file_raw:
            env_file = Path(Resolver(ctx, runtime.vars).resolve(env_file_raw))
            runtime.merge_env_file(ctx, env_file, strategy)

        if meta.secrets_file:
            secrets_file = Path(Resolver(ctx, runtime.vars).resolve(meta.secrets_file))
            runtime.merge_env_file(ctx, secrets_file, strategy)

        return runtime

    def snapshot(self) -> dict[str, str]:
        return dict(self.vars)

    def merge_env_file(self, ctx: ContextEnv, path: Path, strategy: SecretsStrategy) -> None:
        """Merge a dotenv file; a missing file is a no-op."""
        if not path.exists():
            logger.debug(f"No env file at {path}")
            return

        try:
            text = path.read_text(encoding="utf-8")
        except OSError as e:
            raise ConfigurationError(f"failed to read env file {path}: {e}") from e

        incoming = {}
        for key, raw in parse_env_text(text, source=str(path)).items():
            incoming[key] = Resolver(ctx, self.vars).resolve(raw)

        apply_strategy(self.vars, incoming, strategy)
        logger.debug(f"Merged {len(incoming)} vars from {path} ({strategy.value})")

    def set_many(self, pairs: Iterable[tuple[str, str]]) -> None:
        for key, value in pairs:
            self.vars[key] = value

    def path_entries(self, platform: Platform) -> list[str]:
        raw = (
            self.vars.get(platform.path_key)
            or self.vars.get("PATH")
            or self.vars.get("Path")
            or ""
        )
        return [p.strip() for p in raw.split(platform.path_sep) if p.strip()]

    def mutate_path(
        self,
        platform: Platform,
        prepend: Iterable[str] = (),
        append: Iterable[str] = (),
    ) -> list[str]:
        """Add existing directories to PATH, skipping ones already present.

        PATH is written back under both "PATH" and "Path".

        Returns:
            Directories actually added
        """
        parts = []
        seen: set[str] = set()
        for entry in self.path_entries(platform):
            if entry not in seen:
                seen.add(entry)
                parts.append(entry)

        added = []
        for directory in prepend:
            if directory and Path(directory).is_dir() and directory not in seen:
                seen.add(directory)
                parts.insert(0, directory)
                added.append(directory)
        for directory in append:
            if directory and Path(directory).is_dir() and directory not in seen:
                seen.add(directory)
                parts.append(directory)
                added.append(directory)

        value = platform.path_sep.join(parts)
        self.vars["PATH"] = value
        self.vars["Path"] = value
        return added


def parse_env_text(text: str, source: str = "<env>") -> dict[str, str]:
    """Parse dotenv text with python-dotenv, without variable interpolation.

    Values are returned raw so callers can resolve {tokens} in them.

    Raises:
        ConfigurationError: On a line that is not KEY=VALUE
    """
    out: dict[str, str] = {}
    for binding in parse_stream(StringIO(text)):
        if binding.key is None and not binding.error:
            continue
        if binding.error or binding.value is None:
            lineno = _binding_line(binding.original)
            raise ConfigurationError(
                f"invalid env line {lineno} in {source} (expected KEY=VALUE): "
                f"{binding.original.string.strip()}"
            )
        out[binding.key] = binding.value
    return out


def _binding_line(original) -> int:
    # the marked span starts at the blank lines preceding the statement
    leading = original.string[: len(original.string) - len(original.string.lstrip())]
    return original.line + leading.count("\n")


def apply_strategy(
    dst: dict[str, str],
    src: Mapping[str, str],
    strategy: SecretsStrategy,
) -> None:
    for key, value in src.items():
        if strategy is SecretsStrategy.OVERRIDE or not dst.get(key):
            dst[key] = value


def env_delta(baseline: Mapping[str, str], current: Mapping[str, str]) -> list[tuple[str, str]]:
    """Keys new or changed relative to the baseline, sorted by key."""
    return [
        (key, current[key])
        for key in sorted(current)
        if baseline.get(key) != current[key]
    ]


def emit_env_delta(shell: Shell, baseline: Mapping[str, str], current: Mapping[str, str]) -> str:
    """Export lines for everything the dotenv/secrets merge added or changed.

    Returns:
        Fragment with an "apogee (dotenv)" header, or "" when nothing changed
    """
    delta = env_delta(baseline, current)
    if not delta:
        return ""

    em = Emitter(shell)
    out = [em.header("apogee (dotenv)")]
    out.extend(em.set_env(key, value) for key, value in delta)
    out.append(em.blank())
    return "".join(out)
