"""Tests for RuntimeEnv: dotenv merge, PATH propagation and the dotenv delta."""

import pytest

from apogee.core.errors import ConfigurationError
from apogee.core.platform import Platform, Shell
from apogee.core.runtime import (
    RuntimeEnv,
    apply_strategy,
    emit_env_delta,
    env_delta,
    parse_env_text,
)
from apogee.models import Config, SecretsStrategy


def config(**apogee) -> Config:
    return Config.model_validate({"apogee": apogee})


@pytest.fixture
def located(ctx, tmp_path):
    """Context with a located config under tmp_path/conf."""
    conf = tmp_path / "conf"
    conf.mkdir()
    path = conf / "config.yaml"
    path.write_text("{}\n")
    ctx.set_config_path(path)
    return ctx


# =============================================================================
# Dotenv parsing
# =============================================================================

class TestParseEnvText:
    """Tests for the dotenv parser."""

    def test_basic(self):
        text = "# comment\n\nA=1\nexport B = two \nC=\"quoted value\"\nD='single'\n"
        assert parse_env_text(text) == {"A": "1", "B": "two", "C": "quoted value", "D": "single"}

    def test_value_keeps_equals(self):
        assert parse_env_text("URL=a=b=c") == {"URL": "a=b=c"}

    def test_mismatched_quotes_rejected(self):
        with pytest.raises(ConfigurationError) as exc:
            parse_env_text("A=\"x'", source="test.env")
        assert "line 1" in str(exc.value)

    def test_inline_comment_dropped(self):
        assert parse_env_text("A=1 # note\nB='x # y'\n") == {"A": "1", "B": "x # y"}

    def test_no_interpolation(self):
        """${VAR} and {tokens} are left for later resolution."""
        assert parse_env_text("A=${HOME}/x\nB={home}/y\n") == {"A": "${HOME}/x", "B": "{home}/y"}

    def test_missing_equals_raises_with_line(self):
        with pytest.raises(ConfigurationError) as exc:
            parse_env_text("A=1\nBROKEN\n", source="test.env")
        assert "line 2" in str(exc.value)
        assert "test.env" in str(exc.value)

    def test_line_number_after_blank_lines(self):
        with pytest.raises(ConfigurationError) as exc:
            parse_env_text("A=1\n\n# c\n\nBROKEN\n")
        assert "line 5" in str(exc.value)


class TestApplyStrategy:
    """Tests for fill_missing and override merges."""

    def test_fill_missing(self):
        dst = {"A": "keep", "B": ""}
        apply_strategy(dst, {"A": "new", "B": "filled", "C": "added"}, SecretsStrategy.FILL_MISSING)
        assert dst == {"A": "keep", "B": "filled", "C": "added"}

    def test_override(self):
        dst = {"A": "old"}
        apply_strategy(dst, {"A": "new"}, SecretsStrategy.OVERRIDE)
        assert dst == {"A": "new"}


# =============================================================================
# Build
# =============================================================================

class TestBuild:
    """Tests for RuntimeEnv.build."""

    def test_seeded_from_context_copy(self, ctx):
        runtime = RuntimeEnv.build(ctx, Config())
        runtime.vars["NEW"] = "x"
        assert "NEW" not in ctx.vars

    def test_bootstrap_defaults_fill_missing(self, ctx):
        ctx.vars["EDITOR"] = "nano"
        cfg = config(bootstrap={"defaults": {"env": {"EDITOR": "vim", "CACHE": "{xdg_cache_home}/x"}}})
        runtime = RuntimeEnv.build(ctx, cfg)
        assert runtime.vars["EDITOR"] == "nano"
        assert runtime.vars["CACHE"] == f"{ctx.home}/.cache/x"

    def test_default_env_file(self, located):
        (located.config_dir / ".env").write_text("TOKEN=abc\nWHERE={config_dir}\n")
        runtime = RuntimeEnv.build(located, Config())
        assert runtime.vars["TOKEN"] == "abc"
        assert runtime.vars["WHERE"] == str(located.config_dir)

    def test_missing_env_file_is_noop(self, located):
        runtime = RuntimeEnv.build(located, Config())
        assert runtime.vars == located.vars

    def test_env_file_fill_missing_by_default(self, located):
        located.vars["TOKEN"] = "from-shell"
        (located.config_dir / ".env").write_text("TOKEN=from-file\n")
        assert RuntimeEnv.build(located, Config()).vars["TOKEN"] == "from-shell"

    def test_override_strategy(self, located):
        located.vars["TOKEN"] = "from-shell"
        (located.config_dir / ".env").write_text("TOKEN=from-file\n")
        cfg = config(bootstrap={"secrets": {"strategy": "override"}})
        assert RuntimeEnv.build(located, cfg).vars["TOKEN"] == "from-file"

    def test_secrets_file_after_env_file(self, located, tmp_path):
        (located.config_dir / ".env").write_text("A=env\n")
        secrets = tmp_path / "secrets.env"
        secrets.write_text("A=secret\nB=secret\n")
        cfg = config(secrets_file=str(secrets), bootstrap={"secrets": {"strategy": "override"}})
        runtime = RuntimeEnv.build(located, cfg)
        assert runtime.vars["A"] == "secret"
        assert runtime.vars["B"] == "secret"


# =============================================================================
# PATH mutation
# =============================================================================

class TestMutatePath:
    """Tests for PATH propagation into the runtime vars."""

    def test_prepend_and_append_existing_only(self, tmp_path):
        a, b = tmp_path / "a", tmp_path / "b"
        a.mkdir()
        b.mkdir()
        runtime = RuntimeEnv({"PATH": "/usr/bin:/bin"})
        added = runtime.mutate_path(Platform.LINUX, prepend=[str(a), str(tmp_path / "nope")], append=[str(b)])
        assert added == [str(a), str(b)]
        assert runtime.vars["PATH"] == f"{a}:/usr/bin:/bin:{b}"

    def test_both_keys_written(self, tmp_path):
        runtime = RuntimeEnv({"PATH": "/usr/bin"})
        runtime.mutate_path(Platform.LINUX, prepend=[str(tmp_path)])
        assert runtime.vars["PATH"] == runtime.vars["Path"]

    def test_dedup_preserves_order(self, tmp_path):
        runtime = RuntimeEnv({"PATH": f"/usr/bin:{tmp_path}:/usr/bin: :/bin"})
        added = runtime.mutate_path(Platform.LINUX, prepend=[str(tmp_path)])
        assert added == []
        assert runtime.vars["PATH"] == f"/usr/bin:{tmp_path}:/bin"

    def test_windows_separator_and_key(self, tmp_path):
        runtime = RuntimeEnv({"Path": "C:\\Windows;C:\\Tools"})
        runtime.mutate_path(Platform.WINDOWS, append=[str(tmp_path)])
        assert runtime.vars["Path"] == f"C:\\Windows;C:\\Tools;{tmp_path}"
        assert runtime.vars["PATH"] == runtime.vars["Path"]


# =============================================================================
# Delta
# =============================================================================

class TestEnvDelta:
    """Tests for the dotenv delta fragment."""

    def test_delta_new_and_changed_sorted(self):
        assert env_delta({"A": "1", "B": "2"}, {"A": "1", "B": "3", "C": "4"}) == [("B", "3"), ("C", "4")]

    def test_emit_delta(self):
        text = emit_env_delta(Shell.ZSH, {"A": "1"}, {"A": "1", "Z": "z", "M": "m"})
        assert text == '# apogee (dotenv)\n\nexport M="m"\nexport Z="z"\n\n'

    def test_emit_delta_empty(self):
        assert emit_env_delta(Shell.FISH, {"A": "1"}, {"A": "1"}) == ""
