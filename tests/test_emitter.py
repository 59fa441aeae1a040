"""Tests for shell code generation, quoting and env ordering."""

import shutil
import subprocess

import pytest

from apogee.core.platform import Shell
from apogee.emit import (
    Emitter,
    extract_refs,
    order_env_assignments,
    quote_fish,
    quote_posix,
    quote_posix_single,
    quote_pwsh,
    rewrite_env_refs_for_pwsh,
)


def run_sh(script: str, env: dict) -> str:
    result = subprocess.run(
        ["sh", "-c", script],
        capture_output=True,
        text=True,
        env=env,
        timeout=10,
    )
    assert result.returncode == 0, result.stderr
    return result.stdout


# =============================================================================
# Quoting
# =============================================================================

class TestQuoting:
    """Tests for per-dialect quoting."""

    def test_posix_double_quote_escapes(self):
        """Backslash, quote and backtick are escaped; $ is kept."""
        assert quote_posix('a"b') == '"a\\"b"'
        assert quote_posix("a`b") == '"a\\`b"'
        assert quote_posix("a\\b") == '"a\\\\b"'
        assert quote_posix("$HOME/x") == '"$HOME/x"'

    def test_posix_single_quote(self):
        """Embedded single quotes become '\\''."""
        assert quote_posix_single("it's") == "'it'\\''s'"

    def test_pwsh_quote(self):
        """Backtick and double quote are escaped with backticks."""
        assert quote_pwsh('say "hi"') == '"say `"hi`""'
        assert quote_pwsh("a`b") == '"a``b"'

    def test_fish_quote(self):
        """fish values are double-quoted, single quotes kept as is."""
        assert quote_fish("it's") == "\"it's\""
        assert quote_fish('a"b\\c') == '"a\\"b\\\\c"'

    @pytest.mark.skipif(shutil.which("sh") is None, reason="needs sh")
    def test_posix_quote_round_trips(self):
        """sh parses the quoted value back to the original."""
        value = 'we"ird `tick` \\slash\\ and \'single\''
        out = run_sh(f"printf '%s' {quote_posix(value)}", {"PATH": "/usr/bin:/bin"})
        assert out == value
        out = run_sh(f"printf '%s' {quote_posix_single(value)}", {"PATH": "/usr/bin:/bin"})
        assert out == value


# =============================================================================
# PowerShell env rewriting
# =============================================================================

class TestPwshRewrite:
    """Tests for $NAME -> $env:NAME rewriting."""

    def test_bare_reference(self):
        assert rewrite_env_refs_for_pwsh("$HOME/bin") == "$env:HOME/bin"

    def test_braced_reference(self):
        assert rewrite_env_refs_for_pwsh("${HOME}/bin") == "${env:HOME}/bin"

    def test_existing_env_form_kept(self):
        """$env:NAME is not rewritten twice."""
        assert rewrite_env_refs_for_pwsh("$env:PATH;x") == "$env:PATH;x"

    def test_lone_dollar_kept(self):
        assert rewrite_env_refs_for_pwsh("cost: 5$") == "cost: 5$"


# =============================================================================
# Primitives
# =============================================================================

class TestEmitterPrimitives:
    """Tests for each emitted primitive in every dialect."""

    def test_header(self):
        assert Emitter(Shell.ZSH).header("apogee (apps)") == "# apogee (apps)\n\n"

    def test_set_env(self):
        assert Emitter(Shell.ZSH).set_env("UV_BIN", "/usr/local/bin/uv") == 'export UV_BIN="/usr/local/bin/uv"\n'
        assert Emitter(Shell.BASH).set_env("A", "1") == 'export A="1"\n'
        assert Emitter(Shell.FISH).set_env("A", "1") == 'set -gx A "1"\n'
        assert Emitter(Shell.PWSH).set_env("A", "$B/x") == '$env:A = "$env:B/x"\n'

    def test_alias_posix(self):
        assert Emitter(Shell.ZSH).alias("gs", "git status") == "alias gs='git status'\n"

    def test_alias_fish_is_function(self):
        """fish gets a forwarding function."""
        assert Emitter(Shell.FISH).alias("gs", "git status") == "function gs; git status $argv; end\n"

    def test_alias_pwsh_is_function(self):
        """PowerShell gets a forwarding function."""
        assert Emitter(Shell.PWSH).alias("gs", "git status") == "function gs { git status @args }\n"

    def test_source_if_exists(self):
        assert Emitter(Shell.BASH).source_if_exists("/x/f.sh") == 'if [ -r "/x/f.sh" ]; then source "/x/f.sh"; fi\n'
        assert Emitter(Shell.FISH).source_if_exists("/x/f.fish") == 'if test -r "/x/f.fish"; source "/x/f.fish"; end\n'
        assert Emitter(Shell.PWSH).source_if_exists("C:\\f.ps1") == 'if (Test-Path -Path "C:\\f.ps1" -PathType Leaf) { . "C:\\f.ps1" }\n'

    def test_init_eval_command(self):
        """Bare commands are guarded by a PATH lookup."""
        line = Emitter(Shell.ZSH).init_eval_if_exists("starship", ["init", "zsh"])
        assert line == 'if command -v "starship" >/dev/null 2>&1; then eval "$("starship" "init" "zsh")"; fi\n'

    def test_init_eval_path(self):
        """Paths are guarded by an executable test."""
        line = Emitter(Shell.BASH).init_eval_if_exists("/opt/bin/zoxide", ["init", "bash"])
        assert line.startswith('if [ -x "/opt/bin/zoxide" ]; then')

    def test_init_eval_fish(self):
        line = Emitter(Shell.FISH).init_eval_if_exists("zoxide", ["init", "fish"])
        assert line == 'if type -q "zoxide"; "zoxide" "init" "fish" | source; end\n'

    def test_init_eval_pwsh_out_string(self):
        """The coercion flag pipes through Out-String."""
        plain = Emitter(Shell.PWSH).init_eval_if_exists("starship", ["init", "powershell"])
        coerced = Emitter(Shell.PWSH).init_eval_if_exists("zoxide", ["init", "powershell"], pwsh_out_string=True)
        assert "Out-String" not in plain
        assert "Invoke-Expression (& \"starship\"" in plain
        assert "| Out-String" in coerced

    def test_path_guards_are_runtime_checks(self):
        """Every dialect checks existence and containment in the emitted code."""
        posix = Emitter(Shell.ZSH).path_prepend_if_exists("/opt/x/bin")
        assert posix.startswith('if [ -d "/opt/x/bin" ]')
        assert 'case ":$PATH:"' in posix
        fish = Emitter(Shell.FISH).path_append_if_exists("/opt/x/bin")
        assert "not contains --" in fish
        assert 'set -gx PATH $PATH "/opt/x/bin"' in fish
        pwsh = Emitter(Shell.PWSH).path_prepend_if_exists("C:\\tools")
        assert "-notcontains" in pwsh


# =============================================================================
# Runtime behaviour of emitted PATH code
# =============================================================================

@pytest.mark.skipif(shutil.which("sh") is None, reason="needs sh")
class TestPathMutationExecution:
    """Tests that run the emitted POSIX PATH code."""

    def test_prepend_adds_existing_dir(self, tmp_path):
        """An existing dir is prepended once."""
        d = tmp_path / "bin"
        d.mkdir()
        code = Emitter(Shell.BASH).path_prepend_if_exists(str(d))
        out = run_sh(code + 'printf "%s" "$PATH"', {"PATH": "/usr/bin:/bin"})
        assert out == f"{d}:/usr/bin:/bin"

    def test_prepend_twice_no_duplicate(self, tmp_path):
        """A dir already on PATH leaves PATH unchanged."""
        d = tmp_path / "bin"
        d.mkdir()
        code = Emitter(Shell.BASH).path_prepend_if_exists(str(d))
        start = f"/usr/bin:{d}:/bin"
        out = run_sh(code + code + 'printf "%s" "$PATH"', {"PATH": start})
        assert out == start

    def test_missing_dir_skipped(self, tmp_path):
        """A missing dir is not added."""
        code = Emitter(Shell.BASH).path_append_if_exists(str(tmp_path / "nope"))
        out = run_sh(code + 'printf "%s" "$PATH"', {"PATH": "/usr/bin:/bin"})
        assert out == "/usr/bin:/bin"

    def test_helper_var_unset(self, tmp_path):
        """The temporary variable does not leak."""
        d = tmp_path / "bin"
        d.mkdir()
        code = Emitter(Shell.BASH).path_append_if_exists(str(d))
        out = run_sh(code + 'printf "%s" "${__apogee_dir-unset}"', {"PATH": "/usr/bin:/bin"})
        assert out == "unset"


# =============================================================================
# Env ordering
# =============================================================================

class TestEnvOrdering:
    """Tests for dependency ordering of assignments."""

    def test_extract_refs(self):
        assert extract_refs("$A/${B}/c$") == {"A", "B"}

    def test_referenced_key_first(self):
        """{"A": "$B", "B": "1"} orders B before A."""
        assert order_env_assignments({"A": "$B", "B": "1"}) == [("B", "1"), ("A", "$B")]

    def test_independent_keys_lexical(self):
        assert [k for k, _ in order_env_assignments({"Z": "1", "A": "2", "M": "3"})] == ["A", "M", "Z"]

    def test_chain(self):
        ordered = [k for k, _ in order_env_assignments({"A": "${B}", "B": "$C", "C": "x"})]
        assert ordered == ["C", "B", "A"]

    def test_outside_refs_ignored(self):
        """References to keys outside the block add no edges."""
        ordered = [k for k, _ in order_env_assignments({"B": "$HOME", "A": "1"})]
        assert ordered == ["A", "B"]

    def test_cycle_appended_lexically(self):
        """Cyclic keys come last in lexical order; never an error."""
        ordered = [k for k, _ in order_env_assignments({"Y": "$X", "X": "$Y", "A": "1"})]
        assert ordered == ["A", "X", "Y"]

    def test_self_reference(self):
        """PATH="$PATH:..." is not a cycle."""
        assert order_env_assignments({"PATH": "$PATH:/x"}) == [("PATH", "$PATH:/x")]
