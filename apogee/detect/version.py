"""Version probes run after a module has been detected.

Every probe degrades to None on IO or subprocess failure. Only a
malformed regex is fatal, since that is a config bug rather than a
property of the host.
"""

import configparser
import logging
import plistlib
import re
import subprocess
from pathlib import Path
from typing import Mapping, Optional

from apogee.core.platform import Platform
from apogee.core.regex import compile_regex
from apogee.core.resolver import Resolver
from apogee.models import (
    CommandVersion,
    DesktopEntryVersion,
    FileVersionInfo,
    PathRegexVersion,
    PlistVersion,
    VersionDetect,
)

logger = logging.getLogger(__name__)

DEFAULT_PROBE_TIMEOUT = 5.0


def extract_capture(regex: re.Pattern, text: str, capture: str) -> Optional[str]:
    """Named capture group if present, else group 1, else None."""
    match = regex.search(text)
    if match is None:
        return None
    value = match.groupdict().get(capture)
    if value is None and regex.groups >= 1:
        value = match.group(1)
    return value or None


def first_line(text: str) -> Optional[str]:
    for line in text.splitlines():
        line = line.strip()
        if line:
            return line
    return None


class VersionProber:
    """Runs version probes for one detected module.

    Example:
        prober = VersionProber(ctx.platform, resolver.with_detect(record))
        prober.probe(CommandVersion(command="uv", args=["--version"]), record)
    """

    def __init__(
        self,
        platform: Platform,
        resolver: Resolver,
        timeout: float = DEFAULT_PROBE_TIMEOUT,
        owner: str = "",
    ):
        self.platform = platform
        self.resolver = resolver
        self.timeout = timeout
        self.owner = owner

    def probe(self, variant: VersionDetect, record: Mapping[str, str]) -> Optional[str]:
        """Run one variant.

        Args:
            variant: Version probe from the module's detect.version
            record: Detection record of the module

        Returns:
            Version text, or None

        Raises:
            ConfigurationError: If the variant's regex is malformed
        """
        if isinstance(variant, CommandVersion):
            regex = compile_regex(variant.regex, self._field("command")) if variant.regex is not None else None
            text = self._run_command(variant, record)
            if text is None:
                return None
            if regex is None:
                return first_line(text)
            return extract_capture(regex, text, variant.capture)

        if isinstance(variant, PathRegexVersion):
            target = record.get("path") or record.get("file") or record.get("command")
            regex = compile_regex(variant.regex, self._field("path_regex"))
            if not target:
                return None
            return extract_capture(regex, target, variant.capture)

        if isinstance(variant, PlistVersion):
            text = self._read_plist(variant, record) if self.platform is Platform.MAC else None
        elif isinstance(variant, FileVersionInfo):
            text = self._read_file_version(variant, record) if self.platform is Platform.WINDOWS else None
        elif isinstance(variant, DesktopEntryVersion):
            text = self._read_desktop_entry(variant, record) if self.platform is Platform.LINUX else None
        else:
            return None

        if variant.regex is not None:
            # validate even when the probe was a no-op on this platform
            regex = compile_regex(variant.regex, self._field(variant.type))
            return extract_capture(regex, text, variant.capture) if text else None
        return text.strip() if text and text.strip() else None

    def _field(self, name: str) -> str:
        return f"{self.owner}: detect.version.{name}" if self.owner else f"detect.version.{name}"

    # ------------------------------------------------------------------
    # command
    # ------------------------------------------------------------------

    def _run_command(self, variant: CommandVersion, record: Mapping[str, str]) -> Optional[str]:
        command = record.get("command_path") or self.resolver.resolve(variant.command)
        args = self.resolver.resolve_all(variant.args)
        return self._capture([command, *args])

    def _capture(self, argv: list[str]) -> Optional[str]:
        """Run argv and return stdout, or stderr when stdout is empty."""
        try:
            result = subprocess.run(
                argv,
                capture_output=True,
                text=True,
                errors="replace",
                timeout=self.timeout,
            )
        except subprocess.TimeoutExpired:
            logger.debug(f"Version probe timed out after {self.timeout}s: {argv[0]}")
            return None
        except (OSError, subprocess.SubprocessError) as e:
            logger.debug(f"Version probe failed to start {argv[0]}: {e}")
            return None

        if result.returncode != 0:
            logger.debug(f"Version probe {argv[0]} exited with {result.returncode}")
            return None

        stdout = (result.stdout or "").strip()
        stderr = (result.stderr or "").strip()
        return stdout or stderr or None

    # ------------------------------------------------------------------
    # platform metadata
    # ------------------------------------------------------------------

    def _target(self, explicit: Optional[str], record: Mapping[str, str]) -> Optional[str]:
        if explicit:
            return self.resolver.resolve(explicit)
        return record.get("path") or record.get("file") or record.get("command_path")

    def _read_plist(self, variant: PlistVersion, record: Mapping[str, str]) -> Optional[str]:
        if variant.plist:
            plist_path = Path(self.resolver.resolve(variant.plist))
        else:
            bundle = record.get("path") or record.get("file")
            if not bundle:
                return None
            plist_path = Path(bundle) / "Contents" / "Info.plist"

        try:
            with open(plist_path, "rb") as f:
                data = plistlib.load(f)
        except (OSError, plistlib.InvalidFileException, ValueError) as e:
            logger.debug(f"Cannot read {plist_path}: {e}")
            return None

        value = data.get(variant.key) if isinstance(data, dict) else None
        return str(value) if value is not None else None

    def _read_file_version(self, variant: FileVersionInfo, record: Mapping[str, str]) -> Optional[str]:
        target = self._target(variant.file, record)
        if not target:
            return None
        literal = target.replace("'", "''")
        script = f"(Get-Item -LiteralPath '{literal}').VersionInfo.{variant.field}"
        return self._capture(["powershell", "-NoProfile", "-NonInteractive", "-Command", script])

    def _read_desktop_entry(self, variant: DesktopEntryVersion, record: Mapping[str, str]) -> Optional[str]:
        target = self._target(variant.file, record)
        if not target:
            return None

        parser = configparser.ConfigParser(interpolation=None, strict=False)
        parser.optionxform = str
        try:
            with open(target, encoding="utf-8", errors="replace") as f:
                parser.read_file(f)
        except (OSError, configparser.Error) as e:
            logger.debug(f"Cannot read desktop entry {target}: {e}")
            return None

        if not parser.has_option(variant.section, variant.key):
            return None
        return parser.get(variant.section, variant.key)
