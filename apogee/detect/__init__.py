"""Presence and version detection for modules."""

from apogee.detect.commands import fallback_command_dirs, pathext_list, resolve_command
from apogee.detect.detector import DetectedModule, Detector
from apogee.detect.patterns import first_path_match, glob_to_regex
from apogee.core.regex import compile_regex
from apogee.detect.version import VersionProber, extract_capture

__all__ = [
    "Detector",
    "DetectedModule",
    "VersionProber",
    "compile_regex",
    "extract_capture",
    "fallback_command_dirs",
    "first_path_match",
    "glob_to_regex",
    "pathext_list",
    "resolve_command",
]
