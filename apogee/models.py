"""Declarative config tree for apogee.

The tree is format-agnostic: the loader in apogee.config parses YAML or
TOML into plain data and validates it against these models.
"""

from enum import Enum
from typing import Annotated, Any, Literal, Optional, Union

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator

from apogee.core.deps import DEFAULT_PRIORITY
from apogee.core.errors import ConfigurationError
from apogee.core.platform import Platform, Shell
from apogee.core.regex import compile_regex


class _Model(BaseModel):
    model_config = ConfigDict(extra="forbid", frozen=True, populate_by_name=True)


# =============================================================================
# Detection
# =============================================================================

class AnyOf(_Model):
    """Ordered candidates; the first one that matches wins."""

    any_of: list[str] = Field(default_factory=list)


class PlatformAnyOf(_Model):
    """Candidates partitioned by platform."""

    mac: AnyOf = Field(default_factory=AnyOf)
    linux: AnyOf = Field(default_factory=AnyOf)
    windows: AnyOf = Field(default_factory=AnyOf)
    wsl: AnyOf = Field(default_factory=AnyOf)
    other: AnyOf = Field(default_factory=AnyOf)

    def for_platform(self, platform: Platform) -> list[str]:
        return getattr(self, platform.value).any_of


class _Refinement(_Model):
    regex: Optional[str] = Field(
        default=None,
        description="Regex applied to the extracted text",
    )
    capture: str = Field(
        default="version",
        description="Named group to extract; falls back to group 1",
    )

    @field_validator("regex")
    @classmethod
    def _check_regex(cls, value: Optional[str]) -> Optional[str]:
        if value is not None:
            try:
                compile_regex(value)
            except ConfigurationError as e:
                raise ValueError(str(e)) from e
        return value


class CommandVersion(_Refinement):
    """Run a command and read the version from its output."""

    type: Literal["command"] = "command"
    command: str
    args: list[str] = Field(default_factory=list)


class PathRegexVersion(_Refinement):
    """Extract the version from the detected path, file or command."""

    type: Literal["path_regex"] = "path_regex"
    regex: str


class PlistVersion(_Refinement):
    """macOS: read a key from an app bundle's Info.plist."""

    type: Literal["plist"] = "plist"
    key: str = "CFBundleShortVersionString"
    plist: Optional[str] = Field(
        default=None,
        description="Explicit plist path; defaults to <bundle>/Contents/Info.plist",
    )


class FileVersionInfo(_Refinement):
    """Windows: read a field of a binary's version resource."""

    type: Literal["file_version"] = "file_version"
    field: str = "FileVersion"
    file: Optional[str] = None


class DesktopEntryVersion(_Refinement):
    """Linux: read a key from a .desktop entry."""

    type: Literal["desktop_entry"] = "desktop_entry"
    key: str = "X-AppImage-Version"
    file: Optional[str] = None
    section: str = "Desktop Entry"


VersionDetect = Annotated[
    Union[
        CommandVersion,
        PathRegexVersion,
        PlistVersion,
        FileVersionInfo,
        DesktopEntryVersion,
    ],
    Field(discriminator="type"),
]


class VersionDetectSpec(_Model):
    """Version probes per platform; `all` applies where a platform has none."""

    all: list[VersionDetect] = Field(default_factory=list)
    mac: list[VersionDetect] = Field(default_factory=list)
    linux: list[VersionDetect] = Field(default_factory=list)
    windows: list[VersionDetect] = Field(default_factory=list)
    wsl: list[VersionDetect] = Field(default_factory=list)
    other: list[VersionDetect] = Field(default_factory=list)

    @field_validator("all", "mac", "linux", "windows", "wsl", "other", mode="before")
    @classmethod
    def _wrap_single(cls, value: Any) -> Any:
        if value is None:
            return []
        if isinstance(value, dict):
            return [value]
        return value

    def for_platform(self, platform: Platform) -> list[VersionDetect]:
        specific = getattr(self, platform.value)
        return specific or self.all


class DetectSpec(_Model):
    """Presence strategies, tried in order env > commands > files > paths."""

    env: AnyOf = Field(default_factory=AnyOf)
    commands: AnyOf = Field(default_factory=AnyOf)
    files: PlatformAnyOf = Field(default_factory=PlatformAnyOf)
    paths: PlatformAnyOf = Field(default_factory=PlatformAnyOf)
    version: Optional[VersionDetectSpec] = None


# =============================================================================
# Emission
# =============================================================================

class FileList(_Model):
    files: list[str] = Field(default_factory=list)


class PathsEmit(_Model):
    prepend_if_exists: list[str] = Field(default_factory=list)
    append_if_exists: list[str] = Field(default_factory=list)


class EmitInit(_Model):
    """A tool init command whose output is evaluated by the shell."""

    command: str
    args: list[str] = Field(default_factory=list)
    # zoxide needs `| Out-String` under PowerShell, starship does not
    pwsh_out_string: bool = False


class EmitSpec(_Model):
    env: dict[str, str] = Field(default_factory=dict)
    env_derived: dict[str, str] = Field(default_factory=dict)
    aliases: dict[str, str] = Field(default_factory=dict)
    source: FileList = Field(default_factory=FileList)
    functions: FileList = Field(default_factory=FileList)
    paths: PathsEmit = Field(default_factory=PathsEmit)
    init: list[EmitInit] = Field(default_factory=list)


# =============================================================================
# Modules and groups
# =============================================================================

class ModuleSpec(_Model):
    """A detectable unit of shell configuration (cloud or apps group)."""

    name: str = ""
    group: str = ""
    enabled: bool = True
    kind: Optional[str] = None
    priority: int = DEFAULT_PRIORITY
    platforms: list[Platform] = Field(default_factory=list)
    requires: list[str] = Field(default_factory=list)
    detect: DetectSpec = Field(default_factory=DetectSpec)
    emit: EmitSpec = Field(default_factory=EmitSpec)

    @property
    def key(self) -> str:
        return f"{self.group}.{self.name}"

    def supports_platform(self, platform: Platform) -> bool:
        return not self.platforms or platform in self.platforms


class ShellTemplates(_Model):
    """Template file per shell; `posix` covers zsh and bash."""

    zsh: Optional[str] = None
    bash: Optional[str] = None
    fish: Optional[str] = None
    pwsh: Optional[str] = None
    posix: Optional[str] = None

    def for_shell(self, shell: Shell) -> Optional[str]:
        specific = getattr(self, shell.value)
        if specific is None and shell.is_posix:
            return self.posix
        return specific


class TemplateModule(_Model):
    name: str = ""
    group: str = "templates"
    enabled: bool = True
    priority: int = DEFAULT_PRIORITY
    platforms: list[Platform] = Field(default_factory=list)
    requires: list[str] = Field(default_factory=list)
    templates: ShellTemplates = Field(default_factory=ShellTemplates)
    data: dict[str, Any] = Field(default_factory=dict)

    @property
    def key(self) -> str:
        return f"{self.group}.{self.name}"

    def supports_platform(self, platform: Platform) -> bool:
        return not self.platforms or platform in self.platforms


class HookItem(_Model):
    """A script sourced when platform, host and shell filters all match."""

    name: str
    enabled: bool = True
    priority: int = DEFAULT_PRIORITY
    platforms: list[Platform] = Field(default_factory=list)
    hosts: list[str] = Field(default_factory=list)
    shells: list[Shell] = Field(default_factory=list)
    requires: list[str] = Field(default_factory=list)
    script: str

    @property
    def key(self) -> str:
        return f"hooks.{self.name}"


def _split_group_items(data: Any) -> Any:
    """Accept module entries flat beside `enabled` or nested under `items`."""
    if not isinstance(data, dict) or "items" in data:
        return data
    items = {k: v for k, v in data.items() if k != "enabled"}
    out: dict[str, Any] = {"items": items}
    if "enabled" in data:
        out["enabled"] = data["enabled"]
    return out


def _named_items(items: dict[str, Any], group: str) -> dict[str, Any]:
    named = {}
    for name, item in items.items():
        if isinstance(item, BaseModel):
            named[name] = item.model_copy(update={"name": name, "group": group})
        elif isinstance(item, dict):
            named[name] = {**item, "name": name, "group": group}
        else:
            named[name] = item
    return named


class ModuleGroup(_Model):
    """The cloud or apps group: name -> ModuleSpec."""

    enabled: bool = True
    items: dict[str, ModuleSpec] = Field(default_factory=dict)

    @model_validator(mode="before")
    @classmethod
    def _flatten(cls, data: Any) -> Any:
        return _split_group_items(data)


class TemplateGroup(_Model):
    enabled: bool = True
    items: dict[str, TemplateModule] = Field(default_factory=dict)

    @model_validator(mode="before")
    @classmethod
    def _flatten(cls, data: Any) -> Any:
        data = _split_group_items(data)
        if isinstance(data, dict) and isinstance(data.get("items"), dict):
            data = {**data, "items": _named_items(data["items"], "templates")}
        return data


class HookGroup(_Model):
    enabled: bool = True
    items: list[HookItem] = Field(default_factory=list)

    @model_validator(mode="after")
    def _unique_names(self) -> "HookGroup":
        seen: set[str] = set()
        for hook in self.items:
            if hook.name in seen:
                raise ValueError(f"duplicate hook name '{hook.name}'")
            seen.add(hook.name)
        return self


class ModulesRoot(_Model):
    enable_cloud: bool = True
    enable_apps: bool = True
    enable_hooks: bool = True
    enable_templates: bool = True
    cloud: ModuleGroup = Field(default_factory=ModuleGroup)
    apps: ModuleGroup = Field(default_factory=ModuleGroup)
    hooks: HookGroup = Field(default_factory=HookGroup)
    templates: TemplateGroup = Field(default_factory=TemplateGroup)

    @model_validator(mode="before")
    @classmethod
    def _name_modules(cls, data: Any) -> Any:
        if not isinstance(data, dict):
            return data
        data = dict(data)
        for group in ("cloud", "apps"):
            raw = _split_group_items(data.get(group))
            if isinstance(raw, dict) and isinstance(raw.get("items"), dict):
                data[group] = {**raw, "items": _named_items(raw["items"], group)}
        return data

    def group(self, name: str) -> ModuleGroup:
        return getattr(self, name)

    def group_enabled(self, name: str) -> bool:
        return getattr(self, f"enable_{name}") and getattr(self, name).enabled


# =============================================================================
# Top level
# =============================================================================

class SecretsStrategy(str, Enum):
    """How env/secrets files merge into the runtime vars."""

    FILL_MISSING = "fill_missing"
    OVERRIDE = "override"


class BootstrapDefaults(_Model):
    env: dict[str, str] = Field(default_factory=dict)


class BootstrapSecrets(_Model):
    strategy: SecretsStrategy = SecretsStrategy.FILL_MISSING


class BootstrapConfig(_Model):
    defaults: BootstrapDefaults = Field(default_factory=BootstrapDefaults)
    secrets: BootstrapSecrets = Field(default_factory=BootstrapSecrets)


class ApogeeMeta(_Model):
    schema_version: int = 1
    default_shell: Shell = Shell.ZSH
    platforms: list[Platform] = Field(default_factory=list)
    env_file: Optional[str] = Field(
        default=None,
        description='Dotenv merged into the runtime vars; defaults to "{config_dir}/.env"',
    )
    secrets_file: Optional[str] = None
    bootstrap: Optional[BootstrapConfig] = None


class GlobalAliases(_Model):
    platform: dict[Platform, dict[str, str]] = Field(default_factory=dict)
    shell: dict[Shell, dict[str, str]] = Field(default_factory=dict)


class GlobalConfig(_Model):
    aliases: GlobalAliases = Field(default_factory=GlobalAliases)


class Config(_Model):
    """Root of the config file."""

    apogee: ApogeeMeta = Field(default_factory=ApogeeMeta)
    modules: ModulesRoot = Field(default_factory=ModulesRoot)
    global_: GlobalConfig = Field(default_factory=GlobalConfig, alias="global")
