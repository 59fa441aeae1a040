"""Platform and shell enumerations."""

from enum import Enum
from typing import Optional


class Platform(str, Enum):
    """Host platform. WSL is reported separately from plain Linux."""

    MAC = "mac"
    LINUX = "linux"
    WINDOWS = "windows"
    WSL = "wsl"
    OTHER = "other"

    @property
    def path_sep(self) -> str:
        """Delimiter used between PATH entries."""
        return ";" if self is Platform.WINDOWS else ":"

    @property
    def path_key(self) -> str:
        """Canonical casing of the PATH variable name."""
        return "Path" if self is Platform.WINDOWS else "PATH"

    def __str__(self) -> str:
        return self.value


class Shell(str, Enum):
    """Target shell dialect.

    zsh and bash share the POSIX export syntax, fish is the structured
    dialect and pwsh the object dialect.
    """

    ZSH = "zsh"
    BASH = "bash"
    FISH = "fish"
    PWSH = "pwsh"

    @classmethod
    def _missing_(cls, value):
        if isinstance(value, str):
            normalized = value.strip().lower()
            if normalized == "powershell":
                return cls.PWSH
            for member in cls:
                if member.value == normalized:
                    return member
        return None

    @classmethod
    def parse(cls, value: Optional[str]) -> Optional["Shell"]:
        """Parse a shell name leniently.

        Args:
            value: Shell name such as "zsh" or "PowerShell"

        Returns:
            Matching Shell, or None for empty or unknown names
        """
        if not value or not value.strip():
            return None
        try:
            return cls(value)
        except ValueError:
            return None

    @property
    def is_posix(self) -> bool:
        return self in (Shell.ZSH, Shell.BASH)

    @property
    def family(self) -> str:
        """Dialect family name: posix, fish or pwsh."""
        if self is Shell.FISH:
            return "fish"
        if self is Shell.PWSH:
            return "pwsh"
        return "posix"

    def __str__(self) -> str:
        return self.value
