"""Shell dialect emitters and quoting."""

from .emitter import Emitter
from .ordering import extract_refs, order_env_assignments
from .quoting import (
    quote_fish,
    quote_posix,
    quote_posix_single,
    quote_pwsh,
    rewrite_env_refs_for_pwsh,
)

__all__ = [
    "Emitter",
    "extract_refs",
    "order_env_assignments",
    "quote_fish",
    "quote_posix",
    "quote_posix_single",
    "quote_pwsh",
    "rewrite_env_refs_for_pwsh",
]
