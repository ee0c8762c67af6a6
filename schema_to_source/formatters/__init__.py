"""
Post-processing formatters for generated code.
"""

from __future__ import annotations

from .base import Formatter
from .black_formatter import BlackFormatter
from .ruff_formatter import RuffFormatter

_FORMATTERS: dict[str, type[Formatter]] = {
    "black": BlackFormatter,
    "ruff": RuffFormatter,
}


def get_formatter(name: str) -> Formatter:
    """
    Create a formatter by name.

    Raises:
        ValueError: If the name is not a known formatter
    """
    try:
        return _FORMATTERS[name]()
    except KeyError:
        raise ValueError(f"Unknown formatter: {name!r} (expected one of {', '.join(sorted(_FORMATTERS))})") from None


__all__ = [
    "BlackFormatter",
    "Formatter",
    "RuffFormatter",
    "get_formatter",
]
