"""
Utility functions shared by the generation core.
"""

import json
import re
from typing import Any

# Regex pattern to split text into words, handling camelCase boundaries
_WORD_PATTERN = re.compile(r"[a-z]+|[A-Z][a-z]*|[0-9]+")


def _normalize_separators(text: str) -> str:
    """Normalize separators (underscores, hyphens) to spaces."""
    return text.replace("_", " ").replace("-", " ")


def _split_into_words(text: str) -> list[str]:
    """Split text into words, handling camelCase boundaries."""
    return _WORD_PATTERN.findall(text)


def to_snake_case(text: str) -> str:
    """Convert PascalCase, camelCase or kebab-case text to snake_case.

    Examples:
        "User" -> "user"
        "UserEmail" -> "user_email"
        "user-queries" -> "user_queries"

    Args:
        text: The text to convert

    Returns:
        snake_case string
    """
    if not text:
        return ""
    return "_".join(word.lower() for word in _split_into_words(_normalize_separators(text)))


def canonical_json(params: Any) -> str:
    """Serialize request params to a canonical JSON string.

    Object keys are sorted so that logically identical params always produce
    the same string regardless of insertion order. ``None`` is treated as
    an empty object.
    """
    if params is None:
        params = {}
    return json.dumps(params, sort_keys=True, separators=(",", ":"), default=str)


def request_key(kind: str, params: Any) -> str:
    """Build the cache/deduplication key for a (kind, params) request."""
    return f"{kind}::{canonical_json(params)}"


def describe_request(kind: str, params: Any) -> str:
    """Human-readable form of a request, used in cycle reports."""
    if not params:
        return kind
    return f"{kind}({canonical_json(params)})"


def normalize_path(path: str) -> str:
    """Normalize an output path to POSIX form.

    Backslashes become forward slashes and a leading "./" is removed,
    so paths compare equal regardless of the separator used to build them.
    """
    normalized = path.replace("\\", "/")
    while normalized.startswith("./"):
        normalized = normalized[2:]
    return normalized
