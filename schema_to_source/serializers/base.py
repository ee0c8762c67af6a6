"""
Base class for fragment serializers.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from typing import Any

from ..imports import ImportStatement


class FragmentSerializer(ABC):
    """Turns buffered fragments and resolved imports into source text.

    The emission buffer never looks inside a fragment; it only hands the
    concatenated fragment list of a file to ``serialize``.
    """

    @abstractmethod
    def serialize(self, fragments: list[Any]) -> str:
        """
        Serialize a file's fragment list to source code.

        Args:
            fragments: Fragments in emission order

        Returns:
            Source code for the file body
        """

    @abstractmethod
    def render_imports(self, statements: list[ImportStatement]) -> str:
        """
        Render merged import statements as an import block.

        Args:
            statements: Import statements, one per source module

        Returns:
            The import block, or an empty string
        """

    def normalize(self, code: str) -> str:
        """
        Apply formatting normalization to a serialized body.

        Args:
            code: Serialized body

        Returns:
            Normalized code
        """
        return code

    def assemble(self, header: str | None, import_block: str, body: str) -> str:
        """Join header, import block and body into the final file text."""
        sections = [section for section in (import_block, body) if section]
        return (header or "") + "\n\n".join(sections)
