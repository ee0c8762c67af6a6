"""
Base class for code formatters.
"""

from __future__ import annotations

from abc import ABC, abstractmethod

from ..config import FormatterConfig


class Formatter(ABC):
    """Post-processing step applied to finalized Python files."""

    @abstractmethod
    def format(self, code: str, config: FormatterConfig) -> str:
        """
        Format the given code.

        Args:
            code: The source code to format
            config: Formatter configuration

        Returns:
            Formatted code, or the input unchanged if formatting is not possible
        """

    @abstractmethod
    def is_available(self) -> bool:
        """
        Check if the formatter can be used (tool installed).

        Returns:
            True if the formatter can be used
        """
