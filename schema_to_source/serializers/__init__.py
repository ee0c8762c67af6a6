"""
Serializers turning buffered fragments into file text.
"""

from __future__ import annotations

from .base import FragmentSerializer
from .python_serializer import PythonSerializer

__all__ = [
    "FragmentSerializer",
    "PythonSerializer",
]
