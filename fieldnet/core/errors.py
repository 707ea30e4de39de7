"""Exception hierarchy for fieldnet."""

from __future__ import annotations


class FieldNetError(Exception):
    """Base class for every error raised by fieldnet."""


class ShapeMismatchError(FieldNetError, ValueError):
    """A vector, tensor or record disagrees with the configured layer dims."""


class UninitializedModelError(FieldNetError, RuntimeError):
    """Weights were requested before they were initialised or imported."""


class SerializationError(FieldNetError, ValueError):
    """A model record is malformed or has an incompatible version."""


__all__ = [
    "FieldNetError",
    "ShapeMismatchError",
    "UninitializedModelError",
    "SerializationError",
]
