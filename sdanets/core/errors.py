"""Structural errors raised while building or training a stack."""

from __future__ import annotations


class ConfigurationError(ValueError):
    """Raised when a network is configured with inconsistent structure."""


class FrozenStackError(ConfigurationError):
    """Raised when the hidden layers of a finalised stack are changed."""


class StackNotFinalizedError(ConfigurationError):
    """Raised when supervised operations run before the output layer exists."""


class ShapeMismatchError(ConfigurationError):
    """Raised when arrays handed to a layer do not match its dimensions."""


__all__ = [
    "ConfigurationError",
    "FrozenStackError",
    "StackNotFinalizedError",
    "ShapeMismatchError",
]
