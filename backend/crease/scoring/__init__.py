"""Cricket scoring engine and match control transitions."""

from . import control, cricket

__all__ = [
    "control",
    "cricket",
]
