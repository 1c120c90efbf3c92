"""Scoring services: event log, validation, match control, undo and broadcast."""

from . import broadcast, controller, event_store, roster, undo, validation

__all__ = [
    "broadcast",
    "controller",
    "event_store",
    "roster",
    "undo",
    "validation",
]
