"""Scoring rules for completed matches."""

from . import tennis

__all__ = ["tennis"]
