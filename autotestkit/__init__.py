"""Helpers for black-box autotests: background processes, port checks and random test data."""

__version__ = "0.1.0"
__all__ = ["process", "randomdata"]