"""
errors.py — Exception Types
============================

Structural problems (bad resolution, inconsistent face set) and I/O
problems are surfaced to the caller.  Sampling problems never raise;
they fall back to zero.
"""


class ConfigurationError(ValueError):
    """Invalid generation parameters, rejected before any work starts."""


class PersistenceError(OSError):
    """Saving or loading an image failed."""
