"""
Shared exception types.

Insufficient data (incomplete windows, short forward horizons, empty input)
is never an error: it is returned as None, an empty array or a partial result.
"""


class ConfigurationError(ValueError):
    """Invalid component configuration, raised at construction time."""


class StorageError(RuntimeError):
    """A storage or messaging backend failed."""
