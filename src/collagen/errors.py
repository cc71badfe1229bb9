from __future__ import annotations


class CollageError(Exception):
    """Base class for errors reported to callers before placement begins."""


class InputError(CollageError):
    """No usable images remain after filtering and decoding the sources."""


class ConfigurationError(CollageError, ValueError):
    """A ``PlacementConfig`` is structurally invalid."""
