"""Error taxonomy for the style cache."""

from __future__ import annotations


class StyleCacheError(Exception):
    """Base class for every error raised by the style cache."""


class ConfigurationError(StyleCacheError):
    """Missing identity fields, or no default style for a geometry type."""


class MigrationError(StyleCacheError):
    """Style source could not be upgraded to the target version."""


class CompileError(StyleCacheError):
    """The style compiler rejected the resolved style."""


class StoreError(StyleCacheError):
    """Key-value store connectivity, transaction or payload failure."""


class FilesystemError(StyleCacheError):
    """Resource cache directory could not be listed."""
