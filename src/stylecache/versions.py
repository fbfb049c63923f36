"""Staleness and migration decisions against the configured target version."""

from __future__ import annotations

import logging
from typing import Optional

from packaging.version import InvalidVersion, Version

from .errors import MigrationError

logger = logging.getLogger(__name__)


def version_predates(version: str, boundary: str) -> bool:
    """
    True if ``version`` sorts before ``boundary``. Used for default-style selection only.

    A version that does not parse, such as "latest", never predates anything.
    """
    try:
        return Version(version) < Version(boundary)
    except InvalidVersion:
        logger.debug(f"Unparseable version {version!r}, treating it as current")
        return False


class VersionResolver:
    """
    Cache validity uses exact equality with the target version. Range
    comparison is never used to accept a cached document.
    """

    def __init__(self, target_version: str, default_style_version: str):
        self.target_version = target_version
        self.default_style_version = default_style_version

    def style_version(self, version: Optional[str]) -> str:
        return version or self.default_style_version

    def is_stale(self, artifact_version: Optional[str]) -> bool:
        return not artifact_version or artifact_version != self.target_version

    def needs_migration(self, style_version: Optional[str], target_version: Optional[str] = None) -> bool:
        target = target_version or self.target_version
        return self.style_version(style_version) != target

    def migrate(self, migrator, style: str, style_version: Optional[str]) -> str:
        """
        Upgrade ``style`` to the target version.

        Returns the style unchanged when no migration is needed. Any failure
        in the migrator is raised as MigrationError with the original message.
        """
        from_version = self.style_version(style_version)
        if not self.needs_migration(from_version):
            return style
        if migrator is None:
            raise MigrationError(
                f"Style version {from_version} needs migration to "
                f"{self.target_version} but no migrator is configured"
            )

        logger.debug(f"Migrating style from {from_version} to {self.target_version}")
        try:
            return migrator.transform(style, from_version, self.target_version)
        except MigrationError:
            raise
        except Exception as exc:  # noqa: BLE001
            raise MigrationError(str(exc)) from exc
