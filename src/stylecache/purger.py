"""
Localized resource cache cleanup.

Each identity owns <cachedir>/<dbname>/<table>/{base,cache}. Nothing in
there is shared with another identity, so the cache half can be emptied
whenever the stored style for the identity changes.
"""

from __future__ import annotations

import logging
import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import List, Tuple
from urllib.parse import quote

from .errors import FilesystemError
from .identity import Identity

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class ResourcePaths:
    base: Path
    cache: Path

    @classmethod
    def for_identity(cls, cachedir: Path, identity: Identity) -> "ResourcePaths":
        # Percent-encode so "a/b" and "a" + "b" never share a directory
        root = Path(cachedir) / quote(identity.dbname, safe="") / quote(identity.table, safe="")
        return cls(base=root / "base", cache=root / "cache")


@dataclass
class PurgeResult:
    removed: int = 0
    failed: List[Tuple[str, str]] = field(default_factory=list)

    @property
    def attempted(self) -> int:
        return self.removed + len(self.failed)


class ResourceCachePurger:
    def __init__(self, paths: ResourcePaths):
        self.paths = paths

    def purge(self) -> PurgeResult:
        """
        Delete every regular file in the cache directory.

        A missing directory means there is nothing to clear. A file that
        cannot be removed is logged and skipped; the purge still completes
        once every entry has been attempted.

        Raises:
            FilesystemError: the directory exists but cannot be listed
        """
        result = PurgeResult()
        toclear = self.paths.cache

        try:
            entries = list(os.scandir(toclear))
        except FileNotFoundError:
            logger.debug(f"Nothing to purge in {toclear}")
            return result
        except OSError as exc:
            raise FilesystemError(f"Cannot list {toclear}: {exc}") from exc

        for entry in entries:
            if not entry.is_file(follow_symlinks=False):
                continue
            try:
                os.unlink(entry.path)
                result.removed += 1
            except OSError as exc:
                logger.warning(f"Error unlinking {entry.path}: {exc}")
                result.failed.append((entry.path, str(exc)))

        if result.attempted:
            logger.info(
                f"Purged {result.removed} localized resources from {toclear}"
                f" ({len(result.failed)} failed)"
            )
        return result
