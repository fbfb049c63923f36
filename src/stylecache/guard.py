"""
Optimistic consistency between the base entry and its derived entries.

The base key is watched before it is read to decide what to render, and
the resulting writes go out as one conditional transaction. If the base
changed in between, nothing is written and no error is raised: the
caller already holds a correct document for its own request, and the
next miss regenerates against the new base. No locks are taken, so
concurrent misses may each render.
"""

from __future__ import annotations

import logging
from typing import Dict, List, Optional

from .observability import CacheStats
from .store import StoreConnection

logger = logging.getLogger(__name__)


class ConsistencyGuard:
    def __init__(
        self,
        conn: StoreConnection,
        base_key: str,
        derived_prefix: str,
        stats: Optional[CacheStats] = None,
    ):
        self.conn = conn
        self.base_key = base_key
        self.derived_prefix = derived_prefix
        self.stats = stats or CacheStats()

    def watch_base(self) -> Optional[str]:
        """Watch the base key, then read it. Returns the raw stored payload."""
        self.conn.watch(self.base_key)
        return self.conn.get(self.base_key)

    def commit(self, writes: Dict[str, str]) -> bool:
        """
        Write all of ``writes`` or none of them.

        Returns:
            False if the watched base changed and the transaction was discarded
        """
        landed = self.conn.commit(writes)

        if landed:
            self.stats.commits += 1
            logger.info(f"Stored {', '.join(sorted(writes))}")
        else:
            self.stats.aborted_commits += 1
            logger.warning(
                f"Discarded write of {', '.join(sorted(writes))}: "
                f"{self.base_key} changed since it was watched"
            )
        return landed

    def invalidate_derived(self) -> List[str]:
        """Delete every extended key derived from the base key."""
        keys = self.conn.keys_with_prefix(self.derived_prefix)
        if keys:
            self.conn.delete(*keys)
            self.stats.invalidated_keys += len(keys)
            logger.info(f"Invalidated {len(keys)} derived keys of {self.base_key}")
        return keys

    def delete_base(self) -> bool:
        removed = self.conn.delete(self.base_key)
        if removed:
            logger.info(f"Deleted {self.base_key}")
        return bool(removed)
