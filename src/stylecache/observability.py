"""Cache counters and a plain-text report."""

from __future__ import annotations

import time
from dataclasses import dataclass, field
from typing import Any, Dict


@dataclass
class CacheStats:
    hits: int = 0
    misses: int = 0
    renders: int = 0
    commits: int = 0
    aborted_commits: int = 0
    invalidated_keys: int = 0
    purged_files: int = 0
    start_time: float = field(default_factory=time.time)

    def get_stats(self) -> Dict[str, Any]:
        total_requests = self.hits + self.misses
        hit_rate = (self.hits / total_requests * 100) if total_requests > 0 else 0

        return {
            "hits": self.hits,
            "misses": self.misses,
            "hit_rate_percent": round(hit_rate, 1),
            "total_requests": total_requests,
            "renders": self.renders,
            "commits": self.commits,
            "aborted_commits": self.aborted_commits,
            "invalidated_keys": self.invalidated_keys,
            "purged_files": self.purged_files,
            "uptime_seconds": int(time.time() - self.start_time),
        }

    def print_report(self) -> None:
        stats = self.get_stats()

        print("\n" + "=" * 60)
        print("STYLE CACHE REPORT")
        print("=" * 60)
        print(f"Hit Rate: {stats['hit_rate_percent']}% ({stats['hits']}/{stats['total_requests']})")
        print(f"Renders: {stats['renders']} | Commits: {stats['commits']} "
              f"| Discarded: {stats['aborted_commits']}")
        print(f"Invalidated keys: {stats['invalidated_keys']} | Purged files: {stats['purged_files']}")
        print(f"Uptime: {stats['uptime_seconds']}s")
        print("=" * 60 + "\n")
