#!/usr/bin/env python3
"""
Style Cache — compiled stylesheets per table, versioned and invalidated

Implements:
- init() → CompiledArtifact for the active key (base or extended)
- render(style, version) → CompiledArtifact, no store access
- get_style(convert) → StyleRecord stored on the base key
- set_style(style, version, convert) → store, recompile, drop derived keys
- del_style() → drop base and derived keys
- reset_style(convert) → recompile the stored style in place
- to_xml() → the rendering document only

Every store operation runs inside ``pool.lease()``: a failure at any step
skips the remaining steps, and the connection is released either way.

    init():  lease → read active key ─ hit ──────────────────────→ release
                                     └ miss → resolve style → render
                                              → conditional commit → release
"""

import logging
from typing import Optional

from .collaborators import (
    CartoCompiler,
    HTTPResourceLocalizer,
    ResourceLocalizer,
    StyleCompiler,
    StyleMigrator,
)
from .config import StyleCacheConfig
from .document import style_document
from .entries import CacheEntry, CompiledArtifact, EntryDecodeError, StyleRecord
from .errors import CompileError, StoreError
from .guard import ConsistencyGuard
from .identity import Identity, StyleOverride
from .key_deriver import KeyDeriver
from .observability import CacheStats
from .purger import ResourceCachePurger, ResourcePaths
from .store import StoreConnection, StylePool
from .versions import VersionResolver

logger = logging.getLogger(__name__)


class StyleCache:
    """
    Cache controller for one identity (database table + request overrides).

    Design:
    - the base key holds the authoritative style and its compiled document
    - an extended key holds only a compiled document for one sql filter
      and/or style override, and is deleted whenever the base changes
    - a document is valid only if it was compiled for exactly the target
      version
    - an active style override is never persisted, it lives in the key
    """

    def __init__(
        self,
        pool: StylePool,
        identity: Identity,
        config: Optional[StyleCacheConfig] = None,
        compiler: Optional[StyleCompiler] = None,
        localizer: Optional[ResourceLocalizer] = None,
        migrator: Optional[StyleMigrator] = None,
        stats: Optional[CacheStats] = None,
        keys: Optional[KeyDeriver] = None,
    ):
        self.pool = pool
        self.identity = identity
        self.config = config or StyleCacheConfig()
        self.versions = VersionResolver(self.config.target_version, self.config.default_style_version)

        self.compiler = compiler or CartoCompiler(
            self.config.target_version, self.config.compiler_bin, self.config.compiler_timeout
        )
        self.localizer = localizer or HTTPResourceLocalizer()
        self.migrator = migrator
        self.stats = stats or CacheStats()

        self.paths = ResourcePaths.for_identity(self.config.cachedir, identity)
        self.purger = ResourceCachePurger(self.paths)

        self.keys = keys or KeyDeriver()
        self.base_key = self.keys.base_key(identity)
        self.override: Optional[StyleOverride] = None
        if identity.override is not None:
            self.override = StyleOverride(
                identity.override.style,
                self.versions.style_version(identity.override.version),
            )
        self.extended_key = self.keys.extended_key(self.base_key, identity.sql, self.override)

        logger.debug(f"StyleCache for {self.store_key}")

    @property
    def store_key(self) -> str:
        return self.extended_key or self.base_key

    @property
    def target_version(self) -> str:
        return self.config.target_version

    def _guard(self, conn: StoreConnection) -> ConsistencyGuard:
        return ConsistencyGuard(conn, self.base_key, self.keys.derived_prefix(self.base_key), self.stats)

    def _decode(self, raw: str) -> CacheEntry:
        return CacheEntry.from_json(raw, self.config.default_style_version)

    def _read_cached(self, conn: StoreConnection, key: str) -> Optional[CompiledArtifact]:
        raw = conn.get(key)
        if raw is None:
            return None
        try:
            entry = self._decode(raw)
        except EntryDecodeError as e:
            logger.warning(f"Ignoring unreadable entry {key}: {e}")
            return None
        if entry.artifact is None or self.versions.is_stale(entry.artifact.version):
            return None
        return entry.artifact

    def _base_style(self, raw: Optional[str]) -> Optional[StyleRecord]:
        if raw is None:
            return None
        try:
            return self._decode(raw).style
        except EntryDecodeError as e:
            raise StoreError(f"Unreadable base entry {self.base_key}: {e}") from e

    def _default_style(self) -> StyleRecord:
        return self.config.default_style(self.identity.geom_type, self.identity.table)

    def _purge(self) -> None:
        result = self.purger.purge()
        self.stats.purged_files += result.removed

    def init(self) -> CompiledArtifact:
        """
        Return the compiled document for the active key, compiling on a miss.

        The document is returned even when the cache write is discarded
        because the base changed concurrently.

        Raises:
            ConfigurationError: no base entry and no default style for the geometry type
            MigrationError, CompileError, StoreError
        """
        store_key = self.store_key

        with self.pool.lease() as conn:
            cached = self._read_cached(conn, store_key)
            if cached is not None:
                self.stats.hits += 1
                logger.debug(f"Cache hit {store_key}")
                return cached

            self.stats.misses += 1
            logger.debug(f"Cache miss {store_key}")
            guard = self._guard(conn)

            seed_base = False
            if self.override is not None:
                source = StyleRecord(self.override.style, self.override.version)
            else:
                source = self._base_style(guard.watch_base())
                if source is None:
                    source = self._default_style()
                    seed_base = store_key != self.base_key

            artifact = self.render(source.style, source.version)

            if store_key == self.base_key:
                writes = {store_key: CacheEntry(style=source, artifact=artifact).to_json()}
            else:
                writes = {store_key: CacheEntry(artifact=artifact).to_json()}
                if seed_base:
                    writes[self.base_key] = CacheEntry(style=source).to_json()

            guard.commit(writes)

        return artifact

    def render(self, style: str, version: Optional[str] = None) -> CompiledArtifact:
        """
        Compile ``style`` for this identity. Does not touch the store.

        The style is migrated to the target version first when needed.
        Localization errors propagate unchanged; anything the compiler
        raises comes back as CompileError.
        """
        style = self.versions.migrate(self.migrator, style, version)

        document = style_document(self.identity, self.config, style)
        document = self.localizer.resolve(document, self.paths)

        self.stats.renders += 1
        try:
            output = self.compiler.compile(document)
        except CompileError:
            raise
        except Exception as e:  # noqa: BLE001
            raise CompileError(str(e)) from e

        return CompiledArtifact(output, self.target_version)

    def get_style(self, convert: bool = False) -> StyleRecord:
        """
        Stored style for the base key.

        With ``convert`` the style is migrated to the target version for
        display; the stored record is left as it is.
        """
        self.init()

        with self.pool.lease() as conn:
            raw = conn.get(self.base_key)

        # Override sessions never seed the base.
        record = self._base_style(raw) or self._default_style()

        if convert and self.versions.needs_migration(record.version):
            record = StyleRecord(
                self.versions.migrate(self.migrator, record.style, record.version),
                self.target_version,
            )
        return record

    def set_style(self, style: str, version: Optional[str] = None, convert: bool = False) -> CompiledArtifact:
        """
        Replace the style, recompile it, and invalidate every derived key.

        With an active override nothing is persisted; the override itself
        is replaced so the next ``init()`` on this instance uses the new style.
        """
        version = self.versions.style_version(version)

        self._purge()

        if convert and self.versions.needs_migration(version):
            style = self.versions.migrate(self.migrator, style, version)
            version = self.target_version

        artifact = self.render(style, version)

        with self.pool.lease() as conn:
            guard = self._guard(conn)
            if self.override is None:
                entry = CacheEntry(style=StyleRecord(style, version), artifact=artifact)
                conn.set(self.base_key, entry.to_json())
                logger.info(f"Stored style for {self.base_key} (version {version})")
            else:
                self.override = StyleOverride(style, version)
                self.extended_key = self.keys.extended_key(self.base_key, self.identity.sql, self.override)
            guard.invalidate_derived()

        return artifact

    def del_style(self) -> None:
        """Delete the base key and every key derived from it."""
        self._purge()

        with self.pool.lease() as conn:
            guard = self._guard(conn)
            guard.delete_base()
            guard.invalidate_derived()

    def reset_style(self, convert: bool = False) -> CompiledArtifact:
        """Recompile the stored style, e.g. after the target version changed."""
        record = self.get_style()
        return self.set_style(record.style, record.version, convert)

    def to_xml(self) -> str:
        return self.init().document
