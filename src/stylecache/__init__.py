"""
Style Cache
Compiled map stylesheets per table, cached in a key-value store,
versioned by target compiler version and invalidated when the base
style changes.
"""

from .config import StoreConfig, StyleCacheConfig, load_config
from .entries import CacheEntry, CompiledArtifact, StyleRecord
from .errors import (
    CompileError,
    ConfigurationError,
    FilesystemError,
    MigrationError,
    StoreError,
    StyleCacheError,
)
from .identity import Identity, StyleOverride
from .key_deriver import KeyDeriver
from .store import MemoryStylePool, RedisStylePool
from .style_cache import StyleCache

__all__ = [
    'StyleCache', 'StyleCacheConfig', 'StoreConfig', 'load_config',
    'Identity', 'StyleOverride', 'KeyDeriver',
    'CacheEntry', 'CompiledArtifact', 'StyleRecord',
    'MemoryStylePool', 'RedisStylePool',
    'StyleCacheError', 'ConfigurationError', 'MigrationError',
    'CompileError', 'StoreError', 'FilesystemError',
]
