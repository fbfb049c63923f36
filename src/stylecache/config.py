"""Configuration loader for the style cache."""

from __future__ import annotations

import json
import os
from dataclasses import dataclass, field
from pathlib import Path
from types import MappingProxyType
from typing import Any, Dict, Mapping, Optional

import yaml

from .defaults import builtin_styles
from .entries import StyleRecord
from .errors import ConfigurationError

DEFAULT_DATASOURCE: Mapping[str, Any] = MappingProxyType({
    "type": "postgis",
    "host": "localhost",
    "user": "postgres",
    "geometry_field": "the_geom_webmercator",
    "extent": "-20037508.3,-20037508.3,20037508.3,20037508.3",
    "srid": 3857,
    "max_size": 10,
})


@dataclass(frozen=True)
class StoreConfig:
    url: str = "redis://localhost:6379"
    db: int = 0


@dataclass(frozen=True)
class StyleCacheConfig:
    target_version: str = "2.0.2"
    default_style_version: str = "2.0.0"
    srid: int = 3857
    datasource: Mapping[str, Any] = field(default_factory=lambda: DEFAULT_DATASOURCE)
    styles: Mapping[str, str] = field(default_factory=lambda: MappingProxyType({}))
    styles_version: Optional[str] = None
    cachedir: Path = Path("/tmp/millstone")
    store: StoreConfig = field(default_factory=StoreConfig)
    compiler_bin: str = "carto"
    compiler_timeout: int = 60

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "StyleCacheConfig":
        store_data = data.get("store", {}) or {}
        styles_data = dict(data.get("styles", {}) or {})
        # "version" sits beside the bodies in the styles table
        styles_version = styles_data.pop("version", None)

        datasource = dict(DEFAULT_DATASOURCE)
        datasource.update(data.get("datasource", {}) or {})

        return cls(
            target_version=str(data.get("target_version", "2.0.2")),
            default_style_version=str(data.get("default_style_version", "2.0.0")),
            srid=int(data.get("srid", 3857)),
            datasource=MappingProxyType(datasource),
            styles=MappingProxyType({str(k): str(v) for k, v in styles_data.items()}),
            styles_version=str(styles_version) if styles_version else None,
            cachedir=Path(data.get("cachedir", "/tmp/millstone")),
            store=StoreConfig(
                url=store_data.get("url", "redis://localhost:6379"),
                db=int(store_data.get("db", 0)),
            ),
            compiler_bin=data.get("compiler_bin", "carto"),
            compiler_timeout=int(data.get("compiler_timeout", 60)),
        )

    def default_style(self, geom_type: str, table: str) -> StyleRecord:
        """
        Default style for a geometry type, configured bodies first.

        Raises:
            ConfigurationError: neither configured nor built-in style exists
        """
        builtin, builtin_version = builtin_styles(table, self.target_version)
        if geom_type in self.styles:
            style = self.styles[geom_type]
        elif geom_type in builtin:
            style = builtin[geom_type]
        else:
            raise ConfigurationError(f"No style available for geometry of type '{geom_type}'")
        return StyleRecord(style, self.styles_version or builtin_version)


ENV_MAP = {
    "target_version": "STYLECACHE_TARGET_VERSION",
    "default_style_version": "STYLECACHE_DEFAULT_STYLE_VERSION",
    "srid": "STYLECACHE_SRID",
    "cachedir": "STYLECACHE_CACHEDIR",
    "compiler_bin": "STYLECACHE_COMPILER_BIN",
    "store.url": "STYLECACHE_REDIS_URL",
    "store.db": "STYLECACHE_REDIS_DB",
    "datasource.host": "STYLECACHE_DB_HOST",
    "datasource.user": "STYLECACHE_DB_USER",
}

_INT_KEYS = {"srid", "db"}


def load_yaml(path: Path) -> Dict[str, Any]:
    with path.open("r", encoding="utf-8") as handle:
        return yaml.safe_load(handle) or {}


def merge_env_overrides(config_data: Dict[str, Any]) -> Dict[str, Any]:
    merged = json.loads(json.dumps(config_data))  # deep copy via json

    for dotted_key, env_name in ENV_MAP.items():
        if env_name not in os.environ:
            continue
        value: Any = os.environ[env_name]
        target = merged
        parts = dotted_key.split(".")
        for part in parts[:-1]:
            target = target.setdefault(part, {})
        last = parts[-1]
        if last in _INT_KEYS:
            value = int(value)
        target[last] = value

    return merged


def load_config(config_path: str | Path = "config/stylecache.defaults.yml") -> StyleCacheConfig:
    path = Path(config_path)
    if not path.exists():
        raise FileNotFoundError(f"Config file not found: {path}")

    data = load_yaml(path)
    data = merge_env_overrides(data)
    return StyleCacheConfig.from_dict(data)
