import pytest

from stylecache.config import StyleCacheConfig, load_config
from stylecache.errors import ConfigurationError


def test_load_config_defaults(tmp_path):
    path = tmp_path / "config.yml"
    path.write_text("target_version: '2.1.0'", encoding="utf-8")

    cfg = load_config(path)

    assert isinstance(cfg, StyleCacheConfig)
    assert cfg.target_version == "2.1.0"
    assert cfg.default_style_version == "2.0.0"
    assert cfg.store.db == 0
    assert cfg.datasource["geometry_field"] == "the_geom_webmercator"


def test_env_overrides(monkeypatch, tmp_path):
    source = tmp_path / "config.yml"
    source.write_text("store:\n  url: redis://localhost:6379\n", encoding="utf-8")

    monkeypatch.setenv("STYLECACHE_REDIS_DB", "5")
    monkeypatch.setenv("STYLECACHE_DB_HOST", "db.internal")
    monkeypatch.setenv("STYLECACHE_CACHEDIR", str(tmp_path / "resources"))

    cfg = load_config(source)

    assert cfg.store.db == 5
    assert cfg.store.url == "redis://localhost:6379"
    assert cfg.datasource["host"] == "db.internal"
    assert cfg.datasource["user"] == "postgres"
    assert cfg.cachedir == tmp_path / "resources"


def test_missing_config_file(tmp_path):
    with pytest.raises(FileNotFoundError):
        load_config(tmp_path / "nope.yml")


def test_shipped_defaults_load():
    from pathlib import Path

    cfg = load_config(Path(__file__).parent.parent / "config" / "stylecache.defaults.yml")
    assert cfg.target_version == "2.0.2"
    assert cfg.styles == {}


def test_configured_style_wins_over_builtin():
    cfg = StyleCacheConfig.from_dict({
        "target_version": "2.1.0",
        "styles": {"point": "#parks {marker-fill: blue;}", "version": "2.0.0"},
    })

    point = cfg.default_style("point", "parks")
    polygon = cfg.default_style("polygon", "parks")

    assert point.style == "#parks {marker-fill: blue;}"
    assert point.version == "2.0.0"
    assert "#parks[mapnik-geometry-type=3]" in polygon.style


def test_builtin_style_version_follows_target():
    cfg = StyleCacheConfig(target_version="2.0.2")
    assert cfg.default_style("point", "parks").version == "2.0.0"

    cfg = StyleCacheConfig(target_version="2.3.0")
    assert cfg.default_style("geometry", "parks").version == "2.3.0"


def test_unknown_geometry_type():
    with pytest.raises(ConfigurationError, match="raster"):
        StyleCacheConfig().default_style("raster", "parks")


def test_config_is_read_only():
    cfg = StyleCacheConfig.from_dict({"datasource": {"host": "db"}})
    with pytest.raises(TypeError):
        cfg.datasource["host"] = "other"


def test_named_target_version_uses_combined_styles():
    cfg = StyleCacheConfig(target_version="latest", default_style_version="latest")

    record = cfg.default_style("point", "parks")

    assert "#parks[mapnik-geometry-type=1]" in record.style
    assert record.version == "latest"


def test_named_target_version_cold_init(tmp_path):
    from stylecache.identity import Identity
    from stylecache.store import MemoryStylePool
    from stylecache.style_cache import StyleCache

    class EchoCompiler:
        def compile(self, document):
            return "<Map>" + document["Stylesheet"][0]["data"] + "</Map>"

    class PassthroughLocalizer:
        def resolve(self, document, paths):
            return document

    cfg = StyleCacheConfig(target_version="latest", default_style_version="latest", cachedir=tmp_path)
    cache = StyleCache(
        MemoryStylePool(), Identity("gis", "parks"),
        config=cfg, compiler=EchoCompiler(), localizer=PassthroughLocalizer(),
    )

    artifact = cache.init()

    assert artifact.version == "latest"
    assert "mapnik-geometry-type=3" in artifact.document
