"""Compiler input document: one postgis layer plus exactly one stylesheet."""

from __future__ import annotations

from typing import Any, Dict

from .config import StyleCacheConfig
from .identity import Identity

STYLESHEET_ID = "style.mss"


def base_document(identity: Identity, config: StyleCacheConfig, use_sql: bool = True) -> Dict[str, Any]:
    """
    Layer document for ``identity`` without any stylesheet.

    Args:
        use_sql: read from the identity's sql filter when it has one,
                 otherwise straight from the table
    """
    datasource = dict(config.datasource)
    if identity.dbuser:
        datasource["user"] = identity.dbuser
    if identity.dbpassword:
        datasource["password"] = identity.dbpassword
    datasource["table"] = identity.sql if (use_sql and identity.sql is not None) else identity.table
    datasource["dbname"] = identity.dbname

    layer = {
        "id": identity.table,
        "name": identity.table,
        "srs": f"+init=epsg:{datasource.get('srid', config.srid)}",
        "Datasource": datasource,
    }
    return {
        "srs": f"+init=epsg:{config.srid}",
        "Layer": [layer],
    }


def style_document(identity: Identity, config: StyleCacheConfig, style: str) -> Dict[str, Any]:
    document = base_document(identity, config)
    document["Stylesheet"] = [{"id": STYLESHEET_ID, "data": style}]
    return document
