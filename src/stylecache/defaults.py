"""Built-in default styles, selected by target compiler version."""

from __future__ import annotations

from types import MappingProxyType
from typing import Mapping, Tuple

from .versions import version_predates

# Compiler versions before this one cannot filter on geometry type.
GEOMETRY_FILTER_VERSION = "2.1.0"
LEGACY_STYLE_VERSION = "2.0.0"

_LEGACY_POINT = (
    " {marker-fill: #FF6600;marker-opacity: 1;marker-width: 8;marker-line-color: white;"
    "marker-line-width: 3;marker-line-opacity: 0.9;marker-placement: point;"
    "marker-type: ellipse;marker-allow-overlap: true;}"
)
_POINT = (
    " {marker-fill: #FF6600;marker-opacity: 1;marker-width: 16;marker-line-color: white;"
    "marker-line-width: 3;marker-line-opacity: 0.9;marker-placement: point;"
    "marker-type: ellipse;marker-allow-overlap: true;}"
)
_LINE = " {line-color:#FF6600; line-width:1; line-opacity: 0.7;}"
_POLYGON = " {polygon-fill:#FF6600; polygon-opacity: 0.7; line-opacity:1; line-color: #FFFFFF;}"


def builtin_styles(table: str, target_version: str) -> Tuple[Mapping[str, str], str]:
    """
    Default style bodies for ``table``.

    Returns:
        (geometry type → style body, style-language version of the bodies)
    """
    selector = "#" + table

    if version_predates(target_version, GEOMETRY_FILTER_VERSION):
        polygon = selector + _POLYGON
        styles = {
            "point": selector + _LEGACY_POINT,
            "polygon": polygon,
            "multipolygon": polygon,
            "multilinestring": selector + _LINE,
        }
        return MappingProxyType(styles), LEGACY_STYLE_VERSION

    combined = (
        selector + "[mapnik-geometry-type=1]" + _POINT
        + selector + "[mapnik-geometry-type=2]" + _LINE
        + selector + "[mapnik-geometry-type=3]" + _POLYGON
    )
    styles = {
        geom_type: combined
        for geom_type in ("point", "polygon", "multipolygon", "multilinestring", "geometry")
    }
    return MappingProxyType(styles), target_version
