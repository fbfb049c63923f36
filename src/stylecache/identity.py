"""Request identity: which table is styled, and with which overrides."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Optional

from .errors import ConfigurationError

KEY_SEPARATOR = "|"


@dataclass(frozen=True)
class StyleOverride:
    """
    A request-scoped style that replaces the stored one.

    The presence of this object means "override active", so an empty
    style string is still an override. ``version`` of None means the
    configured default style version.
    """
    style: str
    version: Optional[str] = None


@dataclass(frozen=True)
class Identity:
    dbname: str
    table: str
    sql: Optional[str] = None
    override: Optional[StyleOverride] = None
    geom_type: str = "point"
    dbuser: Optional[str] = None
    dbpassword: Optional[str] = None

    def __post_init__(self) -> None:
        for field_name in ("dbname", "table"):
            value = getattr(self, field_name)
            if not value:
                raise ConfigurationError("Options must include dbname and table")
            if KEY_SEPARATOR in value:
                raise ConfigurationError(
                    f"{field_name} must not contain {KEY_SEPARATOR!r}: {value!r}"
                )
            if value in (".", ".."):
                raise ConfigurationError(f"Invalid {field_name}: {value!r}")