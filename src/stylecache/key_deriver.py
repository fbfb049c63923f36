#!/usr/bin/env python3
"""
Cache Key Derivation

Implements:
- base_key(identity) → "map_style|<dbname>|<table>"
- extended_key(base_key, sql, override) → base key + encoded segments, or None
- derived_prefix(base_key) → prefix shared by every extended key of a base
- parse_extended_key(key) → (base_key, sql, override) for diagnostics

Same identity + same overrides = identical key. Different filter or
override = different key. Every extended key starts with its base key
followed by the separator, so derived entries can be found by prefix.
"""

import base64
import logging
from typing import Optional, Tuple

from .identity import KEY_SEPARATOR, Identity, StyleOverride

logger = logging.getLogger(__name__)

NAMESPACE = "map_style"

# Segment tags. Neither ':' nor '|' is in the urlsafe base64 alphabet.
SQL_TAG = "sql"
STYLE_TAG = "style"
_TAG_SEP = ":"


def _encode(text: str) -> str:
    return base64.urlsafe_b64encode(text.encode("utf-8")).decode("ascii")


def _decode(segment: str) -> str:
    return base64.urlsafe_b64decode(segment.encode("ascii")).decode("utf-8")


class KeyDeriver:
    """
    Pure key derivation, no I/O.

    Design:
    - base key = namespace|dbname|table (identity fields never contain '|')
    - extended key = base|sql:<b64 sql>|style:<b64 style>:<b64 version>
    - a segment is appended only for the components that are present
    - the same key is used to read and to write for a given request
    """

    def __init__(self, namespace: str = NAMESPACE):
        self.namespace = namespace

    def base_key(self, identity: Identity) -> str:
        return KEY_SEPARATOR.join((self.namespace, identity.dbname, identity.table))

    def extended_key(
        self,
        base_key: str,
        sql: Optional[str] = None,
        override: Optional[StyleOverride] = None,
    ) -> Optional[str]:
        """
        Derive the key for a filtered and/or overridden request.

        Args:
            base_key: Key returned by ``base_key``
            sql: Row filter, None when absent
            override: Style override with its version already resolved

        Returns:
            None when the request is equivalent to the base, else the key
        """
        if sql is None and override is None:
            return None

        parts = [base_key]
        if sql is not None:
            parts.append(SQL_TAG + _TAG_SEP + _encode(sql))
        if override is not None:
            parts.append(
                STYLE_TAG + _TAG_SEP + _encode(override.style)
                + _TAG_SEP + _encode(override.version or "")
            )
        key = KEY_SEPARATOR.join(parts)

        logger.debug(f"Extended key {key} (sql={sql is not None}, override={override is not None})")
        return key

    def derived_prefix(self, base_key: str) -> str:
        return base_key + KEY_SEPARATOR

    def parse_extended_key(self, key: str) -> Tuple[str, Optional[str], Optional[StyleOverride]]:
        """Split an extended key back into its base key, filter and override."""
        parts = key.split(KEY_SEPARATOR)
        base = KEY_SEPARATOR.join(parts[:3])
        sql = None
        override = None
        for segment in parts[3:]:
            tag, _, rest = segment.partition(_TAG_SEP)
            if tag == SQL_TAG:
                sql = _decode(rest)
            elif tag == STYLE_TAG:
                style, _, version = rest.partition(_TAG_SEP)
                override = StyleOverride(_decode(style), _decode(version) or None)
            else:
                raise ValueError(f"Unknown key segment: {segment!r}")
        return base, sql, override


# Demo
if __name__ == "__main__":
    logging.basicConfig(level=logging.DEBUG)

    keys = KeyDeriver()
    base = keys.base_key(Identity("gis", "parks"))
    key1 = keys.extended_key(base, sql="SELECT * FROM parks WHERE area > 100")
    key2 = keys.extended_key(base, sql="SELECT * FROM parks WHERE area > 100")

    print(f"\nBase key: {base}")
    print(f"Same filter → same key: {key1 == key2} ({key1})")
    print(f"No overrides → no extended key: {keys.extended_key(base) is None}")
