#!/usr/bin/env python3
"""
External Collaborators — compiler, localizer, migrator

The cache only needs three single-shot calls:
- StyleCompiler.compile(document) → rendering document
- ResourceLocalizer.resolve(document, paths) → document with local paths
- StyleMigrator.transform(style, from_version, to_version) → style

Adapters shipped here:
- CartoCompiler         — runs the carto CLI on a temporary project file
- HTTPResourceLocalizer — downloads url(http...) references with requests
"""

import copy
import hashlib
import json
import logging
import os
import re
import subprocess
import tempfile
from pathlib import Path
from typing import Any, Dict, Optional, Protocol
from urllib.parse import urlparse

import requests

from .errors import CompileError
from .purger import ResourcePaths

logger = logging.getLogger(__name__)


class StyleCompiler(Protocol):
    def compile(self, document: Dict[str, Any]) -> str: ...


class ResourceLocalizer(Protocol):
    def resolve(self, document: Dict[str, Any], paths: ResourcePaths) -> Dict[str, Any]: ...


class StyleMigrator(Protocol):
    def transform(self, style: str, from_version: str, to_version: str) -> str: ...


class CartoCompiler:
    """Compile a project document with the carto command line tool."""

    def __init__(self, target_version: str, binary: str = "carto", timeout: Optional[int] = 60):
        self.target_version = target_version
        self.binary = binary
        self.timeout = timeout

    def compile(self, document: Dict[str, Any]) -> str:
        with tempfile.TemporaryDirectory(prefix="stylecache-") as tmp:
            project = Path(tmp) / "project.mml"
            project.write_text(json.dumps(document), encoding="utf-8")

            try:
                result = subprocess.run(
                    [self.binary, "--api", self.target_version, str(project)],
                    capture_output=True,
                    text=True,
                    timeout=self.timeout,
                )
            except FileNotFoundError as exc:
                raise CompileError(f"Style compiler not found: {self.binary}") from exc
            except subprocess.TimeoutExpired as exc:
                raise CompileError(f"Style compiler timed out after {self.timeout}s") from exc

        if result.returncode != 0:
            raise CompileError(result.stderr.strip() or f"{self.binary} exited with {result.returncode}")

        logger.debug(f"Compiled {len(result.stdout)} bytes with {self.binary} (api {self.target_version})")
        return result.stdout


_URL_REF = re.compile(r"""url\(\s*(['"]?)(https?://[^'")\s]+)\1\s*\)""")


class HTTPResourceLocalizer:
    """
    Fetch remote resources referenced from stylesheets into the identity's
    cache directory and point the stylesheet at the local copies.

    Files are named after a hash of their URL, so a resource already on
    disk is reused until the directory is purged.
    """

    def __init__(self, timeout: int = 30, session: Optional[requests.Session] = None):
        self.timeout = timeout
        self.session = session or requests.Session()

    def _local_path(self, url: str, cache_dir: Path) -> Path:
        digest = hashlib.sha256(url.encode("utf-8")).hexdigest()[:16]
        suffix = Path(urlparse(url).path).suffix
        return cache_dir / (digest + suffix)

    def _fetch(self, url: str, target: Path) -> None:
        response = self.session.get(url, timeout=self.timeout)
        response.raise_for_status()

        target.parent.mkdir(parents=True, exist_ok=True)
        partial = target.with_name(target.name + ".part")
        partial.write_bytes(response.content)
        os.replace(partial, target)
        logger.info(f"Localized {url} → {target}")

    def resolve(self, document: Dict[str, Any], paths: ResourcePaths) -> Dict[str, Any]:
        resolved = copy.deepcopy(document)
        local: Dict[str, Path] = {}

        for stylesheet in resolved.get("Stylesheet", []):
            data = stylesheet.get("data", "")
            for match in _URL_REF.finditer(data):
                url = match.group(2)
                if url in local:
                    continue
                target = self._local_path(url, paths.cache)
                if not target.exists():
                    self._fetch(url, target)
                local[url] = target

            stylesheet["data"] = _URL_REF.sub(
                lambda m: f'url("{local[m.group(2)]}")', data
            )

        return resolved
