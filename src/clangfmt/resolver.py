"""Locate the formatter executable on the search path."""

from __future__ import annotations

import logging
import os
import shutil
import sys
from typing import Dict

LOGGER = logging.getLogger(__name__)


class BinaryResolver:
    """Resolve logical binary names to executable paths.

    One resolver is meant to live for the whole process. Found paths are
    cached per name and never invalidated; names that cannot be found are
    returned unchanged so that spawning them reports the missing tool.
    """

    def __init__(self, *, search_path: str | None = None, platform: str | None = None) -> None:
        self._search_path = search_path
        self._platform = platform or sys.platform
        self._cache: Dict[str, str] = {}

    def resolve(self, binname: str) -> str:
        """Return the path that should be executed for ``binname``."""

        name = self._correct_binname(binname)
        cached = self._cache.get(name)
        if cached is not None:
            return cached

        if os.path.isfile(name):
            return self._cache.setdefault(name, name)

        search_path = self._search_path if self._search_path is not None else os.environ.get("PATH")
        if search_path:
            found = shutil.which(name, path=search_path)
            if found:
                LOGGER.debug("Resolved %s to %s", name, found)
                return self._cache.setdefault(name, found)

        LOGGER.debug("Unable to resolve %s on the search path", name)
        return name

    def cached(self) -> Dict[str, str]:
        """Return a snapshot of resolved paths."""

        return dict(self._cache)

    def _correct_binname(self, binname: str) -> str:
        if self._platform == "win32" and not binname.lower().endswith(".exe"):
            return f"{binname}.exe"
        return binname


__all__ = ["BinaryResolver"]
