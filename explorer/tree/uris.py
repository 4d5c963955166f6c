"""File URI helpers.

Tree identifiers and dispatch targets are ``file://`` URI strings, as the
discovery service reports them.  These helpers convert between URIs and
local paths and reject anything that is not a usable file URI.
"""

from __future__ import annotations

import os
from pathlib import Path
from urllib.parse import unquote, urlparse
from urllib.request import url2pathname


def path_to_uri(path: str | Path) -> str:
    """Convert a local path to an absolute ``file://`` URI."""
    return Path(os.path.abspath(path)).as_uri()


def uri_to_path(uri: str) -> Path:
    """Convert a ``file://`` URI to a local path.

    Raises:
        ValueError: If *uri* is empty, has a scheme other than ``file``
            or carries no path.
    """
    if not uri:
        raise ValueError("Empty URI")
    parsed = urlparse(uri)
    if parsed.scheme != "file":
        raise ValueError(f"Not a file URI: {uri!r}")
    if not parsed.path:
        raise ValueError(f"File URI has no path: {uri!r}")
    return Path(url2pathname(parsed.path))


def is_file_uri(uri: str | None) -> bool:
    """Check whether *uri* can be converted with ``uri_to_path()``."""
    if not uri:
        return False
    try:
        uri_to_path(uri)
    except ValueError:
        return False
    return True


def uri_basename(uri: str) -> str:
    """Return the last path segment of a URI (``""`` if there is none)."""
    path = urlparse(uri).path.rstrip("/")
    return unquote(path.rsplit("/", 1)[-1]) if path else ""
