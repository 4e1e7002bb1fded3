"""Path resolution and content-type helpers shared across server modules."""

from __future__ import annotations

import os
from dataclasses import dataclass
from enum import Enum
from pathlib import Path

from response import OCTET_STREAM

MIME_TYPES: tuple[tuple[str, str], ...] = (
    (".html", "text/html"),
    (".jpg", "image/jpeg"),
    (".css", "text/css"),
    (".js", "text/javascript"),
)


class PathStatus(Enum):
    FOUND = "found"
    NOT_FOUND = "not_found"


@dataclass(frozen=True, slots=True)
class ResolvedPath:
    full_path: str
    status: PathStatus
    extension: str | None = None

    @property
    def found(self) -> bool:
        return self.status is PathStatus.FOUND


def get_extension(uri: str) -> str | None:
    """Return the suffix from the last dot of the final URI segment, dot included."""
    last_segment = uri.rsplit("/", 1)[-1]
    dot_index = last_segment.rfind(".")
    if dot_index == -1:
        return None
    return last_segment[dot_index:]


def lookup_mime_type(extension: str | None) -> str | None:
    if extension is None:
        return None
    for known_extension, mime_type in MIME_TYPES:
        if known_extension == extension:
            return mime_type
    return None


def get_content_type(extension: str | None) -> str:
    return lookup_mime_type(extension) or OCTET_STREAM


def is_within_root(candidate: str, web_root: str) -> bool:
    """Check that candidate, once canonicalized, does not escape web_root."""
    root = Path(web_root).resolve()
    try:
        Path(candidate).resolve().relative_to(root)
    except (ValueError, OSError):
        return False
    return True


def resolve_path(web_root: str, uri: str) -> ResolvedPath:
    """Map a request URI onto the web root and decide whether it can be served."""
    full_path = web_root + uri
    extension = get_extension(uri)

    found = (
        extension is not None
        and lookup_mime_type(extension) is not None
        and is_within_root(full_path, web_root)
        and os.path.isfile(full_path)
        and os.access(full_path, os.R_OK)
    )
    status = PathStatus.FOUND if found else PathStatus.NOT_FOUND
    return ResolvedPath(full_path=full_path, status=status, extension=extension)
