"""Unit tests for URI to filesystem path resolution."""

import os
from pathlib import Path

import pytest

from utils import (
    MIME_TYPES,
    PathStatus,
    get_content_type,
    get_extension,
    lookup_mime_type,
    resolve_path,
)


@pytest.fixture
def web_root(tmp_path: Path) -> Path:
    root = tmp_path / "www"
    root.mkdir()
    (root / "index.html").write_bytes(b"<h1>hi</h1>")
    (root / "photo.jpg").write_bytes(b"\xff\xd8\xff")
    (root / "style.css").write_bytes(b"p {}")
    (root / "app.js").write_bytes(b"1;")
    (root / "archive.zip").write_bytes(b"PK")
    (root / "README").write_bytes(b"plain")
    return root


@pytest.mark.parametrize("name", ["index.html", "photo.jpg", "style.css", "app.js"])
def test_supported_existing_files_are_found(web_root: Path, name: str) -> None:
    resolved = resolve_path(str(web_root), f"/{name}")

    assert resolved.status is PathStatus.FOUND
    assert resolved.found
    assert resolved.full_path == f"{web_root}/{name}"


def test_missing_file_is_not_found_but_keeps_full_path(web_root: Path) -> None:
    resolved = resolve_path(str(web_root), "/missing.html")

    assert resolved.status is PathStatus.NOT_FOUND
    assert resolved.full_path == f"{web_root}/missing.html"
    assert resolved.extension == ".html"


def test_unsupported_extension_is_not_found(web_root: Path) -> None:
    resolved = resolve_path(str(web_root), "/archive.zip")

    assert resolved.status is PathStatus.NOT_FOUND
    assert resolved.extension == ".zip"


def test_file_without_extension_is_not_found(web_root: Path) -> None:
    resolved = resolve_path(str(web_root), "/README")

    assert resolved.status is PathStatus.NOT_FOUND
    assert resolved.extension is None


def test_extension_match_is_case_sensitive(web_root: Path) -> None:
    (web_root / "UPPER.HTML").write_bytes(b"x")

    assert resolve_path(str(web_root), "/UPPER.HTML").status is PathStatus.NOT_FOUND


def test_traversal_outside_web_root_is_not_found(web_root: Path) -> None:
    (web_root.parent / "secret.html").write_bytes(b"top secret")

    resolved = resolve_path(str(web_root), "/../secret.html")

    assert resolved.status is PathStatus.NOT_FOUND


def test_symlink_escaping_web_root_is_not_found(web_root: Path) -> None:
    outside = web_root.parent / "outside.css"
    outside.write_bytes(b"p {}")
    (web_root / "link.css").symlink_to(outside)

    assert resolve_path(str(web_root), "/link.css").status is PathStatus.NOT_FOUND


def test_directory_named_like_a_file_is_not_found(web_root: Path) -> None:
    (web_root / "folder.html").mkdir()

    assert resolve_path(str(web_root), "/folder.html").status is PathStatus.NOT_FOUND


@pytest.mark.skipif(os.geteuid() == 0, reason="root can read any file")
def test_unreadable_file_is_not_found(web_root: Path) -> None:
    locked = web_root / "locked.html"
    locked.write_bytes(b"x")
    locked.chmod(0)
    try:
        assert resolve_path(str(web_root), "/locked.html").status is PathStatus.NOT_FOUND
    finally:
        locked.chmod(0o644)


def test_nested_files_resolve(web_root: Path) -> None:
    (web_root / "css").mkdir()
    (web_root / "css" / "site.css").write_bytes(b"a {}")

    assert resolve_path(str(web_root), "/css/site.css").found


def test_extension_comes_from_final_segment() -> None:
    assert get_extension("/v1.2/readme") is None
    assert get_extension("/a/b.tar.css") == ".css"
    assert get_extension("/") is None


def test_mime_lookup() -> None:
    assert dict(MIME_TYPES) == {
        ".html": "text/html",
        ".jpg": "image/jpeg",
        ".css": "text/css",
        ".js": "text/javascript",
    }
    assert lookup_mime_type(".zip") is None
    assert lookup_mime_type(None) is None
    assert get_content_type(".js") == "text/javascript"
    assert get_content_type(".zip") == "application/octet-stream"
