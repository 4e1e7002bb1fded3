"""Unit tests for HTTP request-line parsing."""

import dataclasses

import pytest

from request import HTTPRequest, HTTPRequestParseError


def test_parse_request_line_into_three_fields() -> None:
    raw = b"GET /index.html HTTP/1.1\r\nHost: localhost\r\n\r\n"

    request = HTTPRequest.from_bytes(raw)

    assert request.method == "GET"
    assert request.uri == "/index.html"
    assert request.http_version == "HTTP/1.1"


def test_trailing_line_terminator_is_trimmed_from_version() -> None:
    assert HTTPRequest.from_bytes(b"GET / HTTP/1.0\n").http_version == "HTTP/1.0"
    assert HTTPRequest.from_bytes(b"GET / HTTP/1.0\r\n").http_version == "HTTP/1.0"


def test_bytes_after_request_line_are_ignored() -> None:
    raw = b"GET /a.css HTTP/1.1\r\n\x00\xff garbage that is not a header"

    request = HTTPRequest.from_bytes(raw)

    assert request.uri == "/a.css"


def test_method_is_kept_verbatim() -> None:
    request = HTTPRequest.from_bytes(b"post /form.html HTTP/1.1\r\n\r\n")

    assert request.method == "post"


def test_single_token_request_line_raises_parse_error() -> None:
    with pytest.raises(HTTPRequestParseError, match="Invalid request line") as exc_info:
        HTTPRequest.from_bytes(b"BROKEN\r\n\r\n")

    assert exc_info.value.status_code == 400


def test_two_token_request_line_raises_parse_error() -> None:
    with pytest.raises(HTTPRequestParseError):
        HTTPRequest.from_bytes(b"GET /index.html\r\n\r\n")


def test_extra_tokens_raise_parse_error() -> None:
    with pytest.raises(HTTPRequestParseError):
        HTTPRequest.from_bytes(b"GET /index.html HTTP/1.1 extra\r\n\r\n")


def test_empty_request_raises_parse_error() -> None:
    with pytest.raises(HTTPRequestParseError, match="Empty request"):
        HTTPRequest.from_bytes(b"")


def test_parse_error_is_a_value_error() -> None:
    with pytest.raises(ValueError):
        HTTPRequest.from_bytes(b"\r\n")


def test_parsed_request_is_immutable() -> None:
    request = HTTPRequest.from_bytes(b"GET / HTTP/1.1\r\n")

    with pytest.raises(dataclasses.FrozenInstanceError):
        request.uri = "/other"  # type: ignore[misc]
