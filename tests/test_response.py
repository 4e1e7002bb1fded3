"""Unit tests for response line serialization and socket writers."""

import socket

import pytest

from response import (
    content_length_lines,
    header_line,
    parse_response_head,
    status_line,
    status_phrase,
)
from socket_handler import write_body, write_content_length, write_header, write_status_line


def _read_all(sock: socket.socket) -> bytes:
    chunks = []
    while True:
        chunk = sock.recv(4096)
        if not chunk:
            return b"".join(chunks)
        chunks.append(chunk)


def test_status_line_echoes_version_and_phrase() -> None:
    assert status_line("HTTP/1.0", status_phrase(200)) == b"HTTP/1.0 200 OK\r\n"
    assert status_line("HTTP/1.1", status_phrase(404)) == b"HTTP/1.1 404 Not Found\r\n"


def test_unknown_status_code_gets_placeholder_reason() -> None:
    assert status_phrase(418) == "418 Unknown"


def test_header_line_format() -> None:
    assert header_line("Content-Type", "text/css") == b"Content-Type: text/css\r\n"


def test_header_line_rejects_line_breaks() -> None:
    with pytest.raises(ValueError):
        header_line("X-Test", "a\r\nInjected: yes")


def test_content_length_lines_end_the_head() -> None:
    assert content_length_lines(0) == b"Content-Length: 0\r\n\r\n"
    assert content_length_lines(12345) == b"Content-Length: 12345\r\n\r\n"


def test_negative_content_length_is_rejected() -> None:
    with pytest.raises(ValueError):
        content_length_lines(-1)


def test_written_headers_parse_back_to_the_same_values() -> None:
    body = b"body { color: red; }"
    server_side, client_side = socket.socketpair()
    with client_side:
        with server_side:
            sent = write_status_line(server_side, "HTTP/1.1", status_phrase(200))
            sent += write_header(server_side, "Content-Type", "text/css")
            sent += write_content_length(server_side, len(body))
            sent += write_body(server_side, body)
        raw = _read_all(client_side)

    status, headers, parsed_body = parse_response_head(raw)

    assert sent == len(raw)
    assert status == "HTTP/1.1 200 OK"
    assert headers == {"Content-Type": "text/css", "Content-Length": str(len(body))}
    assert parsed_body == body


def test_write_body_skips_empty_payload() -> None:
    server_side, client_side = socket.socketpair()
    with server_side, client_side:
        assert write_body(server_side, b"") == 0


def test_parse_response_head_requires_separator() -> None:
    with pytest.raises(ValueError, match="separator"):
        parse_response_head(b"HTTP/1.1 200 OK\r\nContent-Length: 0\r\n")
