"""Low-level socket read/write utilities."""

from __future__ import annotations

import logging
import socket

from config import BUFFER_SIZE, DRAIN_LIMIT_BYTES, LINGER_SECS
from request import HTTPRequestParseError
from response import content_length_lines, header_line, status_line

logger = logging.getLogger(__name__)


class RequestLineTooLongError(HTTPRequestParseError):
    """Raised when no line terminator arrives within the read limit."""


def read_http_request(client_socket: socket.socket, limit: int = BUFFER_SIZE) -> bytes:
    """Read bytes until the request line is complete or the peer closes.

    Raises RequestLineTooLongError if limit bytes arrive without a line
    terminator.
    """
    buffer = bytearray()
    while b"\n" not in buffer:
        if len(buffer) >= limit:
            raise RequestLineTooLongError(f"Request line exceeded {limit} bytes")
        chunk = client_socket.recv(limit - len(buffer))
        if not chunk:
            break
        buffer.extend(chunk)
    return bytes(buffer)


def finish_connection(
    client_socket: socket.socket,
    *,
    linger_secs: float = LINGER_SECS,
    drain_limit: int = DRAIN_LIMIT_BYTES,
) -> int:
    """Half-close the write side and discard unread request bytes.

    Closing a TCP socket with unread input makes the kernel send RST, which
    can destroy response bytes the client has not read yet. Returns the
    number of bytes discarded.
    """
    drained = 0
    try:
        client_socket.shutdown(socket.SHUT_WR)
        client_socket.settimeout(linger_secs)
        while drained < drain_limit:
            chunk = client_socket.recv(min(BUFFER_SIZE, drain_limit - drained))
            if not chunk:
                break
            drained += len(chunk)
    except OSError as exc:
        logger.debug("Stopped draining client socket: %s", exc)
    return drained


def write_http_response(client_socket: socket.socket, payload: bytes) -> int:
    """Write the complete payload to a client socket or raise OSError."""
    client_socket.sendall(payload)
    return len(payload)


def write_status_line(client_socket: socket.socket, http_version: str, phrase: str) -> int:
    return write_http_response(client_socket, status_line(http_version, phrase))


def write_header(client_socket: socket.socket, name: str, value: str) -> int:
    return write_http_response(client_socket, header_line(name, value))


def write_content_length(client_socket: socket.socket, byte_count: int) -> int:
    return write_http_response(client_socket, content_length_lines(byte_count))


def write_body(client_socket: socket.socket, payload: bytes) -> int:
    if not payload:
        return 0
    return write_http_response(client_socket, payload)
