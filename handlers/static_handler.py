"""Static file response engine: one accepted connection in, one response out."""

from __future__ import annotations

import json
import logging
import os
import socket
import time

from config import BUFFER_SIZE, LINGER_SECS, LOG_FORMAT
from metrics import MetricsRegistry
from request import HTTPRequest, HTTPRequestParseError
from response import DEFAULT_HTTP_VERSION, OCTET_STREAM, status_phrase
from socket_handler import (
    finish_connection,
    read_http_request,
    write_body,
    write_content_length,
    write_header,
    write_status_line,
)
from utils import ResolvedPath, get_content_type, lookup_mime_type, resolve_path

logger = logging.getLogger(__name__)

ClientAddress = tuple[str, int]
UNKNOWN_ADDRESS: ClientAddress = ("-", 0)


class FileReadError(OSError):
    """Raised when a resolved file cannot be read completely."""


def read_file(path: str) -> bytes:
    """Read a whole file, failing if fewer bytes arrive than its size promised."""
    try:
        with open(path, "rb") as file_obj:
            expected_size = os.fstat(file_obj.fileno()).st_size
            data = file_obj.read(expected_size)
    except MemoryError as exc:
        raise FileReadError(f"Not enough memory to buffer {path}") from exc
    except OSError as exc:
        raise FileReadError(f"Cannot read {path}: {exc}") from exc

    if len(data) != expected_size:
        raise FileReadError(f"Short read on {path}: got {len(data)} of {expected_size} bytes")
    return data


class StaticFileHandler:
    """Serve files under a fixed web root, closing each connection when done."""

    def __init__(
        self,
        web_root: str,
        *,
        metrics: MetricsRegistry | None = None,
        log_format: str = LOG_FORMAT,
        read_limit: int = BUFFER_SIZE,
        linger_secs: float = LINGER_SECS,
    ) -> None:
        self._web_root = web_root
        self.metrics = metrics or MetricsRegistry()
        self.log_format = log_format
        self.read_limit = read_limit
        self.linger_secs = linger_secs

    @property
    def web_root(self) -> str:
        return self._web_root

    def __call__(self, client_socket: socket.socket, address: ClientAddress) -> None:
        """Worker entry point: read the request from the socket, then respond."""
        with client_socket:
            started_at = time.perf_counter()
            try:
                raw_request = read_http_request(client_socket, self.read_limit)
            except HTTPRequestParseError as exc:
                self._send_parse_error(client_socket, exc, address, self.read_limit, started_at)
                finish_connection(client_socket, linger_secs=self.linger_secs)
                return
            except OSError as exc:
                self.metrics.record_read_error(exc.__class__.__name__)
                logger.debug("Read from %s failed: %s", address[0], exc)
                return

            if not raw_request:
                return
            self._respond(client_socket, raw_request, address, started_at)
            finish_connection(client_socket, linger_secs=self.linger_secs)

    def handle(
        self,
        client_socket: socket.socket,
        raw_request: bytes,
        address: ClientAddress = UNKNOWN_ADDRESS,
    ) -> None:
        """Respond to already-read request bytes and close the connection."""
        with client_socket:
            self._respond(client_socket, raw_request, address, time.perf_counter())
            finish_connection(client_socket, linger_secs=self.linger_secs)

    def _respond(
        self,
        client_socket: socket.socket,
        raw_request: bytes,
        address: ClientAddress,
        started_at: float,
    ) -> None:
        try:
            request = HTTPRequest.from_bytes(raw_request)
        except HTTPRequestParseError as exc:
            self._send_parse_error(client_socket, exc, address, len(raw_request), started_at)
            return

        self.metrics.request_started()
        try:
            status_code, bytes_sent = self._send_file_response(client_socket, request)
        except OSError as exc:
            self.metrics.record_write_error(exc.__class__.__name__)
            logger.debug("Write to %s failed: %s", address[0], exc)
            return
        finally:
            self.metrics.request_finished()

        self._record_and_log(
            address=address,
            method=request.method,
            uri=request.uri,
            status_code=status_code,
            bytes_in=len(raw_request),
            bytes_out=bytes_sent,
            started_at=started_at,
        )

    def _send_file_response(
        self,
        client_socket: socket.socket,
        request: HTTPRequest,
    ) -> tuple[int, int]:
        resolved = resolve_path(self._web_root, request.uri)
        if not resolved.found:
            return 404, self._send_not_found(client_socket, request.http_version, resolved)

        try:
            body = read_file(resolved.full_path)
        except FileReadError as exc:
            self.metrics.record_read_error(exc.__class__.__name__)
            logger.warning("%s", exc)
            return 500, self._send_error(client_socket, request.http_version, 500)

        bytes_sent = write_status_line(client_socket, request.http_version, status_phrase(200))
        content_type = get_content_type(resolved.extension)
        bytes_sent += write_header(client_socket, "Content-Type", content_type)
        bytes_sent += write_content_length(client_socket, len(body))
        bytes_sent += write_body(client_socket, body)
        return 200, bytes_sent

    def _send_not_found(
        self,
        client_socket: socket.socket,
        http_version: str,
        resolved: ResolvedPath,
    ) -> int:
        bytes_sent = write_status_line(client_socket, http_version, status_phrase(404))
        if lookup_mime_type(resolved.extension) is None:
            bytes_sent += write_header(client_socket, "Content-Type", OCTET_STREAM)
        bytes_sent += write_content_length(client_socket, 0)
        return bytes_sent

    def _send_parse_error(
        self,
        client_socket: socket.socket,
        exc: HTTPRequestParseError,
        address: ClientAddress,
        bytes_in: int,
        started_at: float,
    ) -> None:
        logger.debug("Rejecting request from %s: %s", address[0], exc)
        bytes_sent = self._send_error(client_socket, DEFAULT_HTTP_VERSION, exc.status_code)
        self._record_and_log(
            address=address,
            method="-",
            uri="-",
            status_code=exc.status_code,
            bytes_in=bytes_in,
            bytes_out=bytes_sent,
            started_at=started_at,
        )

    def _send_error(self, client_socket: socket.socket, http_version: str, status_code: int) -> int:
        try:
            bytes_sent = write_status_line(client_socket, http_version, status_phrase(status_code))
            bytes_sent += write_content_length(client_socket, 0)
        except OSError as exc:
            self.metrics.record_write_error(exc.__class__.__name__)
            logger.debug("Could not send %s response: %s", status_code, exc)
            return 0
        return bytes_sent

    def _record_and_log(
        self,
        *,
        address: ClientAddress,
        method: str,
        uri: str,
        status_code: int,
        bytes_in: int,
        bytes_out: int,
        started_at: float,
    ) -> None:
        duration_ms = (time.perf_counter() - started_at) * 1000
        self.metrics.record_response(
            status_code=status_code,
            duration_ms=duration_ms,
            bytes_sent=bytes_out,
        )
        event = {
            "client": address[0],
            "method": method,
            "uri": uri,
            "status": status_code,
            "bytes_in": bytes_in,
            "bytes_out": bytes_out,
            "latency_ms": round(duration_ms, 3),
        }
        if self.log_format == "json":
            logger.info(json.dumps(event, sort_keys=True))
            return

        logger.info(
            "client=%s method=%s uri=%s status=%s bytes_in=%s bytes_out=%s duration_ms=%.2f",
            event["client"],
            event["method"],
            event["uri"],
            event["status"],
            event["bytes_in"],
            event["bytes_out"],
            duration_ms,
        )
