"""Listening socket, accept loop and command-line entry point."""

from __future__ import annotations

import argparse
import logging
import os
import signal
import socket
import sys
import threading
from collections.abc import Sequence

from config import (
    ACCEPT_POLL_SECS,
    BACKLOG,
    HOST,
    LOG_FORMAT,
    LOG_LEVEL,
    PORT,
    REQUEST_QUEUE_SIZE,
    WORKER_COUNT,
)
from handlers.static_handler import StaticFileHandler
from metrics import MetricsRegistry
from thread_pool import ThreadPool

logger = logging.getLogger(__name__)


class ServerStartupError(OSError):
    """Raised when the listening socket cannot be created, bound or put in listen mode."""


class HTTPServer:
    def __init__(
        self,
        web_root: str,
        host: str = HOST,
        port: int = PORT,
        *,
        backlog: int = BACKLOG,
        worker_count: int = WORKER_COUNT,
        request_queue_size: int = REQUEST_QUEUE_SIZE,
        log_format: str = LOG_FORMAT,
        accept_poll_secs: float = ACCEPT_POLL_SECS,
        drain_on_stop: bool = True,
    ) -> None:
        self.web_root = web_root
        self.host = host
        self.port = port
        self.backlog = backlog
        self.worker_count = worker_count
        self.request_queue_size = request_queue_size
        self.accept_poll_secs = accept_poll_secs
        self.drain_on_stop = drain_on_stop
        self.metrics = MetricsRegistry()
        self.handler = StaticFileHandler(web_root, metrics=self.metrics, log_format=log_format)

        self._pool: ThreadPool | None = None
        self._running = False
        self._stop_requested = threading.Event()
        self._started = threading.Event()
        self._stopped = threading.Event()

    @property
    def pool(self) -> ThreadPool | None:
        return self._pool

    @property
    def stop_requested(self) -> bool:
        return self._stop_requested.is_set()

    @property
    def running(self) -> bool:
        return self._running and not self._stop_requested.is_set()

    def start(self) -> None:
        """Listen and hand accepted connections to the worker pool until stopped."""
        try:
            server_socket = self._open_listening_socket()
        except OSError as exc:
            self._stopped.set()
            raise ServerStartupError(f"Cannot listen on {self.host}:{self.port}: {exc}") from exc

        with server_socket:
            self.port = server_socket.getsockname()[1]
            self._pool = ThreadPool(
                worker_count=self.worker_count,
                queue_size=self.request_queue_size,
                handler=self.handler,
            )
            self._pool.start()
            self._running = True
            self._started.set()
            logger.info(
                "Serving %s on %s:%s with %s workers",
                self.web_root,
                self.host,
                self.port,
                self.worker_count,
            )
            try:
                self._accept_loop(server_socket, self._pool)
            finally:
                self._running = False
                pool, self._pool = self._pool, None
                pool.shutdown(drain=self.drain_on_stop)
                logger.info("Server on port %s stopped", self.port)
                self._stopped.set()

    def request_stop(self) -> None:
        """Ask the accept loop to exit; safe to call from a signal handler."""
        self._stop_requested.set()

    def stop(self, timeout: float | None = None) -> bool:
        """Stop accepting, let the pool finish, and wait for start() to return."""
        self.request_stop()
        if not self._started.is_set():
            return True
        return self._stopped.wait(timeout=timeout)

    def wait_until_listening(self, timeout: float | None = None) -> bool:
        return self._started.wait(timeout=timeout)

    def _open_listening_socket(self) -> socket.socket:
        server_socket = socket.socket(socket.AF_INET, socket.SOCK_STREAM)
        try:
            server_socket.setsockopt(socket.SOL_SOCKET, socket.SO_REUSEADDR, 1)
            server_socket.bind((self.host, self.port))
            server_socket.listen(self.backlog)
            server_socket.settimeout(self.accept_poll_secs)
        except OSError:
            server_socket.close()
            raise
        return server_socket

    def _accept_loop(self, server_socket: socket.socket, pool: ThreadPool) -> None:
        while not self._stop_requested.is_set():
            try:
                client_socket, address = server_socket.accept()
            except socket.timeout:
                continue
            except OSError as exc:
                if self._stop_requested.is_set():
                    break
                self.metrics.record_accept_error()
                logger.warning("accept() failed: %s", exc)
                continue

            self.metrics.connection_accepted()
            self._dispatch(client_socket, address, pool)

    def _dispatch(
        self,
        client_socket: socket.socket,
        address: tuple[str, int],
        pool: ThreadPool,
    ) -> None:
        # Block while the queue is full, but keep noticing stop requests.
        while not pool.submit(client_socket, address, timeout=self.accept_poll_secs):
            if pool.closed or self._stop_requested.is_set():
                self._reject(client_socket, address)
                return

    def _reject(self, client_socket: socket.socket, address: tuple[str, int]) -> None:
        self.metrics.record_rejected_submission()
        logger.warning("Server stopping; closing unqueued connection from %s", address[0])
        client_socket.close()


def _parse_args(argv: Sequence[str] | None = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="Serve static files from a web root")
    parser.add_argument("port", type=int, help="TCP port to listen on")
    parser.add_argument("webroot", help="directory holding the files to serve")
    parser.add_argument("--host", default=HOST)
    parser.add_argument("--backlog", type=int, default=BACKLOG)
    parser.add_argument("--workers", type=int, default=WORKER_COUNT)
    parser.add_argument("--queue-size", type=int, default=REQUEST_QUEUE_SIZE)
    parser.add_argument("--log-format", choices=["plain", "json"], default=LOG_FORMAT)
    parser.add_argument(
        "--log-level",
        choices=["DEBUG", "INFO", "WARNING", "ERROR"],
        default=LOG_LEVEL,
    )
    return parser.parse_args(argv)


def _install_signal_handlers(server: HTTPServer) -> dict[int, object]:
    if threading.current_thread() is not threading.main_thread():
        return {}

    previous: dict[int, object] = {}

    def _handle_signal(signum: int, _frame: object) -> None:
        # The next SIGINT/SIGTERM goes to the previous handlers and ends the process.
        for restored, handler in previous.items():
            signal.signal(restored, handler)
        logger.info(
            "Received %s, shutting down; send it again to force exit",
            signal.Signals(signum).name,
        )
        server.request_stop()

    for signum in (signal.SIGINT, signal.SIGTERM):
        previous[signum] = signal.signal(signum, _handle_signal)
    return previous


def main(argv: Sequence[str] | None = None) -> int:
    args = _parse_args(argv)
    logging.basicConfig(
        level=args.log_level,
        format="%(asctime)s %(levelname)s %(threadName)s %(name)s: %(message)s",
    )
    if not os.path.isdir(args.webroot):
        logger.warning("Web root %s is not a directory; every request will 404", args.webroot)

    server = HTTPServer(
        web_root=args.webroot,
        host=args.host,
        port=args.port,
        backlog=args.backlog,
        worker_count=args.workers,
        request_queue_size=args.queue_size,
        log_format=args.log_format,
    )
    previous_handlers = _install_signal_handlers(server)
    try:
        server.start()
    except ServerStartupError as exc:
        logger.error("%s", exc)
        return 1
    except KeyboardInterrupt:
        logger.warning("Forced exit before in-flight requests finished")
        return 130
    finally:
        for signum, handler in previous_handlers.items():
            signal.signal(signum, handler)
    return 0


if __name__ == "__main__":
    sys.exit(main())
