"""Configuration constants for the static file server."""

HOST: str = "0.0.0.0"
PORT: int = 8080
BACKLOG: int = 128
BUFFER_SIZE: int = 2048
LINGER_SECS: float = 1.0
DRAIN_LIMIT_BYTES: int = 65_536
WORKER_COUNT: int = 4
REQUEST_QUEUE_SIZE: int = 64
ACCEPT_POLL_SECS: float = 0.2
SUBMIT_POLL_SECS: float = 0.2
LOG_FORMAT: str = "plain"
LOG_LEVEL: str = "INFO"
