"""HTTP request-line model and parser."""

from dataclasses import dataclass


class HTTPRequestParseError(ValueError):
    """Request parse error carrying an HTTP status code."""

    def __init__(self, message: str, *, status_code: int = 400) -> None:
        super().__init__(message)
        self.status_code = status_code


@dataclass(frozen=True, slots=True)
class HTTPRequest:
    method: str
    uri: str
    http_version: str

    @classmethod
    def from_bytes(cls, raw: bytes) -> "HTTPRequest":
        """Parse the request line out of raw request bytes.

        Only the first line is considered; anything after it is ignored.
        """
        if not raw:
            raise HTTPRequestParseError("Empty request")

        first_line = raw.split(b"\n", 1)[0].decode("iso-8859-1")
        tokens = first_line.split()
        if len(tokens) != 3:
            raise HTTPRequestParseError("Invalid request line")

        method, uri, http_version = tokens
        return cls(method=method, uri=uri, http_version=http_version)
