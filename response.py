"""HTTP response line serializers."""

REASON_PHRASES: dict[int, str] = {
    200: "OK",
    400: "Bad Request",
    404: "Not Found",
    500: "Internal Server Error",
}

DEFAULT_HTTP_VERSION = "HTTP/1.1"
OCTET_STREAM = "application/octet-stream"


def status_phrase(status_code: int) -> str:
    reason = REASON_PHRASES.get(status_code, "Unknown")
    return f"{status_code} {reason}"


def status_line(http_version: str, phrase: str) -> bytes:
    return f"{http_version} {phrase}\r\n".encode("iso-8859-1")


def header_line(name: str, value: str) -> bytes:
    if "\r" in value or "\n" in value:
        raise ValueError("Header value cannot contain line breaks")
    return f"{name}: {value}\r\n".encode("iso-8859-1")


def content_length_lines(byte_count: int) -> bytes:
    """Serialize the Content-Length header together with the blank line ending the head."""
    if byte_count < 0:
        raise ValueError("Content-Length cannot be negative")
    return f"Content-Length: {byte_count}\r\n\r\n".encode("ascii")


def parse_response_head(raw: bytes) -> tuple[str, dict[str, str], bytes]:
    """Split a serialized response into (status line, headers, body)."""
    head, separator, body = raw.partition(b"\r\n\r\n")
    if not separator:
        raise ValueError("Missing CRLF CRLF response separator")

    lines = head.decode("iso-8859-1").split("\r\n")
    headers: dict[str, str] = {}
    for line in lines[1:]:
        if ":" not in line:
            raise ValueError("Malformed header line")
        name, value = line.split(":", 1)
        headers[name.strip()] = value.strip()
    return lines[0], headers, body
