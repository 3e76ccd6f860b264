"""Request parsing and reply formatting for the LogQueue HTTP API."""

import re
from dataclasses import dataclass
from typing import AsyncIterator, Optional


MAX_MESSAGE_SIZE = 1024

_INVALID_NAME = re.compile(r"[^-.A-Za-z0-9]")
_LENGTH = re.compile(r"[0-9]+")
_SEQUENCE = re.compile(r"-?[0-9]+")


class ValidationError(ValueError):
    """Raised when a request is malformed. Nothing has been stored."""

    pass


class IncompleteBodyError(IOError):
    """Raised when the client sends fewer body bytes than it declared."""

    pass


@dataclass
class PutRequest:
    """A validated write request, before its body is read."""

    name: str
    length: int


@dataclass
class GetRequest:
    """A validated read request."""

    name: str
    seq: int


@dataclass
class Reply:
    """Protocol-level outcome of a request."""

    status: int
    body: bytes = b""
    media_type: str = "text/plain"


def validate_name(name: Optional[str]) -> str:
    """Check a queue name.

    Names become file names, so only ``[-.A-Za-z0-9]`` is allowed.
    """
    if not name or _INVALID_NAME.search(name):
        raise ValidationError("Invalid/Missing queue name")
    return name


def parse_put(
    name: Optional[str],
    content_length: Optional[str],
    max_size: int = MAX_MESSAGE_SIZE,
) -> PutRequest:
    """Validate a write request from its queue name and Content-Length."""
    name = validate_name(name)
    if content_length is None:
        raise ValidationError("No content-length found")
    if not _LENGTH.fullmatch(content_length.strip()):
        raise ValidationError("Invalid content-length")
    length = int(content_length)
    if length > max_size:
        raise ValidationError("Message content too big")
    return PutRequest(name=name, length=length)


def parse_get(name: Optional[str], seq: Optional[str]) -> GetRequest:
    """Validate a read request from its queue name and ``n`` parameter.

    Zero and negative numbers are valid here; they simply match no message.
    """
    name = validate_name(name)
    if seq is None or not seq.strip():
        raise ValidationError("Missing msg number")
    if not _SEQUENCE.fullmatch(seq.strip()):
        raise ValidationError("Invalid msg number")
    return GetRequest(name=name, seq=int(seq))


async def read_body(chunks: AsyncIterator[bytes], length: int) -> bytes:
    """Collect exactly ``length`` body bytes from a chunk stream.

    Never holds more than ``length`` bytes plus the overflowing chunk.
    """
    body = bytearray()
    async for chunk in chunks:
        if not chunk:
            continue
        body += chunk
        if len(body) > length:
            raise ValidationError("Body longer than content-length")
    if len(body) < length:
        raise IncompleteBodyError(
            f"Body shorter than content-length: expected {length} bytes, got {len(body)}"
        )
    return bytes(body)


def format_sequence(seq: int) -> Reply:
    """Format the sequence number assigned to a stored message."""
    return Reply(200, f"{seq}\n".encode("ascii"))


def format_message(payload: bytes) -> Reply:
    """Format a message payload."""
    return Reply(200, payload, "application/octet-stream")


def format_no_content() -> Reply:
    """Format a NO CONTENT reply (no message at that position)."""
    return Reply(204)


def format_not_found(name: str) -> Reply:
    """Format a reply for a queue that does not exist."""
    return format_error(f"No log found: {name}", 404)


def format_error(reason: str, status: int = 500) -> Reply:
    """Format an error reply."""
    return Reply(status, f"{reason}\n".encode("utf-8"))
