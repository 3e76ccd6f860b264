"""Binary framing of records inside a queue log file.

File format:
    [file header "EE|v1|"]
    [record]*

    record := ["\\n|EE|"][4-byte little-endian length]["\\n"][payload]

The length prefix is an unsigned 32-bit integer, so the codec itself
accepts payloads up to 4GB. The broker caps messages well below that.
"""

import os
import struct
from dataclasses import dataclass
from typing import BinaryIO, Optional

from .errors import FormatError, FormatErrorKind


FILE_HEADER = b"EE|v1|"
RECORD_MARKER = b"\n|EE|"
RECORD_TERMINATOR = b"\n"

_LENGTH = struct.Struct("<I")

RECORD_HEADER_SIZE = len(RECORD_MARKER) + _LENGTH.size + len(RECORD_TERMINATOR)


@dataclass(frozen=True)
class RecordPointer:
    """Location of one record's payload within a log file."""

    offset: int  # first payload byte, past the record header
    size: int

    @property
    def end(self) -> int:
        return self.offset + self.size


def write_file_header(file: BinaryIO) -> None:
    """Write the format signature at the start of a freshly created file."""
    file.seek(0)
    file.write(FILE_HEADER)
    file.flush()


def read_file_header(file: BinaryIO, path: Optional[str] = None) -> int:
    """Verify the file header and return the offset of the first record."""
    header = os.pread(file.fileno(), len(FILE_HEADER), 0)
    if header != FILE_HEADER:
        raise FormatError(
            FormatErrorKind.BAD_FILE_HEADER,
            f"expected {FILE_HEADER!r}, found {header!r}",
            path=path,
            offset=0,
        )
    return len(FILE_HEADER)


def encode_header(length: int) -> bytes:
    """Build the record header for a payload of ``length`` bytes."""
    return RECORD_MARKER + _LENGTH.pack(length) + RECORD_TERMINATOR


def write_record(file: BinaryIO, payload: bytes) -> RecordPointer:
    """Append a framed record at the current end of ``file``.

    The caller is responsible for serializing writers. Raw (unbuffered)
    files may accept fewer bytes per call, so the frame is written in a loop.
    """
    start = file.seek(0, os.SEEK_END)
    frame = memoryview(encode_header(len(payload)) + payload)
    while frame:
        written = file.write(frame)
        if not written:
            raise IOError(f"write returned {written!r} at offset {file.tell()}")
        frame = frame[written:]
    return RecordPointer(offset=start + RECORD_HEADER_SIZE, size=len(payload))


def read_record_header(file: BinaryIO, offset: int, path: Optional[str] = None) -> int:
    """Decode the record header at ``offset`` and return the payload length.

    Uses a positioned read so the file's write position is left untouched.
    """
    header = os.pread(file.fileno(), RECORD_HEADER_SIZE, offset)
    if len(header) < RECORD_HEADER_SIZE:
        raise FormatError(
            FormatErrorKind.TRUNCATED_RECORD,
            f"record header needs {RECORD_HEADER_SIZE} bytes, "
            f"only {len(header)} available",
            path=path,
            offset=offset,
        )

    marker_end = len(RECORD_MARKER)
    if header[:marker_end] != RECORD_MARKER:
        raise FormatError(
            FormatErrorKind.BAD_MAGIC,
            f"invalid record marker {header[:marker_end]!r}",
            path=path,
            offset=offset,
        )
    if header[-1:] != RECORD_TERMINATOR:
        raise FormatError(
            FormatErrorKind.BAD_TERMINATOR,
            f"invalid record terminator {header[-1:]!r}",
            path=path,
            offset=offset,
        )

    (length,) = _LENGTH.unpack_from(header, marker_end)
    return length
