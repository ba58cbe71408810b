"""Reading of the name and string encodings used inside packages."""

from __future__ import annotations

import struct
from dataclasses import dataclass
from typing import BinaryIO


@dataclass
class NameEntry:
    """One entry of a package's name table."""

    name: str
    flags: int


def _read_exact(stream: BinaryIO, size: int) -> bytes:
    data = stream.read(size)
    if len(data) != size:
        raise EOFError(f"expected {size} bytes, got {len(data)}")
    return data


def _read_i32(stream: BinaryIO) -> int:
    return struct.unpack("<i", _read_exact(stream, 4))[0]


def read_name(stream: BinaryIO) -> NameEntry:
    """Read a name-table entry: a length-prefixed name and 64-bit flags."""
    length = _read_i32(stream)
    if length < 0:
        raw = _read_exact(stream, -length * 2)
        try:
            name = raw[:-2].decode("utf-16-le")
        except UnicodeDecodeError:
            name = "<invalid_utf16>"
    else:
        raw = _read_exact(stream, length)
        name = raw[:-1].decode("latin-1")
    (flags,) = struct.unpack("<Q", _read_exact(stream, 8))
    return NameEntry(name, flags)


def read_string(stream: BinaryIO) -> str:
    """Read a length-prefixed string, Latin-1 when positive, UTF-16 when negative."""
    length = _read_i32(stream)
    if length == 0:
        return ""
    if length > 0:
        raw = _read_exact(stream, length)
        if raw.endswith(b"\0"):
            raw = raw[:-1]
        return raw.decode("latin-1")
    raw = _read_exact(stream, -length * 2)
    if raw[-2:] == b"\0\0":
        raw = raw[:-2]
    try:
        return raw.decode("utf-16-le")
    except UnicodeDecodeError as exc:
        raise ValueError("Invalid UTF16") from exc