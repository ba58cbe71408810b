"""Decompression of the compressed chunks stored in a package file."""

from __future__ import annotations

import struct
from dataclasses import dataclass
from enum import IntEnum
from typing import BinaryIO, Iterable

PACKAGE_TAG = 0x9E2A83C1
CHUNK_SIZE = 131072  # default block size of the engine

_M2_MAX_OFFSET = 0x800
_M4_BASE_OFFSET = 0x4000


class CompressionMethod(IntEnum):
    """Compression method recorded in a package header."""

    NONE = 0
    ZLIB = 1
    LZO = 2
    LZX = 4


@dataclass
class CompressedChunk:
    """Location of one compressed region and the data it expands to."""

    decompressed_offset: int
    decompressed_size: int
    compressed_offset: int
    compressed_size: int


class _LzoInput:
    """Bounds-checked cursor over LZO1X input."""

    def __init__(self, data: bytes) -> None:
        self.data = data
        self.pos = 0

    def byte(self) -> int:
        if self.pos >= len(self.data):
            raise ValueError("LZO input overrun")
        value = self.data[self.pos]
        self.pos += 1
        return value

    def take(self, count: int) -> bytes:
        end = self.pos + count
        if end > len(self.data):
            raise ValueError("LZO input overrun")
        chunk = self.data[self.pos:end]
        self.pos = end
        return chunk

    def le16(self) -> int:
        return int.from_bytes(self.take(2), "little")

    def run_length(self, base: int) -> int:
        start = self.pos
        while True:
            value = self.byte()
            if value:
                return (self.pos - 1 - start) * 255 + base + value


def _copy_match(out: bytearray, distance: int, length: int) -> None:
    if distance <= 0 or distance > len(out):
        raise ValueError("LZO lookbehind overrun")
    start = len(out) - distance
    if distance >= length:
        out += out[start:start + length]
    else:
        pattern = bytes(out[start:])
        repeats = length // distance + 1
        out += (pattern * repeats)[:length]


def _check_size(out: bytearray, out_size: int) -> None:
    if len(out) > out_size:
        raise ValueError(
            f"LZO decompression failed. Size = {len(out)}, expected = {out_size}"
        )


def lzo1x_decompress(data: bytes, out_size: int) -> bytes:
    """Decompress an LZO1X stream whose output must fit in ``out_size`` bytes."""
    data = bytes(data)
    if len(data) < 3:
        raise ValueError("LZO input too short")
    src = _LzoInput(data)
    out = bytearray()
    state = 0

    if data[0] > 17:
        count = src.byte() - 17
        out += src.take(count)
        state = count if count < 4 else 4
        _check_size(out, out_size)

    while True:
        t = src.byte()
        if t < 16:
            if state == 0:
                if t == 0:
                    t = src.run_length(15)
                out += src.take(t + 3)
                state = 4
                _check_size(out, out_size)
                continue
            following = t & 3
            if state != 4:
                distance = 1 + (t >> 2) + (src.byte() << 2)
                length = 2
            else:
                distance = 1 + _M2_MAX_OFFSET + (t >> 2) + (src.byte() << 2)
                length = 3
        elif t >= 64:
            following = t & 3
            distance = 1 + ((t >> 2) & 7) + (src.byte() << 3)
            length = (t >> 5) + 1
        elif t >= 32:
            length = (t & 31) + 2
            if length == 2:
                length = src.run_length(31) + 2
            word = src.le16()
            distance = 1 + (word >> 2)
            following = word & 3
        else:
            length = (t & 7) + 2
            if length == 2:
                length = src.run_length(7) + 2
            word = src.le16()
            distance = ((t & 8) << 11) + (word >> 2)
            following = word & 3
            if distance == 0:
                if length != 3:
                    raise ValueError("LZO stream has a malformed end marker")
                break
            distance += _M4_BASE_OFFSET

        _copy_match(out, distance, length)
        out += src.take(following)
        state = following
        _check_size(out, out_size)

    return bytes(out)


def decompress_chunk(compressed: bytes, mode: CompressionMethod, expected_size: int) -> bytes:
    """Decompress one block, zero-padding the result to ``expected_size``."""
    mode = CompressionMethod(mode)
    if mode is not CompressionMethod.LZO:
        raise ValueError(f"unsupported compression method: {mode.name}")
    out = lzo1x_decompress(compressed, expected_size)
    return out.ljust(expected_size, b"\0")


def _read_exact(reader: BinaryIO, size: int) -> bytes:
    data = reader.read(size)
    if len(data) != size:
        raise EOFError(f"expected {size} bytes, got {len(data)}")
    return data


def upk_decompress(
    reader: BinaryIO, mode: CompressionMethod, chunks: Iterable[CompressedChunk]
) -> list[bytes]:
    """Decompress every chunk and return the expanded data of each, in order."""
    result = []
    for chunk in chunks:
        reader.seek(chunk.compressed_offset)
        head = _read_exact(reader, 16)
        (tag,) = struct.unpack_from("<I", head)
        order = "<"
        if tag != PACKAGE_TAG:
            if struct.unpack_from(">I", head)[0] != PACKAGE_TAG:
                raise ValueError(f"Invalid tag (0x{tag:04x})")
            order = ">"
        _, block_size, _, total_size = struct.unpack(order + "4I", head)
        if block_size == PACKAGE_TAG:
            block_size = CHUNK_SIZE
        if block_size == 0:
            raise ValueError("compressed chunk declares a block size of zero")

        block_count = -(-total_size // block_size)
        sizes = [
            struct.unpack(order + "2I", _read_exact(reader, 8)) for _ in range(block_count)
        ]

        data = bytearray()
        for compressed_size, decompressed_size in sizes:
            data += decompress_chunk(
                _read_exact(reader, compressed_size), mode, decompressed_size
            )
        if chunk.decompressed_size > len(data):
            data += bytes(chunk.decompressed_size - len(data))
        result.append(bytes(data))
    return result