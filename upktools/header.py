"""The package summary header: reading, writing and description."""

from __future__ import annotations

import struct
from dataclasses import asdict, dataclass, field
from enum import IntFlag
from typing import Any, BinaryIO

from upktools.decompress import PACKAGE_TAG, CompressedChunk, CompressionMethod


class PackageFlags(IntFlag):
    """Flags stored in the header of a package."""

    AllowDownload = 0x1
    ClientOptional = 0x2
    ServerSideOnly = 0x4
    Cooked = 0x8
    Unsecure = 0x10
    SavedWithNewerVersion = 0x20
    Need = 0x8000
    ContainsMap = 0x20000
    Trash = 0x40000
    DisallowLazyLoading = 0x100000
    ContainsScript = 0x200000
    ContainsDebugInfo = 0x400000
    RequireImportsAlreadyLoaded = 0x800000
    StoreCompressed = 0x2000000
    StoreFullyCompressed = 0x4000000
    ContainsFaceFxData = 0x10000000
    NoExportAllowed = 0x20000000
    StrippedSource = 0x40000000
    FilterEditorOnly = 0x80000000

    def flag_names(self) -> list[str]:
        """Names of the set flags that are shown in a header description."""
        return [flag.name for flag in _LISTED_FLAGS if flag & self]


_LISTED_FLAGS = tuple(
    flag for flag in PackageFlags if flag is not PackageFlags.ContainsFaceFxData
)
_ALL_FLAGS_MASK = 0
for _flag in PackageFlags:
    _ALL_FLAGS_MASK |= int(_flag)


@dataclass
class GenerationInfo:
    """Counts recorded for one save generation of a package."""

    export_count: int
    name_count: int
    net_obj_count: int


@dataclass
class UpkHeader:
    """The summary at the start of a package file."""

    sign: int = PACKAGE_TAG
    p_ver: int = 0
    l_ver: int = 0
    header_size: int = 0
    path_len: int = 0
    path: bytes = b""
    pak_flags: int = 0
    name_count: int = 0
    name_offset: int = 0
    export_count: int = 0
    export_offset: int = 0
    import_count: int = 0
    import_offset: int = 0
    depends_offset: int = 0
    import_export_guids_offset: int = -1
    import_guids_count: int = 0
    export_guids_count: int = 0
    thumbnail_table_offset: int = 0
    guid: tuple[int, int, int, int] = (0, 0, 0, 0)
    gen_count: int = 0
    gens: list[GenerationInfo] = field(default_factory=list)
    engine_ver: int = 0
    cooker_ver: int = 0
    compression_method: CompressionMethod = CompressionMethod.NONE
    compressed_chunks_count: int = 0
    compressed_chunks: list[CompressedChunk] = field(default_factory=list)
    package_source: int = 0
    additional_packages: int = -1
    texture_allocs: int = -1

    def write(self, stream: BinaryIO) -> None:
        """Serialize the header to ``stream`` in the on-disk layout."""
        out = bytearray()
        out += struct.pack("<Ihhii", self.sign, self.p_ver, self.l_ver, self.header_size, self.path_len)
        out += self.path
        out += struct.pack(
            "<I7i",
            self.pak_flags,
            self.name_count,
            self.name_offset,
            self.export_count,
            self.export_offset,
            self.import_count,
            self.import_offset,
            self.depends_offset,
        )
        if self.p_ver >= 623:
            out += struct.pack(
                "<iII",
                self.import_export_guids_offset,
                self.import_guids_count,
                self.export_guids_count,
            )
        if self.p_ver >= 584:
            out += struct.pack("<I", self.thumbnail_table_offset)
        out += struct.pack("<4i", *self.guid)
        out += struct.pack("<i", len(self.gens))
        for gen in self.gens:
            out += struct.pack("<3i", gen.export_count, gen.name_count, gen.net_obj_count)
        out += struct.pack(
            "<iiII",
            self.engine_ver,
            self.cooker_ver,
            int(self.compression_method),
            self.compressed_chunks_count,
        )
        if self.compressed_chunks_count > 0:
            for chunk in self.compressed_chunks:
                out += struct.pack(
                    "<4I",
                    chunk.decompressed_offset,
                    chunk.decompressed_size,
                    chunk.compressed_offset,
                    chunk.compressed_size,
                )
        out += struct.pack("<i", self.package_source)
        if self.p_ver >= 516:
            out += struct.pack("<i", self.additional_packages)
        if self.p_ver >= 767:
            out += struct.pack("<i", self.texture_allocs)
        stream.write(bytes(out))

    def describe(self) -> str:
        """A human-readable multi-line description of the header."""
        folder = _debug_quote(self.path.decode("utf-8", errors="replace"))
        lines = [
            f"Package Signature: {self.sign:x}",
            f"Package Version: {self.p_ver}",
            f"Licensee Version: {self.l_ver}",
            f"Header Size: {self.header_size}",
            f"Folder: {folder}",
            f"Package Flags (0x{self.pak_flags & 0xFFFFFFFF:08x}):",
        ]
        flags = PackageFlags(self.pak_flags & _ALL_FLAGS_MASK)
        lines += [f" - {name}" for name in flags.flag_names()]
        lines += [
            f"Name Count: {self.name_count}",
            f"Export Count: {self.export_count}",
            f"Import Count: {self.import_count}",
        ]
        if self.p_ver >= 623:
            lines += [
                f"Import/Export Guids pos: {self.import_export_guids_offset}",
                f"Import Guids Count: {self.import_guids_count}",
                f"Export Guids Count: {self.export_guids_count}",
            ]
        if self.p_ver >= 584:
            lines.append(f"Thumbnail table pos: {self.thumbnail_table_offset}")
        guid = ", ".join(f"{value & 0xFFFFFFFF:x}" for value in self.guid)
        lines.append(f"GUID: [{guid}]")
        if self.gen_count > 0:
            lines.append(f"Generations (Count={self.gen_count}):")
        for i, gen in enumerate(self.gens):
            lines += [
                f" - Gen {i}:",
                f"   * Exports = {gen.export_count}",
                f"   * Names   = {gen.name_count}",
                f"   * NetObjs = {gen.net_obj_count}",
            ]
        method = CompressionMethod(self.compression_method)
        lines += [
            f"Engine Version: {self.engine_ver}",
            f"Cooker Version: {self.cooker_ver}",
            f"Compression Flags: {method.name.capitalize()}",
        ]
        if method is not CompressionMethod.NONE:
            lines.append(f"Num of compressed chunks: {self.compressed_chunks_count}")
            for i, chunk in enumerate(self.compressed_chunks):
                lines += [
                    f" - Chunk {i}:",
                    f"   * Decompressed offset = {chunk.decompressed_offset}",
                    f"   * Decompressed size   = {chunk.decompressed_size}",
                    f"   * Compressed offset   = {chunk.compressed_offset}",
                    f"   * Compressed size     = {chunk.compressed_size}",
                ]
        lines.append(f"Package Source: {self.package_source}")
        if self.p_ver >= 516:
            lines.append(f"Additional packages: {self.additional_packages}")
        if self.p_ver >= 767:
            lines.append(f"Texture Allocations: {self.texture_allocs}")
        return "".join(line + "\n" for line in lines)

    def __str__(self) -> str:
        return self.describe()

    def to_dict(self) -> dict[str, Any]:
        """A JSON-compatible dictionary of every header field."""
        data = asdict(self)
        data["path"] = list(self.path)
        data["guid"] = list(self.guid)
        data["compression_method"] = int(self.compression_method)
        return data


_ESCAPES = {'"': '\\"', "\\": "\\\\", "\n": "\\n", "\r": "\\r", "\t": "\\t", "\0": "\\0"}


def _debug_quote(text: str) -> str:
    parts = []
    for ch in text:
        if ch in _ESCAPES:
            parts.append(_ESCAPES[ch])
        elif ord(ch) < 0x20 or ch == "\x7f":
            parts.append(f"\\u{{{ord(ch):x}}}")
        else:
            parts.append(ch)
    return '"' + "".join(parts) + '"'


def _unpack(stream: BinaryIO, fmt: str) -> tuple:
    size = struct.calcsize(fmt)
    data = stream.read(size)
    if len(data) != size:
        raise EOFError(f"expected {size} bytes, got {len(data)}")
    return struct.unpack(fmt, data)


def read_header(stream: BinaryIO) -> UpkHeader:
    """Read and validate a package header from the current position of ``stream``."""
    (sign,) = _unpack(stream, "<I")
    if sign != PACKAGE_TAG:
        raise ValueError(f"Invalid file signature, sig=0x{sign:X}")

    p_ver, l_ver, header_size, path_len = _unpack(stream, "<hhii")
    raw_len = path_len * -2 if path_len < 0 else path_len
    path = stream.read(raw_len)
    if len(path) != raw_len:
        raise EOFError(f"expected {raw_len} bytes, got {len(path)}")

    (
        pak_flags,
        name_count,
        name_offset,
        export_count,
        export_offset,
        import_count,
        import_offset,
        depends_offset,
    ) = _unpack(stream, "<I7i")
    if import_count <= 0 or name_count <= 0 or export_count <= 0:
        raise ValueError("Corrupted pak")

    header = UpkHeader(
        sign=sign,
        p_ver=p_ver,
        l_ver=l_ver,
        header_size=header_size,
        path_len=path_len,
        path=path,
        pak_flags=pak_flags,
        name_count=name_count,
        name_offset=name_offset,
        export_count=export_count,
        export_offset=export_offset,
        import_count=import_count,
        import_offset=import_offset,
        depends_offset=depends_offset,
    )

    if p_ver >= 623:
        (
            header.import_export_guids_offset,
            header.import_guids_count,
            header.export_guids_count,
        ) = _unpack(stream, "<iII")
    if p_ver >= 584:
        (header.thumbnail_table_offset,) = _unpack(stream, "<I")

    header.guid = _unpack(stream, "<4i")
    (header.gen_count,) = _unpack(stream, "<i")
    header.gens = [GenerationInfo(*_unpack(stream, "<3i")) for _ in range(header.gen_count)]

    header.engine_ver, header.cooker_ver, method, chunk_count = _unpack(stream, "<iiII")
    header.compression_method = CompressionMethod(method)
    header.compressed_chunks_count = chunk_count
    header.compressed_chunks = [
        CompressedChunk(*_unpack(stream, "<4I")) for _ in range(chunk_count)
    ]

    (header.package_source,) = _unpack(stream, "<i")
    if p_ver >= 516:
        (header.additional_packages,) = _unpack(stream, "<i")
    if p_ver >= 767:
        (header.texture_allocs,) = _unpack(stream, "<i")
    return header


def header_from_dict(data: dict[str, Any]) -> UpkHeader:
    """Rebuild a header from the dictionary produced by ``UpkHeader.to_dict``."""
    values = dict(data)
    values["path"] = bytes(values["path"])
    values["guid"] = tuple(values["guid"])
    values["gens"] = [GenerationInfo(**gen) for gen in values["gens"]]
    values["compressed_chunks"] = [CompressedChunk(**c) for c in values["compressed_chunks"]]
    values["compression_method"] = CompressionMethod(values["compression_method"])
    return UpkHeader(**values)