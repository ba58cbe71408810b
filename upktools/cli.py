"""Command-line interface for inspecting and extracting package files."""

from __future__ import annotations

import argparse
import dataclasses
import io
import json
import os
import sys
from pathlib import Path
from typing import Sequence

from upktools.decompress import CompressionMethod, upk_decompress
from upktools.extract import extract_by_name
from upktools.header import PackageFlags, UpkHeader, header_from_dict, read_header
from upktools.package import list_full_obj_paths, package_from_dict, parse_upk
from upktools.props import Property, get_obj_props
from upktools.strings import read_name

_DEFAULT_NAMES_FILE = "names_table.txt"
_DEFAULT_OUTPUT_DIR = "output"
_CHUNK_ENTRY_SIZE = 16


def _rebuild_uncompressed(data: bytes, header: UpkHeader, header_end: int) -> bytes:
    """Assemble the uncompressed form of a compressed package."""
    clone = dataclasses.replace(
        header,
        compression_method=CompressionMethod.NONE,
        compressed_chunks_count=0,
        pak_flags=header.pak_flags & ~int(PackageFlags.StoreCompressed),
    )
    chunks = sorted(header.compressed_chunks, key=lambda c: c.decompressed_offset)
    first_offset = chunks[0].compressed_offset
    blocks = upk_decompress(io.BytesIO(data), header.compression_method, chunks)

    out = io.BytesIO()
    clone.write(out)

    if first_offset > header_end:
        out.write(data[header_end + len(chunks) * _CHUNK_ENTRY_SIZE:first_offset])

    for i, (chunk, block) in enumerate(zip(chunks, blocks)):
        if i:
            previous = chunks[i - 1]
            prev_end = previous.compressed_offset + previous.compressed_size
            out.write(data[prev_end:chunk.compressed_offset])
        out.seek(chunk.decompressed_offset)
        out.write(block)

    last = chunks[-1].compressed_offset + chunks[-1].compressed_size
    if len(data) > last:
        out.write(data[last:])
    return out.getvalue()


def load_package(path: str | os.PathLike) -> tuple[bytes, UpkHeader]:
    """Read a package and its header, decompressing the file in place first if needed."""
    path = Path(path)
    while True:
        data = path.read_bytes()
        stream = io.BytesIO(data)
        header = read_header(stream)
        header_end = stream.tell()
        print(header)

        if header.compression_method is CompressionMethod.NONE:
            return data, header
        if not header.compressed_chunks_count:
            raise ValueError("package is marked compressed but lists no compressed chunks")

        print("File is compressed, trying decompress...")
        rebuilt = _rebuild_uncompressed(data, header, header_end)
        temporary = path.with_name(path.name + ".tmp")
        temporary.write_bytes(rebuilt)
        os.replace(temporary, path)
        print("File is decompressed. Reopening file")


def getlist(path: str | os.PathLike) -> list[str]:
    """Print and return the full name of every object in a package."""
    data, header = load_package(path)
    pkg = parse_upk(io.BytesIO(data), header)
    names = list_full_obj_paths(pkg)
    for i, name in enumerate(names):
        print(f"#{i} {name}")
    return names


def dump_names(upk_path: str | os.PathLike, output_path: str | os.PathLike = "") -> list[str]:
    """Print the name table and write it, one name per line, to ``output_path``."""
    output_path = output_path or _DEFAULT_NAMES_FILE
    data, header = load_package(upk_path)
    stream = io.BytesIO(data)
    stream.seek(header.name_offset)

    print(f"Names: (count = {header.name_count})")
    names = []
    with open(output_path, "w", encoding="utf-8", newline="\n") as out:
        for i in range(header.name_count):
            name = read_name(stream).name
            print(f"Name[{i}]: {name}")
            out.write(name + "\n")
            names.append(name)
    return names


def extract_file(
    upk_path: str | os.PathLike,
    path: str,
    output_dir: str | os.PathLike = "",
    all_objects: bool = False,
) -> list[Path]:
    """Extract matching objects and write a metadata file describing the package."""
    output_dir = Path(output_dir or _DEFAULT_OUTPUT_DIR)
    stem = Path(upk_path).stem
    dir_path = output_dir / stem

    data, header = load_package(upk_path)
    pkg = parse_upk(io.BytesIO(data), header)

    dir_path.mkdir(parents=True, exist_ok=True)
    document = [stem, str(upk_path), header.to_dict(), pkg.to_dict()]
    dir_path.with_suffix(".json").write_text(
        json.dumps(document, indent=4) + "\n", encoding="utf-8"
    )

    return extract_by_name(data, pkg, path, dir_path, all_objects)


def print_obj_elements(meta_path: str | os.PathLike, path: str | os.PathLike) -> list[Property]:
    """Print the properties of an extracted object using a package's metadata file."""
    if not str(path):
        raise ValueError("No object file provided")
    if not str(meta_path):
        raise ValueError("No metadata file provided")

    try:
        text = Path(meta_path).read_text(encoding="utf-8")
    except FileNotFoundError as exc:
        raise FileNotFoundError(f"File `{meta_path}` not found") from exc
    try:
        document = json.loads(text)
        _, _, header_data, pkg_data = document
        header_from_dict(header_data)
        pkg = package_from_dict(pkg_data)
    except (json.JSONDecodeError, TypeError, KeyError) as exc:
        raise ValueError(f"malformed metadata file `{meta_path}`") from exc

    object_data = Path(path).read_bytes()
    return get_obj_props(io.BytesIO(object_data), pkg.name_table, True)


def _build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="upktools", description="Unreal3 upk stuff")
    commands = parser.add_subparsers(dest="command", required=True)

    cmd = commands.add_parser("upk-header", help="Print header info of upk file")
    cmd.add_argument("path")

    cmd = commands.add_parser("elements", help="Print elements in object")
    cmd.add_argument("meta_path")
    cmd.add_argument("path")

    cmd = commands.add_parser("list", help="Print list of objects in upk file")
    cmd.add_argument("path")

    cmd = commands.add_parser("names", help="Print or extract names in upk file")
    cmd.add_argument("path")
    cmd.add_argument("output_path", nargs="?", default="")

    cmd = commands.add_parser("extract", help="Extract specific object from upk")
    cmd.add_argument("upk_path")
    cmd.add_argument("path")
    cmd.add_argument("output_dir", nargs="?", default="")

    cmd = commands.add_parser("extractall", help="Extract all objects from upk")
    cmd.add_argument("upk_path")
    cmd.add_argument("output_dir", nargs="?", default="")
    return parser


def main(argv: Sequence[str] | None = None) -> int:
    """Run the command line; return the process exit status."""
    args = _build_parser().parse_args(argv)
    try:
        if args.command == "upk-header":
            load_package(args.path)
        elif args.command == "elements":
            print_obj_elements(args.meta_path, args.path)
        elif args.command == "list":
            getlist(args.path)
        elif args.command == "names":
            dump_names(args.path, args.output_path)
        elif args.command == "extract":
            extract_file(args.upk_path, args.path, args.output_dir, False)
        elif args.command == "extractall":
            extract_file(args.upk_path, "", args.output_dir, True)
    except (OSError, ValueError, EOFError) as exc:
        print(f"Error: {exc}", file=sys.stderr)
        return 1
    return 0


if __name__ == "__main__":
    sys.exit(main())