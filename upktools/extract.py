"""Extraction of exported objects from a package to files."""

from __future__ import annotations

import io
import json
from pathlib import Path
from typing import Any, Sequence

from upktools.package import UPKPak, ue_name_to_path
from upktools.props import Property, PropertyKind, PropertyValue, get_obj_props


def _write_props(target: Path, label: str, props: list[Property]) -> None:
    document: list[Any] = [label, [prop.to_dict() for prop in props]]
    target.write_text(json.dumps(document, indent=4) + "\n", encoding="utf-8")


def write_extracted_file(path: Path | str, data: bytes, names: Sequence[str]) -> Path:
    """Write one exported object and return the path of the main file written.

    Object referencers become a JSON description of their properties; movies
    have their raw data written to a ``.gfx`` file beside such a description.
    Anything else is written unchanged to ``path``.
    """
    path = Path(path)
    ext = path.suffix[1:]
    if not ext:
        raise ValueError(f"object path {path} has no class extension")
    name = path.stem
    directory = path.parent

    if ext == "ObjectReferencer":
        props = get_obj_props(io.BytesIO(data), names, False)
        target = directory / f"{name}.json"
        _write_props(target, f"{name}.{ext}", props)
        return target

    if ext in ("SwfMovie", "GFxMovieInfo"):
        props = get_obj_props(io.BytesIO(data), names, False)
        raw_prop = next((p for p in props if p.name == "RawData"), None)
        if raw_prop is None:
            raise ValueError(f"{name}.{ext} has no RawData property")
        elements = raw_prop.value.as_list() or []
        movie = bytes(b for b in (e.as_byte() for e in elements) if b is not None)
        if not movie:
            path.write_bytes(data)
            return path
        for prop in props:
            if prop.name == "RawData":
                prop.value = PropertyValue(PropertyKind.STRING, f"{name}.gfx")
        _write_props(directory / f"{name}.json", f"{name}.{ext}", props)
        target = directory / f"{name}.gfx"
        target.write_bytes(movie)
        return target

    path.write_bytes(data)
    return path


def extract_by_name(
    data: bytes, pkg: UPKPak, path: str, out_dir: Path | str, all_objects: bool = False
) -> list[Path]:
    """Extract every export whose name contains ``path``, or all of them.

    Returns the paths written, in export order.
    """
    out_dir = Path(out_dir)
    written: list[Path] = []
    for index, entry in enumerate(pkg.export_table, start=1):
        full_name = pkg.get_export_full_name(index)
        fs_path = ue_name_to_path(full_name)
        if not (all_objects or path in fs_path or path in full_name):
            continue

        file_path = out_dir / fs_path
        file_path.parent.mkdir(parents=True, exist_ok=True)

        start, size = entry.serial_offset, entry.serial_size
        if start < 0 or size < 0 or start + size > len(data):
            raise EOFError(f"export {full_name} lies outside the package data")
        buffer = bytes(data[start:start + size])

        out_path = write_extracted_file(file_path, buffer, pkg.name_table)
        print(
            f"Exported \x1b[93m{full_name}\x1b[0m (\x1b[33m{len(buffer)}\x1b[0m bytes) to\n"
            f"\t \x1b[32m{out_path}\x1b[0m"
        )
        written.append(out_path)

    if not written:
        print(f"File {path} not exists in package.")
    return written