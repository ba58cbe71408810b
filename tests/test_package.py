import io
import json
import struct

import pytest

from upktools.header import UpkHeader
from upktools.package import (
    Export,
    FName,
    Import,
    UPKPak,
    list_full_obj_paths,
    package_from_dict,
    parse_upk,
    read_export,
    read_import,
    ue_name_to_path,
    ue_name_to_path_class_first,
)

NAMES = ["None", "Core", "Package", "Class", "MyPkg", "Thing", "Texture2D"]


def _sample_pak():
    imports = [
        Import(FName(1), FName(2), 0, FName(1)),
        Import(FName(1), FName(3), -1, FName(6)),
    ]
    exports = [
        Export(0, 0, 0, FName(4), serial_size=2, serial_offset=0),
        Export(-2, 0, 1, FName(5), serial_size=3, serial_offset=2),
    ]
    return UPKPak(list(NAMES), exports, imports)


def _name_entry(text):
    return struct.pack("<i", len(text) + 1) + text.encode() + b"\0" + struct.pack("<Q", 0)


def _export_bytes(class_index, outer, name_index, size, offset, legacy=None, gens=()):
    out = struct.pack("<6iQ2i", class_index, 0, outer, name_index, 0, 0, 0, size, offset)
    if legacy is not None:
        out += struct.pack("<i", len(legacy))
        for (idx, inst), value in legacy.items():
            out += struct.pack("<3i", idx, inst, value)
    out += struct.pack("<Ii", 0, len(gens))
    out += b"".join(struct.pack("<i", g) for g in gens)
    out += struct.pack("<4iI", 1, 2, 3, 4, 0)
    return out


def _import_bytes(pkg, cls, outer, obj):
    return struct.pack("<7i", pkg, 0, cls, 0, outer, obj, 0)


def test_fname_to_string_plain_and_instance():
    pak = _sample_pak()
    assert pak.fname_to_string(FName(5, 0)) == "Thing"
    assert pak.fname_to_string(FName(5, 3)) == "Thing_2"


def test_fname_to_string_invalid_index():
    pak = _sample_pak()
    assert pak.fname_to_string(FName(99, 0)) == "<invalid>"
    assert pak.fname_to_string(FName(-1, 0)) == "<invalid>"


def test_class_name_lookups():
    pak = _sample_pak()
    assert pak.get_class_name(0) == "Class"
    assert pak.get_class_name(-2) == "Texture2D"
    assert pak.get_class_name(1) == "MyPkg"
    assert pak.get_class_name(50) == "Class"
    assert pak.get_import_class_name(-1) == "Package"
    assert pak.get_import_class_name(1) == "Class"
    assert pak.get_export_class_name(2) == "Thing"
    assert pak.get_export_class_name(0) == "Class"


def test_export_names():
    pak = _sample_pak()
    assert pak.get_export_path_name(1) == "MyPkg"
    assert pak.get_export_path_name(2) == "MyPkg:Thing"
    assert pak.get_export_full_name(2) == "Texture2D MyPkg:Thing"
    assert pak.get_export_full_name(1) == "Class MyPkg"
    assert pak.get_export_full_name(99) == "<invalid>"


def test_import_full_name_invalid():
    pak = _sample_pak()
    assert pak.get_import_full_name(-10) == "<invalid>"
    assert pak.get_import_full_name(3) == "<invalid>"


def test_import_full_name_starts_with_class():
    pak = _sample_pak()
    full = pak.get_import_full_name(-2)
    assert full.startswith("Class ")
    assert full.endswith(pak.get_import_path_name(-2))


def test_list_full_obj_paths():
    pak = _sample_pak()
    assert list_full_obj_paths(pak) == [
        pak.get_export_full_name(1),
        pak.get_export_full_name(2),
    ]


def test_ue_name_to_path():
    assert ue_name_to_path("Texture2D MyPkg:Thing") == "MyPkg/Thing.Texture2D"
    assert ue_name_to_path("a.b:c") == "a/b/c"


def test_ue_name_to_path_class_first():
    assert ue_name_to_path_class_first("Texture2D MyPkg.Thing") == "Texture2D/MyPkg/Thing"
    assert ue_name_to_path_class_first("a:b") == "a/b"


def test_read_export_modern_version():
    raw = _export_bytes(-2, 1, 5, 3, 2, gens=(7, 8))
    entry = read_export(io.BytesIO(raw), 600)
    assert entry.class_index == -2
    assert entry.outer_index == 1
    assert entry.object_name == FName(5, 0)
    assert entry.serial_size == 3
    assert entry.serial_offset == 2
    assert entry.generation_net_object_count == [7, 8]
    assert entry.package_guid == (1, 2, 3, 4)
    assert entry.legacy_component_map == {}


def test_read_export_legacy_component_map():
    raw = _export_bytes(0, 0, 4, 1, 0, legacy={(1, 0): 5})
    entry = read_export(io.BytesIO(raw), 500)
    assert entry.legacy_component_map == {FName(1, 0): 5}


def test_read_export_truncated():
    raw = _export_bytes(0, 0, 4, 1, 0)[:-3]
    with pytest.raises(EOFError):
        read_export(io.BytesIO(raw), 600)


def test_read_import():
    entry = read_import(io.BytesIO(_import_bytes(1, 3, -1, 6)))
    assert entry == Import(FName(1), FName(3), -1, FName(6))


def test_parse_upk():
    names_blob = b"".join(_name_entry(n) for n in NAMES)
    exports_blob = _export_bytes(0, 0, 4, 2, 0) + _export_bytes(-2, 1, 5, 3, 2)
    imports_blob = _import_bytes(1, 2, 0, 1) + _import_bytes(1, 3, -1, 6)
    blob = names_blob + exports_blob + imports_blob
    header = UpkHeader(
        p_ver=600,
        name_count=len(NAMES),
        name_offset=0,
        export_count=2,
        export_offset=len(names_blob),
        import_count=2,
        import_offset=len(names_blob) + len(exports_blob),
    )
    pak = parse_upk(io.BytesIO(blob), header)
    assert pak.name_table == NAMES
    assert len(pak.export_table) == 2
    assert pak.import_table[1].object_name == FName(6, 0)
    assert pak.get_export_full_name(2) == "Texture2D MyPkg:Thing"


def test_dict_round_trip_through_json():
    pak = _sample_pak()
    pak.export_table[0].legacy_component_map = {FName(2, 1): 9}
    pak.export_table[0].generation_net_object_count = [3]
    restored = package_from_dict(json.loads(json.dumps(pak.to_dict())))
    assert restored == pak