"""Name, import and export tables of a package, and object naming."""

from __future__ import annotations

import re
import struct
from dataclasses import asdict, dataclass, field
from typing import Any, BinaryIO

from upktools.header import UpkHeader
from upktools.strings import read_name

_INVALID = "<invalid>"
_DEFAULT_CLASS = "Class"
_PATH_SEPARATORS = re.compile(r"[.:]")


@dataclass(frozen=True)
class FName:
    """A reference into the name table with an instance number."""

    name_index: int
    name_instance: int = 0


@dataclass
class Export:
    """One entry of the export table."""

    class_index: int
    super_index: int
    outer_index: int
    object_name: FName
    archetype: int = 0
    object_flags: int = 0
    serial_size: int = 0
    serial_offset: int = 0
    legacy_component_map: dict[FName, int] = field(default_factory=dict)
    export_flags: int = 0
    generation_net_object_count: list[int] = field(default_factory=list)
    package_guid: tuple[int, int, int, int] = (0, 0, 0, 0)
    package_flags: int = 0


@dataclass
class Import:
    """One entry of the import table."""

    class_package: FName
    class_name: FName
    outer_index: int
    object_name: FName


def _read(stream: BinaryIO, fmt: str) -> tuple:
    size = struct.calcsize(fmt)
    data = stream.read(size)
    if len(data) != size:
        raise EOFError(f"expected {size} bytes, got {len(data)}")
    return struct.unpack(fmt, data)


def read_export(stream: BinaryIO, version: int) -> Export:
    """Read one export-table entry written by a package of ``version``."""
    (
        class_index,
        super_index,
        outer_index,
        name_index,
        name_instance,
        archetype,
        object_flags,
        serial_size,
        serial_offset,
    ) = _read(stream, "<6iQ2i")

    legacy_component_map: dict[FName, int] = {}
    if version < 543:
        (count,) = _read(stream, "<i")
        for _ in range(count):
            key_index, key_instance, value = _read(stream, "<3i")
            legacy_component_map[FName(key_index, key_instance)] = value

    export_flags, gen_count = _read(stream, "<Ii")
    if gen_count < 0:
        raise ValueError(f"negative generation count {gen_count} in export")
    generation_net_object_count = list(_read(stream, f"<{gen_count}i")) if gen_count else []
    package_guid = _read(stream, "<4i")
    (package_flags,) = _read(stream, "<I")

    return Export(
        class_index=class_index,
        super_index=super_index,
        outer_index=outer_index,
        object_name=FName(name_index, name_instance),
        archetype=archetype,
        object_flags=object_flags,
        serial_size=serial_size,
        serial_offset=serial_offset,
        legacy_component_map=legacy_component_map,
        export_flags=export_flags,
        generation_net_object_count=generation_net_object_count,
        package_guid=package_guid,
        package_flags=package_flags,
    )


def read_import(stream: BinaryIO) -> Import:
    """Read one import-table entry."""
    pkg_idx, pkg_inst, cls_idx, cls_inst, outer, obj_idx, obj_inst = _read(stream, "<7i")
    return Import(
        class_package=FName(pkg_idx, pkg_inst),
        class_name=FName(cls_idx, cls_inst),
        outer_index=outer,
        object_name=FName(obj_idx, obj_inst),
    )


@dataclass
class UPKPak:
    """The tables of a package that identify its objects."""

    name_table: list[str] = field(default_factory=list)
    export_table: list[Export] = field(default_factory=list)
    import_table: list[Import] = field(default_factory=list)

    def _export_at(self, index: int) -> Export | None:
        return self.export_table[index] if 0 <= index < len(self.export_table) else None

    def _import_at(self, index: int) -> Import | None:
        return self.import_table[index] if 0 <= index < len(self.import_table) else None

    def fname_to_string(self, fname: FName) -> str:
        """The text of a name, with its instance suffix when it has one."""
        if not 0 <= fname.name_index < len(self.name_table):
            return _INVALID
        name = self.name_table[fname.name_index]
        if fname.name_instance > 0:
            return f"{name}_{fname.name_instance - 1}"
        return name

    def get_import_class_name(self, import_index: int) -> str:
        """The class name of the import referenced by a negative index."""
        entry = self._import_at(-import_index - 1)
        return self.fname_to_string(entry.class_name) if entry else _DEFAULT_CLASS

    def get_export_class_name(self, export_index: int) -> str:
        """The object name of the export referenced by a positive index."""
        entry = self._export_at(export_index - 1)
        return self.fname_to_string(entry.object_name) if entry else _DEFAULT_CLASS

    def get_class_name(self, class_index: int) -> str:
        """The name of the object a class index refers to."""
        if class_index > 0:
            entry = self._export_at(class_index - 1)
            return self.fname_to_string(entry.object_name) if entry else _DEFAULT_CLASS
        if class_index < 0:
            imported = self._import_at(-class_index - 1)
            return self.fname_to_string(imported.object_name) if imported else _DEFAULT_CLASS
        return _DEFAULT_CLASS

    def _is_package_outer(self, outer_index: int) -> bool:
        if outer_index == 0:
            return True
        if outer_index > 0:
            return self.get_export_class_name(outer_index) == "Package"
        return self.get_import_class_name(outer_index) == "Package"

    def get_import_path_name(self, import_index: int) -> str:
        """The dotted path of an import, following its outer chain."""
        result = ""
        linker_index = -import_index - 1
        while linker_index != 0:
            if linker_index >= 0:
                imported = self._import_at(linker_index)
                if imported is None:
                    break
                is_subobject = (
                    bool(result)
                    and self.fname_to_string(imported.class_name) != "Package"
                    and self._is_package_outer(imported.outer_index)
                )
                object_name = self.fname_to_string(imported.object_name)
                outer_index = imported.outer_index
            else:
                entry = self._export_at(-linker_index - 1)
                if entry is None:
                    break
                is_subobject = (
                    bool(result)
                    and self.get_class_name(-linker_index) != "Package"
                    and self._is_package_outer(entry.outer_index)
                )
                object_name = self.fname_to_string(entry.object_name)
                outer_index = entry.outer_index
            if result:
                result = (":" if is_subobject else ".") + result
            result = object_name + result
            linker_index = outer_index
        return result

    def get_export_path_name(self, export_index: int) -> str:
        """The dotted path of an export, following its outer chain."""
        result = ""
        linker_index = export_index
        while linker_index != 0:
            entry = self._export_at(linker_index - 1)
            if entry is None:
                break
            if result:
                is_subobject = self.get_class_name(
                    linker_index
                ) != "Package" and self._is_package_outer(entry.outer_index)
                result = (":" if is_subobject else ".") + result
            result = self.fname_to_string(entry.object_name) + result
            linker_index = entry.outer_index
        return result

    def get_import_full_name(self, import_index: int) -> str:
        """The class name and path of an import, separated by a space."""
        imported = self._import_at(-import_index - 1)
        if imported is None:
            return _INVALID
        class_name = self.fname_to_string(imported.class_name)
        return f"{class_name} {self.get_import_path_name(import_index)}"

    def get_export_full_name(self, export_index: int) -> str:
        """The class name and path of an export, separated by a space."""
        entry = self._export_at(export_index - 1)
        if entry is None:
            return _INVALID
        class_name = self.get_class_name(entry.class_index)
        return f"{class_name} {self.get_export_path_name(export_index)}"

    def to_dict(self) -> dict[str, Any]:
        """A JSON-compatible dictionary of the three tables."""
        return {
            "name_table": list(self.name_table),
            "export_table": [_export_to_dict(e) for e in self.export_table],
            "import_table": [asdict(i) for i in self.import_table],
        }


def _export_to_dict(entry: Export) -> dict[str, Any]:
    return {
        "class_index": entry.class_index,
        "super_index": entry.super_index,
        "outer_index": entry.outer_index,
        "object_name": asdict(entry.object_name),
        "archetype": entry.archetype,
        "object_flags": entry.object_flags,
        "serial_size": entry.serial_size,
        "serial_offset": entry.serial_offset,
        "legacy_component_map": [
            {"key": asdict(key), "value": value}
            for key, value in entry.legacy_component_map.items()
        ],
        "export_flags": entry.export_flags,
        "generation_net_object_count": list(entry.generation_net_object_count),
        "package_guid": list(entry.package_guid),
        "package_flags": entry.package_flags,
    }


def _export_from_dict(data: dict[str, Any]) -> Export:
    values = dict(data)
    values["object_name"] = FName(**values["object_name"])
    values["legacy_component_map"] = {
        FName(**item["key"]): item["value"] for item in values["legacy_component_map"]
    }
    values["generation_net_object_count"] = list(values["generation_net_object_count"])
    values["package_guid"] = tuple(values["package_guid"])
    return Export(**values)


def _import_from_dict(data: dict[str, Any]) -> Import:
    return Import(
        class_package=FName(**data["class_package"]),
        class_name=FName(**data["class_name"]),
        outer_index=data["outer_index"],
        object_name=FName(**data["object_name"]),
    )


def package_from_dict(data: dict[str, Any]) -> UPKPak:
    """Rebuild a package from the dictionary produced by ``UPKPak.to_dict``."""
    return UPKPak(
        name_table=list(data["name_table"]),
        export_table=[_export_from_dict(e) for e in data["export_table"]],
        import_table=[_import_from_dict(i) for i in data["import_table"]],
    )


def parse_upk(stream: BinaryIO, header: UpkHeader) -> UPKPak:
    """Read the name, export and import tables located by ``header``."""
    stream.seek(header.name_offset)
    names = [read_name(stream).name for _ in range(header.name_count)]
    stream.seek(header.export_offset)
    exports = [read_export(stream, header.p_ver) for _ in range(header.export_count)]
    stream.seek(header.import_offset)
    imports = [read_import(stream) for _ in range(header.import_count)]
    return UPKPak(names, exports, imports)


def ue_name_to_path(full_name: str) -> str:
    """Turn ``Class Outer.Name`` into ``Outer/Name.Class``."""
    parts = full_name.split(" ", 1)
    if len(parts) != 2:
        return _PATH_SEPARATORS.sub("/", full_name)
    class_name, path_name = parts
    path_parts = _PATH_SEPARATORS.split(path_name)
    path_parts[-1] = f"{path_parts[-1]}.{class_name}"
    return "/".join(path_parts)


def ue_name_to_path_class_first(full_name: str) -> str:
    """Turn ``Class Outer.Name`` into ``Class/Outer/Name``."""
    parts = full_name.split(" ", 1)
    if len(parts) != 2:
        return _PATH_SEPARATORS.sub("/", full_name)
    class_name, path_name = parts
    return "/".join([class_name, *_PATH_SEPARATORS.split(path_name)])


def list_full_obj_paths(pkg: UPKPak) -> list[str]:
    """The full name of every export, in table order."""
    return [pkg.get_export_full_name(index) for index in range(1, len(pkg.export_table) + 1)]