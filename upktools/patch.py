"""Data describing script and object patches applied to a package."""

from __future__ import annotations

from dataclasses import dataclass, field


@dataclass
class ObjectExportPatch:
    """An export-table entry to add or replace."""

    class_index: int
    super_index: int
    outer_index: int
    object_name: str
    archetype_index: int = 0
    object_flags: int = 0
    serial_size: int = 0
    serial_offset: int = 0
    export_flags: int = 0
    generation_net_object_count: list[int] = field(default_factory=list)
    package_guid: tuple[int, int, int, int] = (0, 0, 0, 0)
    package_flags: int = 0


@dataclass
class ObjectImportPatch:
    """An import-table entry to add."""

    class_package: str
    class_name: str
    outer_index: int
    object_name: str


@dataclass
class EnumPatchData:
    """New values for an enumeration."""

    enum_name: str
    enum_path_name: str
    enum_values: list[str] = field(default_factory=list)


@dataclass
class PatchData:
    """All changes to apply to one package."""

    package_name: str
    names: list[str] = field(default_factory=list)
    exports: list[ObjectExportPatch] = field(default_factory=list)
    imports: list[ObjectImportPatch] = field(default_factory=list)
    new_objects: list[PatchData] = field(default_factory=list)
    modified_class_default_objects: list[PatchData] = field(default_factory=list)
    modified_enums: list[EnumPatchData] = field(default_factory=list)
    script_patches: list[ScriptPatchData] = field(default_factory=list)


@dataclass
class ScriptPatchData:
    """A patch to the script of one struct."""

    struct_name: str
    patch: PatchData