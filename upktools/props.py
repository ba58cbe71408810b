"""Parsing of tagged object properties stored in package exports."""

from __future__ import annotations

import struct
from dataclasses import dataclass
from enum import Enum
from typing import Any, BinaryIO, Sequence

from upktools.strings import read_string

_MAX_ARRAY_COUNT = 1_000_000
_MAX_RAW_ELEMENT = 1_000_000
_OBJECT_REF_LIMIT = 10000


class PropertyKind(Enum):
    """The kind of value a property holds."""

    NONE = "None"
    BYTE = "Byte"
    INT = "Int"
    BOOL = "Bool"
    FLOAT = "Float"
    OBJECT = "Object"
    NAME = "Name"
    STRING = "String"
    ARRAY = "Array"
    STRUCT = "Struct"
    RAW = "Raw"
    GENERATION = "Generation"


@dataclass
class PropertyValue:
    """A decoded property value together with its kind."""

    kind: PropertyKind
    value: Any = None

    def as_list(self) -> list[PropertyValue] | None:
        """The elements of an array value, or None for any other kind."""
        return self.value if self.kind is PropertyKind.ARRAY else None

    def as_byte(self) -> int | None:
        """The byte of a byte value, or None for any other kind."""
        return self.value if self.kind is PropertyKind.BYTE else None

    def to_bytes(self) -> bytes:
        """The raw little-endian encoding of a scalar or raw value."""
        kind = self.kind
        if kind is PropertyKind.NONE:
            raise ValueError("a None property has no value to encode")
        if kind is PropertyKind.BYTE:
            return bytes([self.value])
        if kind in (PropertyKind.INT, PropertyKind.GENERATION, PropertyKind.OBJECT):
            return struct.pack("<i", self.value)
        if kind is PropertyKind.BOOL:
            return b"\x01" if self.value else b"\x00"
        if kind is PropertyKind.FLOAT:
            return struct.pack("<f", self.value)
        if kind is PropertyKind.RAW:
            return bytes(self.value)
        raise TypeError(f"{kind.value} values have no standalone encoding")

    def to_json(self) -> Any:
        """A JSON-compatible form: the kind name mapped to its value."""
        kind = self.kind
        if kind is PropertyKind.NONE:
            return kind.value
        if kind is PropertyKind.ARRAY:
            payload: Any = [item.to_json() for item in self.value]
        elif kind is PropertyKind.STRUCT:
            payload = {key: item.to_json() for key, item in self.value.items()}
        elif kind is PropertyKind.RAW:
            payload = list(self.value)
        else:
            payload = self.value
        return {kind.value: payload}


@dataclass
class Property:
    """One tagged property of an object."""

    name: str
    prop_type: str
    size: int
    array_index: int
    value: PropertyValue
    enum_name: str | None = None

    def to_dict(self) -> dict[str, Any]:
        """A JSON-compatible dictionary of the property."""
        return {
            "name": self.name,
            "prop_type": self.prop_type,
            "size": self.size,
            "array_index": self.array_index,
            "value": self.value.to_json(),
            "enum_name": self.enum_name,
        }


def _read_exact(stream: BinaryIO, size: int) -> bytes:
    data = stream.read(size)
    if len(data) != size:
        raise EOFError(f"expected {size} bytes, got {len(data)}")
    return data


def _unpack(stream: BinaryIO, fmt: str) -> Any:
    return struct.unpack(fmt, _read_exact(stream, struct.calcsize(fmt)))[0]


def _wrap_i32(value: int) -> int:
    return ((value + 2**31) % 2**32) - 2**31


def _name_at(names: Sequence[str], index: int, what: str) -> str:
    if not 0 <= index < len(names):
        raise ValueError(f"{what} index {index} is outside the name table")
    return names[index]


def _in_table(names: Sequence[str], index: int) -> bool:
    return 0 <= index < len(names)


def parse_array(stream: BinaryIO, names: Sequence[str], size: int) -> PropertyValue:
    """Parse an array property body of ``size`` bytes, guessing the element type."""
    start_pos = stream.tell()
    count = _unpack(stream, "<i")
    empty = PropertyValue(PropertyKind.ARRAY, [])

    if count < 0:
        print(f"  ERR: invalid array count: {count}")
        return empty
    if count == 0 or count > _MAX_ARRAY_COUNT:
        return empty

    remaining_bytes = max(size - 4, 0)
    if remaining_bytes == 0:
        return empty

    elements: list[PropertyValue] = []
    bytes_per_element = remaining_bytes // count

    if bytes_per_element == 1:
        elements = [PropertyValue(PropertyKind.BYTE, b) for b in _read_exact(stream, count)]
    elif bytes_per_element == 4:
        values = struct.unpack(f"<{count}i", _read_exact(stream, 4 * count))
        first = values[0]
        is_object = first < 0 or 0 < first < _OBJECT_REF_LIMIT
        kind = PropertyKind.OBJECT if is_object else PropertyKind.INT
        elements = [PropertyValue(kind, v) for v in values]
    elif bytes_per_element == 8:
        for idx in struct.unpack(f"<{count}q", _read_exact(stream, 8 * count)):
            if _in_table(names, idx):
                elements.append(PropertyValue(PropertyKind.NAME, names[idx]))
            else:
                elements.append(PropertyValue(PropertyKind.INT, _wrap_i32(idx)))
    else:
        target_end = start_pos + size
        while stream.tell() < target_end and len(elements) < count:
            remaining = target_end - stream.tell()
            estimated = remaining // (count - len(elements))
            if not 0 < estimated < _MAX_RAW_ELEMENT:
                break
            elements.append(PropertyValue(PropertyKind.RAW, _read_exact(stream, estimated)))

    return PropertyValue(PropertyKind.ARRAY, elements)


def parse_struct(stream: BinaryIO, names: Sequence[str], size: int) -> PropertyValue:
    """Parse a struct property body of ``size`` bytes."""
    struct_name_index = _unpack(stream, "<q")
    if not _in_table(names, struct_name_index):
        return PropertyValue(PropertyKind.RAW, _read_exact(stream, max(size - 8, 0)))

    struct_name = names[struct_name_index]
    print(f"    Struct type: {struct_name}")
    start_pos = stream.tell()

    if struct_name == "Guid":
        parts = struct.unpack("<4i", _read_exact(stream, 16))
        return PropertyValue(
            PropertyKind.STRUCT,
            {key: PropertyValue(PropertyKind.INT, v) for key, v in zip("ABCD", parts)},
        )

    properties: dict[str, PropertyValue] = {}
    while stream.tell() - start_pos < size:
        prop = parse_property(stream, names)
        if prop is None:
            break
        properties[prop.name] = prop.value
    return PropertyValue(PropertyKind.STRUCT, properties)


def parse_property(stream: BinaryIO, names: Sequence[str]) -> Property | None:
    """Parse the next tagged property, or return None at the end of the list."""
    if stream.tell() == 0:
        generation = _unpack(stream, "<i")
        return Property(
            "Generation", "unknown", -1, -1, PropertyValue(PropertyKind.GENERATION, generation)
        )

    name_index = _unpack(stream, "<i")
    if _unpack(stream, "<i") != 0:
        stream.seek(-4, 1)

    if name_index == 0 or name_index > len(names):
        return None
    prop_name = _name_at(names, name_index, "property name")

    if prop_name == "None":
        return Property(prop_name, prop_name, -1, -1, PropertyValue(PropertyKind.NONE))

    prop_type = _name_at(names, _unpack(stream, "<q"), "property type")
    size = _unpack(stream, "<i")
    array_index = _unpack(stream, "<i")

    enum_name = None
    if prop_type == "ByteProperty":
        enum_index = _unpack(stream, "<q")
        if 0 < enum_index < len(names):
            enum_name = names[enum_index]

    if prop_type == "IntProperty":
        value = PropertyValue(PropertyKind.INT, _unpack(stream, "<i"))
    elif prop_type == "FloatProperty":
        value = PropertyValue(PropertyKind.FLOAT, _unpack(stream, "<f"))
    elif prop_type == "BoolProperty":
        value = PropertyValue(PropertyKind.BOOL, _unpack(stream, "<B") != 0)
    elif prop_type == "ByteProperty":
        if enum_name is not None:
            idx = _unpack(stream, "<q")
            if _in_table(names, idx):
                value = PropertyValue(PropertyKind.NAME, names[idx])
            else:
                value = PropertyValue(PropertyKind.INT, _wrap_i32(idx))
        else:
            value = PropertyValue(PropertyKind.BYTE, _unpack(stream, "<B"))
    elif prop_type == "NameProperty":
        value = PropertyValue(PropertyKind.NAME, _name_at(names, _unpack(stream, "<q"), "name value"))
    elif prop_type == "StrProperty":
        value = PropertyValue(PropertyKind.STRING, read_string(stream))
    elif prop_type == "ObjectProperty":
        value = PropertyValue(PropertyKind.OBJECT, _unpack(stream, "<i"))
    elif prop_type == "ArrayProperty":
        value = parse_array(stream, names, size)
    elif prop_type == "StructProperty":
        value = parse_struct(stream, names, size)
    else:
        if size < 0:
            raise ValueError(f"negative size {size} for property {prop_name}")
        value = PropertyValue(PropertyKind.RAW, _read_exact(stream, size))

    return Property(prop_name, prop_type, size, array_index, value, enum_name)


def get_obj_props(
    stream: BinaryIO, names: Sequence[str], print_out: bool = False
) -> list[Property]:
    """Parse every property of an object until the list or the data ends."""
    props: list[Property] = []
    while True:
        prop = parse_property(stream, names)
        if prop is None:
            break
        start_pos = stream.tell()
        if print_out:
            print(repr(prop))
        props.append(prop)
        end = stream.seek(0, 2)
        if start_pos >= end:
            break
        stream.seek(start_pos)
    return props