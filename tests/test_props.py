import io
import struct

import pytest

from upktools.props import (
    Property,
    PropertyKind,
    PropertyValue,
    get_obj_props,
    parse_array,
    parse_property,
    parse_struct,
)

NAMES = [
    "None",
    "Health",
    "IntProperty",
    "FloatProperty",
    "BoolProperty",
    "ByteProperty",
    "EMyEnum",
    "EValue",
    "NameProperty",
    "StrProperty",
    "ObjectProperty",
    "ArrayProperty",
    "StructProperty",
    "Guid",
    "Vector",
    "X",
    "RawData",
    "UnknownProperty",
]


def idx(name):
    return NAMES.index(name)


def tag(name, type_name, size, array_index=0):
    return struct.pack("<iiqii", idx(name), 0, idx(type_name), size, array_index)


def at_offset(payload):
    stream = io.BytesIO(b"\0" * 4 + payload)
    stream.seek(4)
    return stream


def test_generation_read_at_start():
    prop = parse_property(io.BytesIO(struct.pack("<i", 7)), NAMES)
    assert prop.name == "Generation"
    assert prop.value == PropertyValue(PropertyKind.GENERATION, 7)
    assert prop.size == -1


def test_int_property():
    prop = parse_property(at_offset(tag("Health", "IntProperty", 4, 2) + struct.pack("<i", 100)), NAMES)
    assert prop.name == "Health"
    assert prop.prop_type == "IntProperty"
    assert prop.array_index == 2
    assert prop.value == PropertyValue(PropertyKind.INT, 100)


def test_float_property_round_trip():
    payload = struct.pack("<f", 1.5)
    prop = parse_property(at_offset(tag("Health", "FloatProperty", 4) + payload), NAMES)
    assert prop.value.kind is PropertyKind.FLOAT
    assert prop.value.value == 1.5
    assert prop.value.to_bytes() == payload


def test_bool_property():
    prop = parse_property(at_offset(tag("Health", "BoolProperty", 0) + b"\x01"), NAMES)
    assert prop.value == PropertyValue(PropertyKind.BOOL, True)


def test_plain_byte_property():
    data = tag("Health", "ByteProperty", 1) + struct.pack("<q", 0) + b"\x2a"
    prop = parse_property(at_offset(data), NAMES)
    assert prop.enum_name is None
    assert prop.value == PropertyValue(PropertyKind.BYTE, 0x2A)


def test_enum_byte_property():
    data = tag("Health", "ByteProperty", 8) + struct.pack("<qq", idx("EMyEnum"), idx("EValue"))
    prop = parse_property(at_offset(data), NAMES)
    assert prop.enum_name == "EMyEnum"
    assert prop.value == PropertyValue(PropertyKind.NAME, "EValue")


@pytest.mark.parametrize("name_index", [0, len(NAMES) + 1])
def test_end_of_list(name_index):
    assert parse_property(at_offset(struct.pack("<ii", name_index, 0)), NAMES) is None


def test_str_property():
    data = tag("Health", "StrProperty", 8) + struct.pack("<i", 4) + b"abc\0"
    prop = parse_property(at_offset(data), NAMES)
    assert prop.value == PropertyValue(PropertyKind.STRING, "abc")


def test_name_and_object_property():
    name_prop = parse_property(
        at_offset(tag("Health", "NameProperty", 8) + struct.pack("<q", idx("Vector"))), NAMES
    )
    obj_prop = parse_property(
        at_offset(tag("Health", "ObjectProperty", 4) + struct.pack("<i", -3)), NAMES
    )
    assert name_prop.value == PropertyValue(PropertyKind.NAME, "Vector")
    assert obj_prop.value == PropertyValue(PropertyKind.OBJECT, -3)


def test_unknown_type_is_raw():
    prop = parse_property(at_offset(tag("Health", "UnknownProperty", 3) + b"xyz"), NAMES)
    assert prop.value == PropertyValue(PropertyKind.RAW, b"xyz")


def test_bad_type_index_raises():
    data = struct.pack("<iiqii", idx("Health"), 0, 999, 4, 0)
    with pytest.raises(ValueError):
        parse_property(at_offset(data), NAMES)


def test_array_of_bytes():
    stream = at_offset(struct.pack("<i", 3) + b"\x01\x02\x03")
    value = parse_array(stream, NAMES, 7)
    assert [v.as_byte() for v in value.as_list()] == [1, 2, 3]


def test_array_of_objects_and_ints():
    objects = parse_array(at_offset(struct.pack("<3i", 2, 5, -1)), NAMES, 12)
    ints = parse_array(at_offset(struct.pack("<3i", 2, 50000, 7)), NAMES, 12)
    assert [v.kind for v in objects.as_list()] == [PropertyKind.OBJECT] * 2
    assert [v.value for v in objects.as_list()] == [5, -1]
    assert [v.kind for v in ints.as_list()] == [PropertyKind.INT] * 2
    assert [v.value for v in ints.as_list()] == [50000, 7]


def test_array_of_names():
    stream = at_offset(struct.pack("<iqq", 2, idx("X"), 500))
    items = parse_array(stream, NAMES, 20).as_list()
    assert items[0] == PropertyValue(PropertyKind.NAME, "X")
    assert items[1] == PropertyValue(PropertyKind.INT, 500)


def test_array_of_raw_elements():
    stream = at_offset(struct.pack("<i", 2) + b"abcdef")
    items = parse_array(stream, NAMES, 10).as_list()
    assert [v.value for v in items] == [b"abc", b"def"]
    assert stream.tell() == 4 + 10


def test_negative_array_count_is_empty(capsys):
    value = parse_array(at_offset(struct.pack("<i", -2)), NAMES, 4)
    assert value.as_list() == []
    assert "invalid array count: -2" in capsys.readouterr().out


def test_guid_struct():
    stream = at_offset(struct.pack("<q4i", idx("Guid"), 1, 2, 3, 4))
    value = parse_struct(stream, NAMES, 16)
    assert value.kind is PropertyKind.STRUCT
    assert {k: v.value for k, v in value.value.items()} == {"A": 1, "B": 2, "C": 3, "D": 4}


def test_generic_struct():
    inner = tag("X", "FloatProperty", 4) + struct.pack("<f", 2.0)
    stream = at_offset(struct.pack("<q", idx("Vector")) + inner)
    value = parse_struct(stream, NAMES, len(inner))
    assert value.value == {"X": PropertyValue(PropertyKind.FLOAT, 2.0)}


def test_struct_with_unknown_name_is_raw():
    stream = at_offset(struct.pack("<q", 999) + b"ABCD")
    value = parse_struct(stream, NAMES, 12)
    assert value == PropertyValue(PropertyKind.RAW, b"ABCD")


def test_array_property_through_parse_property():
    data = tag("RawData", "ArrayProperty", 6) + struct.pack("<i", 2) + b"\x09\x08"
    prop = parse_property(at_offset(data), NAMES)
    assert [v.as_byte() for v in prop.value.as_list()] == [9, 8]


def test_get_obj_props_until_end_of_data():
    data = struct.pack("<i", 3) + tag("Health", "IntProperty", 4) + struct.pack("<i", 55)
    props = get_obj_props(io.BytesIO(data), NAMES)
    assert [p.name for p in props] == ["Generation", "Health"]
    assert props[1].value.value == 55


def test_get_obj_props_stops_at_terminator(capsys):
    data = (
        struct.pack("<i", 3)
        + tag("Health", "IntProperty", 4)
        + struct.pack("<i", 55)
        + struct.pack("<ii", 0, 0)
        + b"trailing"
    )
    props = get_obj_props(io.BytesIO(data), NAMES, True)
    assert len(props) == 2
    assert "Health" in capsys.readouterr().out


def test_to_bytes_scalars():
    assert PropertyValue(PropertyKind.INT, 5).to_bytes() == struct.pack("<i", 5)
    assert PropertyValue(PropertyKind.BYTE, 7).to_bytes() == b"\x07"
    assert PropertyValue(PropertyKind.BOOL, True).to_bytes() == b"\x01"
    assert PropertyValue(PropertyKind.RAW, b"ab").to_bytes() == b"ab"


def test_to_bytes_errors():
    with pytest.raises(ValueError):
        PropertyValue(PropertyKind.NONE).to_bytes()
    with pytest.raises(TypeError):
        PropertyValue(PropertyKind.NAME, "X").to_bytes()


def test_accessors_on_other_kinds():
    assert PropertyValue(PropertyKind.INT, 1).as_list() is None
    assert PropertyValue(PropertyKind.INT, 1).as_byte() is None


def test_to_json_and_to_dict():
    value = PropertyValue(
        PropertyKind.STRUCT,
        {"X": PropertyValue(PropertyKind.ARRAY, [PropertyValue(PropertyKind.RAW, b"\x01")])},
    )
    assert value.to_json() == {"Struct": {"X": {"Array": [{"Raw": [1]}]}}}
    prop = Property("Health", "IntProperty", 4, 0, PropertyValue(PropertyKind.INT, 3))
    assert prop.to_dict() == {
        "name": "Health",
        "prop_type": "IntProperty",
        "size": 4,
        "array_index": 0,
        "value": {"Int": 3},
        "enum_name": None,
    }
    assert PropertyValue(PropertyKind.NONE).to_json() == "None"