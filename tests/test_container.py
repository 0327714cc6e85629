import pytest

from bootpack_core.errors import MalformedContainer
from bootpack_pack.container import (
    Container,
    DataBlock,
    DataBlocks,
    Global,
    Globals,
    Opaque,
    parse_container,
    serialize_container,
)

HEADER = b"\x00asm\x01\x00\x00\x00"


def section(section_id: int, content: bytes) -> bytes:
    assert len(content) < 128
    return bytes([section_id, len(content)]) + content


TYPE_SECTION = section(1, b"\x01\x60\x00\x00")
GLOBAL_SECTION = section(6, b"\x02" + b"\x7f\x00\x41\xf8\xac\xd1\x91\x01\x0b" + b"\x7f\x01\x41\x7f\x0b")
DATA_SECTION = section(11, b"\x01" + b"\x00\x41\x40\x0b\x03abc")
NAME_SECTION = section(0, b"\x04name\x01\x02")
PRODUCERS_SECTION = section(0, b"\x09producers")


def test_parse_decodes_structured_sections():
    c = parse_container(HEADER + TYPE_SECTION + GLOBAL_SECTION + DATA_SECTION + NAME_SECTION)
    assert c.sections[1] == Opaque(b"\x01\x60\x00\x00")
    assert c.globals == Globals((Global(0x7F, False, 0x12345678), Global(0x7F, True, -1)))
    assert c.data_blocks == DataBlocks((DataBlock(0, 64, b"abc"),))
    assert c.custom == (b"\x04name\x01\x02",)


def test_canonical_input_roundtrips_byte_for_byte():
    image = HEADER + TYPE_SECTION + GLOBAL_SECTION + DATA_SECTION + NAME_SECTION + PRODUCERS_SECTION
    assert serialize_container(parse_container(image)) == image


def test_serialize_orders_sections_and_moves_custom_last():
    image = HEADER + NAME_SECTION + DATA_SECTION + PRODUCERS_SECTION + TYPE_SECTION + GLOBAL_SECTION
    expected = HEADER + TYPE_SECTION + GLOBAL_SECTION + DATA_SECTION + NAME_SECTION + PRODUCERS_SECTION
    assert serialize_container(parse_container(image)) == expected


def test_duplicate_custom_sections_are_kept_in_order():
    c = parse_container(HEADER + PRODUCERS_SECTION + NAME_SECTION + PRODUCERS_SECTION)
    assert c.custom == (PRODUCERS_SECTION[2:], NAME_SECTION[2:], PRODUCERS_SECTION[2:])


def test_empty_module():
    c = parse_container(HEADER)
    assert c == Container({}, ())
    assert serialize_container(c) == HEADER


def test_serialize_recomputes_lengths():
    big = DataBlock(0, 0, bytes(300))
    c = Container({11: DataBlocks((big,))})
    image = serialize_container(c)
    # Section length 1 + 4 + 2 + 300 = 307 needs a two byte varint.
    assert image[8:11] == b"\x0b\xb3\x02"
    assert parse_container(image) == c


@pytest.mark.parametrize(
    "image, needle",
    [
        (b"\x00ASM\x01\x00\x00\x00", "magic"),
        (b"\x00asm\x02\x00\x00\x00", "version"),
        (b"\x00asm\x01\x00", "module version"),
        (HEADER + TYPE_SECTION + TYPE_SECTION, "Duplicate section id 1"),
        (HEADER + b"\x01\x05\x00", "section 1 content"),
        (HEADER + section(6, b"\x01\x7e\x00\x41\x00\x0b"), "value type"),
        (HEADER + section(6, b"\x01\x7f\x02\x41\x00\x0b"), "mutability"),
        (HEADER + section(6, b"\x01\x7f\x00\x23\x00\x0b"), "i32.const"),
        (HEADER + section(6, b"\x01\x7f\x00\x41\x00\x1a"), "end opcode"),
        (HEADER + section(6, b"\x02\x7f\x00\x41\x00\x0b"), "global type"),
        (HEADER + section(6, b"\x01\x7f\x00\x41\x80\x80\x80\x80\x10\x0b"), "i32"),
        (HEADER + section(6, b"\x00\x00"), "trailing"),
        (HEADER + section(11, b"\x01\x01\x41\x00\x0b\x00"), "memory 1"),
        (HEADER + section(11, b"\x01\x00\x41\x80\x80\x80\x80\x08\x0b\x00"), "not a valid address"),
        (HEADER + section(11, b"\x01\x00\x41\x00\x0b\x05ab"), "data block 0 bytes"),
    ],
)
def test_malformed_containers(image, needle):
    with pytest.raises(MalformedContainer, match=needle):
        parse_container(image)


def test_truncated_varint_in_section_length():
    with pytest.raises(MalformedContainer):
        parse_container(HEADER + b"\x01\x80")


def test_with_section_does_not_mutate_original():
    c = parse_container(HEADER + GLOBAL_SECTION)
    updated = c.with_section(11, DataBlocks((DataBlock(0, 0, b"x"),)))
    assert 11 not in c.sections
    assert 11 in updated.sections
    assert updated.globals == c.globals


def test_data_offset_is_unsigned():
    # 0x7f is 127 as an unsigned varint; a signed read would see -1.
    c = parse_container(HEADER + section(11, b"\x01\x00\x41\x7f\x0b\x01a"))
    assert c.data_blocks == DataBlocks((DataBlock(0, 127, b"a"),))

    image = serialize_container(Container({11: DataBlocks((DataBlock(0, 100, b"a"),))}))
    assert image[8:] == bytes([11, 7]) + b"\x01\x00\x41\x64\x0b\x01a"
