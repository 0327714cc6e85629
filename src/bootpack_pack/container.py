"""Module container model.

A container is ``MODULE_MAGIC | version(4) | sections``. Each section is
``id(1) | varint length | content``. The Global and Data sections are decoded into
records; every other section is kept as opaque bytes and written back unchanged.
"""
from __future__ import annotations

import struct
from dataclasses import dataclass, field, replace
from typing import Mapping, Union

from bootpack_core.errors import MalformedContainer
from bootpack_core.protocol import (
    MODULE_MAGIC,
    MODULE_VERSION,
    OP_END,
    OP_I32_CONST,
    SECTION_CUSTOM,
    SECTION_DATA,
    SECTION_GLOBAL,
    SENTINEL_PLACEHOLDER,
    VALTYPE_I32,
)
from bootpack_core.varint import decode_signed, decode_unsigned, encode_signed, encode_unsigned

I32_MIN = -(1 << 31)
I32_MAX = (1 << 31) - 1


class _Reader:
    """Cursor over a byte buffer that reports failures with absolute offsets."""

    def __init__(self, data: bytes, base: int = 0):
        self.data = data
        self.pos = 0
        self.base = base

    @property
    def offset(self) -> int:
        return self.base + self.pos

    def at_end(self) -> bool:
        return self.pos >= len(self.data)

    def take(self, count: int, what: str) -> bytes:
        if self.pos + count > len(self.data):
            raise MalformedContainer(
                f"Truncated {what} at offset {self.offset} (need {count}, have {len(self.data) - self.pos})"
            )
        chunk = self.data[self.pos:self.pos + count]
        self.pos += count
        return chunk

    def byte(self, what: str) -> int:
        return self.take(1, what)[0]

    def expect(self, expected: int, what: str) -> None:
        at = self.offset
        got = self.byte(what)
        if got != expected:
            raise MalformedContainer(f"Expected {what} 0x{expected:02X} at offset {at}, found 0x{got:02X}")

    def unsigned(self) -> int:
        value, end = decode_unsigned(self.data, self.pos)
        self.pos = end
        return value

    def signed(self) -> int:
        value, end = decode_signed(self.data, self.pos)
        self.pos = end
        return value


@dataclass(frozen=True)
class Global:
    value_type: int
    mutable: bool
    init: int

    def is_sentinel(self) -> bool:
        return not self.mutable and self.value_type == VALTYPE_I32 and self.init == SENTINEL_PLACEHOLDER


@dataclass(frozen=True)
class DataBlock:
    memory_index: int
    offset: int
    data: bytes


@dataclass(frozen=True)
class Opaque:
    data: bytes

    def encode(self) -> bytes:
        return self.data

    @classmethod
    def decode(cls, content: bytes, base: int = 0) -> "Opaque":
        return cls(bytes(content))


@dataclass(frozen=True)
class Globals:
    entries: tuple[Global, ...] = ()

    def encode(self) -> bytes:
        out = bytearray(encode_unsigned(len(self.entries)))
        for g in self.entries:
            out.append(g.value_type)
            out.append(1 if g.mutable else 0)
            out.append(OP_I32_CONST)
            out += encode_signed(g.init)
            out.append(OP_END)
        return bytes(out)

    @classmethod
    def decode(cls, content: bytes, base: int = 0) -> "Globals":
        r = _Reader(content, base)
        count = r.unsigned()
        entries = []
        for i in range(count):
            at = r.offset
            value_type = r.byte("global type")
            if value_type != VALTYPE_I32:
                raise MalformedContainer(
                    f"Global {i} at offset {at} has value type 0x{value_type:02X} (expected i32 0x{VALTYPE_I32:02X})"
                )
            at = r.offset
            mut = r.byte("global mutability")
            if mut not in (0, 1):
                raise MalformedContainer(f"Global {i} mutability byte {mut} at offset {at} is not 0 or 1")
            r.expect(OP_I32_CONST, "i32.const opcode")
            at = r.offset
            init = r.signed()
            if not I32_MIN <= init <= I32_MAX:
                raise MalformedContainer(f"Global {i} initializer {init} at offset {at} does not fit in i32")
            r.expect(OP_END, "end opcode")
            entries.append(Global(value_type, bool(mut), init))
        if not r.at_end():
            raise MalformedContainer(f"{len(content) - r.pos} trailing bytes in global section at offset {r.offset}")
        return cls(tuple(entries))


@dataclass(frozen=True)
class DataBlocks:
    entries: tuple[DataBlock, ...] = ()

    def encode(self) -> bytes:
        out = bytearray(encode_unsigned(len(self.entries)))
        for block in self.entries:
            out += encode_unsigned(block.memory_index)
            out.append(OP_I32_CONST)
            out += encode_unsigned(block.offset)
            out.append(OP_END)
            out += encode_unsigned(len(block.data))
            out += block.data
        return bytes(out)

    @classmethod
    def decode(cls, content: bytes, base: int = 0) -> "DataBlocks":
        r = _Reader(content, base)
        count = r.unsigned()
        entries = []
        for i in range(count):
            at = r.offset
            memory_index = r.unsigned()
            if memory_index != 0:
                raise MalformedContainer(f"Data block {i} at offset {at} targets memory {memory_index} (expected 0)")
            r.expect(OP_I32_CONST, "i32.const opcode")
            at = r.offset
            offset = r.unsigned()
            if offset > I32_MAX:
                raise MalformedContainer(f"Data block {i} offset {offset} at offset {at} is not a valid address")
            r.expect(OP_END, "end opcode")
            length = r.unsigned()
            data = r.take(length, f"data block {i} bytes")
            entries.append(DataBlock(memory_index, offset, bytes(data)))
        if not r.at_end():
            raise MalformedContainer(f"{len(content) - r.pos} trailing bytes in data section at offset {r.offset}")
        return cls(tuple(entries))


Section = Union[Opaque, Globals, DataBlocks]

SECTION_KINDS: dict[int, type] = {
    SECTION_GLOBAL: Globals,
    SECTION_DATA: DataBlocks,
}


@dataclass(frozen=True)
class Container:
    sections: Mapping[int, Section] = field(default_factory=dict)
    custom: tuple[bytes, ...] = ()

    def with_section(self, section_id: int, content: Section) -> "Container":
        sections = dict(self.sections)
        sections[section_id] = content
        return replace(self, sections=sections)

    def without_custom(self) -> "Container":
        return replace(self, custom=())

    @property
    def globals(self) -> Globals:
        return self.sections.get(SECTION_GLOBAL, Globals())

    @property
    def data_blocks(self) -> DataBlocks:
        return self.sections.get(SECTION_DATA, DataBlocks())


def _frame(section_id: int, content: bytes) -> bytes:
    return bytes([section_id]) + encode_unsigned(len(content)) + content


def parse_container(data: bytes) -> Container:
    r = _Reader(data)
    magic = r.take(4, "module magic")
    if magic != MODULE_MAGIC:
        raise MalformedContainer(f"Bad module magic {magic!r} (expected {MODULE_MAGIC!r})")
    (version,) = struct.unpack("<I", r.take(4, "module version"))
    if version != MODULE_VERSION:
        raise MalformedContainer(f"Module version {version} (expected {MODULE_VERSION})")

    sections: dict[int, Section] = {}
    custom: list[bytes] = []
    while not r.at_end():
        at = r.offset
        section_id = r.byte("section id")
        length = r.unsigned()
        content_base = r.offset
        content = r.take(length, f"section {section_id} content")
        if section_id == SECTION_CUSTOM:
            custom.append(bytes(content))
            continue
        if section_id in sections:
            raise MalformedContainer(f"Duplicate section id {section_id} at offset {at}")
        kind = SECTION_KINDS.get(section_id, Opaque)
        sections[section_id] = kind.decode(content, content_base)

    return Container(sections, tuple(custom))


def serialize_container(container: Container) -> bytes:
    """Serialize with standard sections in ascending id order, custom sections last."""
    out = bytearray(MODULE_MAGIC)
    out += struct.pack("<I", MODULE_VERSION)
    for section_id in sorted(container.sections):
        out += _frame(section_id, container.sections[section_id].encode())
    for content in container.custom:
        out += _frame(SECTION_CUSTOM, content)
    return bytes(out)
