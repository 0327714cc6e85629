"""Bootpack protocol constants.

Single source of truth for on-disk magic values, record markers and memory sizes.
Keep this file stable. Packer and boot engine must remain synchronized.
"""
from __future__ import annotations

from dataclasses import dataclass

# Module container
MODULE_MAGIC = b"\x00asm"
MODULE_VERSION = 1

SECTION_CUSTOM = 0
SECTION_GLOBAL = 6
SECTION_DATA = 11

VALTYPE_I32 = 0x7F
OP_I32_CONST = 0x41
OP_END = 0x0B

# LZ4 frame: [Magic(4) | FLG(1) | BD(1) | ContentSize(8)? | HC(1)] then blocks
FRAME_MAGIC = 0x184D2204
FRAME_VERSION = 1

FLG_VERSION_SHIFT = 6
FLG_BLOCK_CHECKSUM = 0x10
FLG_CONTENT_SIZE = 0x08
FLG_CONTENT_CHECKSUM = 0x04
FLG_RESERVED = 0x02
FLG_DICT_ID = 0x01
BD_RESERVED = 0x8F

BLOCK_UNCOMPRESSED = 0x80000000

# Block sequence
MIN_MATCH = 4
LENGTH_EXTENDED = 15

# The placeholder the decompressor declares for its payload-length global.
SENTINEL_PLACEHOLDER = 0x12345678

# Capacities
PAYLOAD_CAPACITY = 4096
EEPROM_CAPACITY = 4096
WORKING_MEMORY_SIZE = 65536


@dataclass(frozen=True)
class MemoryLayout:
    """Fixed regions of the working memory the decompressor runs in.

    The payload is loaded at ``input_base`` and expanded into the output region that
    immediately follows the input region.
    """

    input_base: int = 0
    input_capacity: int = PAYLOAD_CAPACITY
    output_capacity: int = WORKING_MEMORY_SIZE - PAYLOAD_CAPACITY

    @property
    def output_base(self) -> int:
        return self.input_base + self.input_capacity

    @property
    def output_limit(self) -> int:
        return self.output_base + self.output_capacity

    @property
    def size(self) -> int:
        return self.output_limit


DEFAULT_LAYOUT = MemoryLayout()
