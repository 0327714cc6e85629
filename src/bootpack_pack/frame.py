"""LZ4 frame unwrapper.

Strips the frame header, block-size prefixes and checksums from an LZ4 frame and
returns the concatenated compressed blocks. The blocks are not decompressed here;
that is the boot engine's job once the image is running.
"""
from __future__ import annotations

import struct
from warnings import warn

from bootpack_core.errors import FramingViolation, UnsupportedFrameFeature
from bootpack_core.protocol import (
    BD_RESERVED,
    BLOCK_UNCOMPRESSED,
    FLG_BLOCK_CHECKSUM,
    FLG_CONTENT_CHECKSUM,
    FLG_CONTENT_SIZE,
    FLG_DICT_ID,
    FLG_RESERVED,
    FLG_VERSION_SHIFT,
    FRAME_MAGIC,
    FRAME_VERSION,
)

CONTENT_SIZE_LEN = 8
HEADER_CHECKSUM_LEN = 1
CHECKSUM_LEN = 4


def _take(frame: bytes, pos: int, count: int, what: str) -> tuple[bytes, int]:
    end = pos + count
    if end > len(frame):
        raise FramingViolation(
            f"Frame truncated reading {what} at offset {pos} (need {count}, have {len(frame) - pos})"
        )
    return frame[pos:end], end


def unwrap_frame(frame: bytes) -> bytes:
    """Return the raw block sequence carried by an LZ4 frame."""
    raw, pos = _take(frame, 0, 4, "magic")
    (magic,) = struct.unpack("<I", raw)
    if magic != FRAME_MAGIC:
        raise FramingViolation(f"Bad frame magic 0x{magic:08X} (expected 0x{FRAME_MAGIC:08X})")

    raw, pos = _take(frame, pos, 2, "frame descriptor")
    flg, bd = raw[0], raw[1]
    version = flg >> FLG_VERSION_SHIFT
    if version != FRAME_VERSION:
        raise UnsupportedFrameFeature(f"Frame version {version} (expected {FRAME_VERSION})")
    if flg & FLG_DICT_ID:
        raise UnsupportedFrameFeature("Frame requires an external dictionary")
    if flg & FLG_RESERVED:
        raise UnsupportedFrameFeature(f"Reserved bit set in FLG byte 0x{flg:02X}")
    if bd & BD_RESERVED:
        raise UnsupportedFrameFeature(f"Reserved bits set in BD byte 0x{bd:02X}")

    if flg & FLG_CONTENT_SIZE:
        _, pos = _take(frame, pos, CONTENT_SIZE_LEN, "content size")
    _, pos = _take(frame, pos, HEADER_CHECKSUM_LEN, "header checksum")

    out = bytearray()
    blocks = 0
    while True:
        block_off = pos
        raw, pos = _take(frame, pos, 4, "block size")
        (size,) = struct.unpack("<I", raw)
        if size & BLOCK_UNCOMPRESSED:
            raise UnsupportedFrameFeature(f"Uncompressed block at offset {block_off}")
        if size == 0:
            break
        data, pos = _take(frame, pos, size, "block data")
        out += data
        blocks += 1
        if flg & FLG_BLOCK_CHECKSUM:
            _, pos = _take(frame, pos, CHECKSUM_LEN, "block checksum")

    if flg & FLG_CONTENT_CHECKSUM:
        _, pos = _take(frame, pos, CHECKSUM_LEN, "content checksum")

    if pos != len(frame):
        raise FramingViolation(f"{len(frame) - pos} trailing bytes after frame end marker at offset {pos}")

    if blocks > 1:
        warn(f"Frame holds {blocks} blocks; they will be decoded as one block sequence")

    return bytes(out)
