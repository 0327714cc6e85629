import struct
import warnings

import pytest

from bootpack_core.errors import FramingViolation, UnsupportedFrameFeature
from bootpack_pack.frame import unwrap_frame

MAGIC = struct.pack("<I", 0x184D2204)


def build_frame(blocks, flg=0x40, bd=0x40, content_size=None, block_checksums=False, content_checksum=False):
    if content_size is not None:
        flg |= 0x08
    if block_checksums:
        flg |= 0x10
    if content_checksum:
        flg |= 0x04
    out = MAGIC + bytes([flg, bd])
    if content_size is not None:
        out += struct.pack("<Q", content_size)
    out += b"\xaa"  # header checksum, not verified
    for block in blocks:
        out += struct.pack("<I", len(block)) + block
        if block_checksums:
            out += b"\x11\x22\x33\x44"
    out += struct.pack("<I", 0)
    if content_checksum:
        out += b"\x55\x66\x77\x88"
    return out


def test_single_block_is_returned_verbatim():
    block = b"\x20AB\x02\x00\x00"
    assert unwrap_frame(build_frame([block])) == block


def test_optional_fields_are_skipped():
    block = b"\x50hello"
    frame = build_frame([block], content_size=5, block_checksums=True, content_checksum=True)
    assert unwrap_frame(frame) == block


def test_empty_frame_yields_empty_stream():
    assert unwrap_frame(build_frame([])) == b""


def test_multiple_blocks_concatenate_with_warning():
    with warnings.catch_warnings(record=True) as caught:
        warnings.simplefilter("always")
        assert unwrap_frame(build_frame([b"\x10a", b"\x10b"])) == b"\x10a\x10b"
    assert any("2 blocks" in str(w.message) for w in caught)


def test_bad_magic():
    frame = build_frame([b"\x10a"])
    with pytest.raises(FramingViolation, match="magic"):
        unwrap_frame(b"\x00" + frame[1:])


@pytest.mark.parametrize(
    "flg, bd, needle",
    [
        (0x00, 0x40, "version"),
        (0x80, 0x40, "version"),
        (0x41, 0x40, "dictionary"),
        (0x42, 0x40, "FLG"),
        (0x40, 0xC0, "BD"),
        (0x40, 0x41, "BD"),
    ],
)
def test_unsupported_header_features(flg, bd, needle):
    with pytest.raises(UnsupportedFrameFeature, match=needle):
        unwrap_frame(build_frame([b"\x10a"], flg=flg, bd=bd))


def test_uncompressed_block_is_unsupported():
    frame = MAGIC + b"\x40\x40\xaa" + struct.pack("<I", 0x80000002) + b"hi" + struct.pack("<I", 0)
    with pytest.raises(UnsupportedFrameFeature, match="Uncompressed"):
        unwrap_frame(frame)


def test_trailing_bytes_after_end_marker():
    with pytest.raises(FramingViolation, match="trailing"):
        unwrap_frame(build_frame([b"\x10a"]) + b"\x00")


def test_trailing_bytes_after_content_checksum():
    with pytest.raises(FramingViolation, match="1 trailing"):
        unwrap_frame(build_frame([b"\x10a"], content_checksum=True) + b"!")


def test_truncated_block():
    frame = MAGIC + b"\x40\x40\xaa" + struct.pack("<I", 10) + b"short"
    with pytest.raises(FramingViolation, match="block data"):
        unwrap_frame(frame)


def test_missing_end_marker():
    frame = MAGIC + b"\x40\x40\xaa" + struct.pack("<I", 2) + b"\x10a"
    with pytest.raises(FramingViolation, match="block size"):
        unwrap_frame(frame)
