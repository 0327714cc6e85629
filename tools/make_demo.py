"""Write a demo decompressor module and an LZ4 frame to pack into it.

The frame holds a single block made of one literal-only sequence, which is a valid
LZ4 block that needs no encoder.
"""
import struct
from pathlib import Path

from bootpack_core.protocol import (
    FLG_CONTENT_SIZE,
    FRAME_MAGIC,
    SECTION_DATA,
    SECTION_GLOBAL,
    SENTINEL_PLACEHOLDER,
    VALTYPE_I32,
)
from bootpack_pack.container import Container, DataBlocks, Global, Globals, serialize_container


def demo_module() -> bytes:
    container = Container(
        {
            SECTION_GLOBAL: Globals((Global(VALTYPE_I32, False, SENTINEL_PLACEHOLDER),)),
            SECTION_DATA: DataBlocks(),
        },
        (b"\x04name",),
    )
    return serialize_container(container)


def literal_block(data: bytes) -> bytes:
    n = len(data)
    if n < 15:
        return bytes([n << 4]) + data
    out = bytearray([0xF0])
    rest = n - 15
    while rest >= 255:
        out.append(255)
        rest -= 255
    out.append(rest)
    return bytes(out) + data


def frame(block: bytes, content_size: int | None = None) -> bytes:
    flg = 0x40
    header = b""
    if content_size is not None:
        flg |= FLG_CONTENT_SIZE
        header = struct.pack("<Q", content_size)
    # BD selects the 64 KiB maximum block size. The header checksum is not verified.
    out = struct.pack("<IBB", FRAME_MAGIC, flg, 0x40) + header + b"\x00"
    out += struct.pack("<I", len(block)) + block
    return out + struct.pack("<I", 0)


def write_demo(out_dir: str, payload: bytes) -> tuple[Path, Path]:
    out = Path(out_dir)
    out.mkdir(parents=True, exist_ok=True)
    module_path = out / "decompressor.wasm"
    frame_path = out / "payload.lz4"
    module_path.write_bytes(demo_module())
    frame_path.write_bytes(frame(literal_block(payload), content_size=len(payload)))
    print(f"GENERATED: {module_path}")
    print(f"GENERATED: {frame_path}")
    return module_path, frame_path


if __name__ == "__main__":
    import sys

    # Usage:
    #   python tools/make_demo.py OUT_DIR [PAYLOAD_FILE]

    args = [a for a in sys.argv[1:] if a]
    if not args:
        raise SystemExit("usage: make_demo.py OUT_DIR [PAYLOAD_FILE]")
    out = args[0]
    payload = Path(args[1]).read_bytes() if len(args) > 1 else b"\x00asm\x01\x00\x00\x00" + bytes(range(64))
    write_demo(out, payload)
