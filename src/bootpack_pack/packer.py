"""Bootpack packer - embed a compressed payload into the decompressor module."""
from __future__ import annotations

import hashlib
from dataclasses import replace
from pathlib import Path
from warnings import warn

from bootpack_core.errors import PayloadTooLarge, SentinelAmbiguous, SentinelNotFound
from bootpack_core.protocol import EEPROM_CAPACITY, PAYLOAD_CAPACITY, SECTION_DATA, SECTION_GLOBAL

from .container import Container, DataBlock, parse_container, serialize_container
from .frame import unwrap_frame


def find_sentinel(container: Container) -> int:
    """Return the index of the one global holding the sentinel placeholder."""
    matches = [i for i, g in enumerate(container.globals.entries) if g.is_sentinel()]
    if not matches:
        raise SentinelNotFound("No immutable i32 global initialized to the sentinel placeholder")
    if len(matches) > 1:
        raise SentinelAmbiguous(f"{len(matches)} globals hold the sentinel placeholder (indices {matches})")
    return matches[0]


def pack(container: Container, stream: bytes) -> Container:
    """Return a new container carrying ``stream`` as a data block at offset 0.

    The sentinel global is rewritten to ``len(stream)``. The input container is not
    modified.
    """
    if len(stream) > PAYLOAD_CAPACITY:
        raise PayloadTooLarge(f"Payload of {len(stream)} bytes exceeds capacity of {PAYLOAD_CAPACITY} bytes")

    data = container.data_blocks
    data = replace(data, entries=data.entries + (DataBlock(0, 0, bytes(stream)),))

    index = find_sentinel(container)
    globals_ = container.globals
    entries = list(globals_.entries)
    entries[index] = replace(entries[index], init=len(stream))
    globals_ = replace(globals_, entries=tuple(entries))

    return container.with_section(SECTION_DATA, data).with_section(SECTION_GLOBAL, globals_)


def pack_image(module: bytes, frame: bytes, strip: bool = False) -> bytes:
    """Unwrap ``frame``, pack it into ``module`` and return the serialized image."""
    container = parse_container(module)
    if strip:
        container = container.without_custom()
    stream = unwrap_frame(frame)
    image = serialize_container(pack(container, stream))
    if len(image) > EEPROM_CAPACITY:
        warn(f"Packed image is {len(image)} bytes; firmware slot holds {EEPROM_CAPACITY}")
    return image


def pack_files(module_path: Path, payload_path: Path, out_path: Path, strip: bool = False) -> bytes:
    """Pack files on disk and write the image to ``out_path``."""
    print(f"Packing: {payload_path} into {module_path}")

    module = Path(module_path).read_bytes()
    frame = Path(payload_path).read_bytes()
    image = pack_image(module, frame, strip=strip)

    out_path = Path(out_path)
    out_path.parent.mkdir(parents=True, exist_ok=True)
    out_path.write_bytes(image)

    print(f"PASS: Image written to {out_path}")
    print(f"  Module: {len(module)} bytes")
    print(f"  Frame: {len(frame)} bytes")
    print(f"  Image: {len(image)} bytes")
    print(f"  SHA-256: {hashlib.sha256(image).hexdigest()}")
    return image
