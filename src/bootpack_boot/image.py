"""Load a packed boot image into a fresh working memory."""
from __future__ import annotations

from dataclasses import dataclass
from pathlib import Path
from typing import Optional

from bootpack_core.errors import MalformedContainer, RuntimeBoundsFault
from bootpack_core.protocol import DEFAULT_LAYOUT, VALTYPE_I32, MemoryLayout
from bootpack_pack.container import Container, parse_container


@dataclass
class LoadedImage:
    container: Container
    memory: bytearray
    payload_length: int
    global_index: int


def find_length_global(container: Container) -> int:
    """Find the patched length global.

    It is the unique immutable i32 global whose value equals the size of the data
    block loaded at offset 0.
    """
    payloads = [b for b in container.data_blocks.entries if b.offset == 0]
    if not payloads:
        raise MalformedContainer("Image has no data block at offset 0")
    size = len(payloads[-1].data)
    matches = [
        i
        for i, g in enumerate(container.globals.entries)
        if not g.mutable and g.value_type == VALTYPE_I32 and g.init == size
    ]
    if len(matches) != 1:
        raise MalformedContainer(
            f"Expected one immutable i32 global equal to payload size {size}, found {len(matches)}"
        )
    return matches[0]


def load_image(
    image: bytes,
    global_index: Optional[int] = None,
    layout: MemoryLayout = DEFAULT_LAYOUT,
) -> LoadedImage:
    container = parse_container(image)
    memory = bytearray(layout.size)
    for block in container.data_blocks.entries:
        end = block.offset + len(block.data)
        if end > layout.size:
            raise RuntimeBoundsFault(f"Data block at {block.offset} of {len(block.data)} bytes exceeds memory")
        memory[block.offset:end] = block.data

    if global_index is None:
        global_index = find_length_global(container)
    entries = container.globals.entries
    if not 0 <= global_index < len(entries):
        raise MalformedContainer(f"Global index {global_index} out of range ({len(entries)} globals)")

    return LoadedImage(container, memory, entries[global_index].init, global_index)


def load_image_file(path: Path, global_index: Optional[int] = None) -> LoadedImage:
    return load_image(Path(path).read_bytes(), global_index)
