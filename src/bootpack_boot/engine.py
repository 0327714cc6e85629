"""Decompression-and-dispatch engine.

Expands the LZ4 block sequence sitting in the input region of working memory into
the output region, then hands the recovered bytes to the host. One forward pass,
no reentry: all cursor state lives in a ``_Cursors`` owned by a single call to
``decompress``.

Sequence layout::

    token(1) | literal length ext* | literals | distance(2, LE) | match length ext*

The last sequence of a stream stops after its literals.
"""
from __future__ import annotations

import enum
from dataclasses import dataclass
from typing import Callable, NoReturn, Optional, Union

from bootpack_core.errors import RuntimeBoundsFault
from bootpack_core.protocol import DEFAULT_LAYOUT, LENGTH_EXTENDED, MIN_MATCH, MemoryLayout

from .host import Host


class Phase(enum.Enum):
    READING_TOKEN = "reading-token"
    COPYING_LITERAL = "copying-literal"
    READING_MATCH = "reading-match"
    COPYING_MATCH = "copying-match"
    FAULTED = "faulted"


@dataclass(frozen=True)
class SequenceToken:
    """One decoded sequence, as reported to a trace hook."""

    input_offset: int
    output_offset: int
    literal_length: int
    match_length: Optional[int] = None
    match_distance: Optional[int] = None


@dataclass(frozen=True)
class Decompressed:
    base: int
    length: int


@dataclass(frozen=True)
class Fault:
    phase: Phase
    reason: str


Result = Union[Decompressed, Fault]


class _Trap(Exception):
    def __init__(self, reason: str):
        super().__init__(reason)
        self.reason = reason


@dataclass
class _Cursors:
    read: int
    limit: int
    write: int
    base: int


def _read_byte(memory: bytearray, c: _Cursors) -> int:
    if c.read >= c.limit:
        raise _Trap(f"read at {c.read} past input limit {c.limit}")
    value = memory[c.read]
    c.read += 1
    return value


def extend_length(memory: bytearray, c: _Cursors, length: int) -> int:
    """Apply the length-extension rule to a 4-bit length field."""
    if length != LENGTH_EXTENDED:
        return length
    while True:
        extra = _read_byte(memory, c)
        length += extra
        if extra != 255:
            return length


def decompress(
    memory: bytearray,
    payload_length: int,
    layout: MemoryLayout = DEFAULT_LAYOUT,
    on_token: Optional[Callable[[SequenceToken], None]] = None,
) -> Result:
    """Expand ``payload_length`` bytes at the input base into the output region."""
    if len(memory) < layout.size:
        return Fault(Phase.FAULTED, f"memory of {len(memory)} bytes is smaller than layout of {layout.size}")
    if not 0 <= payload_length <= layout.input_capacity:
        return Fault(
            Phase.FAULTED, f"payload length {payload_length} outside input capacity {layout.input_capacity}"
        )

    c = _Cursors(
        read=layout.input_base,
        limit=layout.input_base + payload_length,
        write=layout.output_base,
        base=layout.output_base,
    )
    out_limit = layout.output_limit
    phase = Phase.READING_TOKEN
    try:
        while True:
            phase = Phase.READING_TOKEN
            token_at, written_at = c.read, c.write
            token = _read_byte(memory, c)
            literal_length = extend_length(memory, c, token >> 4)

            phase = Phase.COPYING_LITERAL
            if c.read + literal_length > c.limit:
                raise _Trap(f"literal run of {literal_length} at {c.read} past input limit {c.limit}")
            if c.write + literal_length > out_limit:
                raise _Trap(f"literal run of {literal_length} at {c.write} past output limit {out_limit}")
            memory[c.write:c.write + literal_length] = memory[c.read:c.read + literal_length]
            c.read += literal_length
            c.write += literal_length

            if c.read == c.limit:
                if on_token is not None:
                    on_token(SequenceToken(token_at - layout.input_base, written_at - c.base, literal_length))
                break

            phase = Phase.READING_MATCH
            distance = _read_byte(memory, c)
            distance |= _read_byte(memory, c) << 8
            source = c.write - distance
            match_length = extend_length(memory, c, token & 0x0F) + MIN_MATCH
            if distance == 0 or source < c.base:
                raise _Trap(f"match distance {distance} at output {c.write} reaches outside output region")

            if on_token is not None:
                on_token(
                    SequenceToken(
                        token_at - layout.input_base,
                        written_at - c.base,
                        literal_length,
                        match_length,
                        distance,
                    )
                )

            phase = Phase.COPYING_MATCH
            if c.write + match_length > out_limit:
                raise _Trap(f"match of {match_length} at {c.write} past output limit {out_limit}")
            # Byte at a time: source and destination overlap when distance < length.
            for _ in range(match_length):
                memory[c.write] = memory[source]
                c.write += 1
                source += 1
    except _Trap as trap:
        return Fault(phase, trap.reason)

    return Decompressed(c.base, c.write - c.base)


def boot(
    memory: bytearray,
    payload_length: int,
    host: Host,
    layout: MemoryLayout = DEFAULT_LAYOUT,
) -> NoReturn:
    """Decompress, register the recovered code with the host and transfer control to it."""
    result = decompress(memory, payload_length, layout)
    if isinstance(result, Fault):
        raise RuntimeBoundsFault(f"{result.phase.value}: {result.reason}")
    host.register_code(result.base, result.length)
    host.execute()
    raise RuntimeBoundsFault("host returned from execute")
