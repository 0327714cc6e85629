"""LEB128 variable-length integers, as used throughout the module container."""
from __future__ import annotations

from .errors import TruncatedVarint


def encode_unsigned(value: int) -> bytes:
    """Encode a non-negative integer in the minimal number of bytes."""
    if value < 0:
        raise ValueError(f"Cannot encode negative value {value} as unsigned varint")
    out = bytearray()
    while True:
        byte = value & 0x7F
        value >>= 7
        if value:
            out.append(byte | 0x80)
        else:
            out.append(byte)
            return bytes(out)


def encode_signed(value: int) -> bytes:
    """Encode a signed integer in the minimal number of bytes.

    Stops once the remaining value is fully represented by sign-extending bit 6 of the
    byte about to be written.
    """
    out = bytearray()
    while True:
        byte = value & 0x7F
        value >>= 7
        sign_bit = byte & 0x40
        if (value == 0 and not sign_bit) or (value == -1 and sign_bit):
            out.append(byte)
            return bytes(out)
        out.append(byte | 0x80)


def decode_unsigned(data: bytes, offset: int = 0) -> tuple[int, int]:
    """Decode an unsigned varint. Returns (value, offset past the last byte)."""
    result = 0
    shift = 0
    pos = offset
    while True:
        if pos >= len(data):
            raise TruncatedVarint(f"Unsigned varint at offset {offset} runs past end of input")
        byte = data[pos]
        pos += 1
        result |= (byte & 0x7F) << shift
        shift += 7
        if not byte & 0x80:
            return result, pos


def decode_signed(data: bytes, offset: int = 0) -> tuple[int, int]:
    """Decode a signed varint. Returns (value, offset past the last byte)."""
    result = 0
    shift = 0
    pos = offset
    while True:
        if pos >= len(data):
            raise TruncatedVarint(f"Signed varint at offset {offset} runs past end of input")
        byte = data[pos]
        pos += 1
        result |= (byte & 0x7F) << shift
        shift += 7
        if not byte & 0x80:
            if byte & 0x40:
                result -= 1 << shift
            return result, pos
