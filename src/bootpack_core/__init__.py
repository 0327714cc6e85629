"""Bootpack Core - Shared protocol constants, varints and faults."""
from .errors import BootpackError
from .protocol import DEFAULT_LAYOUT, MemoryLayout
from .varint import decode_signed, decode_unsigned, encode_signed, encode_unsigned

__all__ = [
    "BootpackError",
    "DEFAULT_LAYOUT",
    "MemoryLayout",
    "decode_signed",
    "decode_unsigned",
    "encode_signed",
    "encode_unsigned",
]
