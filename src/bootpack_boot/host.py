"""Host primitives the boot engine hands control to."""
from __future__ import annotations

from typing import NoReturn, Optional, Protocol


class Host(Protocol):
    def register_code(self, base: int, length: int) -> object:
        """Register ``length`` bytes at ``base`` as the code to run next."""

    def execute(self) -> NoReturn:
        """Transfer control into the registered code. Never returns."""


class ControlTransferred(Exception):
    """Raised by ``RecordingHost.execute`` in place of a real control transfer."""

    def __init__(self, code: bytes):
        super().__init__(f"control transferred to {len(code)} bytes of code")
        self.code = code


class RecordingHost:
    """Simulated host: snapshots the registered region and stops on execute."""

    def __init__(self, memory: bytearray):
        self.memory = memory
        self.registered: Optional[tuple[int, int]] = None
        self.code: Optional[bytes] = None

    def register_code(self, base: int, length: int) -> int:
        self.registered = (base, length)
        self.code = bytes(self.memory[base:base + length])
        return 0

    def execute(self) -> NoReturn:
        if self.code is None:
            raise RuntimeError("execute called before register_code")
        raise ControlTransferred(self.code)
