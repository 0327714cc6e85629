"""Build-time and boot-time fault taxonomy."""
from __future__ import annotations

ERRORS = {
    "E_CONTAINER_MALFORMED": "Module container is malformed",
    "E_FRAME_UNSUPPORTED": "Compression frame uses an unsupported feature",
    "E_FRAME_VIOLATION": "Compression frame violates its framing",
    "E_PAYLOAD_TOO_LARGE": "Payload exceeds the fixed capacity",
    "E_SENTINEL_NOT_FOUND": "No sentinel global in container",
    "E_SENTINEL_AMBIGUOUS": "More than one sentinel global in container",
    "E_RUNTIME_BOUNDS": "Boot engine accessed memory outside its regions",
}


class BootpackError(ValueError):
    """Base class for every fault raised by the packer or the boot engine."""

    code = "E_INTERNAL"

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message

    @property
    def description(self) -> str:
        return ERRORS.get(self.code, "Internal error")

    def __str__(self) -> str:
        return f"{self.code}: {self.message}"


class MalformedContainer(BootpackError):
    code = "E_CONTAINER_MALFORMED"


class TruncatedVarint(MalformedContainer):
    pass


class UnsupportedFrameFeature(BootpackError):
    code = "E_FRAME_UNSUPPORTED"


class FramingViolation(BootpackError):
    code = "E_FRAME_VIOLATION"


class PayloadTooLarge(BootpackError):
    code = "E_PAYLOAD_TOO_LARGE"


class SentinelNotFound(BootpackError):
    code = "E_SENTINEL_NOT_FOUND"


class SentinelAmbiguous(BootpackError):
    code = "E_SENTINEL_AMBIGUOUS"


class RuntimeBoundsFault(BootpackError):
    code = "E_RUNTIME_BOUNDS"
