"""Domain errors. Routes translate these into HTTP responses via status_code."""
from typing import Optional


class VicomError(Exception):
    status_code = 500

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message


class ValidationError(VicomError):
    """Missing/invalid files, unsupported format, size over limit, bad trim range."""

    status_code = 400


class ProbeError(VicomError):
    """Duration could not be read (corrupt or unsupported input)."""

    status_code = 400


class EncodeError(VicomError):
    status_code = 500

    def __init__(self, message: str, returncode: Optional[int] = None, stderr: str = ""):
        super().__init__(message)
        self.returncode = returncode
        self.stderr = stderr


class EncodeCancelled(EncodeError):
    """The client went away; the encoder was stopped and partial output discarded."""

    status_code = 499


class ToolUnavailable(VicomError):
    """A required external binary is missing: a server problem, not the client's file."""

    status_code = 500


class StorageError(VicomError):
    status_code = 500


class DeliveryError(VicomError):
    pass


class ArtifactNotFound(DeliveryError):
    status_code = 404


class EmptyArtifact(DeliveryError):
    status_code = 500


class RangeNotSatisfiable(DeliveryError):
    status_code = 416

    def __init__(self, message: str, size: int):
        super().__init__(message)
        self.size = size
