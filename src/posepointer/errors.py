# src/posepointer/errors.py
# Exceptions shared by the capture, model and session layers.


class PosePointerError(Exception):
    """Base class for errors raised by PosePointer."""


class SourceUnavailable(PosePointerError):
    """The capture device could not be opened (missing, busy, permission denied,
    or unable to satisfy the minimum resolution)."""

    def __init__(self, message: str, device_id=None):
        super().__init__(message)
        self.device_id = device_id


class OracleUnready(PosePointerError):
    """Inference was requested before the model finished loading (or after it was closed)."""


class ModelLoadError(PosePointerError):
    """A pose model file is missing or the backend failed to initialize."""
