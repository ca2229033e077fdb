"""Failure taxonomy for the staging engine.

None of these are fatal: the engine façade catches them, logs them and turns
them into a status message while the affected collection is left as it was
(or minimally rolled back).
"""
from __future__ import annotations


class ImageStageError(Exception):
    """Base class for recoverable engine failures."""


class NoImageInputError(ImageStageError):
    """Raised when none of the submitted files is an image."""

    def __init__(self, submitted: int = 0):
        super().__init__(f"No image files among {submitted} submitted file(s)")
        self.submitted = submitted


class RemoteQueryError(ImageStageError):
    """Raised when loading persisted images fails; the previous list is kept."""


class RemoteWriteError(ImageStageError):
    """Raised when a create, update or delete is rejected by the store.

    ``completed`` is the number of operations that succeeded before the
    failure in a sequential batch (0 for single operations).
    """

    def __init__(self, message: str, *, completed: int = 0):
        super().__init__(message)
        self.completed = completed


class DecodeError(ImageStageError):
    """Raised when a file cannot be read or a payload cannot be decoded."""
