from .display import DisplayItem, PendingItem, PersistedItem, ReconciledView
from .image_file import PendingImage, SourceFile
from .outputs import EncodedImage, EngineOutputs, ReadyBatch, StatusMessage
from .record import ImageRecord, PersistedImage
from .transform import GestureTransform, ZoomIndicator

__all__ = [
    "DisplayItem",
    "PendingItem",
    "PersistedItem",
    "ReconciledView",
    "PendingImage",
    "SourceFile",
    "EncodedImage",
    "EngineOutputs",
    "ReadyBatch",
    "StatusMessage",
    "ImageRecord",
    "PersistedImage",
    "GestureTransform",
    "ZoomIndicator",
]
