from .base import ImageStore, ImageStoreAPIError, ImageStoreError
from .registry import get_store

__all__ = [
    "ImageStore",
    "ImageStoreAPIError",
    "ImageStoreError",
    "get_store",
]
