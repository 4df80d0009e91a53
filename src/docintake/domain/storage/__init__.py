"""Storage port and provider registry"""

from .ports import StoragePort, StoredFile
from .registry import StorageRegistry

__all__ = ["StoragePort", "StoredFile", "StorageRegistry"]
