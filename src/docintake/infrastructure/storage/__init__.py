"""Storage adapters"""

from .local_storage_adapter import LocalStorageAdapter
from .s3_storage_adapter import S3StorageAdapter
from .registry import build_storage_registry

__all__ = ["LocalStorageAdapter", "S3StorageAdapter", "build_storage_registry"]
