"""Default storage registry wiring from application settings."""

from typing import Optional

from ...config import Settings, get_settings
from ...domain.storage.ports import StoragePort
from ...domain.storage.registry import StorageRegistry
from .local_storage_adapter import LocalStorageAdapter
from .s3_storage_adapter import S3StorageAdapter


def build_storage_registry(settings: Optional[Settings] = None, drive_adapter: Optional[StoragePort] = None) -> StorageRegistry:
    """Registry with the local and S3 providers.

    Target config overrides the settings per storage target:
        local: {"root": "/srv/documents"}
        s3:    {"bucket": "...", "prefix": "...", "endpoint_url": "...", "region": "..."}

    A "drive" provider is registered only when an adapter is supplied.
    """
    settings = settings or get_settings()
    registry = StorageRegistry()

    registry.register(
        "local",
        lambda cfg: LocalStorageAdapter(cfg.get("root") or settings.LOCAL_STORAGE_ROOT),
    )
    registry.register(
        "s3",
        lambda cfg: S3StorageAdapter(
            endpoint_url=cfg.get("endpoint_url") or settings.S3_ENDPOINT_URL,
            access_key=settings.S3_ACCESS_KEY_ID,
            secret_key=settings.S3_SECRET_ACCESS_KEY,
            bucket_name=cfg.get("bucket") or settings.S3_BUCKET_NAME,
            region=cfg.get("region") or settings.S3_REGION,
            prefix=cfg.get("prefix", ""),
        ),
    )
    if drive_adapter is not None:
        registry.register("drive", lambda cfg: drive_adapter)

    return registry
