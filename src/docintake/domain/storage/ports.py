"""Storage Port - Domain interface for document storage providers.

Adapters (local filesystem, S3, third-party drives) implement this
contract and are selected by provider discriminator through
StorageRegistry.

Architecture: Hexagonal - Port interface in domain layer
"""

from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Optional


@dataclass
class StoredFile:
    """Metadata for a stored file.

    Attributes:
        path: Provider-specific path of the stored file
        sha256: SHA256 hash of file content (hex format)
        size_bytes: File size in bytes
        provider: Provider discriminator the file was stored with
    """
    path: str
    sha256: str
    size_bytes: int
    provider: str


class StoragePort(ABC):
    """Port interface for document storage operations.

    Error contract:
        TransientProviderError: throttling, timeouts, connection failures
        AuthError: rejected or expired credentials
        StorageError: anything else, including missing files
    """

    provider: str = "abstract"

    @abstractmethod
    def upload_file(
        self,
        content: bytes,
        filename: str,
        folder_path: str,
        metadata: Optional[dict[str, str]] = None,
    ) -> StoredFile:
        """Store bytes under folder_path.

        Args:
            content: File bytes
            filename: Original filename (sanitized by the adapter)
            folder_path: Resolved routing folder
            metadata: Provider metadata; "mime_type" is used as content type where supported

        Returns:
            StoredFile with the provider path
        """
        pass

    @abstractmethod
    def download_file(self, path: str) -> bytes:
        """Read a stored file back.

        Raises:
            StorageError: If the file does not exist
        """
        pass

    @abstractmethod
    def create_folder(self, path: str) -> None:
        """Ensure a folder exists. Idempotent."""
        pass
