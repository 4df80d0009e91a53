"""Local filesystem storage adapter.

Stores documents under a root directory, mirroring the routed folder path.
"""

import hashlib
import logging
import os
import re
from pathlib import Path
from typing import Optional

from ...domain.storage.ports import StoragePort, StoredFile
from ...errors import StorageError

logger = logging.getLogger(__name__)

_UNSAFE_FILENAME = re.compile(r'[<>:"/\\|?*\x00-\x1f]')


def safe_filename(filename: str) -> str:
    name = _UNSAFE_FILENAME.sub("_", os.path.basename(filename or "")).strip(" .")
    return name or "document"


class LocalStorageAdapter(StoragePort):
    """Filesystem implementation of StoragePort.

    Paths returned by upload_file are relative to the root. Existing files
    with the same name get a numeric suffix instead of being overwritten.
    """

    provider = "local"

    def __init__(self, root: str):
        self.root = Path(root).resolve()

    def _resolve(self, path: str) -> Path:
        full = (self.root / path.lstrip("/")).resolve()
        if full != self.root and self.root not in full.parents:
            raise StorageError(f"Path escapes storage root: {path}", {"path": path})
        return full

    def create_folder(self, path: str) -> None:
        try:
            self._resolve(path).mkdir(parents=True, exist_ok=True)
        except OSError as e:
            raise StorageError(f"Failed to create folder {path}: {e}", {"path": path})

    def upload_file(
        self,
        content: bytes,
        filename: str,
        folder_path: str,
        metadata: Optional[dict[str, str]] = None,
    ) -> StoredFile:
        self.create_folder(folder_path)
        folder = self._resolve(folder_path)

        name = safe_filename(filename)
        target = folder / name
        stem, suffix = os.path.splitext(name)
        counter = 1
        while target.exists():
            target = folder / f"{stem}_{counter}{suffix}"
            counter += 1

        try:
            target.write_bytes(content)
        except OSError as e:
            raise StorageError(f"Failed to write {target}: {e}", {"path": str(target)})

        relative = target.relative_to(self.root).as_posix()
        logger.info(f"Stored file locally: path={relative}, size={len(content)}")
        return StoredFile(
            path=relative,
            sha256=hashlib.sha256(content).hexdigest(),
            size_bytes=len(content),
            provider=self.provider,
        )

    def download_file(self, path: str) -> bytes:
        target = self._resolve(path)
        try:
            return target.read_bytes()
        except FileNotFoundError:
            raise StorageError(f"File not found: {path}", {"path": path})
        except OSError as e:
            raise StorageError(f"Failed to read {path}: {e}", {"path": path})
