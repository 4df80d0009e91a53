"""S3 Storage Adapter - Implementation of StoragePort using boto3.

Provides storage operations for AWS S3, MinIO, and other S3-compatible services.
Provider errors are mapped onto the docintake error taxonomy so the
validation queue can decide whether to retry.

Architecture: Hexagonal - Adapter implementation in infrastructure layer
"""

import hashlib
import logging
from io import BytesIO
from typing import Optional

import boto3
from botocore.config import Config as BotoConfig
from botocore.exceptions import (
    BotoCoreError,
    ClientError,
    ConnectTimeoutError,
    EndpointConnectionError,
    NoCredentialsError,
    ReadTimeoutError,
)

from ...domain.storage.ports import StoragePort, StoredFile
from ...errors import AuthError, StorageError, TransientProviderError
from .local_storage_adapter import safe_filename

logger = logging.getLogger(__name__)

AUTH_ERROR_CODES = {"AccessDenied", "InvalidAccessKeyId", "SignatureDoesNotMatch", "ExpiredToken", "InvalidToken"}
TRANSIENT_ERROR_CODES = {"SlowDown", "Throttling", "ThrottlingException", "RequestTimeout", "ServiceUnavailable", "InternalError"}
NOT_FOUND_CODES = {"NoSuchKey", "404", "NotFound"}


class S3StorageAdapter(StoragePort):
    """S3-compatible storage adapter using boto3.

    Object keys are "{prefix}/{folder_path}/{filename}"; prefix comes from
    the storage target config and may be empty.

    Example:
        storage = S3StorageAdapter(
            endpoint_url="http://localhost:9000",
            access_key="minioadmin",
            secret_key="minioadmin",
            bucket_name="docintake-documents",
        )
        stored = storage.upload_file(data, "passport.pdf", "hr/2025", {"mime_type": "application/pdf"})
    """

    provider = "s3"

    def __init__(
        self,
        endpoint_url: Optional[str],
        access_key: Optional[str],
        secret_key: Optional[str],
        bucket_name: str,
        region: str = "us-east-1",
        prefix: str = "",
        timeout_seconds: float = 30.0,
        client=None,
    ):
        """Initialize S3 storage adapter.

        Args:
            endpoint_url: S3 endpoint URL (None for AWS S3, URL for MinIO)
            access_key: S3 access key ID (None to use the default credential chain)
            secret_key: S3 secret access key
            bucket_name: S3 bucket name
            region: AWS region (default: 'us-east-1')
            prefix: Key prefix for every object
            timeout_seconds: Connect and read timeout
            client: Pre-built boto3 client (tests)
        """
        self.bucket_name = bucket_name
        self.prefix = prefix.strip("/")
        self.s3_client = client or boto3.client(
            "s3",
            endpoint_url=endpoint_url,
            aws_access_key_id=access_key,
            aws_secret_access_key=secret_key,
            region_name=region,
            config=BotoConfig(
                connect_timeout=timeout_seconds,
                read_timeout=timeout_seconds,
                retries={"max_attempts": 2},
            ),
        )
        logger.info(
            f"Initialized S3 storage adapter: bucket={bucket_name}, "
            f"endpoint={endpoint_url or 'AWS S3'}, region={region}"
        )

    def _key(self, *parts: str) -> str:
        segments = [self.prefix] + [p.strip("/") for p in parts]
        return "/".join(s for s in segments if s)

    def upload_file(
        self,
        content: bytes,
        filename: str,
        folder_path: str,
        metadata: Optional[dict[str, str]] = None,
    ) -> StoredFile:
        key = self._key(folder_path, safe_filename(filename))
        sha256_hex = hashlib.sha256(content).hexdigest()
        metadata = {"sha256": sha256_hex, "original_filename": filename, **(metadata or {})}
        content_type = metadata.pop("mime_type", None) or "application/octet-stream"

        try:
            self.s3_client.put_object(
                Bucket=self.bucket_name,
                Key=key,
                Body=BytesIO(content),
                ContentType=content_type,
                Metadata={k: str(v) for k, v in metadata.items()},
            )
        except Exception as e:
            raise self._map_error(e, key)

        logger.info(f"Uploaded file: key={key}, sha256={sha256_hex}, size={len(content)}")
        return StoredFile(path=key, sha256=sha256_hex, size_bytes=len(content), provider=self.provider)

    def download_file(self, path: str) -> bytes:
        try:
            response = self.s3_client.get_object(Bucket=self.bucket_name, Key=path)
            return response["Body"].read()
        except Exception as e:
            raise self._map_error(e, path)

    def create_folder(self, path: str) -> None:
        # S3 has no folders; a zero-byte marker keeps the prefix visible in consoles
        key = self._key(path) + "/"
        try:
            self.s3_client.put_object(Bucket=self.bucket_name, Key=key, Body=b"")
        except Exception as e:
            raise self._map_error(e, key)

    def _map_error(self, error: Exception, key: str) -> Exception:
        details = {"bucket": self.bucket_name, "key": key}
        if isinstance(error, NoCredentialsError):
            return AuthError(f"S3 credentials missing: {error}", details)
        if isinstance(error, (ConnectTimeoutError, ReadTimeoutError, EndpointConnectionError)):
            return TransientProviderError(f"S3 connection problem: {error}", details)
        if isinstance(error, ClientError):
            code = error.response.get("Error", {}).get("Code", "")
            details["code"] = code
            if code in AUTH_ERROR_CODES:
                return AuthError(f"S3 rejected credentials ({code})", details)
            if code in TRANSIENT_ERROR_CODES:
                return TransientProviderError(f"S3 temporarily unavailable ({code})", details)
            if code in NOT_FOUND_CODES:
                return StorageError(f"Object not found: {key}", details)
            return StorageError(f"S3 error ({code}): {error}", details)
        if isinstance(error, BotoCoreError):
            return TransientProviderError(f"S3 client error: {error}", details)
        return StorageError(f"Unexpected S3 error: {error}", details)
