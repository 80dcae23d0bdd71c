"""
Blob Store - raw bytes of uploaded attachments, addressed by storage reference

Two backends:
- LocalBlobStore: files under settings.UPLOAD_DIR (default)
- S3BlobStore: objects in an S3/MinIO bucket under settings.S3_KEY_PREFIX

A storage reference is a flat name generated by the attachment coordinator.
It never contains a path separator, so it cannot address anything outside
the store's root.
"""

import asyncio
from abc import ABC, abstractmethod
from functools import partial
from pathlib import Path
from typing import Optional

import aiofiles
import aiofiles.os
import boto3
from botocore.config import Config
from botocore.exceptions import BotoCoreError, ClientError

from app.core.config import settings
from app.core.exceptions import BlobNotFoundError, BlobStoreError
from app.core.logging_config import logger


def validate_storage_ref(storage_ref: str) -> str:
    """Reject references that could escape the storage root"""
    if (
        not storage_ref
        or storage_ref in (".", "..")
        or "/" in storage_ref
        or "\\" in storage_ref
        or "\x00" in storage_ref
    ):
        raise ValueError(f"Invalid storage reference: {storage_ref!r}")
    return storage_ref


class BlobStore(ABC):
    """Save/read/delete blobs by storage reference"""

    @abstractmethod
    async def save(self, storage_ref: str, content: bytes, content_type: Optional[str] = None) -> None:
        """Store content under a new reference. Raises BlobStoreError on failure."""

    @abstractmethod
    async def read(self, storage_ref: str) -> bytes:
        """Return stored bytes. Raises BlobNotFoundError if nothing is stored."""

    @abstractmethod
    async def delete(self, storage_ref: str) -> None:
        """Remove a blob. Raises BlobNotFoundError if it is already absent."""


class LocalBlobStore(BlobStore):
    """Blob store backed by a directory on local disk"""

    def __init__(self, root: Path):
        self.root = Path(root)
        self.root.mkdir(parents=True, exist_ok=True)
        logger.info(f"[BlobStore] Local store initialized at {self.root}")

    def _path(self, storage_ref: str) -> Path:
        return self.root / validate_storage_ref(storage_ref)

    async def save(self, storage_ref: str, content: bytes, content_type: Optional[str] = None) -> None:
        path = self._path(storage_ref)
        try:
            # "xb" refuses to overwrite an existing blob
            async with aiofiles.open(path, "xb") as f:
                await f.write(content)
        except FileExistsError:
            raise BlobStoreError(storage_ref, "reference already in use")
        except OSError as e:
            raise BlobStoreError(storage_ref, str(e))
        logger.debug(f"[BlobStore] Saved {storage_ref} ({len(content)} bytes)")

    async def read(self, storage_ref: str) -> bytes:
        path = self._path(storage_ref)
        try:
            async with aiofiles.open(path, "rb") as f:
                return await f.read()
        except FileNotFoundError:
            raise BlobNotFoundError(storage_ref)
        except OSError as e:
            raise BlobStoreError(storage_ref, str(e))

    async def delete(self, storage_ref: str) -> None:
        path = self._path(storage_ref)
        try:
            await aiofiles.os.remove(path)
        except FileNotFoundError:
            raise BlobNotFoundError(storage_ref)
        except OSError as e:
            raise BlobStoreError(storage_ref, str(e))
        logger.debug(f"[BlobStore] Deleted {storage_ref}")


class S3BlobStore(BlobStore):
    """
    Blob store backed by an S3 (or MinIO) bucket.

    boto3 is synchronous, so every call runs in the default executor to keep
    the event loop free for other requests.
    """

    def __init__(self, bucket_name: str, key_prefix: str = "uploads", client=None):
        self.bucket_name = bucket_name
        self.key_prefix = key_prefix.strip("/")
        self._client = client
        logger.info(f"[BlobStore] S3 store initialized with bucket: {self.bucket_name}")

    def _get_client(self):
        """Lazy initialization of S3/MinIO client"""
        if self._client is None:
            kwargs = {"region_name": settings.AWS_REGION}
            if settings.AWS_ACCESS_KEY_ID and settings.AWS_SECRET_ACCESS_KEY:
                kwargs["aws_access_key_id"] = settings.AWS_ACCESS_KEY_ID
                kwargs["aws_secret_access_key"] = settings.AWS_SECRET_ACCESS_KEY
            if settings.S3_ENDPOINT_URL:
                # MinIO configuration
                kwargs["endpoint_url"] = settings.S3_ENDPOINT_URL
                kwargs["config"] = Config(
                    signature_version='s3v4',
                    s3={'addressing_style': 'path'}
                )
            self._client = boto3.client('s3', **kwargs)
        return self._client

    def _key(self, storage_ref: str) -> str:
        ref = validate_storage_ref(storage_ref)
        return f"{self.key_prefix}/{ref}" if self.key_prefix else ref

    async def _call(self, method: str, **kwargs):
        client = self._get_client()
        loop = asyncio.get_running_loop()
        return await loop.run_in_executor(None, partial(getattr(client, method), **kwargs))

    @staticmethod
    def _is_missing(error: ClientError) -> bool:
        code = error.response.get('Error', {}).get('Code', '')
        return code in ('404', 'NoSuchKey', 'NotFound')

    async def save(self, storage_ref: str, content: bytes, content_type: Optional[str] = None) -> None:
        key = self._key(storage_ref)
        try:
            await self._call(
                "put_object",
                Bucket=self.bucket_name,
                Key=key,
                Body=content,
                ContentType=content_type or "application/octet-stream",
            )
        except (ClientError, BotoCoreError) as e:
            raise BlobStoreError(storage_ref, str(e))
        logger.debug(f"[BlobStore] Uploaded {key} ({len(content)} bytes)")

    async def read(self, storage_ref: str) -> bytes:
        key = self._key(storage_ref)
        try:
            response = await self._call("get_object", Bucket=self.bucket_name, Key=key)
            loop = asyncio.get_running_loop()
            return await loop.run_in_executor(None, response['Body'].read)
        except ClientError as e:
            if self._is_missing(e):
                raise BlobNotFoundError(storage_ref)
            raise BlobStoreError(storage_ref, str(e))
        except BotoCoreError as e:
            raise BlobStoreError(storage_ref, str(e))

    async def delete(self, storage_ref: str) -> None:
        key = self._key(storage_ref)
        try:
            # delete_object succeeds for absent keys, so check first
            await self._call("head_object", Bucket=self.bucket_name, Key=key)
            await self._call("delete_object", Bucket=self.bucket_name, Key=key)
        except ClientError as e:
            if self._is_missing(e):
                raise BlobNotFoundError(storage_ref)
            raise BlobStoreError(storage_ref, str(e))
        except BotoCoreError as e:
            raise BlobStoreError(storage_ref, str(e))
        logger.debug(f"[BlobStore] Deleted {key}")


def create_blob_store() -> BlobStore:
    """Build the blob store selected by STORAGE_MODE"""
    mode = settings.STORAGE_MODE.lower()
    if mode in ("s3", "minio"):
        return S3BlobStore(settings.S3_BUCKET_NAME, settings.S3_KEY_PREFIX)
    if mode != "local":
        logger.warning(f"[BlobStore] Unknown STORAGE_MODE '{settings.STORAGE_MODE}', using local storage")
    return LocalBlobStore(settings.UPLOAD_DIR)


_blob_store: Optional[BlobStore] = None


def get_blob_store() -> BlobStore:
    """Process-wide blob store (FastAPI dependency)"""
    global _blob_store
    if _blob_store is None:
        _blob_store = create_blob_store()
    return _blob_store
