"""
RentHive - Object Storage
Property documents, images and calendars live in a single bucket.

Two backends share one interface:
- SupabaseStorage: the Supabase Storage bucket (production)
- LocalStorage: a directory on disk with HMAC-signed download URLs (dev, tests)
"""

import asyncio
import hashlib
import hmac
import logging
import mimetypes
import re
import time
import uuid
from abc import ABC, abstractmethod
from pathlib import Path, PurePosixPath
from typing import Any, Optional
from urllib.parse import quote

from renthive.core.config import get_settings
from renthive.core.errors import ExternalServiceError, NotFound, ValidationFailed
from renthive.core.supabase import get_supabase

logger = logging.getLogger(__name__)


def sanitize_segment(value: Optional[str]) -> str:
    """Lowercase, non-alphanumerics to '-', repeats collapsed, ends trimmed."""
    text = re.sub(r"[^a-z0-9]+", "-", (value or "").lower())
    return text.strip("-")


def unique_filename(original: Optional[str], fallback: str = "file") -> str:
    """{name[:40]}-{ms timestamp}-{8 hex}{ext}, keeping the original extension."""
    name = PurePosixPath(original or fallback)
    base = sanitize_segment(name.stem)[:40] or fallback
    return f"{base}-{int(time.time() * 1000)}-{uuid.uuid4().hex[:8]}{name.suffix.lower()}"


# =============================================================================
# Interface
# =============================================================================

class StorageBackend(ABC):
    """Minimal bucket API used by the services."""

    name: str = "base"

    @abstractmethod
    async def upload(self, path: str, data: bytes, content_type: Optional[str] = None, upsert: bool = False) -> str:
        """Store bytes at path and return the path."""

    @abstractmethod
    async def download(self, path: str) -> bytes:
        """Return the object's bytes; NotFound when it does not exist."""

    @abstractmethod
    async def remove(self, paths: list[str]) -> None:
        ...

    @abstractmethod
    async def list_folder(self, prefix: str) -> list[dict[str, Any]]:
        """
        Immediate children of a folder.

        Entries are {name, id, metadata}; folders have id None.
        """

    @abstractmethod
    async def create_signed_url(self, path: str, expires_in: int) -> str:
        ...

    @abstractmethod
    def get_public_url(self, path: str) -> str:
        ...

    async def exists(self, path: str) -> bool:
        try:
            await self.download(path)
        except NotFound:
            return False
        return True


# =============================================================================
# Supabase bucket
# =============================================================================

class SupabaseStorage(StorageBackend):
    name = "supabase"

    def __init__(self, bucket: str):
        self.bucket = bucket

    def _bucket(self):
        return get_supabase().storage.from_(self.bucket)

    async def upload(self, path: str, data: bytes, content_type: Optional[str] = None, upsert: bool = False) -> str:
        options = {
            "content-type": content_type or "application/octet-stream",
            "cache-control": "3600",
            "upsert": "true" if upsert else "false",
        }
        try:
            await asyncio.to_thread(self._bucket().upload, path, data, options)
        except Exception as e:
            logger.error("Upload to %s failed: %s", path, e)
            raise ExternalServiceError(f"Failed to upload file: {e}") from e
        return path

    async def download(self, path: str) -> bytes:
        try:
            return await asyncio.to_thread(self._bucket().download, path)
        except Exception as e:
            logger.info("Download of %s failed: %s", path, e)
            raise NotFound("File not found") from e

    async def remove(self, paths: list[str]) -> None:
        try:
            await asyncio.to_thread(self._bucket().remove, paths)
        except Exception as e:
            logger.error("Removing %s failed: %s", paths, e)
            raise ExternalServiceError(f"Failed to delete file: {e}") from e

    async def list_folder(self, prefix: str) -> list[dict[str, Any]]:
        try:
            entries = await asyncio.to_thread(self._bucket().list, prefix.rstrip("/"))
        except Exception as e:
            logger.error("Listing %s failed: %s", prefix, e)
            raise ExternalServiceError(f"Failed to list files: {e}") from e
        return [
            {"name": entry.get("name"), "id": entry.get("id"), "metadata": entry.get("metadata")}
            for entry in entries or []
            if entry.get("name") and entry.get("name") != ".emptyFolderPlaceholder"
        ]

    async def create_signed_url(self, path: str, expires_in: int) -> str:
        try:
            result = await asyncio.to_thread(self._bucket().create_signed_url, path, expires_in)
        except Exception as e:
            logger.error("Signing %s failed: %s", path, e)
            raise ExternalServiceError(f"Failed to create signed URL: {e}") from e
        # storage3 has returned both spellings across releases
        return result.get("signedURL") or result.get("signedUrl")

    def get_public_url(self, path: str) -> str:
        return self._bucket().get_public_url(path)


# =============================================================================
# Local directory
# =============================================================================

class LocalStorage(StorageBackend):
    """
    Files under settings.local_storage_dir.

    Signed URLs point at GET /api/files/{path} and carry an expiry and an
    HMAC-SHA256 signature over "path:expires" keyed with SECRET_KEY.
    """

    name = "local"

    def __init__(self, root: str, base_url: str, secret_key: str):
        self.root = Path(root).resolve()
        self.base_url = base_url.rstrip("/")
        self.secret_key = secret_key.encode("utf-8")

    def _resolve(self, path: str) -> Path:
        target = (self.root / path.lstrip("/")).resolve()
        if target != self.root and self.root not in target.parents:
            raise ValidationFailed("Invalid file path")
        return target

    async def upload(self, path: str, data: bytes, content_type: Optional[str] = None, upsert: bool = False) -> str:
        target = self._resolve(path)
        if target.exists() and not upsert:
            raise ValidationFailed("The resource already exists")
        target.parent.mkdir(parents=True, exist_ok=True)
        await asyncio.to_thread(target.write_bytes, data)
        return path

    async def download(self, path: str) -> bytes:
        target = self._resolve(path)
        if not target.is_file():
            raise NotFound("File not found")
        return await asyncio.to_thread(target.read_bytes)

    async def remove(self, paths: list[str]) -> None:
        for path in paths:
            target = self._resolve(path)
            if target.is_file():
                target.unlink()

    async def list_folder(self, prefix: str) -> list[dict[str, Any]]:
        folder = self._resolve(prefix.rstrip("/")) if prefix.strip("/") else self.root
        if not folder.is_dir():
            return []
        entries = []
        for child in sorted(folder.iterdir()):
            if child.is_dir():
                entries.append({"name": child.name, "id": None, "metadata": None})
            else:
                stat = child.stat()
                entries.append({
                    "name": child.name,
                    "id": str(child.relative_to(self.root)),
                    "metadata": {
                        "size": stat.st_size,
                        "mimetype": mimetypes.guess_type(child.name)[0] or "application/octet-stream",
                        "lastModified": stat.st_mtime,
                    },
                })
        return entries

    def sign(self, path: str, expires: int) -> str:
        message = f"{path}:{expires}".encode("utf-8")
        return hmac.new(self.secret_key, message, hashlib.sha256).hexdigest()

    def verify(self, path: str, expires: int, signature: str) -> bool:
        if expires < int(time.time()):
            return False
        return hmac.compare_digest(self.sign(path, expires), signature)

    async def create_signed_url(self, path: str, expires_in: int) -> str:
        expires = int(time.time()) + expires_in
        return f"{self.base_url}/api/files/{quote(path)}?expires={expires}&signature={self.sign(path, expires)}"

    def get_public_url(self, path: str) -> str:
        return f"{self.base_url}/api/files/{quote(path)}"


# =============================================================================
# Factory
# =============================================================================

_storage: Optional[StorageBackend] = None


def get_storage() -> StorageBackend:
    """The configured backend (cached)."""
    global _storage
    if _storage is None:
        settings = get_settings()
        if settings.storage_backend == "local":
            _storage = LocalStorage(settings.local_storage_dir, settings.public_base_url, settings.secret_key)
        else:
            _storage = SupabaseStorage(settings.storage_bucket)
        logger.info("Using %s storage backend", _storage.name)
    return _storage


def reset_storage() -> None:
    global _storage
    _storage = None
