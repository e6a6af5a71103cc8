"""
RentHive - Document Service
Property documents in object storage under
{user_id}/{property_id}/documents/{type}/{filename}.
"""

import logging
from pathlib import PurePosixPath
from typing import Optional

from renthive.core.config import get_settings
from renthive.core.errors import NotFound, PayloadTooLarge, PermissionDenied, ValidationFailed
from renthive.services.property_service import get_property
from renthive.services.storage import get_storage, sanitize_segment, unique_filename

logger = logging.getLogger(__name__)

ALLOWED_EXTENSIONS = {".pdf", ".doc", ".docx", ".xls", ".xlsx", ".txt", ".csv", ".ppt", ".pptx"}
SIGNED_URL_TTL = 86400  # 1 day


# =============================================================================
# Paths
# =============================================================================

def document_folder(user_id: str, property_id: str, document_type: Optional[str] = None) -> str:
    doc_type = sanitize_segment(document_type) or "general"
    return f"{user_id}/{property_id}/documents/{doc_type}/"


def validate_document(filename: str, size: int) -> None:
    ext = PurePosixPath(filename or "").suffix.lower()
    if ext not in ALLOWED_EXTENSIONS:
        raise ValidationFailed(
            "Invalid file type. Allowed types: " + ", ".join(sorted(e.lstrip(".") for e in ALLOWED_EXTENSIONS))
        )
    max_bytes = get_settings().max_document_size_bytes
    if size > max_bytes:
        raise PayloadTooLarge(f"File too large. Maximum size is {get_settings().max_document_size_mb}MB")


async def _require_property(property_id: str, user_id: str) -> dict:
    prop = await get_property(property_id, user_id)
    if prop is None:
        raise NotFound(f"Property with ID {property_id} not found or you don't have access to it")
    return prop


# =============================================================================
# Operations
# =============================================================================

async def upload_document(
    data: bytes,
    user_id: str,
    property_id: str,
    document_type: Optional[str],
    original_filename: str,
    content_type: Optional[str],
) -> dict:
    """Store one document and return its path and a signed URL."""
    if not property_id:
        raise ValidationFailed("Property ID is required")
    validate_document(original_filename, len(data))
    await _require_property(property_id, user_id)

    storage = get_storage()
    path = document_folder(user_id, property_id, document_type) + unique_filename(original_filename)
    await storage.upload(path, data, content_type=content_type)
    logger.info("Uploaded document %s (%d bytes)", path, len(data))
    return {
        "path": path,
        "filename": PurePosixPath(path).name,
        "originalName": original_filename,
        "documentType": sanitize_segment(document_type) or "general",
        "size": len(data),
        "url": await storage.create_signed_url(path, SIGNED_URL_TTL),
    }


async def list_property_documents(user_id: str, property_id: str) -> list[dict]:
    """The caller's documents for a property, grouped by document type."""
    await _require_property(property_id, user_id)
    storage = get_storage()
    base = f"{user_id}/{property_id}/documents"

    groups = []
    for folder in await storage.list_folder(base):
        if folder["id"] is not None:
            continue
        type_path = f"{base}/{folder['name']}"
        documents = []
        for entry in await storage.list_folder(type_path):
            if entry["id"] is None:
                continue
            path = f"{type_path}/{entry['name']}"
            documents.append({
                "filename": entry["name"],
                "path": path,
                "url": await storage.create_signed_url(path, SIGNED_URL_TTL),
                "metadata": entry.get("metadata"),
            })
        groups.append({"documentType": folder["name"], "documents": documents})
    return groups


async def delete_document(user_id: str, path: str) -> None:
    """
    Remove a document the caller uploaded.

    The path must start with the caller's id and point at a property the
    caller can still access.
    """
    segments = [s for s in (path or "").split("/") if s]
    if len(segments) < 4 or segments[2] != "documents" or ".." in segments:
        raise ValidationFailed("Invalid document path")
    if segments[0] != user_id:
        raise PermissionDenied("You do not have permission to delete this document")
    await _require_property(segments[1], user_id)

    await get_storage().remove(["/".join(segments)])
    logger.info("Deleted document %s", path)
