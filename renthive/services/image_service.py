"""
RentHive - Image Service
Room photos and videos for a property.

Files live under {user_id}/{property_id}/images/{room}/ in object storage;
every upload is also recorded in property_images so requests can attach them.
"""

import asyncio
import io
import logging
from pathlib import PurePosixPath
from typing import Optional

from PIL import Image
from sqlalchemy import delete, select

from renthive.core.config import get_settings
from renthive.core.database import get_db_session
from renthive.core.errors import NotFound, PayloadTooLarge, PermissionDenied, ValidationFailed
from renthive.models.models import PropertyImage
from renthive.services.property_service import visible_property
from renthive.services.storage import get_storage, sanitize_segment, unique_filename

logger = logging.getLogger(__name__)

IMAGE_EXTENSIONS = {".jpeg", ".jpg", ".png", ".gif", ".webp"}
VIDEO_EXTENSIONS = {".mp4", ".mov", ".avi", ".webm"}
DEFAULT_ROOM = "unspecified"
SIGNED_URL_TTL = 60 * 60 * 24


# =============================================================================
# Validation and processing
# =============================================================================

def is_video(filename: str) -> bool:
    return PurePosixPath(filename or "").suffix.lower() in VIDEO_EXTENSIONS


def validate_media(filename: str, content_type: Optional[str], size: int) -> None:
    ext = PurePosixPath(filename or "").suffix.lower()
    mime = (content_type or "").lower()
    mime_ok = not mime or mime.startswith("image/") or mime.startswith("video/")
    if ext not in IMAGE_EXTENSIONS | VIDEO_EXTENSIONS or not mime_ok:
        raise ValidationFailed("Only image and video files are allowed!")
    settings = get_settings()
    if size > settings.max_image_upload_size_bytes:
        raise PayloadTooLarge(f"File too large. Maximum size is {settings.max_image_upload_size_mb}MB")


def _encode_webp(data: bytes, quality: int) -> bytes:
    with Image.open(io.BytesIO(data)) as img:
        if img.mode not in ("RGB", "RGBA"):
            img = img.convert("RGBA" if "transparency" in img.info else "RGB")
        out = io.BytesIO()
        img.save(out, format="WEBP", quality=quality)
        return out.getvalue()


def compression_quality(size: int, max_size: int) -> int:
    ratio = size / max_size
    if ratio > 4:
        return 30
    if ratio > 2:
        return 50
    return 70


def compress_if_needed(data: bytes, filename: str, max_size: Optional[int] = None) -> bytes:
    """
    Re-encode oversized images as WebP.

    Small files and videos are returned unchanged. The harder the file is
    over max_size, the lower the quality. If encoding fails the original
    bytes are returned.
    """
    if max_size is None:
        max_size = get_settings().image_compress_threshold_bytes
    if len(data) <= max_size:
        return data
    if is_video(filename):
        logger.info("Video %s is over the size threshold; stored as is", filename)
        return data

    quality = compression_quality(len(data), max_size)
    try:
        compressed = _encode_webp(data, quality)
    except Exception as e:
        logger.warning("Compressing %s failed, keeping original: %s", filename, e)
        return data
    logger.info(
        "Compressed %s from %d to %d bytes (quality %d)", filename, len(data), len(compressed), quality
    )
    return compressed


def optimize_image(data: bytes, quality: int = 80) -> bytes:
    """Re-encode an image as WebP."""
    return _encode_webp(data, quality)


def room_display_name(room: str) -> str:
    if room == DEFAULT_ROOM:
        return "General"
    return room.replace("-", " ").title()


def image_to_dict(image: PropertyImage, url: Optional[str] = None) -> dict:
    return {
        "id": image.id,
        "path": image.path,
        "filename": image.filename,
        "url": url,
        "room_name": image.room_name,
        "content_type": image.content_type,
        "uploaded_at": image.created_at.isoformat() if image.created_at else None,
        "uploader_id": image.original_uploader_id,
    }


async def _require_property(session, property_id: str, user_id: str) -> None:
    if not property_id:
        raise ValidationFailed("propertyId query parameter is required")
    if await visible_property(session, property_id, user_id) is None:
        raise NotFound(f"Property with ID {property_id} not found or you don't have access to it")


# =============================================================================
# Operations
# =============================================================================

async def upload_image(
    data: bytes,
    filename: str,
    content_type: Optional[str],
    user_id: str,
    property_id: str,
    room_name: Optional[str] = None,
) -> dict:
    """Validate, compress, store and record one image or video."""
    validate_media(filename, content_type, len(data))
    async with get_db_session() as session:
        await _require_property(session, property_id, user_id)

    room = sanitize_segment(room_name) or DEFAULT_ROOM
    processed = await asyncio.to_thread(compress_if_needed, data, filename)
    stored_name = unique_filename(filename, "image")
    if processed is not data:
        stored_name = str(PurePosixPath(stored_name).with_suffix(".webp"))
        content_type = "image/webp"

    storage = get_storage()
    path = f"{user_id}/{property_id}/images/{room}/{stored_name}"
    await storage.upload(path, processed, content_type=content_type)

    async with get_db_session() as session:
        image = PropertyImage(
            property_id=property_id,
            original_uploader_id=user_id,
            path=path,
            filename=stored_name,
            room_name=room,
            content_type=content_type or "application/octet-stream",
        )
        session.add(image)
        await session.flush()
        record = image_to_dict(image)

    record["url"] = await storage.create_signed_url(path, SIGNED_URL_TTL)
    record["propertyId"] = property_id
    record["roomName"] = room
    logger.info("Uploaded image %s (%d bytes)", path, len(processed))
    return record


async def list_property_images(property_id: str, user_id: str) -> list[dict]:
    """Images of a property grouped by room, newest first within each room."""
    async with get_db_session() as session:
        await _require_property(session, property_id, user_id)
        result = await session.execute(
            select(PropertyImage)
            .where(PropertyImage.property_id == property_id)
            .order_by(PropertyImage.created_at.desc())
        )
        images = list(result.scalars().all())

    storage = get_storage()
    rooms: dict[str, list[dict]] = {}
    for image in images:
        url = await storage.create_signed_url(image.path, SIGNED_URL_TTL)
        rooms.setdefault(image.room_name or DEFAULT_ROOM, []).append(image_to_dict(image, url))

    return [
        {"name": name, "display_name": room_display_name(name), "images": room_images}
        for name, room_images in rooms.items()
    ]


async def delete_image(image_path: str, property_id: str, user_id: str) -> None:
    """Remove an image the caller uploaded to this property."""
    if not image_path:
        raise ValidationFailed("imagePath is required in the request body")
    async with get_db_session() as session:
        await _require_property(session, property_id, user_id)
        if not image_path.startswith(f"{user_id}/{property_id}/images/") or ".." in image_path:
            raise PermissionDenied("You do not have permission to delete this image")
        await session.execute(
            delete(PropertyImage).where(
                PropertyImage.path == image_path,
                PropertyImage.property_id == property_id,
            )
        )

    await get_storage().remove([image_path])
    logger.info("Deleted image %s", image_path)


async def load_attachments(image_ids: list[Optional[str]], property_id: str) -> list[tuple[str, bytes]]:
    """
    (filename, bytes) for the property's images with the given ids.

    Ids that match nothing, and files that can no longer be downloaded,
    are skipped.
    """
    ids = [image_id for image_id in image_ids or [] if image_id]
    if not ids:
        return []

    async with get_db_session() as session:
        result = await session.execute(
            select(PropertyImage).where(
                PropertyImage.id.in_(ids),
                PropertyImage.property_id == property_id,
            )
        )
        images = list(result.scalars().all())

    storage = get_storage()
    attachments = []
    for image in images:
        try:
            content = await storage.download(image.path)
        except NotFound:
            logger.warning("Image %s is missing from storage; not attached", image.path)
            continue
        attachments.append((image.filename or PurePosixPath(image.path).name, content))
    return attachments
