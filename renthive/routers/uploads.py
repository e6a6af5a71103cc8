"""
Uploads Router
Room photos and videos for a property.
"""

from typing import List, Optional

from fastapi import APIRouter, Body, Depends, File, Query, UploadFile, status

from renthive.core.errors import ValidationFailed
from renthive.core.security import CurrentUser, require_user
from renthive.services import image_service
from renthive.services.storage import get_storage

router = APIRouter()

MAX_IMAGES_PER_UPLOAD = 10


async def _store(image: UploadFile, user_id: str, property_id: Optional[str], room_name: Optional[str]) -> dict:
    content = await image.read()
    return await image_service.upload_image(
        content,
        image.filename or "image",
        image.content_type,
        user_id,
        property_id,
        room_name,
    )


@router.post("/upload/image", status_code=status.HTTP_201_CREATED)
async def upload_image(
    property_id: Optional[str] = Query(None, alias="propertyId"),
    room_name: Optional[str] = Query(None, alias="roomName"),
    image: Optional[UploadFile] = File(None),
    user: CurrentUser = Depends(require_user),
):
    """
    Upload one image or video to a room of a property.

    Images over the compression threshold are re-encoded as WebP.
    """
    if image is None:
        raise ValidationFailed("No file uploaded")
    data = await _store(image, user.id, property_id, room_name)
    return {"success": True, "message": "File uploaded successfully", "data": data}


@router.post("/upload/images", status_code=status.HTTP_201_CREATED)
async def upload_images(
    property_id: Optional[str] = Query(None, alias="propertyId"),
    room_name: Optional[str] = Query(None, alias="roomName"),
    images: Optional[List[UploadFile]] = File(None),
    user: CurrentUser = Depends(require_user),
):
    if not images:
        raise ValidationFailed("No files uploaded")
    if len(images) > MAX_IMAGES_PER_UPLOAD:
        raise ValidationFailed(f"Maximum {MAX_IMAGES_PER_UPLOAD} files per upload")

    uploaded = [await _store(image, user.id, property_id, room_name) for image in images]
    return {"success": True, "message": f"{len(uploaded)} files uploaded successfully", "data": uploaded}


@router.get("/upload/property/{property_id}/images")
async def list_images(property_id: str, user: CurrentUser = Depends(require_user)):
    """Images grouped by room."""
    rooms = await image_service.list_property_images(property_id, user.id)
    return {"success": True, "data": {"rooms": rooms}}


@router.delete("/upload/image")
async def delete_image(
    property_id: Optional[str] = Query(None, alias="propertyId"),
    image_path: Optional[str] = Body(None, alias="imagePath", embed=True),
    user: CurrentUser = Depends(require_user),
):
    await image_service.delete_image(image_path, property_id, user.id)
    return {"success": True, "message": "Image deleted successfully"}


@router.get("/test-image-url")
async def test_image_url(path: Optional[str] = Query(None), user: CurrentUser = Depends(require_user)):
    """Public URL of a stored object, for checking bucket configuration."""
    if not path:
        raise ValidationFailed("Image path is required")
    return {"success": True, "data": {"path": path, "url": get_storage().get_public_url(path)}}
