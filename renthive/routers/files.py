"""
Files Router
Serves objects from local storage through signed URLs.
Requests are refused unless STORAGE_BACKEND=local.
"""

import mimetypes

from fastapi import APIRouter, Query, Response

from renthive.core.errors import NotFound, PermissionDenied
from renthive.services.storage import LocalStorage, get_storage

router = APIRouter()


@router.get("/{path:path}")
async def download_file(
    path: str,
    expires: int = Query(0),
    signature: str = Query(""),
):
    storage = get_storage()
    if not isinstance(storage, LocalStorage):
        raise NotFound("File not found")
    if not storage.verify(path, expires, signature):
        raise PermissionDenied("Invalid or expired signature")

    content = await storage.download(path)
    media_type = mimetypes.guess_type(path)[0] or "application/octet-stream"
    return Response(content=content, media_type=media_type)
