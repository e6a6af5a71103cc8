"""
Documents Router
Upload, list and delete property documents (leases, receipts, reports).
"""

from typing import List, Optional

from fastapi import APIRouter, Depends, File, Query, UploadFile, status

from renthive.core.errors import ValidationFailed
from renthive.core.security import CurrentUser, require_user
from renthive.services import document_service

router = APIRouter()

MAX_FILES_PER_UPLOAD = 10


@router.post("/upload", status_code=status.HTTP_201_CREATED)
async def upload_document(
    property_id: Optional[str] = Query(None, alias="propertyId"),
    document_type: Optional[str] = Query(None, alias="documentType"),
    document: Optional[UploadFile] = File(None),
    user: CurrentUser = Depends(require_user),
):
    """Upload one document (pdf, doc(x), xls(x), txt, csv, ppt(x); max 10MB)."""
    if document is None:
        raise ValidationFailed("No file uploaded")
    content = await document.read()
    data = await document_service.upload_document(
        content,
        user.id,
        property_id,
        document_type,
        document.filename or "document",
        document.content_type,
    )
    return {"success": True, "message": "Document uploaded successfully", "data": data}


@router.post("/upload-multiple", status_code=status.HTTP_201_CREATED)
async def upload_documents(
    property_id: Optional[str] = Query(None, alias="propertyId"),
    document_type: Optional[str] = Query(None, alias="documentType"),
    documents: Optional[List[UploadFile]] = File(None),
    user: CurrentUser = Depends(require_user),
):
    if not documents:
        raise ValidationFailed("No files uploaded")
    if len(documents) > MAX_FILES_PER_UPLOAD:
        raise ValidationFailed(f"Maximum {MAX_FILES_PER_UPLOAD} files per upload")

    uploaded = []
    for document in documents:
        content = await document.read()
        uploaded.append(await document_service.upload_document(
            content,
            user.id,
            property_id,
            document_type,
            document.filename or "document",
            document.content_type,
        ))
    return {"success": True, "message": f"{len(uploaded)} documents uploaded successfully", "data": uploaded}


@router.get("/property/{property_id}")
async def list_documents(property_id: str, user: CurrentUser = Depends(require_user)):
    """Your documents for a property, grouped by document type."""
    return {"success": True, "data": await document_service.list_property_documents(user.id, property_id)}


@router.delete("/{path:path}")
async def delete_document(path: str, user: CurrentUser = Depends(require_user)):
    await document_service.delete_document(user.id, path)
    return {"success": True, "message": "Document deleted successfully"}
