"""
Contracts Router
AI contract scanner and the history of its summaries.
"""

from typing import Optional

from fastapi import APIRouter, Depends, File, Form, Query, UploadFile

from renthive.core.security import CurrentUser, require_user
from renthive.services import contract_service

router = APIRouter()


@router.post("/scan")
async def scan_contract(
    document: Optional[UploadFile] = File(None),
    document_path: Optional[str] = Form(None, alias="documentPath"),
    user: CurrentUser = Depends(require_user),
):
    """
    Analyze a rental contract.

    Send either a `document` file (pdf, doc, docx, txt; max 10MB) or the
    `documentPath` of a document you already uploaded. Each scan counts
    against your plan's `summaries` allowance.
    """
    data = await document.read() if document is not None else None
    analysis = await contract_service.scan_contract(
        user.id,
        data=data,
        filename=document.filename if document is not None else None,
        document_path=document_path,
    )
    return {"success": True, "data": analysis}


@router.get("/summaries")
async def list_summaries(
    limit: int = Query(10, ge=1, le=100),
    offset: int = Query(0, ge=0),
    user: CurrentUser = Depends(require_user),
):
    return {"success": True, "data": await contract_service.list_summaries(user.id, limit, offset)}


@router.get("/summaries/{summary_id}")
async def get_summary(summary_id: str, user: CurrentUser = Depends(require_user)):
    return {"success": True, "data": await contract_service.get_summary(user.id, summary_id)}
