"""
RentHive - Contract Service
Contract scans (usage-limited) and the stored summaries they produce.
"""

import logging
from pathlib import PurePosixPath
from typing import Optional

from sqlalchemy import select

from renthive.core.config import get_settings
from renthive.core.database import get_db_session
from renthive.core.errors import NotFound, PayloadTooLarge, PermissionDenied, ValidationFailed
from renthive.models.models import ContractSummary
from renthive.services import usage
from renthive.services.contract_analysis import analyze_contract
from renthive.services.storage import get_storage

logger = logging.getLogger(__name__)

CONTRACT_EXTENSIONS = {".pdf", ".doc", ".docx", ".txt"}
SUMMARY_FEATURE = "summaries"


def summary_to_dict(row: ContractSummary) -> dict:
    return {
        "id": row.id,
        "user_id": row.user_id,
        "summary": row.summary,
        "created_at": row.created_at.isoformat() if row.created_at else None,
    }


def validate_contract_upload(filename: str, size: int) -> str:
    ext = PurePosixPath(filename or "").suffix.lower()
    if ext not in CONTRACT_EXTENSIONS:
        raise ValidationFailed("Invalid file type. Only PDF, DOC, DOCX, and TXT files are allowed.")
    settings = get_settings()
    if size > settings.max_document_size_bytes:
        raise PayloadTooLarge(f"File too large. Maximum size is {settings.max_document_size_mb}MB")
    return ext


async def _load_stored_document(user_id: str, document_path: str) -> bytes:
    segments = [s for s in document_path.split("/") if s]
    if not segments or segments[0] != user_id or ".." in segments:
        raise NotFound("Document not found or could not be accessed")
    try:
        return await get_storage().download("/".join(segments))
    except NotFound:
        logger.warning("Contract document %s not found in storage", document_path)
        raise NotFound("Document not found or could not be accessed")


async def scan_contract(
    user_id: str,
    data: Optional[bytes] = None,
    filename: Optional[str] = None,
    document_path: Optional[str] = None,
) -> dict:
    """
    Analyze an uploaded contract, or one already in storage.

    The caller's summaries allowance is checked first; each successful
    scan is stored and counted.
    """
    if data is None and not document_path:
        raise ValidationFailed("No document provided. Please upload a file or provide a document path.")

    limits = await usage.check_feature_limits(user_id, SUMMARY_FEATURE)
    if not limits["allowed"]:
        raise PermissionDenied(
            f"You have reached your contract summary limit ({limits['limit']}) on the {limits['plan']} plan. "
            "Please upgrade to continue."
        )

    if data is not None:
        extension = validate_contract_upload(filename or "", len(data))
        analysis = await analyze_contract(data, extension, filename or "document")
    else:
        content = await _load_stored_document(user_id, document_path)
        ext = PurePosixPath(document_path).suffix.lower()
        analysis = await analyze_contract(
            content,
            ext if ext in CONTRACT_EXTENSIONS else None,
            PurePosixPath(document_path).name,
        )

    async with get_db_session() as session:
        row = ContractSummary(user_id=user_id, summary=analysis)
        session.add(row)
        await session.flush()
        logger.info("Stored contract summary %s for user %s", row.id, user_id)

    await usage.increment_feature_usage(user_id, SUMMARY_FEATURE)
    return analysis


async def list_summaries(user_id: str, limit: int = 10, offset: int = 0) -> list[dict]:
    async with get_db_session() as session:
        result = await session.execute(
            select(ContractSummary)
            .where(ContractSummary.user_id == user_id)
            .order_by(ContractSummary.created_at.desc())
            .offset(offset)
            .limit(limit)
        )
        return [summary_to_dict(row) for row in result.scalars().all()]


async def get_summary(user_id: str, summary_id: str) -> dict:
    async with get_db_session() as session:
        row = await session.get(ContractSummary, summary_id)
        if row is None or row.user_id != user_id:
            raise NotFound("Contract summary not found")
        return summary_to_dict(row)
