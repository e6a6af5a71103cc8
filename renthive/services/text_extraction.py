"""
RentHive - Document Text Extraction
Plain text out of uploaded contracts (txt, pdf, doc/docx).

Extraction never raises: a document that cannot be read yields a short
explanation instead, which is what the analysis prompt then sees.
"""

import io
import logging

import docx
from PyPDF2 import PdfReader

logger = logging.getLogger(__name__)

# First two bytes (hex) of common contract formats
SIGNATURES = {
    "504b": ".docx",  # zip container (Office Open XML)
    "d0cf": ".doc",   # OLE compound file
    "2550": ".pdf",   # %P
    "7b0a": ".txt",   # "{\n"
}


def detect_extension(data: bytes) -> str:
    """Guess a file extension from the leading bytes; '.bin' if unknown."""
    signature = data[:4].hex()
    for prefix, extension in SIGNATURES.items():
        if signature.startswith(prefix):
            return extension
    return ".bin"


def _pdf_text(data: bytes) -> str:
    reader = PdfReader(io.BytesIO(data))
    pages = [page.extract_text() or "" for page in reader.pages]
    return "\n".join(pages)


def _word_text(data: bytes) -> str:
    document = docx.Document(io.BytesIO(data))
    return "\n".join(paragraph.text for paragraph in document.paragraphs)


def extract_text(data: bytes, extension: str, filename: str = "document") -> str:
    extension = (extension or "").lower()
    logger.info("Extracting text from %s (%s)", filename, extension)

    if extension == ".txt":
        return data.decode("utf-8", errors="replace")

    if extension == ".pdf":
        try:
            return _pdf_text(data)
        except Exception as e:
            logger.error("Error extracting PDF text from %s: %s", filename, e)
            return f"Failed to extract text from PDF: {filename}. Please check if the file is valid."

    if extension in (".doc", ".docx"):
        try:
            text = _word_text(data)
        except Exception as e:
            logger.error("Error extracting Word text from %s: %s", filename, e)
            return f"Failed to extract text from document: {filename}. Error: {e}"
        if not text.strip():
            logger.warning("Extracted empty text from Word document %s", filename)
            return (
                f"No text content found in Word document: {filename}. The file might be corrupt, "
                "password-protected, or in an unsupported format."
            )
        return text

    return f"This file type ({extension}) is not supported for text extraction."
