"""
Document obscuration: store a PDF together with a free preview that
keeps only its leading pages.
"""

from __future__ import annotations

import base64
import binascii
import io
import logging
import math
from dataclasses import dataclass
from typing import Callable

from pypdf import PdfReader, PdfWriter
from pypdf.errors import PyPdfError

from conectabio.errors import UploadError, ValidationError
from conectabio.storage import StorageClient, file_extension, timestamp_ms

logger = logging.getLogger(__name__)

PDF_CONTENT_TYPE = "application/pdf"
DATA_URI_SEPARATOR = ";base64,"


@dataclass
class ProcessedDocument:
    original_file_path: str
    processed_file_path: str
    total_pages: int
    preview_pages: int


def decode_data_uri(data_uri: str) -> bytes:
    """
    Decode a ``data:<mime>;base64,<payload>`` string.

    Raises:
        ValidationError: The string is not a base64 data URI or is empty.
    """
    if not data_uri or not data_uri.startswith("data:") or DATA_URI_SEPARATOR not in data_uri:
        raise ValidationError("Invalid data URI format.")
    payload = data_uri.split(DATA_URI_SEPARATOR, 1)[1]
    try:
        decoded = base64.b64decode(payload, validate=True)
    except (binascii.Error, ValueError) as exc:
        raise ValidationError("Invalid data URI format.") from exc
    if not decoded:
        raise ValidationError("Invalid data URI format.")
    return decoded


def pages_to_keep(total_pages: int, percentage: int) -> int:
    """Leading pages shown in the preview: ceil(total * percentage / 100)."""
    if not 0 <= percentage <= 100:
        raise ValidationError("Obscuration percentage must be between 0 and 100")
    return math.ceil(total_pages * percentage / 100)


def build_preview(pdf_bytes: bytes, percentage: int) -> tuple[bytes, int, int]:
    """
    Copy the leading pages of a PDF into a new document.

    A percentage of 0 produces a document with no pages; it is written
    as-is rather than clamped to one page.

    Returns:
        tuple[bytes, int, int]: Preview bytes, source page count and
        preview page count.
    """
    try:
        reader = PdfReader(io.BytesIO(pdf_bytes))
        total = len(reader.pages)
    except (PyPdfError, ValueError) as exc:
        raise ValidationError("The file is not a readable PDF.") from exc

    keep = pages_to_keep(total, percentage)
    writer = PdfWriter()
    for index in range(keep):
        writer.add_page(reader.pages[index])

    buffer = io.BytesIO()
    writer.write(buffer)
    return buffer.getvalue(), total, keep


def process_document(
    storage: StorageClient,
    *,
    file_data_uri: str,
    file_name: str,
    user_id: str,
    card_id: str,
    percentage: int,
    bucket: str = "documents",
    clock: Callable[[], int] = timestamp_ms,
) -> ProcessedDocument:
    """
    Store the original PDF and its truncated preview.

    The original is uploaded first. If that fails nothing else happens. If
    the preview upload then fails, the original is removed again before
    the error is raised; a failure of that removal is only logged.

    Raises:
        ValidationError: Bad data URI, unreadable PDF or bad percentage.
            Raised before any upload.
        UploadError: Either upload failed.
    """
    original = decode_data_uri(file_data_uri)
    preview, total, keep = build_preview(original, percentage)

    ext = file_extension(file_name, "pdf")
    stamp = clock()
    original_path = f"{user_id}/{card_id}-original-{stamp}.{ext}"
    processed_path = f"{user_id}/{card_id}-processed-{stamp}.{ext}"

    try:
        storage.upload(bucket, original_path, original, PDF_CONTENT_TYPE)
    except Exception as exc:
        logger.error("Original upload error for %s: %s", original_path, exc)
        raise UploadError("Failed to upload the original file.") from exc

    try:
        storage.upload(bucket, processed_path, preview, PDF_CONTENT_TYPE)
    except Exception as exc:
        logger.error("Processed upload error for %s: %s", processed_path, exc)
        try:
            storage.remove(bucket, [original_path])
        except Exception as cleanup_exc:
            logger.error("Could not remove %s after failed preview upload: %s", original_path, cleanup_exc)
        raise UploadError("Failed to upload the processed file.") from exc

    logger.info(
        "Stored document for card %s: %d of %d pages in preview", card_id, keep, total
    )
    return ProcessedDocument(
        original_file_path=original_path,
        processed_file_path=processed_path,
        total_pages=total,
        preview_pages=keep,
    )
