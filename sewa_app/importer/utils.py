"""
Importer-specific helpers for validating uploaded spreadsheets.
"""

from __future__ import annotations

from typing import Iterable

from flask import current_app, request
from werkzeug.datastructures import FileStorage

DEFAULT_MAX_UPLOAD_MB = 10


def allowed_file(filename: str, allowed_extensions: Iterable[str]) -> bool:
    """
    Validate the uploaded filename extension against the allowed set.
    """

    if not filename or "." not in filename:
        return False
    extension = filename.rsplit(".", 1)[1].lower()
    return extension in {ext.lower() for ext in allowed_extensions}


def max_upload_bytes(app=None) -> int:
    config = (app or current_app).config
    mb_limit = config.get("IMPORTER_MAX_UPLOAD_MB", DEFAULT_MAX_UPLOAD_MB)
    try:
        return int(mb_limit) * 1024 * 1024
    except (TypeError, ValueError):
        return DEFAULT_MAX_UPLOAD_MB * 1024 * 1024


def validate_upload(file_storage: FileStorage | None, allowed_extensions: Iterable[str]) -> None:
    """
    Reject missing, mistyped or oversized uploads.

    Raises ``ValueError`` for client mistakes and ``OverflowError`` when the
    file exceeds ``IMPORTER_MAX_UPLOAD_MB``.
    """

    if file_storage is None or file_storage.filename == "":
        raise ValueError("No file uploaded.")
    extensions = tuple(allowed_extensions)
    if not allowed_file(file_storage.filename, extensions):
        raise ValueError(f"Unsupported file type; allowed: {', '.join(extensions)}.")

    max_bytes = max_upload_bytes()
    content_length = getattr(file_storage, "content_length", None) or request.content_length
    if content_length and content_length > max_bytes:
        raise OverflowError("Upload exceeds maximum size limit.")

    # Fall back to checking the actual stream size if we do not have a header.
    if not content_length:
        position = file_storage.stream.tell()
        file_storage.stream.seek(0, 2)
        size_bytes = file_storage.stream.tell()
        file_storage.stream.seek(position)
        if size_bytes > max_bytes:
            raise OverflowError("Upload exceeds maximum size limit.")
