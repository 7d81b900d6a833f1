"""Ingestion validation for staging uploads

Admits or rejects raw upload candidates by size, MIME type and file name
before any staging record exists. Each candidate of a batch is judged
independently.
"""

import os
from typing import Iterable, List, Optional, Tuple

from .models import Rejection, RejectionReason, UploadCandidate


# Supported MIME types: PDF, images, Word and Excel (legacy and OOXML)
SUPPORTED_MIME_TYPES = frozenset({
    'application/pdf',
    'image/jpeg',
    'image/png',
    'image/gif',
    'application/msword',  # .doc
    'application/vnd.openxmlformats-officedocument.wordprocessingml.document',  # .docx
    'application/vnd.ms-excel',  # .xls
    'application/vnd.openxmlformats-officedocument.spreadsheetml.sheet',  # .xlsx
})

MAX_FILE_SIZE = 50 * 1024 * 1024

MAX_FILENAME_LENGTH = 255


def is_supported_mime_type(mime_type: Optional[str]) -> bool:
    """Check if MIME type is admissible to the staging area

    Example:
        >>> is_supported_mime_type('application/pdf')
        True
        >>> is_supported_mime_type('application/zip')
        False
    """
    return mime_type in SUPPORTED_MIME_TYPES


def validate_file_size(size_bytes: int, max_size: int = MAX_FILE_SIZE) -> Tuple[bool, Optional[str]]:
    """Validate file size is within limits

    Args:
        size_bytes: File size in bytes
        max_size: Maximum allowed size in bytes (inclusive)

    Returns:
        Tuple of (is_valid, error_message)
    """
    if size_bytes > max_size:
        limit_mb = max_size // (1024 * 1024)
        return False, f"File exceeds the {limit_mb}MB limit (got {size_bytes} bytes)"

    return True, None


def validate_filename(filename: Optional[str]) -> Tuple[bool, Optional[str]]:
    """Validate an uploaded file name

    Validation rules:
    - Not empty
    - Max 255 characters
    - No path traversal or directory separators
    - No null bytes or control characters

    Example:
        >>> validate_filename('检测报告_2024_001.pdf')
        (True, None)
        >>> validate_filename('../../etc/passwd')
        (False, 'Filename contains path traversal or directory separators')
    """
    if not filename or not filename.strip():
        return False, "Filename cannot be empty"

    if len(filename) > MAX_FILENAME_LENGTH:
        return False, f"Filename exceeds {MAX_FILENAME_LENGTH} characters (got {len(filename)})"

    if '..' in filename or '/' in filename or '\\' in filename:
        return False, "Filename contains path traversal or directory separators"

    if any(ord(c) < 32 for c in filename):
        return False, "Filename contains control characters"

    return True, None


def strip_extension(filename: str) -> str:
    """Remove the last extension from a file name

    Example:
        >>> strip_extension('产品说明书v2.0.pdf')
        '产品说明书v2.0'
        >>> strip_extension('README')
        'README'
    """
    stem, _ = os.path.splitext(filename)
    return stem


def admit(candidate: UploadCandidate, max_size: int = MAX_FILE_SIZE) -> Optional[Rejection]:
    """Judge a single upload candidate.

    The size limit is checked first, so an oversized file is always
    ``SIZE_EXCEEDED`` whatever its type.

    Returns:
        None if the candidate is admitted, otherwise the Rejection
    """
    is_valid, error_msg = validate_file_size(candidate.size_bytes, max_size)
    if not is_valid:
        return Rejection(candidate.file_name, RejectionReason.SIZE_EXCEEDED, error_msg)

    if not is_supported_mime_type(candidate.mime_type):
        return Rejection(
            candidate.file_name,
            RejectionReason.UNSUPPORTED_TYPE,
            f"Unsupported file type: {candidate.mime_type}. "
            f"Supported types: PDF, JPEG, PNG, GIF, Word (.doc, .docx), Excel (.xls, .xlsx)",
        )

    is_valid, error_msg = validate_filename(candidate.file_name)
    if not is_valid:
        return Rejection(candidate.file_name, RejectionReason.INVALID_FILE_NAME, error_msg)

    return None


def partition_candidates(
    candidates: Iterable[UploadCandidate],
    max_size: int = MAX_FILE_SIZE,
) -> Tuple[List[UploadCandidate], List[Rejection]]:
    """Split a batch into admitted candidates and rejections, preserving order."""
    admitted: List[UploadCandidate] = []
    rejected: List[Rejection] = []
    for candidate in candidates:
        rejection = admit(candidate, max_size)
        if rejection is None:
            admitted.append(candidate)
        else:
            rejected.append(rejection)
    return admitted, rejected
