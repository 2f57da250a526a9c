"""
File validation utilities for knowledge-base uploads.

Checks the extension, the size limit and the magic bytes of an uploaded
file before any extraction work is started.
"""

import logging
from pathlib import Path
from typing import Dict, Optional, Tuple

logger = logging.getLogger(__name__)


# Format: { extension: [(magic_bytes, offset, description)] }
FILE_SIGNATURES: Dict[str, list[Tuple[bytes, int, str]]] = {
    "pdf": [
        (b"%PDF", 0, "PDF document"),
    ],
}

MIME_TYPES: Dict[str, list[str]] = {
    "pdf": ["application/pdf"],
}

ALLOWED_DOCUMENT_EXTENSIONS = {"pdf"}


class FileValidationError(Exception):
    """Raised when file validation fails."""

    def __init__(self, message: str, error_code: str = "VALIDATION_ERROR"):
        self.message = message
        self.error_code = error_code
        super().__init__(self.message)


def validate_file_extension(filename: str, allowed_extensions: set[str]) -> str:
    """
    Validate and return the file extension.

    Args:
        filename: Original filename
        allowed_extensions: Set of allowed extensions (without dot)

    Returns:
        Lowercase file extension without dot

    Raises:
        FileValidationError: If extension is not allowed
    """
    if not filename:
        raise FileValidationError("No file provided", error_code="EMPTY_FILENAME")

    suffix = Path(filename).suffix.lower()
    if not suffix:
        raise FileValidationError("File has no extension", error_code="NO_EXTENSION")

    extension = suffix.lstrip(".")
    if extension not in allowed_extensions:
        raise FileValidationError(
            f"Only PDF files are supported (got: {extension})",
            error_code="UNSUPPORTED_TYPE",
        )

    return extension


def validate_content_type(content_type: Optional[str], file_type: str) -> None:
    """
    Reject a declared MIME type that does not match the extension.

    A missing or generic ``application/octet-stream`` type is accepted; the
    magic byte check still applies.
    """
    if not content_type or content_type == "application/octet-stream":
        return
    base_type = content_type.split(";", 1)[0].strip().lower()
    if base_type not in MIME_TYPES.get(file_type, []):
        raise FileValidationError(
            f"Only PDF files are supported (got: {base_type})",
            error_code="UNSUPPORTED_TYPE",
        )


def validate_magic_bytes(content: bytes, file_type: str) -> bool:
    """
    Validate file content against known magic byte signatures.

    Args:
        content: File content as bytes
        file_type: Expected file type

    Returns:
        True if valid, False otherwise
    """
    signatures = FILE_SIGNATURES.get(file_type, [])
    if not signatures:
        return True

    for magic_bytes, offset, description in signatures:
        if len(content) >= offset + len(magic_bytes):
            if content[offset:offset + len(magic_bytes)] == magic_bytes:
                logger.debug(f"File matched signature: {description}")
                return True

    return False


def validate_file_size(content: bytes, max_size_mb: int) -> bool:
    """
    Validate file size against maximum allowed size.

    Raises:
        FileValidationError: If file is empty or too large
    """
    if not content:
        raise FileValidationError("Uploaded file is empty", error_code="EMPTY_FILE")

    max_bytes = max_size_mb * 1024 * 1024
    if len(content) > max_bytes:
        raise FileValidationError(
            f"File is too large (max {max_size_mb}MB)",
            error_code="FILE_TOO_LARGE",
        )
    return True


def validate_uploaded_file(
    filename: str,
    content: bytes,
    max_size_mb: int,
    content_type: Optional[str] = None,
    allowed_extensions: set[str] = ALLOWED_DOCUMENT_EXTENSIONS,
) -> str:
    """
    Comprehensive file validation.

    Args:
        filename: Original filename
        content: File content as bytes
        max_size_mb: Maximum allowed size in MB
        content_type: MIME type declared by the client
        allowed_extensions: Set of allowed extensions

    Returns:
        Validated file extension

    Raises:
        FileValidationError: If any validation fails
    """
    # 1. Validate extension and declared type
    file_type = validate_file_extension(filename, allowed_extensions)
    validate_content_type(content_type, file_type)

    # 2. Validate size
    validate_file_size(content, max_size_mb)

    # 3. Validate magic bytes
    if not validate_magic_bytes(content, file_type):
        logger.warning(f"File {filename} has invalid magic bytes for type {file_type}")
        raise FileValidationError(
            f"File content does not match its extension ({file_type})",
            error_code="INVALID_CONTENT",
        )

    logger.info(f"File {filename} passed all validations")
    return file_type
