"""
Tests for file validation service.
"""

import pytest

from meetingai.services.file_validator import (
    FileValidationError,
    validate_content_type,
    validate_file_extension,
    validate_file_size,
    validate_magic_bytes,
    validate_uploaded_file,
)

PDF = b"%PDF-1.7\n1 0 obj\n"


class TestValidateFileExtension:
    """Tests for file extension validation."""

    def test_valid_pdf_extension(self):
        """Test valid .pdf extension."""
        assert validate_file_extension("handbook.pdf", {"pdf"}) == "pdf"

    def test_case_insensitive(self):
        """Test case insensitive extension matching."""
        assert validate_file_extension("Handbook.PDF", {"pdf"}) == "pdf"

    def test_double_extension(self):
        """Test file with double extension."""
        assert validate_file_extension("handbook.v2.pdf", {"pdf"}) == "pdf"

    def test_unsupported_extension(self):
        """Test a non-PDF extension."""
        with pytest.raises(FileValidationError) as exc_info:
            validate_file_extension("notes.docx", {"pdf"})
        assert exc_info.value.error_code == "UNSUPPORTED_TYPE"
        assert "Only PDF files are supported" in str(exc_info.value)

    def test_no_extension(self):
        """Test file with no extension."""
        with pytest.raises(FileValidationError) as exc_info:
            validate_file_extension("handbook", {"pdf"})
        assert exc_info.value.error_code == "NO_EXTENSION"

    def test_empty_filename(self):
        with pytest.raises(FileValidationError) as exc_info:
            validate_file_extension("", {"pdf"})
        assert exc_info.value.error_code == "EMPTY_FILENAME"


class TestValidateContentType:
    """Tests for declared MIME type validation."""

    @pytest.mark.parametrize(
        "content_type",
        [None, "application/octet-stream", "application/pdf", "application/pdf; charset=binary"],
    )
    def test_accepted_types(self, content_type):
        validate_content_type(content_type, "pdf")

    def test_mismatched_type(self):
        with pytest.raises(FileValidationError):
            validate_content_type("text/plain", "pdf")


class TestValidateFileSize:
    """Tests for file size validation."""

    def test_valid_size(self):
        """Test file within size limit."""
        assert validate_file_size(b"x" * 1000, max_size_mb=10) is True

    def test_empty_file(self):
        """Test empty file."""
        with pytest.raises(FileValidationError) as exc_info:
            validate_file_size(b"", max_size_mb=10)
        assert exc_info.value.error_code == "EMPTY_FILE"

    def test_file_too_large(self):
        """Test file exceeding size limit."""
        with pytest.raises(FileValidationError) as exc_info:
            validate_file_size(b"x" * (2 * 1024 * 1024 + 1), max_size_mb=2)
        assert "max 2MB" in str(exc_info.value)

    def test_exact_size_limit(self):
        """Test file exactly at size limit."""
        assert validate_file_size(b"x" * (1024 * 1024), max_size_mb=1) is True


class TestValidateMagicBytes:
    """Tests for magic byte validation."""

    def test_valid_pdf(self):
        assert validate_magic_bytes(PDF, "pdf") is True

    def test_invalid_pdf(self):
        assert validate_magic_bytes(b"PK\x03\x04", "pdf") is False

    def test_truncated_content(self):
        assert validate_magic_bytes(b"%P", "pdf") is False

    def test_unknown_type_passes(self):
        assert validate_magic_bytes(b"anything", "bin") is True


class TestValidateUploadedFile:
    """Tests for the combined upload validation."""

    def test_valid_pdf(self):
        """Test a well-formed PDF upload."""
        result = validate_uploaded_file(
            filename="handbook.pdf",
            content=PDF,
            max_size_mb=20,
            content_type="application/pdf",
        )
        assert result == "pdf"

    def test_disguised_file(self):
        """Test a ZIP renamed to .pdf."""
        with pytest.raises(FileValidationError) as exc_info:
            validate_uploaded_file(
                filename="handbook.pdf",
                content=b"PK\x03\x04" + b"\x00" * 100,
                max_size_mb=20,
            )
        assert exc_info.value.error_code == "INVALID_CONTENT"

    def test_extension_checked_first(self):
        """Test that the extension is rejected before the content is read."""
        with pytest.raises(FileValidationError) as exc_info:
            validate_uploaded_file(filename="script.sh", content=b"", max_size_mb=20)
        assert exc_info.value.error_code == "UNSUPPORTED_TYPE"
