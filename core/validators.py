"""
Input validation utilities for the document repository.
"""
import os
from typing import Any, Dict, Iterable, Optional

from core.errors import ValidationFailure


def sanitize_filename(filename: str) -> str:
    """
    Sanitize filename to prevent path traversal attacks.

    Args:
        filename: Original filename

    Returns:
        Sanitized filename safe for use in a storage key
    """
    if not filename:
        raise ValidationFailure("Filename cannot be empty")

    # Remove directory separators and path components
    filename = os.path.basename(filename.replace("\\", "/"))

    # Keep alphanumeric, dots, dashes, underscores
    sanitized = "".join(
        char if char.isalnum() or char in "._-" else "_"
        for char in filename
    )

    if len(sanitized) > 255:
        sanitized = sanitized[:255]

    if not sanitized.strip("._"):
        raise ValidationFailure("Filename became empty after sanitization")

    return sanitized


def require_text(value: Optional[Any], field: str) -> str:
    """Return the stripped string value or raise ValidationFailure if blank."""
    if value is None or not str(value).strip():
        raise ValidationFailure(f"{field} is required")
    return str(value).strip()


def reject_unknown_keys(data: Dict[str, Any], allowed: Iterable[str], ignored: Iterable[str] = ()) -> None:
    """Raise ValidationFailure for keys that are neither allowed nor silently ignored."""
    unknown = set(data) - set(allowed) - set(ignored)
    if unknown:
        raise ValidationFailure(f"Unsupported fields: {', '.join(sorted(unknown))}")


def validate_content_type(content_type: Optional[str], allowed_types: Iterable[str]) -> str:
    """
    Validate the declared MIME type of an uploaded document.

    Args:
        content_type: MIME type reported by the client
        allowed_types: Accepted MIME types

    Returns:
        Normalized content type
    """
    normalized = (content_type or "").split(";")[0].strip().lower()
    if normalized not in {t.lower() for t in allowed_types}:
        raise ValidationFailure(
            f"Unsupported file type: {content_type or 'unknown'}. "
            f"Allowed: {', '.join(sorted(allowed_types))}"
        )
    return normalized


def validate_file_size(size_bytes: int, max_size_mb: int) -> None:
    """Validate uploaded file size against the configured limit."""
    if size_bytes == 0:
        raise ValidationFailure("File is empty")
    max_bytes = max_size_mb * 1024 * 1024
    if size_bytes > max_bytes:
        raise ValidationFailure(
            f"File too large: {size_bytes / (1024 * 1024):.2f}MB (max: {max_size_mb}MB)"
        )
