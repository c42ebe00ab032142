"""
Input validation utilities
"""
from typing import Iterable, Optional

from handoff.errors import PayloadTooLargeError, ValidationError


def require_text(value: Optional[str], field: str) -> str:
    """Reject None, empty and whitespace-only strings"""
    if value is None or not str(value).strip():
        raise ValidationError(f"{field} is required")
    return str(value).strip()


def require_id(value: Optional[str], field: str) -> str:
    """Reject missing ids and the placeholders a browser sends for unset route params"""
    value = require_text(value, field)
    if value in ("undefined", "null", "[id]"):
        raise ValidationError(f"{field} is invalid")
    return value


def validate_file(
    filename: Optional[str],
    size: int,
    content_type: Optional[str] = None,
    allowed_types: Optional[Iterable[str]] = None,
    max_size_mb: int = 20,
) -> None:
    """Check an upload against a size ceiling and an optional MIME allow-list"""
    if not filename:
        raise ValidationError("No file provided")
    if size > max_size_mb * 1024 * 1024:
        raise PayloadTooLargeError(f"File must not exceed {max_size_mb}MB")
    allowed = list(allowed_types or [])
    if allowed and content_type not in allowed:
        raise ValidationError(f"File type not allowed. Accepted types: {', '.join(allowed)}")
