"""
General helper utilities
"""
import os
import re
import uuid
from datetime import date, datetime, timezone
from typing import Optional, Union

PREVIEWABLE_EXTENSIONS = {"jpg", "jpeg", "png", "gif"}


def utcnow() -> datetime:
    """Naive UTC timestamp, matching the DateTime columns"""
    return datetime.now(timezone.utc).replace(tzinfo=None)


def new_id() -> str:
    return str(uuid.uuid4())


def to_datetime(value: Union[str, date, datetime, None]) -> Optional[datetime]:
    """Parse ISO strings and promote dates to midnight; aware values become naive UTC"""
    if value is None:
        return None
    if isinstance(value, str):
        value = datetime.fromisoformat(value.replace("Z", "+00:00"))
    if isinstance(value, datetime):
        if value.tzinfo is not None:
            value = value.astimezone(timezone.utc).replace(tzinfo=None)
        return value
    return datetime(value.year, value.month, value.day)


def file_extension(filename: str) -> str:
    """Lower-case extension without the dot ("" when there is none)"""
    return os.path.splitext(filename or "")[1].lstrip(".").lower()


def format_file_size(size_bytes: int) -> str:
    """Format a byte count the way shared files display it"""
    return f"{size_bytes / 1024 / 1024:.2f} MB"


def is_previewable(filename: str) -> bool:
    return file_extension(filename) in PREVIEWABLE_EXTENSIONS


def safe_filename(filename: str) -> str:
    """Replace whitespace runs so the name can be used in a storage path"""
    name = os.path.basename(filename or "file")
    return re.sub(r"\s+", "_", name) or "file"
