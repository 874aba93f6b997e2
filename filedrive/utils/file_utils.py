"""File naming, typing and size helpers"""

import math
import secrets
import string
import time
from pathlib import PurePosixPath, PureWindowsPath
from typing import Iterable, Optional

IMAGE_EXTENSIONS = {"jpg", "jpeg", "png", "gif", "svg", "webp"}
DOCUMENT_EXTENSIONS = {"pdf", "doc", "docx", "txt", "md"}

SIZE_UNITS = ["Bytes", "KB", "MB", "GB"]


def format_file_size(num_bytes: int) -> str:
    """
    Format bytes as a short human readable string.

    Examples:
        0 -> "0 Bytes", 1536 -> "1.5 KB", 1048576 -> "1 MB"
    """
    if num_bytes <= 0:
        return "0 Bytes"
    k = 1024
    i = min(int(math.floor(math.log(num_bytes) / math.log(k))), len(SIZE_UNITS) - 1)
    value = round(num_bytes / math.pow(k, i), 2)
    # Drop trailing zeros: 1.50 -> 1.5, 2.00 -> 2
    text = f"{value:.2f}".rstrip("0").rstrip(".")
    return f"{text} {SIZE_UNITS[i]}"


def total_size(sizes: Iterable[int]) -> str:
    """Human readable sum of byte sizes"""
    return format_file_size(sum(sizes))


def get_extension(file_name: str) -> str:
    """Last extension of a file name, lowercase, without the dot"""
    if "." not in file_name:
        return ""
    return file_name.rsplit(".", 1)[-1].lower()


def detect_file_type(file_name: str) -> str:
    """Classify a file as image, document or other from its extension"""
    ext = get_extension(file_name)
    if ext in IMAGE_EXTENSIONS:
        return "image"
    if ext in DOCUMENT_EXTENSIONS:
        return "document"
    return "other"


def random_token(length: int = 13) -> str:
    """Random lowercase alphanumeric token"""
    chars = string.ascii_lowercase + string.digits
    return "".join(secrets.choice(chars) for _ in range(length))


def build_storage_path(owner_id: str, folder: str, file_name: str, now_ms: Optional[int] = None) -> str:
    """
    Build a unique blob path for an upload.

    Returns:
        Path like "user-files/<owner>/<folder>/<token>_<ms>.<ext>"
    """
    if now_ms is None:
        now_ms = int(time.time() * 1000)
    ext = get_extension(file_name)
    stored_name = f"{random_token()}_{now_ms}"
    if ext:
        stored_name = f"{stored_name}.{ext}"
    return f"user-files/{owner_id}/{folder}/{stored_name}"


def safe_file_name(file_name: str, default: str = "download") -> str:
    """Strip directory components so a suggested name cannot escape the target directory"""
    name = PureWindowsPath(PurePosixPath(file_name).name).name
    name = name.strip().strip(".")
    return name or default
