"""File helpers shared by callers of the upload pipeline."""
from __future__ import annotations

_SIZE_UNITS = ["Bytes", "KB", "MB", "GB"]


def format_file_size(num_bytes: int) -> str:
    """Human readable size, e.g. ``1536 -> '1.5 KB'``."""
    if num_bytes <= 0:
        return "0 Bytes"
    k = 1024
    i = 0
    while num_bytes >= k ** (i + 1) and i < len(_SIZE_UNITS) - 1:
        i += 1
    value = round(num_bytes / (k ** i), 2)
    # Drop trailing zeros: 1.50 -> 1.5, 2.00 -> 2
    text = f"{value:.2f}".rstrip("0").rstrip(".")
    return f"{text} {_SIZE_UNITS[i]}"


def get_file_extension(file_name: str) -> str:
    """Extension without the dot; ``''`` when there is none or the name is a dotfile."""
    idx = file_name.rfind(".")
    if idx <= 0:
        return ""
    return file_name[idx + 1:]
