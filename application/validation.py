"""Pre-flight file validation.

Runs entirely before any network call: a file rejected here never costs a
presign request or object-store bandwidth.
"""
from __future__ import annotations

from dataclasses import dataclass, field
from typing import Iterable, Optional, Protocol

from core.config import DEFAULT_ALLOWED_TYPES
from domain.common.exceptions import FileTooLargeException, UnsupportedMimeTypeException

DEFAULT_MAX_SIZE = 10 * 1024 * 1024  # 10MB

SUPPORTED_FILE_TYPES: tuple[str, ...] = tuple(DEFAULT_ALLOWED_TYPES)

IMAGE_FILE_TYPES: tuple[str, ...] = (
    "image/jpeg",
    "image/png",
    "image/gif",
    "image/webp",
)

DOCUMENT_FILE_TYPES: tuple[str, ...] = (
    "application/pdf",
    "application/msword",
    "application/vnd.openxmlformats-officedocument.wordprocessingml.document",
    "application/vnd.ms-excel",
    "application/vnd.openxmlformats-officedocument.spreadsheetml.sheet",
    "text/plain",
    "application/zip",
)


class FileLike(Protocol):
    size: int
    mime_type: str


@dataclass(frozen=True)
class UploadConstraints:
    max_size: int = DEFAULT_MAX_SIZE
    allowed_types: tuple[str, ...] = field(default=SUPPORTED_FILE_TYPES)

    def __post_init__(self) -> None:
        object.__setattr__(self, "allowed_types", tuple(self.allowed_types))

    def override(
        self,
        *,
        max_size: Optional[int] = None,
        allowed_types: Optional[Iterable[str]] = None,
    ) -> "UploadConstraints":
        """Return a copy with the non-None values replaced."""
        return UploadConstraints(
            max_size=self.max_size if max_size is None else max_size,
            allowed_types=self.allowed_types if allowed_types is None else tuple(allowed_types),
        )


def validate_file(
    file: FileLike,
    constraints: Optional[UploadConstraints] = None,
    *,
    max_size: Optional[int] = None,
    allowed_types: Optional[Iterable[str]] = None,
) -> None:
    """Raise FileTooLargeException / UnsupportedMimeTypeException, or return None.

    Size is checked before type, so an oversized file of an unsupported type
    reports FILE_TOO_LARGE.
    """
    rules = (constraints or UploadConstraints()).override(max_size=max_size, allowed_types=allowed_types)

    if file.size > rules.max_size:
        raise FileTooLargeException(size=file.size, max_size=rules.max_size)

    if file.mime_type not in rules.allowed_types:
        raise UnsupportedMimeTypeException(file.mime_type, allowed=rules.allowed_types)
