"""
Upload pipeline error codes.

String valued so callers can branch on them or forward them verbatim to
a client without an extra mapping table.
"""
from __future__ import annotations

from enum import Enum


class UploadErrorCode(str, Enum):
    # Pre-flight (local, no network cost)
    FILE_TOO_LARGE = "FILE_TOO_LARGE"
    UNSUPPORTED_FILE_TYPE = "UNSUPPORTED_FILE_TYPE"

    # Any single-stage network/transport failure
    UPLOAD_FAILED = "UPLOAD_FAILED"

    # Fail-fast batch wrapper
    MULTIPLE_UPLOAD_FAILED = "MULTIPLE_UPLOAD_FAILED"


# Error codes raised before any network call is made
PREFLIGHT_CODES = frozenset({
    UploadErrorCode.FILE_TOO_LARGE,
    UploadErrorCode.UNSUPPORTED_FILE_TYPE,
})
