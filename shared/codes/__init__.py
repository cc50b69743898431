"""
Shared codes used across layers (Domain/Application/Infrastructure).

This package exposes BusinessCode at `shared.codes` and keeps
upload-specific codes under `shared.codes.upload_codes`.
"""
from enum import IntEnum

from .upload_codes import UploadErrorCode


class BusinessCode(IntEnum):
    """Unified business status codes (single source of truth)."""

    # Success
    SUCCESS = 0

    # Parameter errors (1xxxx)
    PARAM_ERROR = 10000
    PARAM_VALIDATION_ERROR = 10003

    # Business errors (2xxxx)
    BUSINESS_ERROR = 20000
    NOT_FOUND = 20006  # Generic resource not found

    # System errors (4xxxx)
    SYSTEM_ERROR = 40000
    NETWORK_ERROR = 40002


__all__ = ["BusinessCode", "UploadErrorCode"]
