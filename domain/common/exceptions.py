"""领域层业务异常定义，供领域、应用与基础设施层使用。

上传流水线的所有失败都以带 ``code`` 的类型化异常暴露，调用方按 code 分支，
而不是解析错误文本。
"""
from __future__ import annotations

from typing import Optional, Sequence

from shared.codes import BusinessCode, UploadErrorCode
from shared.codes.upload_codes import PREFLIGHT_CODES

_MB = 1024 * 1024


class BusinessException(Exception):
    """业务异常基类"""

    def __init__(
        self,
        code: int | str,
        message: str,
        error_type: str = "BusinessError",
        details: Optional[dict] = None,
        field: Optional[str] = None,
        message_key: Optional[str] = None,
        format_params: Optional[dict] = None,
    ) -> None:
        self.code = code
        self.message = message
        self.error_type = error_type
        self.details = details
        self.field = field
        self.message_key = message_key
        self.format_params = format_params
        super().__init__(self.message)

    def localized(self) -> str:
        """Render the message for the current locale, falling back to ``message``."""
        from core.i18n import t

        if not self.message_key:
            return self.message
        params = self.format_params if isinstance(self.format_params, dict) else (self.details or {})
        return t(self.message_key, default=self.message, **params)


class DomainValidationException(BusinessException):
    def __init__(
        self,
        message: str,
        *,
        field: str | None = None,
        details: dict | None = None,
        message_key: str | None = None,
        format_params: dict | None = None,
    ):
        super().__init__(
            code=BusinessCode.PARAM_VALIDATION_ERROR,
            message=message,
            error_type="DomainValidationError",
            details=details,
            field=field,
            message_key=message_key or "validation.domain",
            format_params=format_params,
        )


class FileUploadException(BusinessException):
    """Base class for every upload pipeline failure; ``code`` is an UploadErrorCode."""

    code: UploadErrorCode

    def __init__(
        self,
        code: UploadErrorCode,
        message: str,
        *,
        error_type: str = "FileUploadError",
        details: Optional[dict] = None,
        field: Optional[str] = None,
        message_key: Optional[str] = None,
        format_params: Optional[dict] = None,
    ) -> None:
        super().__init__(
            code=code,
            message=message,
            error_type=error_type,
            details=details,
            field=field,
            message_key=message_key,
            format_params=format_params,
        )

    @property
    def is_preflight(self) -> bool:
        """True when raised by local validation, before any network call."""
        return self.code in PREFLIGHT_CODES


def format_size_limit(max_size: int) -> str:
    """Human readable limit: whole MB, or KB when the limit rounds to 0MB."""
    max_mb = round(max_size / _MB)
    if max_mb > 0:
        return f"{max_mb}MB"
    return f"{max(1, round(max_size / 1024))}KB"


class FileTooLargeException(FileUploadException):
    def __init__(self, size: int, max_size: int):
        limit = format_size_limit(max_size)
        super().__init__(
            UploadErrorCode.FILE_TOO_LARGE,
            f"File is too large. Files up to {limit} can be uploaded.",
            error_type="FileTooLarge",
            details={"size": size, "max_size": max_size},
            field="size",
            message_key="file.size.too_large",
            format_params={"limit": limit},
        )
        self.size = size
        self.max_size = max_size


class UnsupportedMimeTypeException(FileUploadException):
    def __init__(self, mime_type: str, allowed: Optional[Sequence[str]] = None):
        details: dict = {"mime_type": mime_type}
        if allowed is not None:
            details["allowed"] = list(allowed)
        super().__init__(
            UploadErrorCode.UNSUPPORTED_FILE_TYPE,
            "Unsupported file type.",
            error_type="UnsupportedMimeType",
            details=details,
            field="mime_type",
            message_key="file.type.unsupported",
            format_params={"mime_type": mime_type},
        )
        self.mime_type = mime_type


class UploadFailedException(FileUploadException):
    """A presign, transfer or registration call failed."""

    DEFAULT_MESSAGE = "An error occurred while uploading the file."

    def __init__(
        self,
        message: Optional[str] = None,
        *,
        stage: Optional[str] = None,
        status_code: Optional[int] = None,
    ):
        details = {}
        if stage:
            details["stage"] = stage
        if status_code is not None:
            details["status_code"] = status_code
        super().__init__(
            UploadErrorCode.UPLOAD_FAILED,
            message or self.DEFAULT_MESSAGE,
            error_type="UploadFailed",
            details=details or None,
            # A backend-supplied reason is shown as-is; only the generic text is translated
            message_key=None if message else "file.upload.failed",
        )
        self.stage = stage
        self.status_code = status_code


class MultipleUploadFailedException(FileUploadException):
    """Fail-fast batch wrapper naming the first file that failed."""

    def __init__(self, file_name: str, reason: str, *, index: Optional[int] = None, cause_code: Optional[str] = None):
        details: dict = {"file_name": file_name, "reason": reason}
        if index is not None:
            details["index"] = index
        if cause_code is not None:
            details["cause_code"] = cause_code
        super().__init__(
            UploadErrorCode.MULTIPLE_UPLOAD_FAILED,
            f'File "{file_name}" upload failed: {reason}',
            error_type="MultipleUploadFailed",
            details=details,
            message_key="file.upload.multiple_failed",
            format_params={"file_name": file_name, "reason": reason},
        )
        self.file_name = file_name
        self.reason = reason
        self.index = index


class FileRecordNotFoundException(BusinessException):
    def __init__(self, file_id: Optional[str] = None):
        details = {"file_id": file_id} if file_id is not None else None
        super().__init__(
            code=BusinessCode.NOT_FOUND,
            message="File not found",
            error_type="FileRecordNotFound",
            details=details,
            message_key="file.not_found",
        )


class FileQueryFailedException(BusinessException):
    """Listing, fetching or deleting file records failed for a reason other than 404."""

    def __init__(self, message: str, *, operation: str, status_code: Optional[int] = None):
        details: dict = {"operation": operation}
        if status_code is not None:
            details["status_code"] = status_code
        super().__init__(
            code=BusinessCode.NETWORK_ERROR,
            message=message,
            error_type="FileQueryFailed",
            details=details,
            message_key="file.query.failed",
            format_params={"operation": operation},
        )
        self.operation = operation
        self.status_code = status_code
