"""Upload domain exports."""
from .entity import (
    BatchState,
    OwnerReference,
    OwnerType,
    RegisteredFile,
    UploadResult,
    UploadStage,
    UploadTarget,
    can_transition,
)
from .file import UploadFile, guess_content_type

__all__ = [
    "BatchState",
    "OwnerReference",
    "OwnerType",
    "RegisteredFile",
    "UploadFile",
    "UploadResult",
    "UploadStage",
    "UploadTarget",
    "can_transition",
    "guess_content_type",
]
