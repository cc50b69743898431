"""Domain objects of the direct-to-storage upload pipeline."""
from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Optional, Union

from domain.common.exceptions import DomainValidationException, FileUploadException


class OwnerType(str, Enum):
    """Domain entity a file is attached to. Lowercase is the canonical form."""

    POST = "post"
    POPUP = "popup"
    FACULTY = "faculty"
    HEADER = "header"
    FEEDBACK = "feedback"
    COURSE = "course"

    @classmethod
    def parse(cls, value: Union["OwnerType", str]) -> "OwnerType":
        """Normalize ``'post'``, ``'POST'`` or ``OwnerType.POST`` to ``OwnerType.POST``."""
        if isinstance(value, cls):
            return value
        if isinstance(value, str):
            normalized = value.strip().lower()
            for member in cls:
                if member.value == normalized:
                    return member
        raise DomainValidationException(
            f"Unknown owner type: {value!r}",
            field="owner_type",
            details={"allowed": [m.value for m in cls]},
            message_key="file.owner_type.invalid",
        )


@dataclass(frozen=True)
class OwnerReference:
    """Which entity the uploaded file will belong to."""

    owner_type: OwnerType
    owner_id: str

    def __post_init__(self) -> None:
        object.__setattr__(self, "owner_type", OwnerType.parse(self.owner_type))
        owner_id = str(self.owner_id).strip() if self.owner_id is not None else ""
        if not owner_id:
            raise DomainValidationException(
                "owner_id must not be empty",
                field="owner_id",
                message_key="file.owner_id.empty",
            )
        object.__setattr__(self, "owner_id", owner_id)

    @classmethod
    def of(cls, owner_type: Union[OwnerType, str], owner_id: Any) -> "OwnerReference":
        return cls(owner_type=OwnerType.parse(owner_type), owner_id=str(owner_id))


@dataclass(frozen=True)
class UploadTarget:
    """Presigned write target; consumed once by the transfer stage."""

    object_key: str
    upload_url: str
    public_url: Optional[str] = None


@dataclass(frozen=True)
class RegisteredFile:
    """Durable identity returned by the registration endpoint."""

    file_id: str
    public_url: Optional[str] = None


@dataclass(frozen=True)
class UploadResult:
    """Outcome of a completed pipeline. ``file_id`` is set only after registration."""

    file_key: str
    original_name: str
    file_size: int
    mime_type: str
    file_id: Optional[str] = None
    public_url: Optional[str] = None

    @property
    def is_registered(self) -> bool:
        return self.file_id is not None

    def to_dict(self) -> dict[str, Any]:
        data: dict[str, Any] = {
            "fileKey": self.file_key,
            "originalName": self.original_name,
            "fileSize": self.file_size,
            "mimeType": self.mime_type,
        }
        if self.file_id is not None:
            data["fileId"] = self.file_id
        if self.public_url is not None:
            data["publicUrl"] = self.public_url
        return data


class UploadStage(str, Enum):
    """Single upload state machine; ``failed`` is absorbing."""

    IDLE = "idle"
    VALIDATING = "validating"
    PRESIGNING = "presigning"
    TRANSFERRING = "transferring"
    REGISTERING = "registering"
    COMPLETED = "completed"
    FAILED = "failed"

    @property
    def is_terminal(self) -> bool:
        return self in (UploadStage.COMPLETED, UploadStage.FAILED)


_STAGE_ORDER = [
    UploadStage.IDLE,
    UploadStage.VALIDATING,
    UploadStage.PRESIGNING,
    UploadStage.TRANSFERRING,
    UploadStage.REGISTERING,
    UploadStage.COMPLETED,
]


def can_transition(current: UploadStage, nxt: UploadStage) -> bool:
    """Stages only move forward; registering may be skipped (S3-only); failed is reachable from any non-idle, non-terminal stage."""
    if current.is_terminal:
        return False
    if nxt is UploadStage.FAILED:
        return current is not UploadStage.IDLE
    if nxt is UploadStage.COMPLETED:
        return current in (UploadStage.TRANSFERRING, UploadStage.REGISTERING)
    return _STAGE_ORDER.index(nxt) == _STAGE_ORDER.index(current) + 1


Outcome = Union[UploadResult, FileUploadException]


@dataclass
class BatchState:
    """Per-batch bookkeeping owned by the orchestrator for one invocation."""

    total: int
    outcomes: list[Outcome] = field(default_factory=list)
    progress: int = 0
    finalized: bool = False

    def _ensure_open(self) -> None:
        if self.finalized:
            raise RuntimeError("BatchState is finalized")

    def update_progress(self, index: int, file_progress: int) -> int:
        """Fold one file's progress into the weighted aggregate; never decreases."""
        self._ensure_open()
        if self.total <= 0:
            return self.progress
        aggregate = round(((index + file_progress / 100) / self.total) * 100)
        # 100 is reserved for the last file's own completion
        ceiling = 100 if (index >= self.total - 1 and file_progress >= 100) else 99
        aggregate = min(ceiling, max(0, aggregate))
        if aggregate > self.progress:
            self.progress = aggregate
        return self.progress

    def record_success(self, result: UploadResult) -> None:
        self._ensure_open()
        self.outcomes.append(result)

    def record_failure(self, error: FileUploadException) -> None:
        self._ensure_open()
        self.outcomes.append(error)

    def finalize(self) -> None:
        self.finalized = True

    @property
    def results(self) -> list[UploadResult]:
        return [o for o in self.outcomes if isinstance(o, UploadResult)]

    @property
    def errors(self) -> list[FileUploadException]:
        return [o for o in self.outcomes if isinstance(o, FileUploadException)]

    @property
    def failed(self) -> bool:
        return bool(self.errors)
