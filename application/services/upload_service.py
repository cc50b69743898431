"""Application layer orchestration of direct-to-storage uploads (application/services).

Single file: validate -> presign -> transfer -> register, strictly in order,
each network stage awaited before the next begins. Batch: the same pipeline
per file, sequentially in input order, failing fast on the first error.

Failures are never cleaned up here. A file transferred but not registered
is left in storage as an orphan for out-of-band reconciliation; the backend
file table therefore never references bytes that did not land.
"""
from __future__ import annotations

from typing import Any, Callable, Iterable, Optional, Union

from pydantic import BaseModel, ConfigDict, field_validator, model_validator

from application.ports.upload import (
    PresignPort,
    ProgressCallback,
    RegistrationPort,
    StageCallback,
    TransferPort,
)
from application.validation import (
    DOCUMENT_FILE_TYPES,
    IMAGE_FILE_TYPES,
    UploadConstraints,
    validate_file,
)
from core.logging_config import get_logger
from domain.common.exceptions import (
    FileUploadException,
    MultipleUploadFailedException,
    UploadFailedException,
)
from domain.upload import (
    BatchState,
    OwnerReference,
    OwnerType,
    UploadFile,
    UploadResult,
    UploadStage,
    can_transition,
)

logger = get_logger(__name__)

# Progress markers of the full pipeline (presign done, transfer done)
PRESIGN_DONE = 30
TRANSFER_DONE = 70
# S3-only pipeline has no registration stage
S3_ONLY_PRESIGN_DONE = 50


class UploadOptions(BaseModel):
    """Per-call upload configuration."""

    model_config = ConfigDict(arbitrary_types_allowed=True, frozen=True)

    owner_type: OwnerType
    owner_id: str
    max_size: Optional[int] = None
    allowed_types: Optional[tuple[str, ...]] = None
    on_progress: Optional[Callable[[int], Any]] = None
    on_stage: Optional[Callable[[UploadStage], Any]] = None

    @field_validator("owner_type", mode="before")
    @classmethod
    def _normalize_owner_type(cls, value):
        return OwnerType.parse(value)

    @field_validator("owner_id", mode="before")
    @classmethod
    def _stringify_owner_id(cls, value):
        if value is None:
            return value
        return str(value).strip()

    @model_validator(mode="after")
    def _check_owner(self) -> "UploadOptions":
        # Raises DomainValidationException for an empty owner id, before any upload starts
        OwnerReference(owner_type=self.owner_type, owner_id=self.owner_id)
        return self

    @property
    def owner(self) -> OwnerReference:
        return OwnerReference(owner_type=self.owner_type, owner_id=self.owner_id)


class _ProgressGate:
    """Forwards only increasing percentages to the caller's callback."""

    def __init__(self, callback: Optional[ProgressCallback]):
        self._callback = callback
        self.value = -1

    def __call__(self, percent: int) -> None:
        percent = max(0, min(100, int(percent)))
        if percent <= self.value:
            return
        self.value = percent
        if self._callback is not None:
            self._callback(percent)


class _StageTracker:
    def __init__(self, callback: Optional[StageCallback], file_name: str):
        self._callback = callback
        self._file_name = file_name
        self.stage = UploadStage.IDLE

    def enter(self, stage: UploadStage) -> None:
        if not can_transition(self.stage, stage):
            raise RuntimeError(f"Illegal upload transition {self.stage.value} -> {stage.value}")
        self.stage = stage
        logger.debug("upload_stage", file_name=self._file_name, stage=stage.value)
        if self._callback is not None:
            self._callback(stage)

    def fail(self) -> None:
        if can_transition(self.stage, UploadStage.FAILED):
            self.enter(UploadStage.FAILED)


class FileUploadService:
    """Composes the presign, transfer and registration ports into upload workflows."""

    def __init__(
        self,
        presigner: PresignPort,
        transfer: TransferPort,
        registrar: RegistrationPort,
        constraints: Optional[UploadConstraints] = None,
    ):
        self._presigner = presigner
        self._transfer = transfer
        self._registrar = registrar
        self._constraints = constraints or UploadConstraints()

    @property
    def constraints(self) -> UploadConstraints:
        return self._constraints

    async def aclose(self) -> None:
        """Close the underlying clients (each once, even when shared)."""
        seen: set[int] = set()
        for port in (self._presigner, self._transfer, self._registrar):
            if id(port) in seen:
                continue
            seen.add(id(port))
            close = getattr(port, "aclose", None) or getattr(port, "close", None)
            if callable(close):
                await close()

    async def __aenter__(self):
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb):
        await self.aclose()

    # ------------------------------------------------------------------
    # Pipeline
    # ------------------------------------------------------------------
    def validate(self, file: UploadFile, options: Optional[UploadOptions] = None) -> None:
        validate_file(
            file,
            self._constraints,
            max_size=options.max_size if options else None,
            allowed_types=options.allowed_types if options else None,
        )

    async def _run(self, file: UploadFile, options: UploadOptions, *, register: bool) -> UploadResult:
        owner = options.owner
        report = _ProgressGate(options.on_progress)
        tracker = _StageTracker(options.on_stage, file.name)
        presign_done = PRESIGN_DONE if register else S3_ONLY_PRESIGN_DONE
        transfer_done = TRANSFER_DONE if register else 100
        log = logger.bind(file_name=file.name, owner_type=owner.owner_type.value, owner_id=owner.owner_id)

        try:
            tracker.enter(UploadStage.VALIDATING)
            self.validate(file, options)
            report(0)

            tracker.enter(UploadStage.PRESIGNING)
            target = await self._presigner.request_target(file.name, file.size, file.mime_type, owner)
            report(presign_done)

            tracker.enter(UploadStage.TRANSFERRING)
            span = transfer_done - presign_done

            def on_transfer_progress(percent: int) -> None:
                # Hold the stage's closing marker until the transfer call returns
                report(min(transfer_done - 1, presign_done + round(percent * span / 100)))

            await self._transfer.transfer(file, target, on_progress=on_transfer_progress)

            if register:
                report(transfer_done)
                tracker.enter(UploadStage.REGISTERING)
                registered = await self._registrar.register(
                    target.object_key, file.name, file.size, file.mime_type, owner
                )
                result = UploadResult(
                    file_key=target.object_key,
                    original_name=file.name,
                    file_size=file.size,
                    mime_type=file.mime_type,
                    file_id=registered.file_id,
                    public_url=registered.public_url or target.public_url,
                )
            else:
                result = UploadResult(
                    file_key=target.object_key,
                    original_name=file.name,
                    file_size=file.size,
                    mime_type=file.mime_type,
                    public_url=target.public_url,
                )

            tracker.enter(UploadStage.COMPLETED)
            report(100)
        except FileUploadException as exc:
            tracker.fail()
            log.warning("upload_failed", code=exc.code.value, stage=tracker.stage.value, error=exc.message)
            raise
        except Exception as exc:
            tracker.fail()
            log.error("upload_failed_unexpected", error=str(exc), exc_info=True)
            raise UploadFailedException(str(exc) or None) from exc

        log.info("upload_completed", file_key=result.file_key, file_id=result.file_id, registered=register)
        return result

    async def upload_file(self, file: UploadFile, options: UploadOptions) -> UploadResult:
        """Full pipeline; the result carries the registered ``file_id``."""
        return await self._run(file, options, register=True)

    async def upload_file_to_s3_only(
        self,
        file: UploadFile,
        owner_type: Union[OwnerType, str],
        owner_id: str,
        *,
        max_size: Optional[int] = None,
        allowed_types: Optional[Iterable[str]] = None,
        on_progress: Optional[ProgressCallback] = None,
        on_stage: Optional[StageCallback] = None,
    ) -> UploadResult:
        """Presign and transfer only; no registration, so the result has no ``file_id``.

        Used for immediately displayable URLs (e.g. inline editor images)
        that are registered through another flow later, or never.
        """
        options = UploadOptions(
            owner_type=owner_type,
            owner_id=owner_id,
            max_size=max_size,
            allowed_types=tuple(allowed_types) if allowed_types is not None else None,
            on_progress=on_progress,
            on_stage=on_stage,
        )
        return await self._run(file, options, register=False)

    async def upload_multiple_files(
        self,
        files: Iterable[UploadFile],
        options: UploadOptions,
        *,
        full_upload: bool = True,
    ) -> list[UploadResult]:
        """Fail-fast batch: sequential, input order, aborts on the first failure.

        Results of files uploaded before the failure are discarded and not
        rolled back; files after it are never attempted. Callers wanting
        partial results should upload file by file and aggregate themselves.

        An invalid owner is rejected when ``UploadOptions`` is built, so every
        failure raised from here is a MultipleUploadFailedException.
        """
        batch = list(files)
        state = BatchState(total=len(batch))
        if not batch:
            state.finalize()
            return []

        outer = options.on_progress
        if outer is not None:
            outer(0)

        logger.info(
            "upload_batch_started",
            count=len(batch),
            owner_type=options.owner_type.value,
            owner_id=options.owner_id,
        )

        for index, file in enumerate(batch):
            def on_file_progress(percent: int, index: int = index) -> None:
                before = state.progress
                now = state.update_progress(index, percent)
                if outer is not None and now > before:
                    outer(now)

            per_file = options.model_copy(update={"on_progress": on_file_progress})
            try:
                result = await self._run(file, per_file, register=full_upload)
            except FileUploadException as exc:
                state.record_failure(exc)
                state.finalize()
                logger.warning(
                    "upload_batch_failed",
                    index=index,
                    file_name=file.name,
                    code=exc.code.value,
                    attempted=index + 1,
                    skipped=len(batch) - index - 1,
                )
                raise MultipleUploadFailedException(
                    file.name,
                    exc.message,
                    index=index,
                    cause_code=exc.code.value,
                ) from exc
            state.record_success(result)

        state.finalize()
        logger.info("upload_batch_completed", count=len(batch))
        return state.results

    # ------------------------------------------------------------------
    # Type-narrowed presets
    # ------------------------------------------------------------------
    async def upload_image(self, file: UploadFile, options: UploadOptions) -> UploadResult:
        return await self.upload_file(file, options.model_copy(update={"allowed_types": IMAGE_FILE_TYPES}))

    async def upload_document(self, file: UploadFile, options: UploadOptions) -> UploadResult:
        return await self.upload_file(file, options.model_copy(update={"allowed_types": DOCUMENT_FILE_TYPES}))

    async def upload_image_to_s3_only(
        self,
        file: UploadFile,
        owner_type: Union[OwnerType, str],
        owner_id: str,
        *,
        max_size: Optional[int] = None,
        on_progress: Optional[ProgressCallback] = None,
        on_stage: Optional[StageCallback] = None,
    ) -> UploadResult:
        return await self.upload_file_to_s3_only(
            file,
            owner_type,
            owner_id,
            max_size=max_size,
            allowed_types=IMAGE_FILE_TYPES,
            on_progress=on_progress,
            on_stage=on_stage,
        )
