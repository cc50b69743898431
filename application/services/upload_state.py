"""Observable upload state for UI bindings.

Each adapter wraps one FileUploadService call, exposes ``uploading``,
``progress`` and the last result as plain attributes, and notifies
listeners with an immutable snapshot whenever any of them changes.
Instances are independent: two adapters never share state.
"""
from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Callable, Iterable, Optional, Union

from application.validation import IMAGE_FILE_TYPES
from core.logging_config import get_logger
from domain.common.exceptions import FileUploadException
from domain.upload import BatchState, OwnerReference, OwnerType, UploadFile, UploadResult, UploadStage

from .upload_service import FileUploadService, UploadOptions

logger = get_logger(__name__)


@dataclass(frozen=True)
class UploadSnapshot:
    uploading: bool
    progress: int
    stage: UploadStage
    result: Optional[UploadResult] = None
    results: tuple[UploadResult, ...] = field(default_factory=tuple)
    error: Optional[FileUploadException] = None


Listener = Callable[[UploadSnapshot], Any]
SuccessCallback = Callable[[UploadResult, UploadFile], Any]
ErrorCallback = Callable[[FileUploadException], Any]


class _ObservableState:
    def __init__(
        self,
        service: FileUploadService,
        owner_type: Union[OwnerType, str],
        owner_id: Any,
        *,
        max_size: Optional[int] = None,
        allowed_types: Optional[Iterable[str]] = None,
        on_error: Optional[ErrorCallback] = None,
    ):
        self._service = service
        self.owner = OwnerReference.of(owner_type, owner_id)
        self.max_size = max_size
        self.allowed_types = tuple(allowed_types) if allowed_types is not None else None
        self.on_error = on_error
        self._listeners: list[Listener] = []

        self.uploading = False
        self.progress = 0
        self.stage = UploadStage.IDLE
        self.error: Optional[FileUploadException] = None

    def subscribe(self, listener: Listener) -> Callable[[], None]:
        """Register a listener; returns a function that unsubscribes it."""
        self._listeners.append(listener)

        def unsubscribe() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)

        return unsubscribe

    def snapshot(self) -> UploadSnapshot:
        return UploadSnapshot(
            uploading=self.uploading,
            progress=self.progress,
            stage=self.stage,
            error=self.error,
        )

    def _notify(self) -> None:
        snap = self.snapshot()
        for listener in list(self._listeners):
            listener(snap)

    def _set_progress(self, percent: int) -> None:
        self.progress = percent
        self._notify()

    def _set_stage(self, stage: UploadStage) -> None:
        self.stage = stage
        self._notify()

    def _options(self) -> UploadOptions:
        return UploadOptions(
            owner_type=self.owner.owner_type,
            owner_id=self.owner.owner_id,
            max_size=self.max_size,
            allowed_types=self.allowed_types,
            on_progress=self._set_progress,
            on_stage=self._set_stage,
        )

    def _begin(self) -> None:
        self.uploading = True
        self.progress = 0
        self.stage = UploadStage.IDLE
        self.error = None
        self._notify()

    def _fail(self, exc: FileUploadException) -> None:
        self.error = exc
        logger.info("upload_state_failed", owner_type=self.owner.owner_type.value, code=exc.code.value)
        if self.on_error is not None:
            self.on_error(exc)

    def _end(self) -> None:
        self.uploading = False
        self._notify()


class FileUploadState(_ObservableState):
    """Single-file upload state (``full_upload=False`` skips registration)."""

    def __init__(self, *args, on_success: Optional[SuccessCallback] = None, **kwargs):
        super().__init__(*args, **kwargs)
        self.on_success = on_success
        self.result: Optional[UploadResult] = None

    def snapshot(self) -> UploadSnapshot:
        base = super().snapshot()
        return UploadSnapshot(
            uploading=base.uploading,
            progress=base.progress,
            stage=base.stage,
            result=self.result,
            error=base.error,
        )

    async def upload(self, file: UploadFile, full_upload: bool = True) -> UploadResult:
        self._begin()
        try:
            if full_upload:
                result = await self._service.upload_file(file, self._options())
            else:
                result = await self._service.upload_file_to_s3_only(
                    file,
                    self.owner.owner_type,
                    self.owner.owner_id,
                    max_size=self.max_size,
                    allowed_types=self.allowed_types,
                    on_progress=self._set_progress,
                    on_stage=self._set_stage,
                )
            self.result = result
            if self.on_success is not None:
                self.on_success(result, file)
            return result
        except FileUploadException as exc:
            self._fail(exc)
            raise
        finally:
            self._end()

    def reset(self) -> None:
        self.uploading = False
        self.progress = 0
        self.stage = UploadStage.IDLE
        self.result = None
        self.error = None
        self._notify()


class ImageUploadState(FileUploadState):
    """Image-only, storage-only upload used by inline editors and thumbnails.

    Failure clears the previously shown image so a stale URL is never kept.
    """

    def __init__(self, service: FileUploadService, owner_type, owner_id, **kwargs):
        kwargs.setdefault("allowed_types", IMAGE_FILE_TYPES)
        super().__init__(service, owner_type, owner_id, **kwargs)
        self.image_url: Optional[str] = None
        self.file_name: Optional[str] = None
        self.file_key: Optional[str] = None

    async def upload(self, file: UploadFile, full_upload: bool = False) -> UploadResult:
        self.file_name = file.name
        try:
            result = await super().upload(file, full_upload=full_upload)
        except FileUploadException:
            self.image_url = None
            self.file_name = None
            self.file_key = None
            self._notify()
            raise
        self.image_url = result.public_url
        self.file_key = result.file_key
        self._notify()
        return result

    def reset(self) -> None:
        self.image_url = None
        self.file_name = None
        self.file_key = None
        super().reset()


class MultipleFileUploadState(_ObservableState):
    """Accumulates uploaded files across calls."""

    def __init__(self, *args, on_success: Optional[Callable[[list[UploadResult]], Any]] = None, **kwargs):
        super().__init__(*args, **kwargs)
        self.on_success = on_success
        self.files: list[UploadResult] = []

    def snapshot(self) -> UploadSnapshot:
        base = super().snapshot()
        return UploadSnapshot(
            uploading=base.uploading,
            progress=base.progress,
            stage=base.stage,
            results=tuple(self.files),
            error=base.error,
        )

    async def upload_files(self, files: Iterable[UploadFile], full_upload: bool = True) -> list[UploadResult]:
        """Fail-fast: on error nothing from this call is added to ``files``."""
        self._begin()
        try:
            results = await self._service.upload_multiple_files(
                files,
                self._options(),
                full_upload=full_upload,
            )
            self.files.extend(results)
            if self.on_success is not None:
                self.on_success(results)
            return results
        except FileUploadException as exc:
            self._fail(exc)
            raise
        finally:
            self._end()

    async def upload_each(self, files: Iterable[UploadFile], full_upload: bool = True) -> BatchState:
        """Catch-and-continue: every file is attempted, successes are kept.

        Returns the finalized BatchState; ``state.errors`` lists the failures
        in input order. Never raises FileUploadException.
        """
        batch = list(files)
        state = BatchState(total=len(batch))
        self._begin()
        try:
            for index, file in enumerate(batch):
                def on_file_progress(percent: int, index: int = index) -> None:
                    before = state.progress
                    if state.update_progress(index, percent) > before:
                        self._set_progress(state.progress)

                options = self._options().model_copy(update={"on_progress": on_file_progress})
                try:
                    if full_upload:
                        result = await self._service.upload_file(file, options)
                    else:
                        result = await self._service.upload_file_to_s3_only(
                            file,
                            options.owner_type,
                            options.owner_id,
                            max_size=options.max_size,
                            allowed_types=options.allowed_types,
                            on_progress=on_file_progress,
                            on_stage=self._set_stage,
                        )
                except FileUploadException as exc:
                    state.record_failure(exc)
                    self._fail(exc)
                    # keep the aggregate moving past the failed file
                    on_file_progress(100)
                    continue
                state.record_success(result)
                self.files.append(result)
            state.finalize()
        finally:
            self._end()
        if state.results and self.on_success is not None:
            self.on_success(state.results)
        return state

    def remove_file(self, index: int) -> UploadResult:
        removed = self.files.pop(index)
        self._notify()
        return removed

    def reset(self) -> None:
        self.files = []
        self.uploading = False
        self.progress = 0
        self.stage = UploadStage.IDLE
        self.error = None
        self._notify()
