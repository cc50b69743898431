"""Application-owned ports for the upload pipeline (hexagonal architecture).

The orchestrator depends only on these protocols; HTTP implementations live
in infrastructure and are injected from the composition root.
"""
from __future__ import annotations

from typing import Any, Callable, Optional, Protocol, runtime_checkable

from domain.upload import OwnerReference, RegisteredFile, UploadFile, UploadStage, UploadTarget

ProgressCallback = Callable[[int], Any]
StageCallback = Callable[[UploadStage], Any]


@runtime_checkable
class PresignPort(Protocol):
    async def request_target(
        self,
        file_name: str,
        file_size: int,
        mime_type: str,
        owner: OwnerReference,
    ) -> UploadTarget: ...


@runtime_checkable
class TransferPort(Protocol):
    async def transfer(
        self,
        file: UploadFile,
        target: UploadTarget,
        on_progress: Optional[ProgressCallback] = None,
    ) -> None: ...


@runtime_checkable
class RegistrationPort(Protocol):
    async def register(
        self,
        object_key: str,
        file_name: str,
        file_size: int,
        mime_type: str,
        owner: OwnerReference,
    ) -> RegisteredFile: ...
