"""
文件 API 客户端：presign 请求与上传完成后的元数据登记

两个端点都只调用一次、不重试；任何失败都转换为 UploadFailedException。
文件查询（列表、详情、删除）的失败转换为 FileRecordNotFoundException 或 FileQueryFailedException。
"""
from __future__ import annotations

from pydantic import ValidationError

from application.dto import (
    FileInfoDTO,
    FileInfoPageDTO,
    PresignRequestDTO,
    PresignResponseDTO,
    RegisterFileRequestDTO,
)
from core.logging_config import get_logger
from domain.common.exceptions import (
    FileQueryFailedException,
    FileRecordNotFoundException,
    UploadFailedException,
)
from domain.upload import OwnerReference, RegisteredFile, UploadTarget
from .base import APIError, BaseAPIClient, NotFoundError

logger = get_logger(__name__)

DEFAULT_PRESIGN_PATH = "/files/presigned-url"
DEFAULT_REGISTER_PATH = "/files/register"
DEFAULT_FILES_PATH = "/files"


class FilesAPIClient(BaseAPIClient):
    """Backend side of the upload protocol (presign + register) and owner file queries."""

    def __init__(
        self,
        base_url: str,
        *,
        presign_path: str = DEFAULT_PRESIGN_PATH,
        register_path: str = DEFAULT_REGISTER_PATH,
        files_path: str = DEFAULT_FILES_PATH,
        **kwargs,
    ):
        kwargs.setdefault("max_retries", 0)
        super().__init__(base_url, **kwargs)
        self.presign_path = presign_path
        self.register_path = register_path
        self.files_path = files_path.rstrip("/")

    async def request_target(
        self,
        file_name: str,
        file_size: int,
        mime_type: str,
        owner: OwnerReference,
    ) -> UploadTarget:
        """Ask the backend for a presigned write target for one file."""
        payload = PresignRequestDTO(
            file_name=file_name,
            file_size=file_size,
            mime_type=mime_type,
            owner_type=owner.owner_type,
            owner_id=owner.owner_id,
        )
        logger.info(
            "upload_presign_requested",
            file_name=file_name,
            file_size=file_size,
            owner_type=owner.owner_type.value,
            owner_id=owner.owner_id,
        )
        try:
            data = await self.post_typed(self.presign_path, PresignResponseDTO, json_data=payload.to_wire())
        except APIError as exc:
            logger.warning("upload_presign_failed", file_name=file_name, status_code=exc.status_code, error=exc.message)
            raise UploadFailedException(exc.message, stage="presign", status_code=exc.status_code) from exc
        except (ValidationError, ValueError) as exc:
            logger.warning("upload_presign_malformed", file_name=file_name, error=str(exc))
            raise UploadFailedException("Malformed presign response", stage="presign") from exc

        logger.info("upload_presign_received", file_name=file_name, file_key=data.file_key)
        return UploadTarget(
            object_key=data.file_key,
            upload_url=data.upload_url,
            public_url=data.public_url,
        )

    async def register(
        self,
        object_key: str,
        file_name: str,
        file_size: int,
        mime_type: str,
        owner: OwnerReference,
    ) -> RegisteredFile:
        """Tell the backend the object now exists so it persists a durable file record."""
        payload = RegisterFileRequestDTO(
            file_key=object_key,
            file_name=file_name,
            file_size=file_size,
            mime_type=mime_type,
            owner_type=owner.owner_type,
            owner_id=owner.owner_id,
        )
        try:
            info = await self.post_typed(self.register_path, FileInfoDTO, json_data=payload.to_wire())
        except APIError as exc:
            # The object stays in storage unregistered; reconciliation happens out of band
            logger.warning(
                "upload_register_failed",
                file_key=object_key,
                status_code=exc.status_code,
                error=exc.message,
            )
            raise UploadFailedException(exc.message, stage="register", status_code=exc.status_code) from exc
        except (ValidationError, ValueError) as exc:
            logger.warning("upload_register_malformed", file_key=object_key, error=str(exc))
            raise UploadFailedException("Malformed register response", stage="register") from exc

        logger.info("upload_registered", file_key=object_key, file_id=info.id)
        return RegisteredFile(file_id=info.id, public_url=info.public_url)

    # ------------------------------------------------------------------
    # Owner file queries
    # ------------------------------------------------------------------
    async def get_files_by_owner(self, owner: OwnerReference) -> list[FileInfoDTO]:
        try:
            response = await self.get(
                f"{self.files_path}/by-owner",
                params={"ownerType": owner.owner_type.value, "ownerId": owner.owner_id},
            )
            body = response.json()
            if isinstance(body, list):
                return [FileInfoDTO.model_validate(item) for item in body]
            return FileInfoPageDTO.model_validate(body or {}).items
        except APIError as exc:
            logger.warning("file_query_failed", operation="list", status_code=exc.status_code, error=exc.message)
            raise FileQueryFailedException(exc.message, operation="list", status_code=exc.status_code) from exc
        except (ValidationError, ValueError) as exc:
            logger.warning("file_query_malformed", operation="list", error=str(exc))
            raise FileQueryFailedException("Malformed file list response", operation="list") from exc

    async def get_file(self, file_id: str) -> FileInfoDTO:
        try:
            return await self.get_typed(f"{self.files_path}/{file_id}", FileInfoDTO)
        except NotFoundError as exc:
            raise FileRecordNotFoundException(file_id) from exc
        except APIError as exc:
            logger.warning("file_query_failed", operation="get", file_id=file_id, status_code=exc.status_code)
            raise FileQueryFailedException(exc.message, operation="get", status_code=exc.status_code) from exc
        except (ValidationError, ValueError) as exc:
            logger.warning("file_query_malformed", operation="get", file_id=file_id, error=str(exc))
            raise FileQueryFailedException("Malformed file response", operation="get") from exc

    async def delete_file(self, file_id: str) -> None:
        try:
            await self.delete(f"{self.files_path}/{file_id}")
        except NotFoundError as exc:
            raise FileRecordNotFoundException(file_id) from exc
        except APIError as exc:
            logger.warning("file_query_failed", operation="delete", file_id=file_id, status_code=exc.status_code)
            raise FileQueryFailedException(exc.message, operation="delete", status_code=exc.status_code) from exc
        logger.info("file_deleted", file_id=file_id)
