"""
数据传输对象（DTO）- 上传客户端与后端之间的线上格式

后端使用 camelCase 字段；Python 侧使用 snake_case，通过 alias 映射。
"""
from datetime import datetime
from typing import Any, Optional

from pydantic import AliasChoices, BaseModel, ConfigDict, Field, field_validator

from domain.upload import OwnerType


class WireDTO(BaseModel):
    """Base DTO: camelCase on the wire, snake_case in code, unknown fields ignored."""

    model_config = ConfigDict(populate_by_name=True, extra="ignore")

    def to_wire(self) -> dict[str, Any]:
        return self.model_dump(by_alias=True, exclude_none=True, mode="json")


class PresignRequestDTO(WireDTO):
    """Presigned URL 请求"""
    file_name: str = Field(..., alias="fileName", min_length=1)
    file_size: int = Field(..., alias="fileSize", ge=0)
    mime_type: str = Field(..., alias="mimeType")
    owner_type: OwnerType = Field(..., alias="ownerType")
    owner_id: str = Field(..., alias="ownerId", min_length=1)


class PresignResponseDTO(WireDTO):
    """Presigned URL 响应；``fileUrl`` 为旧版字段名"""
    upload_url: str = Field(..., alias="uploadUrl", min_length=1)
    file_key: str = Field(..., alias="fileKey", min_length=1)
    public_url: Optional[str] = Field(
        default=None,
        validation_alias=AliasChoices("publicUrl", "fileUrl"),
        serialization_alias="publicUrl",
    )
    expires_in: Optional[int] = Field(default=None, alias="expiresIn")


class RegisterFileRequestDTO(WireDTO):
    """上传完成后的文件元数据登记请求"""
    file_key: str = Field(..., alias="fileKey", min_length=1)
    file_name: str = Field(..., alias="fileName", min_length=1)
    file_size: int = Field(..., alias="fileSize", ge=0)
    mime_type: str = Field(..., alias="mimeType")
    owner_type: OwnerType = Field(..., alias="ownerType")
    owner_id: str = Field(..., alias="ownerId", min_length=1)


class FileInfoDTO(WireDTO):
    """后端持久化的文件记录"""
    id: str
    file_key: Optional[str] = Field(default=None, alias="fileKey")
    file_name: Optional[str] = Field(default=None, alias="fileName")
    file_size: Optional[int] = Field(default=None, alias="fileSize")
    mime_type: Optional[str] = Field(default=None, alias="mimeType")
    public_url: Optional[str] = Field(default=None, alias="publicUrl")
    owner_type: Optional[str] = Field(default=None, alias="ownerType")
    owner_id: Optional[str] = Field(default=None, alias="ownerId")
    created_by_id: Optional[str] = Field(default=None, alias="createdById")
    created_at: Optional[datetime] = Field(default=None, alias="createdAt")

    @field_validator("id", "owner_id", "created_by_id", mode="before")
    @classmethod
    def _stringify_ids(cls, value):
        # Backends hand out numeric or UUID ids; keep them opaque strings
        if value is None or isinstance(value, str):
            return value
        return str(value)


class PageMetaDTO(WireDTO):
    page: int = 1
    size: int = 0
    total_elements: int = Field(default=0, alias="totalElements")
    total_pages: int = Field(default=0, alias="totalPages")


class FileInfoPageDTO(WireDTO):
    """分页文件列表"""
    items: list[FileInfoDTO] = Field(default_factory=list)
    meta: Optional[PageMetaDTO] = None
