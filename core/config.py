"""
配置文件 - 项目配置管理
"""
from pydantic_settings import BaseSettings, SettingsConfigDict
from pydantic import BaseModel, Field, field_validator
from typing import Optional


# 默认支持的文件类型（与后端 presign 校验保持一致）
DEFAULT_ALLOWED_TYPES = [
    "image/jpeg",
    "image/png",
    "image/gif",
    "image/webp",
    "application/pdf",
    "application/msword",
    "application/vnd.openxmlformats-officedocument.wordprocessingml.document",
    "application/vnd.ms-excel",
    "application/vnd.openxmlformats-officedocument.spreadsheetml.sheet",
]


class ApiSettings(BaseModel):
    """Backend connection settings."""
    base_url: str = "http://localhost:3000/api"
    version: Optional[str] = "v1"
    auth_token: Optional[str] = None
    # None keeps httpx transport defaults
    timeout: Optional[float] = None
    verify_ssl: bool = True
    debug: bool = False

    @property
    def root_url(self) -> str:
        base = self.base_url.rstrip("/")
        if self.version:
            return f"{base}/{self.version.strip('/')}"
        return base


class UploadSettings(BaseModel):
    """Upload pipeline settings."""
    presign_path: str = "/files/presigned-url"
    register_path: str = "/files/register"
    files_path: str = "/files"
    max_size: int = 10 * 1024 * 1024  # 10MB
    allowed_types: list[str] = Field(default_factory=lambda: list(DEFAULT_ALLOWED_TYPES))
    chunk_size: int = 64 * 1024
    transfer_timeout: Optional[float] = None

    @field_validator("allowed_types", mode="before")
    @classmethod
    def _parse_allowed_types(cls, v):
        """允许 JSON 字符串或逗号分隔字符串两种格式。"""
        if isinstance(v, str):
            s = v.strip()
            if s.startswith("[") and s.endswith("]"):
                import json
                try:
                    arr = json.loads(s)
                    if isinstance(arr, list):
                        return arr
                except ValueError:
                    pass
            return [item.strip() for item in s.split(",") if item.strip()]
        return v

    @field_validator("max_size")
    @classmethod
    def _positive_max_size(cls, v: int) -> int:
        if v <= 0:
            raise ValueError("max_size must be positive")
        return v


class Settings(BaseSettings):
    """项目配置"""

    # 基础配置
    PROJECT_NAME: str = Field(default="Department CMS Upload Client")
    VERSION: str = Field(default="1.0.0")
    DEBUG: bool = Field(default=False)
    ENVIRONMENT: str = Field(default="development")

    # 分组配置：API/Upload 采用嵌套模型（API__BASE_URL、UPLOAD__MAX_SIZE 等）
    api: ApiSettings = Field(default_factory=ApiSettings)
    upload: UploadSettings = Field(default_factory=UploadSettings)

    # pydantic-settings v2 configuration
    model_config = SettingsConfigDict(
        env_file=".env",
        case_sensitive=False,
        extra="allow",
        env_nested_delimiter="__",
    )


settings = Settings()
