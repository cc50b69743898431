"""
API客户端模块

提供上传流水线的 HTTP 实现：后端文件 API（presign / register）与对象存储直传
"""
from .base import BaseAPIClient, APIResponse, APIError, NotFoundError
from .files import FilesAPIClient
from .transfer import ObjectTransferClient
from .factory import create_files_client, create_transfer_client, create_upload_service

__all__ = [
    "BaseAPIClient",
    "APIResponse",
    "APIError",
    "NotFoundError",
    "FilesAPIClient",
    "ObjectTransferClient",
    "create_files_client",
    "create_transfer_client",
    "create_upload_service",
]
