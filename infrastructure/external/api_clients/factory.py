"""Composition root for the upload pipeline: wires settings into concrete clients."""
from __future__ import annotations

from typing import Optional

import httpx

from application.services.upload_service import FileUploadService
from application.validation import UploadConstraints
from core.config import Settings, settings as default_settings

from .files import FilesAPIClient
from .transfer import ObjectTransferClient


def create_files_client(
    cfg: Optional[Settings] = None,
    transport: Optional[httpx.AsyncBaseTransport] = None,
) -> FilesAPIClient:
    cfg = cfg or default_settings
    return FilesAPIClient(
        cfg.api.root_url,
        presign_path=cfg.upload.presign_path,
        register_path=cfg.upload.register_path,
        files_path=cfg.upload.files_path,
        timeout=cfg.api.timeout,
        auth_token=cfg.api.auth_token,
        verify_ssl=cfg.api.verify_ssl,
        debug=cfg.api.debug,
        transport=transport,
    )


def create_transfer_client(
    cfg: Optional[Settings] = None,
    transport: Optional[httpx.AsyncBaseTransport] = None,
) -> ObjectTransferClient:
    cfg = cfg or default_settings
    return ObjectTransferClient(
        chunk_size=cfg.upload.chunk_size,
        timeout=cfg.upload.transfer_timeout,
        verify_ssl=cfg.api.verify_ssl,
        transport=transport,
    )


def create_upload_service(
    cfg: Optional[Settings] = None,
    *,
    api_transport: Optional[httpx.AsyncBaseTransport] = None,
    storage_transport: Optional[httpx.AsyncBaseTransport] = None,
) -> FileUploadService:
    """Build a FileUploadService; one FilesAPIClient serves both presign and register."""
    cfg = cfg or default_settings
    files_client = create_files_client(cfg, api_transport)
    return FileUploadService(
        presigner=files_client,
        transfer=create_transfer_client(cfg, storage_transport),
        registrar=files_client,
        constraints=UploadConstraints(
            max_size=cfg.upload.max_size,
            allowed_types=tuple(cfg.upload.allowed_types),
        ),
    )
