"""
对象存储直传：把文件字节直接 PUT 到 presigned URL

字节不经过应用后端；不附带认证头与 JSON 包装。
"""
from __future__ import annotations

from typing import AsyncIterator, Optional

import httpx

from application.ports.upload import ProgressCallback
from core.logging_config import get_logger, redact_url
from domain.common.exceptions import UploadFailedException
from domain.upload import UploadFile, UploadTarget
from domain.upload.file import DEFAULT_CHUNK_SIZE

logger = get_logger(__name__)


class _ProgressReporter:
    """Turns a running byte count into non-decreasing integer percentages."""

    def __init__(self, total: int, callback: Optional[ProgressCallback]):
        self.total = total
        self.callback = callback
        self.sent = 0
        self.last = -1

    def advance(self, nbytes: int) -> None:
        self.sent += nbytes
        if self.total <= 0:
            return
        # 100 is held back until the store acknowledges the PUT
        self._emit(min(99, int(self.sent * 100 / self.total)))

    def complete(self) -> None:
        self._emit(100)

    def _emit(self, percent: int) -> None:
        if percent <= self.last:
            return
        self.last = percent
        if self.callback is not None:
            self.callback(percent)


class ObjectTransferClient:
    """PUTs raw bytes to a presigned URL, reporting transfer progress."""

    def __init__(
        self,
        *,
        chunk_size: int = DEFAULT_CHUNK_SIZE,
        timeout: Optional[float] = None,
        verify_ssl: bool = True,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ) -> None:
        if chunk_size <= 0:
            raise ValueError("chunk_size must be positive")
        self.chunk_size = chunk_size
        self.timeout = timeout
        self.verify_ssl = verify_ssl
        self._transport = transport
        self._client: Optional[httpx.AsyncClient] = None

    @property
    def client(self) -> httpx.AsyncClient:
        if self._client is None:
            kwargs: dict = {"verify": self.verify_ssl}
            if self.timeout is not None:
                kwargs["timeout"] = httpx.Timeout(self.timeout)
            if self._transport is not None:
                kwargs["transport"] = self._transport
            self._client = httpx.AsyncClient(**kwargs)
        return self._client

    async def aclose(self) -> None:
        """Close underlying HTTP client if created."""
        if self._client is not None:
            try:
                await self._client.aclose()
            finally:
                self._client = None

    async def __aenter__(self):
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb):
        await self.aclose()

    async def _body(self, file: UploadFile, reporter: _ProgressReporter) -> AsyncIterator[bytes]:
        async for chunk in file.iter_chunks(self.chunk_size):
            reporter.advance(len(chunk))
            yield chunk

    async def transfer(
        self,
        file: UploadFile,
        target: UploadTarget,
        on_progress: Optional[ProgressCallback] = None,
    ) -> None:
        reporter = _ProgressReporter(file.size, on_progress)
        # Explicit Content-Length keeps httpx from switching to chunked encoding,
        # which presigned PUT URLs reject.
        headers = {
            "Content-Type": file.mime_type,
            "Content-Length": str(file.size),
        }
        url_for_log = redact_url(target.upload_url)
        logger.info("upload_transfer_started", file_key=target.object_key, url=url_for_log, size=file.size)

        try:
            response = await self.client.put(
                target.upload_url,
                content=self._body(file, reporter),
                headers=headers,
            )
        except httpx.HTTPError as exc:
            logger.warning("upload_transfer_failed", file_key=target.object_key, url=url_for_log, error=str(exc))
            raise UploadFailedException(f"Upload failed: {exc}", stage="transfer") from exc
        except OSError as exc:
            logger.warning("upload_transfer_read_failed", file_key=target.object_key, error=str(exc))
            raise UploadFailedException(f"Upload failed: {exc}", stage="transfer") from exc

        if not response.is_success:
            logger.warning(
                "upload_transfer_rejected",
                file_key=target.object_key,
                url=url_for_log,
                status_code=response.status_code,
                body=response.text[:512],
            )
            raise UploadFailedException(
                f"Upload failed: {response.status_code}",
                stage="transfer",
                status_code=response.status_code,
            )

        reporter.complete()
        logger.info("upload_transfer_completed", file_key=target.object_key, size=reporter.sent)
