"""Candidate file handed to the upload pipeline."""
from __future__ import annotations

import mimetypes
import os
from dataclasses import dataclass
from pathlib import Path
from typing import AsyncIterator, Optional, Union

import aiofiles

DEFAULT_CHUNK_SIZE = 64 * 1024


def guess_content_type(filename: str) -> str:
    ctype, _ = mimetypes.guess_type(filename)
    return ctype or "application/octet-stream"


@dataclass(frozen=True)
class UploadFile:
    """Name, size and declared MIME type plus a bytes or on-disk content source."""

    name: str
    size: int
    mime_type: str
    data: Optional[bytes] = None
    path: Optional[Path] = None

    def __post_init__(self) -> None:
        if (self.data is None) == (self.path is None):
            raise ValueError("UploadFile needs exactly one of data or path")
        if self.size < 0:
            raise ValueError("size must be >= 0")
        if self.data is not None and self.size != len(self.data):
            raise ValueError(f"size {self.size} does not match data length {len(self.data)}")

    @classmethod
    def from_bytes(cls, name: str, data: bytes, mime_type: Optional[str] = None) -> "UploadFile":
        return cls(
            name=name,
            size=len(data),
            mime_type=mime_type or guess_content_type(name),
            data=bytes(data),
        )

    @classmethod
    def from_path(
        cls,
        path: Union[str, os.PathLike],
        mime_type: Optional[str] = None,
        name: Optional[str] = None,
    ) -> "UploadFile":
        p = Path(path)
        size = p.stat().st_size
        fname = name or p.name
        return cls(
            name=fname,
            size=size,
            mime_type=mime_type or guess_content_type(fname),
            path=p,
        )

    async def iter_chunks(self, chunk_size: int = DEFAULT_CHUNK_SIZE) -> AsyncIterator[bytes]:
        if chunk_size <= 0:
            raise ValueError("chunk_size must be positive")
        if self.data is not None:
            for start in range(0, len(self.data), chunk_size):
                yield self.data[start:start + chunk_size]
            return
        async with aiofiles.open(self.path, "rb") as f:
            while True:
                chunk = await f.read(chunk_size)
                if not chunk:
                    break
                yield chunk
