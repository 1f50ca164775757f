"""
File storage collaborator for uploaded handout files.

Handouts reference their file by a relative path; the storage returns the
raw bytes on download.
"""

import os
from abc import ABC, abstractmethod

import aiofiles

from licenseprep.core.errors import InvalidInputError, StoredFileNotFoundError


class FileStorage(ABC):
    @abstractmethod
    async def read(self, path: str) -> bytes: ...

    @abstractmethod
    async def save(self, path: str, data: bytes) -> None: ...


class LocalFileStorage(FileStorage):
    """Files under a local upload directory."""

    def __init__(self, base_dir: str, max_size: int | None = None):
        self.base_dir = os.path.abspath(base_dir)
        self.max_size = max_size

    def _resolve(self, path: str) -> str:
        full_path = os.path.abspath(os.path.join(self.base_dir, path))
        if os.path.commonpath([full_path, self.base_dir]) != self.base_dir:
            raise InvalidInputError(f"Path escapes upload directory: {path}")
        return full_path

    async def read(self, path: str) -> bytes:
        full_path = self._resolve(path)
        if not os.path.isfile(full_path):
            raise StoredFileNotFoundError(path)
        async with aiofiles.open(full_path, "rb") as f:
            return await f.read()

    async def save(self, path: str, data: bytes) -> None:
        if self.max_size is not None and len(data) > self.max_size:
            raise InvalidInputError(
                f"File too large: {len(data)} bytes (limit {self.max_size})"
            )
        full_path = self._resolve(path)
        os.makedirs(os.path.dirname(full_path), exist_ok=True)
        async with aiofiles.open(full_path, "wb") as f:
            await f.write(data)
