"""
FileStore service for the Import/Export Orchestrator

Keeps uploaded source files, generated export files and error reports on
local disk. Expiry is not tracked here: the history ledger records
``expires_at`` and the cleanup sweep deletes the linked files.
"""

from datetime import timedelta
from pathlib import Path, PurePosixPath
from typing import Optional, Union

import aiofiles
import aiofiles.os

from ..utils.ids import generate_id
from ..utils.logger import get_logger, set_log_context
from ..core.exceptions import FileStoreError


class FileStore:
    """
    Blob storage addressed by locator.

    A locator is ``{unique id}_{original name}``, optionally below a
    namespace directory (``ErrorReports/{id}.xlsx``).
    """

    def __init__(self, root: Union[str, Path] = "ImportExportFiles"):
        self.root = Path(root)
        self.root.mkdir(parents=True, exist_ok=True)

        self.logger = get_logger(__name__)
        set_log_context(self.logger, component="file_store")

    async def store(self, file_name: str, data: bytes, expires_in: Optional[timedelta] = None) -> str:
        """
        Write ``data`` under a collision-free locator derived from ``file_name``.

        Args:
            file_name: Original file name, kept as the locator suffix
            data: File content
            expires_in: Retention hint; callers record it on the history row

        Returns:
            Locator for later retrieval
        """
        safe_name = PurePosixPath(file_name.replace("\\", "/")).name or "file"
        locator = f"{generate_id()}_{safe_name}"
        await self._write(locator, data)

        self.logger.debug("File stored", extra={
            "locator": locator,
            "size_bytes": len(data),
            "expires_in_seconds": expires_in.total_seconds() if expires_in else None
        })
        return locator

    async def store_named(self, namespace: str, file_name: str, data: bytes) -> str:
        """Write ``data`` at an exact name inside ``namespace``."""
        locator = f"{namespace}/{file_name}"
        await self._write(locator, data)
        return locator

    async def retrieve(self, locator: str) -> Optional[bytes]:
        """Content for ``locator``, or None when missing."""
        path = self._resolve(locator)
        if path is None or not await aiofiles.os.path.isfile(path):
            return None
        try:
            async with aiofiles.open(path, "rb") as handle:
                return await handle.read()
        except OSError as e:
            raise FileStoreError("retrieve", str(e), locator)

    async def delete(self, locator: str) -> bool:
        """Remove a file; returns False when it was already gone."""
        path = self._resolve(locator)
        if path is None or not await aiofiles.os.path.isfile(path):
            return False
        try:
            await aiofiles.os.remove(path)
        except FileNotFoundError:
            return False
        except OSError as e:
            raise FileStoreError("delete", str(e), locator)

        self.logger.debug("File deleted", extra={"locator": locator})
        return True

    async def exists(self, locator: str) -> bool:
        path = self._resolve(locator)
        return path is not None and await aiofiles.os.path.isfile(path)

    async def _write(self, locator: str, data: bytes) -> None:
        path = self._resolve(locator)
        if path is None:
            raise FileStoreError("store", "invalid locator", locator)
        try:
            path.parent.mkdir(parents=True, exist_ok=True)
            async with aiofiles.open(path, "wb") as handle:
                await handle.write(data)
        except OSError as e:
            raise FileStoreError("store", str(e), locator)

    def _resolve(self, locator: str) -> Optional[Path]:
        """Map a locator to a path inside the store root; None if it escapes."""
        if not locator:
            return None
        parts = PurePosixPath(locator.replace("\\", "/")).parts
        if not parts or parts[0] == "/" or ".." in parts:
            return None
        return self.root.joinpath(*parts)
