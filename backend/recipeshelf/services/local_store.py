"""
RecipeShelf Backend: Local Filesystem Object Store
===================================================

What:  ObjectStore backed by a directory on disk.
How:   `/objects/<key>` maps to `<storage_root>/<key>`. Metadata comes from
       stat() and the file extension; bytes are read with aiofiles so a slow
       disk never blocks the event loop.
Who:   Default backend for development and the test suite.

Directory Structure:
    storage/
    └── uploads/
        ├── 6f1c...e2.jpg
        └── 9a0b...41.pdf
"""

import logging
import mimetypes
from pathlib import Path
from typing import AsyncIterator, Optional

import aiofiles
import aiofiles.os

from recipeshelf.config import settings
from recipeshelf.exceptions import ObjectNotFoundError, UpstreamFailureError
from recipeshelf.schemas.media import ObjectMetadata
from recipeshelf.services.object_store import ObjectStore, object_key

logger = logging.getLogger(__name__)


class LocalObjectStore(ObjectStore):
    """Serves originals from `storage_root`."""

    def __init__(self, storage_root: Optional[str] = None, chunk_size: Optional[int] = None):
        super().__init__(chunk_size=chunk_size)
        self.storage_root = Path(storage_root or settings.storage_root).resolve()
        self.storage_root.mkdir(parents=True, exist_ok=True)
        logger.info("LocalObjectStore initialized with storage_root=%s", self.storage_root)

    @property
    def backend_name(self) -> str:
        return "local"

    def _resolve(self, object_path: str) -> Path:
        key = object_key(object_path)
        full_path = (self.storage_root / key).resolve()

        # Symlinks inside the root must not lead outside it
        if not full_path.is_relative_to(self.storage_root):
            raise ObjectNotFoundError(object_path, context={"reason": "outside storage root"})
        return full_path

    async def fetch_metadata(self, object_path: str) -> ObjectMetadata:
        path = self._resolve(object_path)
        try:
            stat = await aiofiles.os.stat(path)
        except FileNotFoundError:
            raise ObjectNotFoundError(object_path)
        except OSError as e:
            logger.error("stat failed for %s: %s", path, str(e))
            raise UpstreamFailureError(context={"object_path": object_path, "os_error": str(e)})

        if not path.is_file():
            raise ObjectNotFoundError(object_path, context={"reason": "not a file"})

        content_type, _ = mimetypes.guess_type(path.name)
        return ObjectMetadata(
            content_type=content_type or "application/octet-stream",
            size_bytes=stat.st_size,
        )

    async def open_read_stream(self, object_path: str) -> AsyncIterator[bytes]:
        path = self._resolve(object_path)
        try:
            async with aiofiles.open(path, "rb") as f:
                while True:
                    chunk = await f.read(self.chunk_size)
                    if not chunk:
                        break
                    yield chunk
        except FileNotFoundError:
            raise ObjectNotFoundError(object_path)
        except OSError as e:
            logger.error("Read failed for %s: %s", path, str(e))
            raise UpstreamFailureError(context={"object_path": object_path, "os_error": str(e)})

    async def health_check(self) -> bool:
        return await aiofiles.os.path.isdir(self.storage_root)
