"""Photo sources: the folder that glasses photos sync into.

File system access is blocking, so every call runs in a worker thread.
"""

from __future__ import annotations

import asyncio
import logging
import os
from pathlib import Path
from typing import List, Optional, Protocol

from PIL import Image, ImageOps

from models.session_models import AssetRef

LOGGER = logging.getLogger(__name__)
IMAGE_EXTENSIONS = {".jpg", ".jpeg", ".png", ".heic", ".webp", ".bmp"}


class PhotoLibrary(Protocol):
    async def request_access(self) -> bool: ...

    async def fetch_new_assets(self, since: float) -> List[AssetRef]: ...

    async def load_image(self, asset: AssetRef) -> Optional[Image.Image]: ...


class DirectoryPhotoLibrary:
    """Treat image files in a synced folder as the photo library.

    Args:
        root: Folder the glasses companion app syncs photos into.
        extensions: File suffixes that count as photos.
    """

    def __init__(self, root: Optional[Path | str], extensions: Optional[set] = None) -> None:
        self.root = Path(root).expanduser() if root else None
        self.extensions = {ext.lower() for ext in (extensions or IMAGE_EXTENSIONS)}

    async def request_access(self) -> bool:
        """Return True when the sync folder exists and is readable."""
        if self.root is None:
            return False
        return await asyncio.to_thread(self._readable)

    def _readable(self) -> bool:
        return self.root.is_dir() and os.access(self.root, os.R_OK | os.X_OK)

    async def fetch_new_assets(self, since: float) -> List[AssetRef]:
        """Return photos created at or after ``since``, oldest first."""
        if self.root is None:
            return []
        return await asyncio.to_thread(self._scan, since)

    def _scan(self, since: float) -> List[AssetRef]:
        assets: List[AssetRef] = []
        with os.scandir(self.root) as entries:
            for entry in entries:
                if not entry.is_file() or Path(entry.name).suffix.lower() not in self.extensions:
                    continue
                stat = entry.stat()
                if stat.st_mtime < since:
                    continue
                assets.append(AssetRef(asset_id=entry.name, created_at=stat.st_mtime, location=entry.path))
        assets.sort(key=lambda asset: (asset.created_at, asset.asset_id))
        return assets

    async def load_image(self, asset: AssetRef) -> Optional[Image.Image]:
        """Load a photo, or return None if it is missing or unreadable."""
        path = Path(asset.location) if asset.location else (self.root / asset.asset_id if self.root else None)
        if path is None:
            return None
        try:
            return await asyncio.to_thread(self._open, path)
        except (OSError, ValueError) as exc:
            LOGGER.warning("Could not load photo %s: %s", asset.asset_id, exc)
            return None

    @staticmethod
    def _open(path: Path) -> Image.Image:
        with Image.open(path) as src:
            src.load()
            # Phone photos carry rotation in EXIF.
            return ImageOps.exif_transpose(src).convert("RGB")
