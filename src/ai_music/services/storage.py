"""
Music Storage Service
Downloads finished artifacts into the public music directory and manages the
files there
"""

import math
import time
import uuid
from contextlib import asynccontextmanager
from pathlib import Path
from typing import AsyncIterator, Optional

import httpx
from pydantic import BaseModel

from ..core.config import AIMusicSettings, get_settings
from ..core.logging import storage_logger
from ..core.result import Result


class MusicPath(BaseModel):
    local_path: str     # relative to the storage root
    public_url: str
    filename: str


class SavedFile(BaseModel):
    local_path: str
    public_url: str
    file_size: Optional[int] = None


def format_file_size(size_bytes: int) -> str:
    """Human readable size with up to two decimals, e.g. ``1.5 MB``"""
    if size_bytes <= 0:
        return "0 Bytes"

    units = ["Bytes", "KB", "MB", "GB"]
    index = min(int(math.floor(math.log(size_bytes, 1024))), len(units) - 1)
    value = round(size_bytes / (1024 ** index), 2)
    return f"{value:g} {units[index]}"


class MusicStorage:
    """Local file storage for generated, mastered and waveform files.

    Paths handed out and accepted by this class are relative to ``root``,
    which is what gets persisted on the music record.
    """

    def __init__(
        self,
        root: str = ".",
        music_dir: str = "public/generated-music",
        waveform_dir: str = "public/generated-music/waveforms",
        http_client: Optional[httpx.AsyncClient] = None,
        timeout: Optional[float] = None
    ):
        self.root = Path(root)
        self.music_dir = music_dir.strip("/")
        self.waveform_dir = waveform_dir.strip("/")
        self.timeout = timeout
        self._http_client = http_client

    @classmethod
    def from_settings(
        cls,
        settings: Optional[AIMusicSettings] = None,
        http_client: Optional[httpx.AsyncClient] = None
    ) -> "MusicStorage":
        settings = settings or get_settings()
        return cls(
            root=settings.STORAGE_ROOT,
            music_dir=settings.MUSIC_DIR,
            waveform_dir=settings.WAVEFORM_DIR,
            http_client=http_client,
            timeout=settings.PROVIDER_HTTP_TIMEOUT
        )

    def full_path(self, local_path: str) -> Path:
        return self.root / local_path

    @staticmethod
    def public_url_for(local_path: str) -> str:
        """Files under ``public/`` are served from the site root"""
        path = local_path.replace("\\", "/")
        if path.startswith("./"):
            path = path[2:]
        if path.startswith("public/"):
            path = path[len("public"):]
        if not path.startswith("/"):
            path = f"/{path}"
        return path

    def _ensure_directory(self, relative_dir: str) -> None:
        self.full_path(relative_dir).mkdir(parents=True, exist_ok=True)

    def _music_path(self, filename: str, directory: Optional[str] = None) -> MusicPath:
        local_path = f"{directory or self.music_dir}/{filename}"
        return MusicPath(
            local_path=local_path,
            public_url=self.public_url_for(local_path),
            filename=filename
        )

    def generate_music_path(self, user_id: str, format: str = "mp3") -> MusicPath:
        """Fresh collision-free path for a new download"""
        self._ensure_directory(self.music_dir)
        return self._music_path(f"{user_id}-{uuid.uuid4()}.{format}")

    def mastered_music_path(self, user_id: str, original_id: str, format: str = "mp3") -> MusicPath:
        # Keyed by record id: re-mastering the same record overwrites the file
        return self._music_path(f"{user_id}-{original_id}-mastered.{format}")

    def waveform_path(self, user_id: str, music_id: str) -> MusicPath:
        return self._music_path(f"{user_id}-{music_id}-waveform.png", self.waveform_dir)

    @asynccontextmanager
    async def _client(self) -> AsyncIterator[httpx.AsyncClient]:
        if self._http_client is not None:
            yield self._http_client
            return

        async with httpx.AsyncClient(
            timeout=httpx.Timeout(self.timeout),
            follow_redirects=True
        ) as client:
            yield client

    async def _download_to(self, url: str, target: MusicPath, label: str) -> Result[SavedFile]:
        start_time = time.time()
        try:
            async with self._client() as client:
                response = await client.get(url)
            if not response.is_success:
                raise IOError(f"Failed to download {label}: {response.status_code}")

            full_path = self.full_path(target.local_path)
            full_path.parent.mkdir(parents=True, exist_ok=True)
            full_path.write_bytes(response.content)
            file_size = full_path.stat().st_size

        except httpx.RequestError as e:
            storage_logger.log_storage_error(f"download_{label}", str(e), target.local_path)
            return Result.err(f"Failed to download {label}: {e}")
        except Exception as e:
            storage_logger.log_storage_error(f"download_{label}", str(e), target.local_path)
            return Result.err(str(e))

        storage_logger.log_file_saved(target.local_path, file_size, source_url=url)
        storage_logger.logger.debug(
            "Download finished",
            local_path=target.local_path,
            duration_ms=(time.time() - start_time) * 1000
        )
        return Result.ok(SavedFile(
            local_path=target.local_path,
            public_url=target.public_url,
            file_size=file_size
        ))

    async def download_and_save_music(
        self,
        audio_url: str,
        user_id: str,
        format: str = "mp3"
    ) -> Result[SavedFile]:
        """Download a generated track under a fresh random filename"""
        return await self._download_to(audio_url, self.generate_music_path(user_id, format), "audio")

    async def download_and_save_mastered_music(
        self,
        audio_url: str,
        user_id: str,
        original_id: str,
        format: str = "mp3"
    ) -> Result[SavedFile]:
        """Download a mastered track next to its original"""
        self._ensure_directory(self.music_dir)
        target = self.mastered_music_path(user_id, original_id, format)
        return await self._download_to(audio_url, target, "mastered audio")

    async def save_waveform_image(self, image_url: str, user_id: str, music_id: str) -> Result[SavedFile]:
        self._ensure_directory(self.waveform_dir)
        return await self._download_to(image_url, self.waveform_path(user_id, music_id), "waveform")

    def delete_music(self, local_path: str) -> bool:
        """Delete a stored file. Returns False when there was nothing to delete."""
        full_path = self.full_path(local_path)
        try:
            if not full_path.is_file():
                return False
            full_path.unlink()
        except OSError as e:
            storage_logger.log_storage_error("delete", str(e), local_path)
            return False

        storage_logger.log_file_deleted(local_path)
        return True

    def get_file_size(self, local_path: str) -> Optional[int]:
        full_path = self.full_path(local_path)
        try:
            return full_path.stat().st_size if full_path.is_file() else None
        except OSError:
            return None

    def file_exists(self, local_path: str) -> bool:
        return self.full_path(local_path).exists()

    def get_total_storage_size(self) -> int:
        """Total bytes of the files directly inside the music directory"""
        music_path = self.full_path(self.music_dir)
        if not music_path.is_dir():
            return 0
        return sum(entry.stat().st_size for entry in music_path.iterdir() if entry.is_file())

    def cleanup_old_music(self, days_old: int = 30) -> int:
        """Delete music files whose modification time is older than ``days_old`` days"""
        music_path = self.full_path(self.music_dir)
        if not music_path.is_dir():
            return 0

        cutoff = time.time() - days_old * 24 * 60 * 60
        deleted = 0
        for entry in music_path.iterdir():
            try:
                if entry.is_file() and entry.stat().st_mtime < cutoff:
                    entry.unlink()
                    deleted += 1
            except OSError as e:
                storage_logger.log_storage_error("cleanup", str(e), str(entry))

        storage_logger.log_cleanup_completed(deleted, days_old)
        return deleted

    format_file_size = staticmethod(format_file_size)
