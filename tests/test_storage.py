"""
Test suite for music file storage
Path generation, downloads and housekeeping in a temporary root
"""
import os
import time

import httpx
import pytest

from ai_music.services.storage import MusicStorage, format_file_size


@pytest.fixture
def storage(tmp_path):
    return MusicStorage(root=str(tmp_path))


class TestPaths:
    """Test generated paths and public URLs"""

    def test_generate_music_path(self, storage, tmp_path):
        path = storage.generate_music_path("user-1", "mp3")

        assert path.public_url.startswith("/generated-music/")
        assert path.filename.startswith("user-1-")
        assert path.filename.endswith(".mp3")
        assert path.local_path == f"public/generated-music/{path.filename}"
        assert (tmp_path / "public" / "generated-music").is_dir()

    def test_paths_are_unique(self, storage):
        assert storage.generate_music_path("u").filename != storage.generate_music_path("u").filename

    def test_mastered_and_waveform_paths_are_deterministic(self, storage):
        mastered = storage.mastered_music_path("user-1", "rec-9", "wav")
        waveform = storage.waveform_path("user-1", "rec-9")

        assert mastered.public_url == "/generated-music/user-1-rec-9-mastered.wav"
        assert waveform.public_url == "/generated-music/waveforms/user-1-rec-9-waveform.png"

    @pytest.mark.parametrize("local_path,expected", [
        ("./public/generated-music/a.mp3", "/generated-music/a.mp3"),
        ("public/generated-music/a.mp3", "/generated-music/a.mp3"),
        ("generated-music/a.mp3", "/generated-music/a.mp3"),
    ])
    def test_public_url_for(self, local_path, expected):
        assert MusicStorage.public_url_for(local_path) == expected


class TestDownloads:
    """Test downloading provider artifacts"""

    @pytest.mark.asyncio
    async def test_download_and_save_music(self, tmp_path, mock_http):
        client = mock_http(lambda request: httpx.Response(200, content=b"ID3" + b"\x00" * 97))
        storage = MusicStorage(root=str(tmp_path), http_client=client)

        result = await storage.download_and_save_music("https://cdn/a.mp3", "user-1")

        assert result.success
        assert result.data.file_size == 100
        assert (tmp_path / result.data.local_path).read_bytes().startswith(b"ID3")
        assert result.data.public_url.startswith("/generated-music/user-1-")

    @pytest.mark.asyncio
    async def test_download_http_error(self, tmp_path, mock_http):
        client = mock_http(lambda request: httpx.Response(404))
        storage = MusicStorage(root=str(tmp_path), http_client=client)

        result = await storage.download_and_save_music("https://cdn/missing.mp3", "user-1")

        assert not result.success
        assert result.error == "Failed to download audio: 404"

    @pytest.mark.asyncio
    async def test_mastered_download_overwrites(self, tmp_path, mock_http):
        bodies = iter([b"first", b"second!"])
        client = mock_http(lambda request: httpx.Response(200, content=next(bodies)))
        storage = MusicStorage(root=str(tmp_path), http_client=client)

        first = await storage.download_and_save_mastered_music("https://m/1", "user-1", "rec-1")
        second = await storage.download_and_save_mastered_music("https://m/2", "user-1", "rec-1")

        assert first.data.local_path == second.data.local_path
        assert (tmp_path / second.data.local_path).read_bytes() == b"second!"

    @pytest.mark.asyncio
    async def test_save_waveform_image(self, tmp_path, mock_http):
        client = mock_http(lambda request: httpx.Response(200, content=b"\x89PNG"))
        storage = MusicStorage(root=str(tmp_path), http_client=client)

        result = await storage.save_waveform_image("https://img/w.png", "user-1", "rec-1")

        assert result.success
        assert result.data.local_path.endswith("waveforms/user-1-rec-1-waveform.png")


class TestHousekeeping:
    """Test deletion, sizes and cleanup"""

    def _write(self, tmp_path, name, size):
        directory = tmp_path / "public" / "generated-music"
        directory.mkdir(parents=True, exist_ok=True)
        path = directory / name
        path.write_bytes(b"\x00" * size)
        return f"public/generated-music/{name}"

    def test_delete_music(self, storage, tmp_path):
        local_path = self._write(tmp_path, "a.mp3", 10)

        assert storage.delete_music(local_path) is True
        assert storage.delete_music(local_path) is False
        assert not storage.file_exists(local_path)

    def test_sizes(self, storage, tmp_path):
        local_path = self._write(tmp_path, "a.mp3", 10)
        self._write(tmp_path, "b.mp3", 30)

        assert storage.get_file_size(local_path) == 10
        assert storage.get_file_size("public/generated-music/none.mp3") is None
        assert storage.get_total_storage_size() == 40

    def test_cleanup_old_music(self, storage, tmp_path):
        old = self._write(tmp_path, "old.mp3", 5)
        fresh = self._write(tmp_path, "fresh.mp3", 5)
        forty_days_ago = time.time() - 40 * 24 * 60 * 60
        os.utime(tmp_path / old, (forty_days_ago, forty_days_ago))

        deleted = storage.cleanup_old_music(days_old=30)

        assert deleted == 1
        assert not storage.file_exists(old)
        assert storage.file_exists(fresh)

    def test_cleanup_without_directory(self, storage):
        assert storage.cleanup_old_music() == 0
        assert storage.get_total_storage_size() == 0

    @pytest.mark.parametrize("size,expected", [
        (0, "0 Bytes"),
        (512, "512 Bytes"),
        (1024, "1 KB"),
        (1536, "1.5 KB"),
        (5 * 1024 * 1024, "5 MB"),
        (3 * 1024 ** 3, "3 GB"),
    ])
    def test_format_file_size(self, size, expected):
        assert format_file_size(size) == expected
        assert MusicStorage.format_file_size(size) == expected
