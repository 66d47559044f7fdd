"""
Test suite for the music workflow manager
Generation, download, mastering and polling against in-memory SQLite
"""
import uuid
from datetime import timedelta
from unittest.mock import AsyncMock, MagicMock, call, patch

import httpx
import pytest

from ai_music.catalog import MasteringIntensity
from ai_music.core.jobs import JobStatus
from ai_music.database.models import utcnow
from ai_music.database.schemas import MusicGenerationStatus, MusicUpdate
from ai_music.services.generation import MusicGenerationRouter
from ai_music.services.mastering import MasteringService
from ai_music.services.music_workflow import (
    MusicWorkflowManager,
    PollingPolicy,
    estimate_remaining_time,
)
from ai_music.services.providers import GeneratedClip, MusicGenerationInput, MusicGenerationResult
from ai_music.services.storage import MusicStorage

pytestmark = pytest.mark.integration

SLEEP = "ai_music.services.music_workflow.asyncio.sleep"


def _status(status, **kwargs):
    return MusicGenerationResult(
        success=status != JobStatus.FAILED,
        provider="suno",
        status=status,
        job_id="task-1",
        **kwargs
    )


def _completed(audio_urls=("https://cdn.goapi/clip-a.mp3",)):
    clips = [
        GeneratedClip(id="clip-a", audio_url=url, image_url="https://cdn.goapi/clip-a.png", duration=118.4)
        for url in audio_urls
    ]
    return _status(JobStatus.COMPLETED, clips=clips, audio_urls=list(audio_urls))


@pytest.fixture
def router():
    router = MagicMock(spec=MusicGenerationRouter)
    router.generate = AsyncMock(return_value=_status(JobStatus.PROCESSING))
    router.check_status = AsyncMock(return_value=_status(JobStatus.PROCESSING))
    return router


def _file_server(request):
    if request.url.host == "missing.cdn":
        return httpx.Response(404)
    if request.url.host == "bakuage.test" and request.url.path.startswith("/masterings"):
        if request.method == "POST":
            return httpx.Response(200, json={"id": "m-1"})
        return httpx.Response(200, json={
            "status": "succeeded",
            "output_audio_url": "https://bakuage.test/out/m-1.mp3"
        })
    return httpx.Response(200, content=b"ID3" + b"\x00" * 61)


@pytest.fixture
def http_client(mock_http):
    return mock_http(_file_server)


@pytest.fixture
def manager(db_session, router, no_credentials, http_client, tmp_path):
    mastering = MasteringService(
        no_credentials,
        http_client=http_client,
        base_urls={"ai-mastering": "https://bakuage.test"}
    )
    storage = MusicStorage(root=str(tmp_path), http_client=http_client)
    return MusicWorkflowManager(db_session, router, mastering, storage)


async def _started(manager, music_params, **overrides):
    result = await manager.start_generation(music_params(**overrides), MusicGenerationInput(prompt="synthwave"))
    assert result.success, result.error
    return result.data


class TestStartGeneration:
    """Test record creation and submission"""

    @pytest.mark.asyncio
    async def test_submission_marks_processing(self, manager, router, music_params):
        music = await _started(manager, music_params)

        assert music.status == "processing"
        assert music.job_id == "task-1"
        assert music.credits_reserved == 12
        sent = router.generate.call_args.args[0]
        assert sent.provider == "suno"

    @pytest.mark.asyncio
    async def test_rejected_submission_marks_failed(self, manager, router, music_params):
        router.generate.return_value = MusicGenerationResult.failure("suno", "Insufficient credits")

        music = await _started(manager, music_params)

        assert music.status == "failed"
        assert music.error_message == "Insufficient credits"
        assert music.credits_used == 0


class TestRefreshStatus:
    """Test folding provider status into the record"""

    @pytest.mark.asyncio
    async def test_completion_downloads_audio(self, manager, router, music_params, tmp_path):
        music = await _started(manager, music_params)
        router.check_status.return_value = _completed()

        result = await manager.refresh_status(music.id)

        record = result.data
        assert record.status == "completed"
        assert record.progress == 100
        assert record.audio_url == "https://cdn.goapi/clip-a.mp3"
        assert record.local_path.startswith("public/generated-music/user-1-")
        assert (tmp_path / record.local_path).is_file()
        assert record.file_size == 64
        assert record.clip_id == "clip-a"
        assert record.cover_image_url == "https://cdn.goapi/clip-a.png"
        assert record.actual_duration == pytest.approx(118.4)
        assert record.credits_used == record.credits_reserved
        assert record.processing_time >= 0
        assert record.completed_at is not None
        router.check_status.assert_awaited_once_with("task-1", "suno")
        router.release.assert_called_once_with("task-1", "suno")

    @pytest.mark.asyncio
    async def test_completion_without_audio_fails(self, manager, router, music_params):
        music = await _started(manager, music_params)
        router.check_status.return_value = _completed(audio_urls=())

        result = await manager.refresh_status(music.id)

        assert result.data.status == "failed"
        assert result.data.error_message == "Provider returned no audio"

    @pytest.mark.asyncio
    async def test_download_failure_keeps_remote_audio(self, manager, router, music_params):
        music = await _started(manager, music_params)
        router.check_status.return_value = _completed(audio_urls=("https://missing.cdn/a.mp3",))

        result = await manager.refresh_status(music.id)

        record = result.data
        assert record.status == "completed"
        assert record.audio_url == "https://missing.cdn/a.mp3"
        assert record.local_path is None
        assert record.clip_id == "clip-a"
        assert record.cover_image_url == "https://cdn.goapi/clip-a.png"
        assert record.error_message == "Failed to download audio: 404"
        assert record.credits_used == record.credits_reserved

    @pytest.mark.asyncio
    async def test_provider_failure(self, manager, router, music_params):
        music = await _started(manager, music_params)
        router.check_status.return_value = MusicGenerationResult.failure("suno", "Content policy violation", "task-1")

        result = await manager.refresh_status(music.id)

        assert result.data.status == "failed"
        assert result.data.error_message == "Content policy violation"
        assert result.data.credits_used == 0

    @pytest.mark.asyncio
    async def test_poll_error_keeps_processing(self, manager, router, music_params):
        music = await _started(manager, music_params)
        poll_error = MusicGenerationResult.failure("suno", "Failed to check status: 502", "task-1")
        poll_error.transient = True
        router.check_status.return_value = poll_error

        result = await manager.refresh_status(music.id)

        assert result.data.status == "processing"
        assert result.data.error_message is None
        router.release.assert_not_called()

    @pytest.mark.asyncio
    async def test_still_processing_updates_progress(self, manager, music_params):
        music = await _started(manager, music_params)

        result = await manager.refresh_status(music.id)

        assert result.data.status == "processing"
        assert 10 <= result.data.progress <= 95

    @pytest.mark.asyncio
    async def test_terminal_record_is_not_polled(self, manager, router, music_params):
        music = await _started(manager, music_params)
        await manager.repository.update_music_record(
            music.id, MusicUpdate(status=MusicGenerationStatus.CANCELLED)
        )

        result = await manager.refresh_status(music.id)

        assert result.data.status == "cancelled"
        router.check_status.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_unknown_record(self, manager):
        result = await manager.refresh_status(uuid.uuid4())

        assert not result.success
        assert "not found" in result.error


class TestPolling:
    """Test wait_for_completion and the polling policy"""

    def test_backoff_delays(self):
        policy = PollingPolicy(max_attempts=7)

        assert list(policy.delays()) == [5, 7.5, 11.25, 16.875, 25.3125, 30, 30]

    def test_policy_from_settings(self):
        from ai_music.core.config import AIMusicSettings

        policy = PollingPolicy.from_settings(AIMusicSettings(_env_file=None, POLL_MAX_ATTEMPTS=3))

        assert policy.max_attempts == 3
        assert policy.interval_seconds == 5

    @pytest.mark.asyncio
    async def test_waits_until_completed(self, manager, router, music_params):
        music = await _started(manager, music_params)
        router.check_status.side_effect = [
            _status(JobStatus.PENDING),
            _status(JobStatus.PROCESSING),
            _completed(),
        ]

        with patch(SLEEP, new_callable=AsyncMock) as sleep:
            result = await manager.wait_for_completion(music.id, PollingPolicy())

        assert result.data.status == "completed"
        assert sleep.await_args_list == [call(5), call(7.5)]

    @pytest.mark.asyncio
    async def test_gives_up_after_max_attempts(self, manager, router, music_params):
        music = await _started(manager, music_params)

        with patch(SLEEP, new_callable=AsyncMock) as sleep:
            result = await manager.wait_for_completion(music.id, PollingPolicy(max_attempts=2))

        assert result.success
        assert result.data.status == "processing"
        assert router.check_status.await_count == 2
        assert sleep.await_count == 1

    def test_estimate_remaining_time(self):
        assert estimate_remaining_time(utcnow() - timedelta(seconds=100)) in (199, 200)
        assert estimate_remaining_time(utcnow() - timedelta(seconds=1000)) == 0


class TestMastering:
    """Test mastering of completed tracks"""

    async def _completed_record(self, manager, router, music_params):
        music = await _started(manager, music_params)
        router.check_status.return_value = _completed()
        return (await manager.refresh_status(music.id)).data

    @pytest.mark.asyncio
    async def test_requires_completed_music(self, manager, music_params):
        music = await _started(manager, music_params)

        result = await manager.start_mastering(music.id)

        assert not result.success
        assert result.error == "Only completed music can be mastered"

    @pytest.mark.asyncio
    async def test_start_and_finish_mastering(self, manager, router, music_params, http_client):
        music = await self._completed_record(manager, router, music_params)

        started = await manager.start_mastering(
            music.id,
            MasteringIntensity.MED,
            public_base_url="https://app.example.com/"
        )

        assert started.data.mastering_status == "processing"
        assert started.data.mastering_provider == "ai-mastering"
        assert started.data.mastering_job_id == "m-1"
        assert started.data.mastering_cost == 3

        submitted = [r for r in http_client.recorded if r.method == "POST"][-1]
        assert b"https://app.example.com/generated-music/user-1-" in submitted.content

        again = await manager.start_mastering(music.id)
        assert again.error == "Mastering is already in progress"

        finished = await manager.refresh_mastering(music.id)

        assert finished.data.mastering_status == "completed"
        assert finished.data.mastered_url == "https://bakuage.test/out/m-1.mp3"
        assert finished.data.mastered_local_path.endswith(f"user-1-{music.id}-mastered.mp3")
        assert finished.data.mastered_at is not None


    @pytest.mark.asyncio
    async def test_premium_without_landr_key_costs_standard_price(self, manager, router, music_params):
        music = await self._completed_record(manager, router, music_params)

        started = await manager.start_mastering(music.id, MasteringIntensity.MED, use_premium=True)

        assert started.data.mastering_provider == "ai-mastering"
        assert started.data.mastering_cost == 3

    @pytest.mark.asyncio
    async def test_finished_mastering_is_released(self, manager, router, music_params):
        music = await self._completed_record(manager, router, music_params)
        await manager.start_mastering(music.id)

        await manager.refresh_mastering(music.id)

        assert len(manager.mastering.tracker) == 0


class TestDeleteMusic:
    """Test removing a track and its files"""

    @pytest.mark.asyncio
    async def test_delete_removes_files_and_record(self, manager, router, music_params, tmp_path):
        music = await _started(manager, music_params)
        router.check_status.return_value = _completed()
        record = (await manager.refresh_status(music.id)).data

        result = await manager.delete_music(record.id)

        assert result.success
        assert not (tmp_path / record.local_path).exists()
        assert (await manager.repository.get_music_by_id(record.id)).data is None
