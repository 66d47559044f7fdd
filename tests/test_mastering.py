"""
Test suite for the mastering service
Provider selection, request payloads and status polling
"""
import json

import httpx
import pytest

from ai_music.catalog import MasteringIntensity
from ai_music.core.config import ProviderCredentials
from ai_music.core.jobs import JobStatus
from ai_music.services.mastering import MasteringInput, MasteringService

BASES = {"ai-mastering": "https://bakuage.test", "landr": "https://landr.test/v1"}


def _input(intensity=MasteringIntensity.MED):
    return MasteringInput(
        audio_url="https://example.com/generated-music/user-1-abc.mp3",
        intensity=intensity,
        music_id="music-1",
        user_id="user-1"
    )


class TestProviderSelection:
    """Test free vs premium mastering routing"""

    def test_default_is_ai_mastering(self, all_credentials):
        service = MasteringService(all_credentials)
        assert service.select_provider() == "ai-mastering"

    def test_premium_needs_landr_key(self, no_credentials, all_credentials):
        assert MasteringService(all_credentials).select_provider(use_premium=True) == "landr"
        assert MasteringService(no_credentials).select_provider(use_premium=True) == "ai-mastering"

    def test_cost(self):
        assert MasteringService.calculate_cost(MasteringIntensity.LO) == 2
        assert MasteringService.calculate_cost(MasteringIntensity.HI, use_premium=True) == 15


class TestMasteringService:
    """Test submissions and polls against mocked providers"""

    @pytest.mark.asyncio
    async def test_ai_mastering_works_without_key(self, no_credentials, mock_http):
        def handler(request):
            assert str(request.url) == "https://bakuage.test/masterings"
            assert "Authorization" not in request.headers
            body = json.loads(request.content)
            assert body["target_loudness"] == -14.0
            assert body["preserve_dynamics"] is True
            assert body["input_audio_url"].endswith("user-1-abc.mp3")
            return httpx.Response(200, json={"id": 42})

        service = MasteringService(no_credentials, http_client=mock_http(handler), base_urls=BASES)
        result = await service.master_audio(_input(MasteringIntensity.LO))

        assert result.success
        assert result.provider == "ai-mastering"
        assert result.job_id == "42"
        assert result.status == JobStatus.PROCESSING

    @pytest.mark.asyncio
    async def test_landr_premium_submission(self, all_credentials, mock_http):
        def handler(request):
            assert str(request.url) == "https://landr.test/v1/tracks"
            assert request.headers["Authorization"] == "Bearer landr-test-key"
            body = json.loads(request.content)
            assert body["intensity"] == "hi"
            assert body["format"] == "wav"
            return httpx.Response(201, json={"id": "trk-7"})

        service = MasteringService(all_credentials, http_client=mock_http(handler), base_urls=BASES)
        result = await service.master_audio(_input(MasteringIntensity.HI), use_premium=True)

        assert result.provider == "landr"
        assert result.job_id == "trk-7"
        assert result.estimated_time == 300

    @pytest.mark.asyncio
    async def test_rejected_submission(self, no_credentials, mock_http):
        client = mock_http(lambda request: httpx.Response(400, json={"message": "Unsupported audio"}))
        service = MasteringService(no_credentials, http_client=client, base_urls=BASES)

        result = await service.master_audio(_input())

        assert not result.success
        assert result.status == JobStatus.FAILED
        assert result.error == "Unsupported audio"

    @pytest.mark.asyncio
    async def test_completed_poll_returns_url_and_is_cached(self, no_credentials, mock_http):
        client = mock_http(lambda request: httpx.Response(200, json={
            "status": "succeeded",
            "output_audio_url": "https://bakuage.test/out/42.mp3"
        }))
        service = MasteringService(no_credentials, http_client=client, base_urls=BASES)

        first = await service.check_mastering_status("42")
        second = await service.check_mastering_status("42")

        assert first.status == JobStatus.COMPLETED
        assert first.mastered_url == "https://bakuage.test/out/42.mp3"
        assert second.mastered_url == first.mastered_url
        assert len(client.recorded) == 1

    @pytest.mark.asyncio
    async def test_poll_error_is_retried(self, no_credentials, mock_http):
        answers = [
            httpx.Response(503),
            httpx.Response(200, json={"status": "succeeded", "output_audio_url": "https://bakuage.test/out/42.mp3"}),
        ]
        client = mock_http(lambda request: answers.pop(0))
        service = MasteringService(no_credentials, http_client=client, base_urls=BASES)

        first = await service.check_mastering_status("42")
        second = await service.check_mastering_status("42")

        assert first.status == JobStatus.FAILED
        assert first.transient
        assert second.status == JobStatus.COMPLETED
        assert second.mastered_url == "https://bakuage.test/out/42.mp3"

    @pytest.mark.asyncio
    async def test_failed_poll(self, all_credentials, mock_http):
        client = mock_http(lambda request: httpx.Response(200, json={"status": "error", "error": "clipping"}))
        service = MasteringService(all_credentials, http_client=client, base_urls=BASES)

        result = await service.check_mastering_status("trk-7", "landr")

        assert result.status == JobStatus.FAILED
        assert result.error == "clipping"

    @pytest.mark.asyncio
    async def test_waiting_is_pending(self, no_credentials, mock_http):
        client = mock_http(lambda request: httpx.Response(200, json={"status": "waiting"}))
        service = MasteringService(no_credentials, http_client=client, base_urls=BASES)

        result = await service.check_mastering_status("42")

        assert result.success
        assert result.status == JobStatus.PENDING

    @pytest.mark.asyncio
    async def test_landr_poll_without_key(self, no_credentials, mock_http):
        client = mock_http(lambda request: httpx.Response(200, json={}))
        service = MasteringService(no_credentials, http_client=client, base_urls=BASES)

        result = await service.check_mastering_status("trk-7", "landr")

        assert result.status == JobStatus.FAILED
        assert "LANDR_API_KEY" in result.error
        assert client.recorded == []

    @pytest.mark.asyncio
    async def test_unknown_provider(self):
        service = MasteringService(ProviderCredentials())

        result = await service.check_mastering_status("1", "izotope")

        assert result.status == JobStatus.FAILED
        assert "izotope" in result.error
