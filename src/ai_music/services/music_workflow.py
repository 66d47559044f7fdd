"""
Music Workflow Manager for AI Music
Ties provider jobs, stored files and music records together
"""

import asyncio
import time
import uuid
from datetime import datetime
from typing import Iterator, Optional

from pydantic import BaseModel, Field
from sqlalchemy.ext.asyncio import AsyncSession

from ..catalog import MasteringIntensity, calculate_music_cost
from ..core.config import AIMusicSettings, get_settings
from ..core.jobs import JobStatus
from ..core.logging import workflow_logger
from ..core.result import Result
from ..database.models import GeneratedMusic, utcnow
from ..database.repositories.music_repository import MusicRepository
from ..database.schemas import (
    MasteringStatus,
    MusicCreate,
    MusicGenerationStatus,
    MusicUpdate,
)
from .generation import MusicGenerationRouter
from .mastering import MasteringInput, MasteringService
from .providers.base import MusicGenerationInput
from .storage import MusicStorage

# Typical generation time used for progress and remaining-time estimates
DEFAULT_EXPECTED_SECONDS = 300


class PollingPolicy(BaseModel):
    """Exponential backoff between status checks"""
    interval_seconds: float = Field(default=5, gt=0)
    backoff_factor: float = Field(default=1.5, ge=1)
    max_interval_seconds: float = Field(default=30, gt=0)
    max_attempts: int = Field(default=60, ge=1)

    @classmethod
    def from_settings(cls, settings: Optional[AIMusicSettings] = None) -> "PollingPolicy":
        settings = settings or get_settings()
        return cls(**settings.get_polling_config())

    def delay_for(self, attempt: int) -> float:
        """Seconds to wait after the zero-based ``attempt``"""
        return min(self.interval_seconds * self.backoff_factor ** attempt, self.max_interval_seconds)

    def delays(self) -> Iterator[float]:
        for attempt in range(self.max_attempts):
            yield self.delay_for(attempt)


def estimate_remaining_time(created_at: datetime, max_seconds: int = DEFAULT_EXPECTED_SECONDS) -> int:
    """Seconds left until a job started at ``created_at`` is expected to finish, never negative"""
    elapsed = (utcnow() - created_at).total_seconds()
    return max(0, int(max_seconds - elapsed))


def estimate_progress(created_at: datetime, max_seconds: int = DEFAULT_EXPECTED_SECONDS) -> int:
    elapsed = (utcnow() - created_at).total_seconds()
    return min(95, max(10, int(elapsed * 100 / max_seconds)))


class MusicWorkflowManager:
    """Manages a music record from submission through download and mastering"""

    def __init__(
        self,
        session: AsyncSession,
        router: MusicGenerationRouter,
        mastering: MasteringService,
        storage: MusicStorage
    ):
        self.repository = MusicRepository(session)
        self.router = router
        self.mastering = mastering
        self.storage = storage

    async def _load(self, music_id: uuid.UUID) -> Result[GeneratedMusic]:
        result = await self.repository.get_music_by_id(music_id)
        if not result.success:
            return result
        if result.data is None:
            return Result.err(f"Music record {music_id} not found")
        return result

    async def start_generation(
        self,
        params: MusicCreate,
        generation_input: MusicGenerationInput
    ) -> Result[GeneratedMusic]:
        """Create the record, reserve credits and submit the generation job.

        A rejected submission still returns the record, marked failed with the
        provider's message; only persistence errors produce ``Result.err``.
        """
        credits = calculate_music_cost(params.model, params.duration)
        created = await self.repository.create_music_record(
            params.model_copy(update={"credits_reserved": credits})
        )
        if not created.success:
            return created

        music = created.data
        workflow_logger.log_processing_start(
            operation="MusicGeneration",
            music_id=str(music.id),
            provider=params.provider,
            credits_reserved=credits
        )

        if generation_input.provider is None:
            generation_input = generation_input.model_copy(update={"provider": params.provider})

        result = await self.router.generate(generation_input)

        if result.success:
            update = MusicUpdate(
                status=MusicGenerationStatus.PROCESSING,
                job_id=result.job_id,
                progress=10
            )
        else:
            workflow_logger.log_processing_error(
                operation="MusicGeneration",
                error=result.error or "Generation failed",
                music_id=str(music.id)
            )
            update = MusicUpdate(
                status=MusicGenerationStatus.FAILED,
                error_message=result.error,
                credits_used=0
            )

        return await self.repository.update_music_record(music.id, update)

    async def refresh_status(self, music_id: uuid.UUID) -> Result[GeneratedMusic]:
        """Poll the provider once and fold the outcome into the record"""
        loaded = await self._load(music_id)
        if not loaded.success:
            return loaded

        music = loaded.data
        if music.is_terminal:
            return loaded

        if not music.job_id:
            return Result.err(f"Music record {music_id} has no generation job")

        result = await self.router.check_status(music.job_id, music.provider)

        if result.status == JobStatus.COMPLETED:
            stored = await self._complete_generation(music, result.audio_urls, result.clips)
        elif result.status == JobStatus.FAILED and not result.transient:
            stored = await self._fail_generation(music, result.error or "Generation failed")
        else:
            if result.transient:
                workflow_logger.logger.warning(
                    "Status check failed, will retry",
                    music_id=str(music.id),
                    error=result.error
                )
            return await self.repository.update_music_record(
                music.id,
                MusicUpdate(
                    status=MusicGenerationStatus.PROCESSING,
                    progress=estimate_progress(music.created_at)
                )
            )

        if stored.success and stored.data.is_terminal:
            self.router.release(music.job_id, music.provider)
        return stored

    async def _complete_generation(self, music: GeneratedMusic, audio_urls, clips) -> Result[GeneratedMusic]:
        """Mark the record completed, keeping a local copy when the download works.

        A failed download leaves ``local_path`` unset and the storage error in
        ``error_message``; the provider's ``audio_url`` is still recorded.
        """
        if not audio_urls:
            return await self._fail_generation(music, "Provider returned no audio")

        start_time = time.time()
        update = MusicUpdate(
            status=MusicGenerationStatus.COMPLETED,
            progress=100,
            audio_url=audio_urls[0],
            format="mp3",
            processing_time=(utcnow() - music.created_at).total_seconds(),
            credits_used=music.credits_reserved,
            completed_at=utcnow()
        )

        saved = await self.storage.download_and_save_music(audio_urls[0], music.user_id)
        if saved.success:
            update.local_path = saved.data.local_path
            update.file_size = saved.data.file_size
        else:
            workflow_logger.log_processing_error(
                operation="MusicDownload",
                error=saved.error,
                music_id=str(music.id)
            )
            update.error_message = saved.error

        clip = clips[0] if clips else None
        if clip is not None:
            update.clip_id = clip.id
            if clip.image_url:
                update.cover_image_url = clip.image_url
            if clip.duration is not None:
                update.actual_duration = clip.duration

        workflow_logger.log_processing_complete(
            operation="MusicGeneration",
            duration_ms=(time.time() - start_time) * 1000,
            music_id=str(music.id),
            local_path=update.local_path
        )
        return await self.repository.update_music_record(music.id, update)


    async def _fail_generation(self, music: GeneratedMusic, error: str) -> Result[GeneratedMusic]:
        workflow_logger.log_processing_error(
            operation="MusicGeneration",
            error=error,
            music_id=str(music.id)
        )
        return await self.repository.update_music_record(
            music.id,
            MusicUpdate(
                status=MusicGenerationStatus.FAILED,
                error_message=error,
                credits_used=0
            )
        )

    async def wait_for_completion(
        self,
        music_id: uuid.UUID,
        policy: Optional[PollingPolicy] = None
    ) -> Result[GeneratedMusic]:
        """Poll until the record is terminal or the policy runs out of attempts.

        Running out of attempts is not an error: the record is returned as it
        stands, still processing.
        """
        policy = policy or PollingPolicy.from_settings()
        result: Result[GeneratedMusic] = Result.err(f"Music record {music_id} was never checked")

        for attempt, delay in enumerate(policy.delays()):
            result = await self.refresh_status(music_id)
            if not result.success or result.data.is_terminal:
                return result

            if attempt + 1 < policy.max_attempts:
                await asyncio.sleep(delay)

        workflow_logger.logger.warning(
            "Gave up waiting for music generation",
            music_id=str(music_id),
            attempts=policy.max_attempts
        )
        return result

    async def start_mastering(
        self,
        music_id: uuid.UUID,
        intensity: MasteringIntensity = MasteringIntensity.MED,
        use_premium: bool = False,
        public_base_url: Optional[str] = None
    ) -> Result[GeneratedMusic]:
        """Submit a completed track for mastering.

        With ``public_base_url`` the stored copy is sent (the provider must be
        able to reach it); otherwise the provider's original audio URL is used.
        """
        loaded = await self._load(music_id)
        if not loaded.success:
            return loaded

        music = loaded.data
        if music.status != MusicGenerationStatus.COMPLETED.value:
            return Result.err("Only completed music can be mastered")
        if music.is_mastering_in_progress:
            return Result.err("Mastering is already in progress")

        if public_base_url and music.local_path:
            audio_url = public_base_url.rstrip("/") + self.storage.public_url_for(music.local_path)
        else:
            audio_url = music.audio_url

        if not audio_url:
            return Result.err("Music record has no audio to master")

        intensity = MasteringIntensity(intensity)
        workflow_logger.log_processing_start(
            operation="Mastering",
            music_id=str(music.id),
            intensity=intensity.value,
            premium=use_premium
        )

        result = await self.mastering.master_audio(
            MasteringInput(
                audio_url=audio_url,
                intensity=intensity,
                music_id=str(music.id),
                user_id=music.user_id
            ),
            use_premium=use_premium
        )

        if result.success:
            update = MusicUpdate(
                mastering_status=MasteringStatus.PROCESSING,
                mastering_job_id=result.job_id,
                mastering_provider=result.provider,
                mastering_intensity=intensity.value,
                mastering_cost=self.mastering.calculate_cost(intensity, result.provider == "landr")
            )
        else:
            workflow_logger.log_processing_error(
                operation="Mastering",
                error=result.error or "Mastering failed",
                music_id=str(music.id)
            )
            update = MusicUpdate(
                mastering_status=MasteringStatus.FAILED,
                mastering_provider=result.provider,
                error_message=result.error
            )

        return await self.repository.update_music_record(music.id, update)

    async def refresh_mastering(self, music_id: uuid.UUID) -> Result[GeneratedMusic]:
        """Poll the mastering job once, downloading the mastered file when ready"""
        loaded = await self._load(music_id)
        if not loaded.success:
            return loaded

        music = loaded.data
        if not music.is_mastering_in_progress or not music.mastering_job_id:
            return loaded

        provider = music.mastering_provider or "ai-mastering"
        result = await self.mastering.check_mastering_status(music.mastering_job_id, provider)

        if result.status == JobStatus.COMPLETED:
            if not result.mastered_url:
                return await self._fail_mastering(music, "Mastering provider returned no audio")

            saved = await self.storage.download_and_save_mastered_music(
                result.mastered_url,
                music.user_id,
                str(music.id)
            )
            if not saved.success:
                return await self._fail_mastering(music, saved.error)

            stored = await self.repository.update_music_record(
                music.id,
                MusicUpdate(
                    mastering_status=MasteringStatus.COMPLETED,
                    mastered_url=result.mastered_url,
                    mastered_local_path=saved.data.local_path,
                    mastered_at=utcnow()
                )
            )
            if stored.success:
                self.mastering.release(music.mastering_job_id, provider)
            return stored

        if result.status == JobStatus.FAILED and not result.transient:
            return await self._fail_mastering(music, result.error or "Mastering failed")

        return loaded

    async def _fail_mastering(self, music: GeneratedMusic, error: str) -> Result[GeneratedMusic]:
        workflow_logger.log_processing_error(operation="Mastering", error=error, music_id=str(music.id))
        stored = await self.repository.update_music_record(
            music.id,
            MusicUpdate(mastering_status=MasteringStatus.FAILED, error_message=error)
        )
        if stored.success and music.mastering_job_id:
            self.mastering.release(music.mastering_job_id, music.mastering_provider or "ai-mastering")
        return stored

    async def delete_music(self, music_id: uuid.UUID) -> Result[bool]:
        """Remove stored files, then the record"""
        loaded = await self._load(music_id)
        if not loaded.success:
            return Result.err(loaded.error)

        music = loaded.data
        for local_path in (music.local_path, music.mastered_local_path):
            if local_path:
                self.storage.delete_music(local_path)

        return await self.repository.delete_music_record(music.id)
