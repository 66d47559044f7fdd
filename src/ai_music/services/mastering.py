"""
AI Mastering Service
Second async stage after generation: AI Mastering (Bakuage) by default,
LANDR for premium requests
"""

from abc import ABC, abstractmethod
from contextlib import asynccontextmanager
from functools import lru_cache
from typing import Any, AsyncIterator, Dict, Optional

import httpx
from pydantic import BaseModel, Field

from ..catalog import (
    MasteringIntensity,
    calculate_mastering_cost,
    get_target_loudness,
)
from ..core.config import AIMusicSettings, ProviderCredentials, get_settings
from ..core.jobs import JobStateTracker, JobStatus, StatusTable, build_status_table, normalize_status
from ..core.logging import provider_logger
from .providers.base import ProviderError, extract_error_message, first_text

AI_MASTERING_STATUS_TABLE = build_status_table(
    completed=("succeeded", "completed"),
    failed=("failed", "error"),
    pending=("pending", "waiting", "queued"),
    processing=("processing", "running"),
)

LANDR_STATUS_TABLE = build_status_table(
    completed=("completed", "finished"),
    failed=("failed", "error"),
    pending=("pending", "queued"),
    processing=("processing",),
)


class MasteringInput(BaseModel):
    audio_url: str = Field(..., description="Publicly reachable URL of the track to master")
    intensity: MasteringIntensity = MasteringIntensity.MED
    music_id: str
    user_id: str


class MasteringResult(BaseModel):
    success: bool
    provider: str
    status: JobStatus
    job_id: Optional[str] = None
    mastered_url: Optional[str] = None
    error: Optional[str] = None
    estimated_time: Optional[int] = None
    # The poll itself failed (HTTP or network error); says nothing about the job
    transient: bool = False

    @classmethod
    def failure(cls, provider: str, error: str, job_id: Optional[str] = None) -> "MasteringResult":
        return cls(success=False, provider=provider, status=JobStatus.FAILED, job_id=job_id, error=error)


class MasteringAdapter(ABC):
    """One mastering provider: create a job, then poll it"""

    name: str = ""
    display_name: str = ""
    api_key_env: str = ""
    requires_key: bool = True
    status_table: StatusTable = {}
    estimated_time: int = 120
    jobs_path: str = ""
    output_field: str = ""
    error_field: str = ""

    def __init__(
        self,
        api_key: Optional[str],
        base_url: str,
        http_client: Optional[httpx.AsyncClient] = None,
        timeout: Optional[float] = None
    ):
        self.api_key = api_key
        self.base_url = base_url.rstrip("/")
        self.timeout = timeout
        self._http_client = http_client

    @property
    def is_configured(self) -> bool:
        return bool(self.api_key and self.api_key.strip())

    @property
    def is_available(self) -> bool:
        return self.is_configured or not self.requires_key

    @abstractmethod
    def build_payload(self, input: MasteringInput) -> Dict[str, Any]:
        """Provider request body"""

    def headers(self) -> Dict[str, str]:
        headers = {"Content-Type": "application/json"}
        if self.is_configured:
            headers["Authorization"] = f"Bearer {self.api_key}"
        return headers

    @asynccontextmanager
    async def _client(self) -> AsyncIterator[httpx.AsyncClient]:
        if self._http_client is not None:
            yield self._http_client
            return

        async with httpx.AsyncClient(timeout=httpx.Timeout(self.timeout)) as client:
            yield client

    def missing_key_result(self, job_id: Optional[str] = None) -> MasteringResult:
        return MasteringResult.failure(self.name, f"{self.api_key_env} is not configured", job_id=job_id)

    async def submit(self, input: MasteringInput) -> MasteringResult:
        if not self.is_available:
            return self.missing_key_result()

        try:
            async with self._client() as client:
                response = await client.post(
                    f"{self.base_url}/{self.jobs_path}",
                    json=self.build_payload(input),
                    headers=self.headers()
                )
                if not response.is_success:
                    raise ProviderError(extract_error_message(
                        response, f"{self.display_name} request failed", ("message", "error")
                    ))

                job_id = response.json().get("id")
                if not job_id:
                    raise ProviderError(f"{self.display_name} response did not include a job id")
        except ProviderError as e:
            return self._failed("master", str(e))
        except httpx.RequestError as e:
            return self._failed("master", f"Failed to reach {self.display_name}: {e}")
        except Exception as e:
            return self._failed("master", str(e))

        provider_logger.log_job_submitted(
            provider=self.name,
            job_id=str(job_id),
            operation="master",
            music_id=input.music_id,
            intensity=input.intensity.value
        )
        return MasteringResult(
            success=True,
            provider=self.name,
            status=JobStatus.PROCESSING,
            job_id=str(job_id),
            estimated_time=self.estimated_time
        )

    async def check_status(self, job_id: str) -> MasteringResult:
        if not self.is_available:
            return self.missing_key_result(job_id)

        try:
            async with self._client() as client:
                response = await client.get(
                    f"{self.base_url}/{self.jobs_path}/{job_id}",
                    headers=self.headers()
                )
            if not response.is_success:
                raise ProviderError(f"Failed to check {self.display_name} status: {response.status_code}")
            data = response.json()
        except ProviderError as e:
            return self._failed("status", str(e), job_id, transient=True)
        except httpx.RequestError as e:
            return self._failed("status", f"Failed to reach {self.display_name}: {e}", job_id, transient=True)
        except Exception as e:
            return self._failed("status", str(e), job_id, transient=True)

        raw_status = data.get("status")
        status = normalize_status(raw_status, self.status_table)
        provider_logger.log_status_checked(self.name, job_id, raw_status, status.value)

        if status == JobStatus.COMPLETED:
            return MasteringResult(
                success=True,
                provider=self.name,
                status=status,
                job_id=job_id,
                mastered_url=data.get(self.output_field)
            )

        if status == JobStatus.FAILED:
            return MasteringResult.failure(
                self.name,
                first_text(data, self.error_field, default="Mastering failed"),
                job_id=job_id
            )

        return MasteringResult(success=True, provider=self.name, status=status, job_id=job_id)

    def _failed(
        self,
        operation: str,
        error: str,
        job_id: Optional[str] = None,
        transient: bool = False
    ) -> MasteringResult:
        provider_logger.log_provider_error(self.name, operation, error, job_id=job_id)
        result = MasteringResult.failure(self.name, error, job_id=job_id)
        result.transient = transient
        return result


class AIMasteringAdapter(MasteringAdapter):
    """AI Mastering (Bakuage). Works without a key; a key enables better quality."""

    name = "ai-mastering"
    display_name = "AI Mastering"
    api_key_env = "AI_MASTERING_API_KEY"
    requires_key = False
    status_table = AI_MASTERING_STATUS_TABLE
    estimated_time = 120
    jobs_path = "masterings"
    output_field = "output_audio_url"
    error_field = "error_message"

    def build_payload(self, input: MasteringInput) -> Dict[str, Any]:
        return {
            "input_audio_url": input.audio_url,
            "target_loudness": get_target_loudness(input.intensity),
            "mastering": True,
            "preserve_dynamics": input.intensity == MasteringIntensity.LO,
            "bass_preservation": True,
        }


class LandrAdapter(MasteringAdapter):
    """LANDR premium mastering"""

    name = "landr"
    display_name = "LANDR"
    api_key_env = "LANDR_API_KEY"
    requires_key = True
    status_table = LANDR_STATUS_TABLE
    estimated_time = 300
    jobs_path = "tracks"
    output_field = "download_url"
    error_field = "error"

    def build_payload(self, input: MasteringInput) -> Dict[str, Any]:
        return {
            "source_url": input.audio_url,
            "intensity": input.intensity.value,
            "sample_rate": 44100,
            "bit_depth": 24,
            "format": "wav",
        }


class MasteringService:
    """Routes mastering jobs and keeps their reported states monotonic"""

    def __init__(
        self,
        credentials: ProviderCredentials,
        http_client: Optional[httpx.AsyncClient] = None,
        timeout: Optional[float] = None,
        base_urls: Optional[Dict[str, str]] = None
    ):
        urls = base_urls or {}
        self.adapters: Dict[str, MasteringAdapter] = {
            "ai-mastering": AIMasteringAdapter(
                credentials.ai_mastering_api_key,
                urls.get("ai-mastering", "https://api.bakuage.com"),
                http_client,
                timeout
            ),
            "landr": LandrAdapter(
                credentials.landr_api_key,
                urls.get("landr", "https://api.landr.com/mastering/v1"),
                http_client,
                timeout
            ),
        }
        self.tracker = JobStateTracker()

    @classmethod
    def from_settings(
        cls,
        settings: Optional[AIMusicSettings] = None,
        http_client: Optional[httpx.AsyncClient] = None
    ) -> "MasteringService":
        settings = settings or get_settings()
        return cls(
            settings.provider_credentials(),
            http_client=http_client,
            timeout=settings.PROVIDER_HTTP_TIMEOUT,
            base_urls={
                "ai-mastering": settings.AI_MASTERING_BASE_URL,
                "landr": settings.LANDR_BASE_URL,
            }
        )

    def select_provider(self, use_premium: bool = False) -> str:
        """LANDR only when premium is requested and a LANDR key is configured"""
        if use_premium and self.adapters["landr"].is_configured:
            return "landr"
        return "ai-mastering"

    async def master_audio(self, input: MasteringInput, use_premium: bool = False) -> MasteringResult:
        provider = self.select_provider(use_premium)
        result = await self.adapters[provider].submit(input)
        if result.success and result.job_id:
            self.tracker.record(provider, result.job_id, result)
        return result

    async def check_mastering_status(self, job_id: str, provider: str = "ai-mastering") -> MasteringResult:
        adapter = self.adapters.get(provider)
        if adapter is None:
            return MasteringResult.failure(provider, f"Unknown mastering provider: {provider}", job_id=job_id)

        cached = self.tracker.cached(provider, job_id)
        if cached is not None:
            return cached

        if not adapter.is_available:
            return adapter.missing_key_result(job_id)

        result = await adapter.check_status(job_id)
        return self.tracker.record(provider, job_id, result)

    def release(self, job_id: str, provider: str = "ai-mastering") -> None:
        """Drop tracking for a job whose final state has been stored elsewhere"""
        self.tracker.forget(provider, job_id)

    @staticmethod
    def calculate_cost(intensity: MasteringIntensity, use_premium: bool = False) -> int:
        return calculate_mastering_cost(intensity, use_premium)


@lru_cache()
def get_mastering_service() -> MasteringService:
    """Get the mastering service built from application settings (cached)"""
    return MasteringService.from_settings()


async def master_audio(input: MasteringInput, use_premium: bool = False) -> MasteringResult:
    return await get_mastering_service().master_audio(input, use_premium)


async def check_mastering_status(job_id: str, provider: str = "ai-mastering") -> MasteringResult:
    return await get_mastering_service().check_mastering_status(job_id, provider)
