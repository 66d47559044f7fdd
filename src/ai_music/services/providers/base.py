"""
Music Provider Adapter Base
Shared request/result models and the submit/poll/cancel contract every
generation provider implements
"""

import time
from abc import ABC, abstractmethod
from contextlib import asynccontextmanager
from enum import Enum
from typing import Any, AsyncIterator, Awaitable, Callable, Dict, Iterable, List, Optional

import httpx
from pydantic import BaseModel, Field

from ...core.jobs import JobStatus, StatusTable, normalize_status
from ...core.logging import provider_logger


class GenerationMode(str, Enum):
    SIMPLE = "simple"   # prompt is a description of the song
    CUSTOM = "custom"   # prompt is the lyrics


class MusicGenerationInput(BaseModel):
    """Provider-agnostic generation request"""
    prompt: str = Field(default="", description="Song description, or lyrics in custom mode")
    style_prompt: Optional[str] = Field(default=None, description="Style, genre and mood tags")
    title: Optional[str] = None
    lyrics: Optional[str] = Field(default=None, description="Explicit lyrics, overrides the prompt as lyrics")
    instrumental: bool = False
    mode: GenerationMode = GenerationMode.SIMPLE
    provider: Optional[str] = Field(default=None, description="Explicit provider, bypasses priority selection")
    negative_prompt: Optional[str] = Field(default=None, description="Tags to avoid (PiAPI only)")


class ExtendInput(BaseModel):
    """Continue an existing clip from a timestamp"""
    clip_id: str
    continue_at: float = Field(..., ge=0, description="Seconds into the clip to continue from")
    prompt: Optional[str] = Field(default=None, description="Continuation lyrics")
    style: Optional[str] = None
    title: Optional[str] = None
    provider: str = "suno"


class GeneratedClip(BaseModel):
    id: str
    title: str = "Generated Music"
    audio_url: Optional[str] = None
    image_url: Optional[str] = None
    duration: Optional[float] = None


class MusicGenerationResult(BaseModel):
    """Normalized outcome of a submission or a status poll"""
    success: bool
    provider: Optional[str]
    status: JobStatus
    job_id: Optional[str] = None
    audio_urls: List[str] = Field(default_factory=list)
    clips: List[GeneratedClip] = Field(default_factory=list)
    error: Optional[str] = None
    estimated_time: Optional[int] = None
    # The poll itself failed (HTTP or network error); says nothing about the job
    transient: bool = False

    @classmethod
    def failure(cls, provider: Optional[str], error: str, job_id: Optional[str] = None) -> "MusicGenerationResult":
        return cls(success=False, provider=provider, status=JobStatus.FAILED, job_id=job_id, error=error)


class CancellationOutcome(str, Enum):
    ACKNOWLEDGED = "acknowledged"   # provider confirmed the cancel request
    UNSUPPORTED = "unsupported"     # provider has no cancel endpoint, job keeps running
    FAILED = "failed"               # cancel request was attempted and rejected


class CancellationResult(BaseModel):
    success: bool
    provider: str
    job_id: str
    outcome: CancellationOutcome
    error: Optional[str] = None


class ProviderError(Exception):
    """Provider rejected a request or answered with an unusable payload"""
    pass


def _lookup(data: Any, path: str) -> Any:
    value = data
    for part in path.split("."):
        if not isinstance(value, dict):
            return None
        value = value.get(part)
    return value


def first_present(data: Any, *paths: str, default: Any = None) -> Any:
    """Return the first non-empty value found along dotted ``paths``.

    Providers are inconsistent about where they put things (``audio.url``
    vs ``audio_url`` vs ``output.audio_url``); callers list the candidates
    in preference order.
    """
    for path in paths:
        value = _lookup(data, path)
        if value not in (None, "", [], {}):
            return value
    return default


def first_text(data: Any, *paths: str, default: Optional[str] = None) -> Optional[str]:
    """Like :func:`first_present` but only accepts non-empty strings"""
    for path in paths:
        value = _lookup(data, path)
        if isinstance(value, str) and value.strip():
            return value
    return default


def extract_error_message(
    response: httpx.Response,
    fallback: str,
    paths: Iterable[str] = ("error.message", "message", "detail", "error"),
) -> str:
    """Best-effort error text from a non-2xx response.

    Tries the JSON body first, then the raw text, then the fallback.
    """
    try:
        payload = response.json()
    except ValueError:
        payload = None

    if isinstance(payload, dict):
        message = first_text(payload, *paths)
        if message:
            return message

    text = response.text.strip() if response.text else ""
    return text or fallback


class MusicProviderAdapter(ABC):
    """Common shape of a job-based music generation provider.

    Concrete adapters only implement the provider-specific halves
    (``_submit`` and ``_poll``); credential checks, transport errors and
    logging are handled here so every adapter fails the same way.
    """

    name: str = ""
    api_key_env: str = ""
    status_table: StatusTable = {}
    estimated_time: int = 120

    def __init__(
        self,
        api_key: Optional[str],
        base_url: Optional[str] = None,
        http_client: Optional[httpx.AsyncClient] = None,
        timeout: Optional[float] = None
    ):
        self.api_key = api_key
        self.base_url = (base_url or self.default_base_url()).rstrip("/")
        self.timeout = timeout
        self._http_client = http_client

    @classmethod
    def default_base_url(cls) -> str:
        return ""

    @property
    def is_configured(self) -> bool:
        return bool(self.api_key and self.api_key.strip())

    @abstractmethod
    def headers(self) -> Dict[str, str]:
        """Authentication and content headers for every request"""

    @abstractmethod
    async def _submit(self, client: httpx.AsyncClient, input: MusicGenerationInput) -> str:
        """Send the generation request and return the provider job id"""

    @abstractmethod
    async def _poll(self, client: httpx.AsyncClient, job_id: str) -> MusicGenerationResult:
        """Fetch and normalize the current state of a job"""

    def normalize(self, raw_status: Any) -> JobStatus:
        return normalize_status(raw_status, self.status_table)

    def missing_key_result(self, job_id: Optional[str] = None) -> MusicGenerationResult:
        return MusicGenerationResult.failure(
            self.name, f"{self.api_key_env} is not configured", job_id=job_id
        )

    @asynccontextmanager
    async def _client(self) -> AsyncIterator[httpx.AsyncClient]:
        if self._http_client is not None:
            yield self._http_client
            return

        async with httpx.AsyncClient(timeout=httpx.Timeout(self.timeout)) as client:
            yield client

    async def submit(self, input: MusicGenerationInput) -> MusicGenerationResult:
        """Submit a generation job"""
        return await self._submit_job("generate", lambda client: self._submit(client, input))

    async def _submit_job(
        self,
        operation: str,
        send: Callable[[httpx.AsyncClient], Awaitable[str]]
    ) -> MusicGenerationResult:
        if not self.is_configured:
            return self.missing_key_result()

        start_time = time.time()
        try:
            async with self._client() as client:
                job_id = await send(client)
        except ProviderError as e:
            return self._failed(operation, str(e))
        except httpx.RequestError as e:
            return self._failed(operation, f"Failed to reach {self.name}: {e}")
        except Exception as e:
            return self._failed(operation, str(e))

        provider_logger.log_job_submitted(
            provider=self.name,
            job_id=job_id,
            operation=operation,
            duration_ms=(time.time() - start_time) * 1000
        )
        return MusicGenerationResult(
            success=True,
            provider=self.name,
            status=JobStatus.PROCESSING,
            job_id=job_id,
            estimated_time=self.estimated_time
        )

    async def check_status(self, job_id: str) -> MusicGenerationResult:
        """Poll a job once and normalize the answer"""
        if not self.is_configured:
            return self.missing_key_result(job_id)

        try:
            async with self._client() as client:
                return await self._poll(client, job_id)
        except ProviderError as e:
            return self._failed("status", str(e), job_id, transient=True)
        except httpx.RequestError as e:
            return self._failed("status", f"Failed to reach {self.name}: {e}", job_id, transient=True)
        except Exception as e:
            return self._failed("status", str(e), job_id, transient=True)

    async def cancel(self, job_id: str) -> CancellationResult:
        """Cancel a job. Providers without a cancel endpoint report it as unsupported."""
        provider_logger.log_cancellation(self.name, job_id, CancellationOutcome.UNSUPPORTED.value)
        return CancellationResult(
            success=False,
            provider=self.name,
            job_id=job_id,
            outcome=CancellationOutcome.UNSUPPORTED,
            error=f"{self.name} does not support cancellation"
        )

    def _status_result(
        self,
        job_id: str,
        raw_status: Any,
        status: JobStatus,
        clips: Optional[List[GeneratedClip]] = None,
        audio_urls: Optional[List[str]] = None,
        error: Optional[str] = None
    ) -> MusicGenerationResult:
        provider_logger.log_status_checked(
            provider=self.name,
            job_id=job_id,
            raw_status=None if raw_status is None else str(raw_status),
            status=status.value
        )

        clips = clips or []
        if audio_urls is None:
            audio_urls = [clip.audio_url for clip in clips if clip.audio_url]

        if status == JobStatus.FAILED:
            return MusicGenerationResult(
                success=False,
                provider=self.name,
                status=status,
                job_id=job_id,
                error=error or "Generation failed"
            )

        return MusicGenerationResult(
            success=True,
            provider=self.name,
            status=status,
            job_id=job_id,
            clips=clips if status == JobStatus.COMPLETED else [],
            audio_urls=audio_urls if status == JobStatus.COMPLETED else []
        )

    def _failed(
        self,
        operation: str,
        error: str,
        job_id: Optional[str] = None,
        transient: bool = False
    ) -> MusicGenerationResult:
        provider_logger.log_provider_error(
            provider=self.name,
            operation=operation,
            error=error,
            job_id=job_id
        )
        result = MusicGenerationResult.failure(self.name, error, job_id=job_id)
        result.transient = transient
        return result
