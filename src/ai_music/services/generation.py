"""
Music Generation Router
Picks a provider for each request and dispatches submit/status/cancel calls
to the matching adapter
"""

from functools import lru_cache
from typing import Dict, List, Optional

import httpx

from ..core.config import AIMusicSettings, ProviderCredentials, get_settings
from ..core.jobs import JobStateTracker
from ..core.logging import provider_logger
from .providers import (
    CancellationOutcome,
    CancellationResult,
    ExtendInput,
    FalMiniMaxAdapter,
    MusicGenerationInput,
    MusicGenerationResult,
    MusicProviderAdapter,
    PiAPIAdapter,
    SunoAdapter,
)

# First configured provider wins when the request does not name one
PROVIDER_PRIORITY = ("suno", "fal", "piapi")


class MusicGenerationRouter:
    """Dispatch table keyed by provider name.

    The router never retries, never enforces timeouts of its own and never
    falls back to another provider: a failed submission is returned to the
    caller as a failed result.
    """

    def __init__(
        self,
        credentials: ProviderCredentials,
        http_client: Optional[httpx.AsyncClient] = None,
        timeout: Optional[float] = None,
        base_urls: Optional[Dict[str, str]] = None
    ):
        self.credentials = credentials
        urls = base_urls or {}

        self.adapters: Dict[str, MusicProviderAdapter] = {
            "suno": SunoAdapter(credentials.goapi_api_key, urls.get("suno"), http_client, timeout),
            "piapi": PiAPIAdapter(credentials.goapi_api_key, urls.get("piapi"), http_client, timeout),
            "fal": FalMiniMaxAdapter(credentials.fal_api_key, urls.get("fal"), http_client, timeout),
        }
        self.tracker = JobStateTracker()

    @classmethod
    def from_settings(
        cls,
        settings: Optional[AIMusicSettings] = None,
        http_client: Optional[httpx.AsyncClient] = None
    ) -> "MusicGenerationRouter":
        settings = settings or get_settings()
        return cls(
            settings.provider_credentials(),
            http_client=http_client,
            timeout=settings.PROVIDER_HTTP_TIMEOUT,
            base_urls={
                "suno": settings.GOAPI_BASE_URL,
                "piapi": settings.PIAPI_BASE_URL,
                "fal": settings.FAL_QUEUE_URL,
            }
        )

    def available_providers(self) -> List[str]:
        return [name for name in PROVIDER_PRIORITY if self.adapters[name].is_configured]

    def select_provider(self, input: MusicGenerationInput) -> Optional[str]:
        """Explicit provider first, otherwise the first configured one by priority"""
        if input.provider:
            return input.provider

        available = self.available_providers()
        return available[0] if available else None

    def get_adapter(self, provider: str) -> Optional[MusicProviderAdapter]:
        return self.adapters.get(provider)

    async def generate(self, input: MusicGenerationInput) -> MusicGenerationResult:
        """Submit a generation request to the selected provider"""
        provider = self.select_provider(input)
        if provider is None:
            error = "No music provider is configured: set GOAPI_API_KEY or FAL_API_KEY"
            provider_logger.log_provider_error(provider=None, operation="generate", error=error)
            return MusicGenerationResult.failure(None, error)

        adapter = self.get_adapter(provider)
        if adapter is None:
            return MusicGenerationResult.failure(provider, f"Unknown music provider: {provider}")

        result = await adapter.submit(input)
        if result.success and result.job_id:
            self.tracker.record(provider, result.job_id, result)
        return result

    async def check_status(self, job_id: str, provider: str) -> MusicGenerationResult:
        """Poll one job. Terminal answers are remembered and served again."""
        adapter = self.get_adapter(provider)
        if adapter is None:
            return MusicGenerationResult.failure(provider, f"Unknown music provider: {provider}", job_id=job_id)

        cached = self.tracker.cached(provider, job_id)
        if cached is not None:
            return cached

        if not adapter.is_configured:
            return adapter.missing_key_result(job_id)

        result = await adapter.check_status(job_id)
        return self.tracker.record(provider, job_id, result)

    def release(self, job_id: str, provider: str) -> None:
        """Drop tracking for a job whose final state has been stored elsewhere"""
        self.tracker.forget(provider, job_id)

    async def cancel(self, job_id: str, provider: str) -> CancellationResult:
        adapter = self.get_adapter(provider)
        if adapter is None:
            return CancellationResult(
                success=False,
                provider=provider,
                job_id=job_id,
                outcome=CancellationOutcome.FAILED,
                error=f"Unknown music provider: {provider}"
            )
        return await adapter.cancel(job_id)

    async def extend(self, input: ExtendInput) -> MusicGenerationResult:
        """Continue an existing clip. Only Suno supports extension."""
        adapter = self.get_adapter(input.provider)
        if not isinstance(adapter, SunoAdapter):
            return MusicGenerationResult.failure(
                input.provider, f"Extension is not supported by provider: {input.provider}"
            )

        result = await adapter.extend(input)
        if result.success and result.job_id:
            self.tracker.record(input.provider, result.job_id, result)
        return result


@lru_cache()
def get_generation_router() -> MusicGenerationRouter:
    """Get the router built from application settings (cached)"""
    return MusicGenerationRouter.from_settings()


async def generate_music(input: MusicGenerationInput) -> MusicGenerationResult:
    return await get_generation_router().generate(input)


async def check_music_generation_status(job_id: str, provider: str) -> MusicGenerationResult:
    return await get_generation_router().check_status(job_id, provider)


async def cancel_music_generation(job_id: str, provider: str) -> CancellationResult:
    return await get_generation_router().cancel(job_id, provider)


async def extend_music(input: ExtendInput) -> MusicGenerationResult:
    return await get_generation_router().extend(input)
