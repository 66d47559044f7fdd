"""
fal.ai MiniMax Music Provider
Queue-based generation: submit, poll /status, fetch the result once COMPLETED
"""

from typing import Any, Dict

import httpx

from ...core.jobs import JobStatus, build_status_table
from ...core.logging import provider_logger
from .base import (
    CancellationOutcome,
    CancellationResult,
    MusicGenerationInput,
    MusicGenerationResult,
    MusicProviderAdapter,
    ProviderError,
    extract_error_message,
    first_present,
    first_text,
)

FAL_STATUS_TABLE = build_status_table(
    completed=("COMPLETED",),
    failed=("FAILED", "ERROR"),
    pending=("IN_QUEUE",),
    processing=("IN_PROGRESS",),
)

PROMPT_MIN_LENGTH = 10
PROMPT_MAX_LENGTH = 600
STYLE_MIN_LENGTH = 10
STYLE_MAX_LENGTH = 3000

INSTRUMENTAL_MARKER = "[Instrumental]\n"
INSTRUMENTAL_STYLE_SUFFIX = ", instrumental, no vocals"


def sanitize_fal_text(text: str, min_length: int, max_length: int, fill: str = ".") -> str:
    """Force ``text`` into the length window MiniMax accepts.

    Longer text is truncated and shorter text is right-padded, so the
    request is never rejected for length.
    """
    text = text or ""
    if len(text) > max_length:
        text = text[:max_length]
    if len(text) < min_length:
        text = text.ljust(min_length, fill)
    return text


class FalMiniMaxAdapter(MusicProviderAdapter):
    """MiniMax Music through the fal.ai queue"""

    name = "fal"
    api_key_env = "FAL_API_KEY"
    status_table = FAL_STATUS_TABLE
    estimated_time = 120

    SUBMIT_PATH = "fal-ai/minimax-music/v1.5"
    REQUESTS_PATH = "fal-ai/minimax-music/requests"

    @classmethod
    def default_base_url(cls) -> str:
        return "https://queue.fal.run"

    def headers(self) -> Dict[str, str]:
        return {
            "Content-Type": "application/json",
            "Authorization": f"Key {self.api_key}",
        }

    def _request_url(self, job_id: str, suffix: str = "") -> str:
        return f"{self.base_url}/{self.REQUESTS_PATH}/{job_id}{suffix}"

    @staticmethod
    def build_payload(input: MusicGenerationInput) -> Dict[str, str]:
        """MiniMax takes the song content as ``prompt`` and the style as ``lyrics_prompt``"""
        content = input.lyrics or input.prompt
        style = input.style_prompt or input.prompt

        if input.instrumental:
            content = f"{INSTRUMENTAL_MARKER}{content}"
            style = f"{style}{INSTRUMENTAL_STYLE_SUFFIX}"

        return {
            "prompt": sanitize_fal_text(content, PROMPT_MIN_LENGTH, PROMPT_MAX_LENGTH),
            "lyrics_prompt": sanitize_fal_text(style, STYLE_MIN_LENGTH, STYLE_MAX_LENGTH),
        }

    async def _submit(self, client: httpx.AsyncClient, input: MusicGenerationInput) -> str:
        response = await client.post(
            f"{self.base_url}/{self.SUBMIT_PATH}",
            json=self.build_payload(input),
            headers=self.headers()
        )

        if not response.is_success:
            raise ProviderError(extract_error_message(
                response, "Fal.ai request failed", ("detail", "message")
            ))

        request_id = response.json().get("request_id")
        if not request_id:
            raise ProviderError("Fal.ai response did not include a request_id")
        return str(request_id)

    async def _poll(self, client: httpx.AsyncClient, job_id: str) -> MusicGenerationResult:
        response = await client.get(self._request_url(job_id, "/status"), headers=self.headers())
        if not response.is_success:
            raise ProviderError(f"Failed to check Fal.ai status: {response.status_code}")

        data = response.json()
        raw_status = data.get("status")
        status = self.normalize(raw_status)

        if status == JobStatus.COMPLETED:
            result = await self._fetch_result(client, job_id)
            audio_url = first_present(result, "audio.url", "audio_url", "output.audio_url")
            return self._status_result(
                job_id, raw_status, status, audio_urls=[audio_url] if audio_url else []
            )

        error = first_text(data, "error", "detail") if status == JobStatus.FAILED else None
        return self._status_result(job_id, raw_status, status, error=error)

    async def _fetch_result(self, client: httpx.AsyncClient, job_id: str) -> Dict[str, Any]:
        response = await client.get(self._request_url(job_id), headers=self.headers())
        if not response.is_success:
            raise ProviderError(extract_error_message(
                response, f"Failed to fetch Fal.ai result: {response.status_code}", ("detail", "message")
            ))
        return response.json()

    async def cancel(self, job_id: str) -> CancellationResult:
        """Ask the fal queue to drop a request"""
        if not self.is_configured:
            return CancellationResult(
                success=False,
                provider=self.name,
                job_id=job_id,
                outcome=CancellationOutcome.FAILED,
                error=f"{self.api_key_env} is not configured"
            )

        try:
            async with self._client() as client:
                response = await client.put(self._request_url(job_id, "/cancel"), headers=self.headers())
        except httpx.RequestError as e:
            provider_logger.log_provider_error(self.name, "cancel", str(e), job_id=job_id)
            return CancellationResult(
                success=False,
                provider=self.name,
                job_id=job_id,
                outcome=CancellationOutcome.FAILED,
                error=f"Failed to reach {self.name}: {e}"
            )

        if not response.is_success:
            error = extract_error_message(response, f"Cancel rejected: {response.status_code}", ("detail", "message"))
            provider_logger.log_provider_error(self.name, "cancel", error, job_id=job_id)
            return CancellationResult(
                success=False,
                provider=self.name,
                job_id=job_id,
                outcome=CancellationOutcome.FAILED,
                error=error
            )

        provider_logger.log_cancellation(self.name, job_id, CancellationOutcome.ACKNOWLEDGED.value)
        return CancellationResult(
            success=True,
            provider=self.name,
            job_id=job_id,
            outcome=CancellationOutcome.ACKNOWLEDGED
        )
