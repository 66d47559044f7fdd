"""
GoAPI / PiAPI Task Providers
Suno (via GoAPI) and Udio (via PiAPI) share one unified task API:
POST /task to create, GET /task/{id} to poll
"""

from typing import Any, Dict, List, Optional, Tuple

import httpx
from pydantic import BaseModel, Field

from ...core.jobs import JobStatus, build_status_table
from .base import (
    ExtendInput,
    GeneratedClip,
    GenerationMode,
    MusicGenerationInput,
    MusicGenerationResult,
    MusicProviderAdapter,
    ProviderError,
    extract_error_message,
    first_present,
    first_text,
)

TASK_MODEL = "music-u"

GOAPI_STATUS_TABLE = build_status_table(
    completed=("completed", "complete", "succeeded", "success"),
    failed=("failed", "error"),
    pending=("pending", "queued"),
    processing=("processing", "running", "in_progress"),
)

PIAPI_STATUS_TABLE = build_status_table(
    completed=("completed", "complete", "succeeded", "success"),
    failed=("failed", "error"),
    pending=("pending", "queued", "staged"),
    processing=("processing", "running", "in_progress"),
)


class LyricsType:
    INSTRUMENTAL = "instrumental"
    USER = "user"           # caller supplies the lyrics
    GENERATE = "generate"   # provider writes lyrics from a description


class MusicTaskInput(BaseModel):
    """``input`` object of a generate_music task.

    The wire field ``prompt`` carries style tags, not the song description,
    so it is named for what it holds and only renamed on serialization.
    """
    lyrics_type: str
    style_tags: Optional[str] = Field(default=None, serialization_alias="prompt")
    lyrics: Optional[str] = None
    description: Optional[str] = Field(default=None, serialization_alias="gpt_description_prompt")
    title: Optional[str] = None
    negative_tags: Optional[str] = None

    def to_payload(self) -> Dict[str, Any]:
        return self.model_dump(by_alias=True, exclude_none=True)


class ExtendTaskInput(BaseModel):
    """``input`` object of an extend_music task"""
    audio_id: str
    continue_at: float
    style_tags: str = Field(default="", serialization_alias="prompt")
    title: Optional[str] = None
    lyrics: Optional[str] = None

    def to_payload(self) -> Dict[str, Any]:
        return self.model_dump(by_alias=True, exclude_none=True)


class TaskApiAdapter(MusicProviderAdapter):
    """Shared transport for the GoAPI-style unified task API"""

    api_key_env = "GOAPI_API_KEY"
    submit_error = "Music generation failed"
    task_id_paths: Tuple[str, ...] = ("data.task_id",)
    error_paths: Tuple[str, ...] = ("error.message", "message", "detail")

    def headers(self) -> Dict[str, str]:
        return {
            "Content-Type": "application/json",
            "X-API-Key": self.api_key,
        }

    def build_task_input(self, input: MusicGenerationInput) -> MusicTaskInput:
        raise NotImplementedError

    def parse_output(self, output: Dict[str, Any], job_id: str) -> List[GeneratedClip]:
        raise NotImplementedError

    async def _submit(self, client: httpx.AsyncClient, input: MusicGenerationInput) -> str:
        task_input = self.build_task_input(input)
        return await self._create_task(client, "generate_music", task_input.to_payload())

    async def _create_task(
        self,
        client: httpx.AsyncClient,
        task_type: str,
        task_input: Dict[str, Any],
        error_fallback: Optional[str] = None
    ) -> str:
        response = await client.post(
            f"{self.base_url}/task",
            json={
                "model": TASK_MODEL,
                "task_type": task_type,
                "input": task_input,
            },
            headers=self.headers()
        )

        if not response.is_success:
            raise ProviderError(extract_error_message(
                response, error_fallback or self.submit_error, self.error_paths
            ))

        data = response.json()
        task_id = first_present(data, *self.task_id_paths)
        if not task_id:
            raise ProviderError(
                first_text(data, "error.message", "message", default="Failed to create task")
            )
        return str(task_id)

    async def _poll(self, client: httpx.AsyncClient, job_id: str) -> MusicGenerationResult:
        response = await client.get(f"{self.base_url}/task/{job_id}", headers=self.headers())
        if not response.is_success:
            raise ProviderError(f"Failed to check status: {response.status_code}")

        data = response.json()
        task = data.get("data") or data
        raw_status = task.get("status")
        status = self.normalize(raw_status)

        clips: List[GeneratedClip] = []
        error = None
        if status.is_terminal:
            if status == JobStatus.COMPLETED:
                clips = self.parse_output(task.get("output") or {}, job_id)
            else:
                error = first_text(task, "error.message", "error.raw_message", "error")

        return self._status_result(job_id, raw_status, status, clips=clips, error=error)

    def _single_output_clip(self, output: Dict[str, Any], job_id: str) -> List[GeneratedClip]:
        audio_url = first_present(output, "audio_url", "url", "audio")
        if not audio_url:
            return []
        return [GeneratedClip(
            id=job_id,
            title=output.get("title") or "Generated Music",
            audio_url=audio_url,
            image_url=output.get("image_url"),
            duration=output.get("duration"),
        )]


class SunoAdapter(TaskApiAdapter):
    """Suno music generation through GoAPI"""

    name = "suno"
    status_table = GOAPI_STATUS_TABLE
    estimated_time = 120
    task_id_paths = ("data.task_id", "task_id")

    @classmethod
    def default_base_url(cls) -> str:
        return "https://api.goapi.ai/api/v1"

    @staticmethod
    def lyrics_type_for(input: MusicGenerationInput) -> str:
        if input.instrumental:
            return LyricsType.INSTRUMENTAL
        if input.lyrics and input.lyrics.strip():
            return LyricsType.USER
        if input.mode == GenerationMode.CUSTOM and input.prompt.strip():
            return LyricsType.USER
        return LyricsType.GENERATE

    def build_task_input(self, input: MusicGenerationInput) -> MusicTaskInput:
        lyrics_type = self.lyrics_type_for(input)
        task_input = MusicTaskInput(
            lyrics_type=lyrics_type,
            style_tags=input.style_prompt or input.prompt,
            title=input.title or None,
        )

        if lyrics_type == LyricsType.USER:
            task_input.lyrics = input.lyrics or input.prompt
            task_input.description = input.style_prompt or "Create a song matching the lyrics"
        elif lyrics_type == LyricsType.GENERATE:
            task_input.description = input.prompt or input.style_prompt

        return task_input

    def parse_output(self, output: Dict[str, Any], job_id: str) -> List[GeneratedClip]:
        raw_clips = output.get("clips")
        if not isinstance(raw_clips, list):
            return self._single_output_clip(output, job_id)

        return [
            GeneratedClip(
                id=str(clip.get("id") or job_id),
                title=clip.get("title") or "Generated Music",
                audio_url=first_present(clip, "audio_url", "url"),
                image_url=clip.get("image_url"),
                duration=clip.get("duration"),
            )
            for clip in raw_clips
            if isinstance(clip, dict)
        ]

    async def extend(self, input: ExtendInput) -> MusicGenerationResult:
        """Continue an existing Suno clip from ``continue_at`` seconds"""
        task_input = ExtendTaskInput(
            audio_id=input.clip_id,
            continue_at=input.continue_at,
            style_tags=input.style or input.prompt or "",
            title=input.title or None,
            lyrics=input.prompt or None,
        )
        return await self._submit_job(
            "extend",
            lambda client: self._create_task(
                client, "extend_music", task_input.to_payload(), "Music extension failed"
            )
        )


class PiAPIAdapter(TaskApiAdapter):
    """Udio music generation through PiAPI"""

    name = "piapi"
    status_table = PIAPI_STATUS_TABLE
    estimated_time = 180
    error_paths = ("message", "error.message")

    @classmethod
    def default_base_url(cls) -> str:
        return "https://api.piapi.ai/api/v1"

    def build_task_input(self, input: MusicGenerationInput) -> MusicTaskInput:
        style_tags = input.style_prompt or input.prompt
        if input.instrumental:
            style_tags = f"{style_tags}, instrumental, no vocals"

        task_input = MusicTaskInput(
            lyrics_type=LyricsType.INSTRUMENTAL if input.instrumental else LyricsType.GENERATE,
            style_tags=style_tags,
            title=input.title or None,
            negative_tags=input.negative_prompt or None,
        )

        if input.instrumental:
            return task_input

        if input.lyrics and input.lyrics.strip():
            task_input.lyrics_type = LyricsType.USER
            task_input.lyrics = input.lyrics
            task_input.description = input.style_prompt or input.prompt or None
        elif input.prompt and input.style_prompt:
            task_input.lyrics_type = LyricsType.USER
            task_input.lyrics = input.prompt
            task_input.description = input.style_prompt

        return task_input

    def parse_output(self, output: Dict[str, Any], job_id: str) -> List[GeneratedClip]:
        clips = []
        raw_songs = output.get("songs")
        if isinstance(raw_songs, list):
            for song in raw_songs:
                if not isinstance(song, dict):
                    continue
                audio_url = first_present(song, "audio_url", "song_path")
                if not audio_url:
                    continue
                clips.append(GeneratedClip(
                    id=str(first_present(song, "id", "song_id", default=job_id)),
                    title=song.get("title") or "Generated Music",
                    audio_url=audio_url,
                    image_url=first_present(song, "image_url", "image_path"),
                    duration=song.get("duration"),
                ))

        return clips or self._single_output_clip(output, job_id)
