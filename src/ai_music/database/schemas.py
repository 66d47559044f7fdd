"""
AI Music Pydantic Schemas
Validation models for creating, updating and querying music records
"""

import uuid
from datetime import datetime
from enum import Enum
from typing import Literal, Optional

from pydantic import BaseModel, ConfigDict, Field


class BaseSchema(BaseModel):
    """Base schema with common configuration"""
    model_config = ConfigDict(
        from_attributes=True,
        use_enum_values=True,
        validate_assignment=True,
        arbitrary_types_allowed=True
    )


class MusicGenerationStatus(str, Enum):
    PENDING = "pending"
    PROCESSING = "processing"
    COMPLETED = "completed"
    FAILED = "failed"
    CANCELLED = "cancelled"


class MasteringStatus(str, Enum):
    NONE = "none"
    PENDING = "pending"
    PROCESSING = "processing"
    COMPLETED = "completed"
    FAILED = "failed"


# Music Schemas
class MusicCreate(BaseSchema):
    """Schema for creating a music record"""
    user_id: str = Field(..., min_length=1)
    user_email: str = Field(..., min_length=1)
    user_name: Optional[str] = None
    prompt: str = Field(..., min_length=1)
    enhanced_prompt: Optional[str] = None
    lyrics: Optional[str] = None
    style: Optional[str] = None
    mood: Optional[str] = None
    model: str
    provider: str
    duration: int = Field(..., gt=0, description="Requested length in seconds")
    instrumental: bool = False
    bpm: Optional[int] = Field(None, ge=20, le=300)
    key: Optional[str] = None
    genre: Optional[str] = None
    title: Optional[str] = Field(None, max_length=255)
    folder_id: Optional[uuid.UUID] = None
    credits_reserved: int = Field(default=0, ge=0)
    job_id: Optional[str] = None


class MusicUpdate(BaseSchema):
    """Schema for updating a music record, only set fields are written"""
    status: Optional[MusicGenerationStatus] = None
    progress: Optional[int] = Field(None, ge=0, le=100)
    job_id: Optional[str] = None
    audio_url: Optional[str] = None
    local_path: Optional[str] = None
    waveform_url: Optional[str] = None
    cover_image_url: Optional[str] = None
    clip_id: Optional[str] = None
    mastering_status: Optional[MasteringStatus] = None
    mastering_intensity: Optional[str] = None
    mastered_url: Optional[str] = None
    mastered_local_path: Optional[str] = None
    mastering_provider: Optional[str] = None
    mastering_job_id: Optional[str] = None
    mastering_cost: Optional[int] = Field(None, ge=0)
    file_size: Optional[int] = Field(None, ge=0)
    actual_duration: Optional[float] = Field(None, ge=0)
    processing_time: Optional[float] = Field(None, ge=0)
    sample_rate: Optional[int] = None
    bit_depth: Optional[int] = None
    format: Optional[str] = None
    seed: Optional[int] = None
    credits_used: Optional[int] = Field(None, ge=0)
    error_message: Optional[str] = None
    error_code: Optional[str] = None
    completed_at: Optional[datetime] = None
    mastered_at: Optional[datetime] = None


class MusicListOptions(BaseSchema):
    """Filters for listing a user's tracks.

    ``folder_id`` left unset means any folder; explicitly set to ``None``
    it means tracks that are in no folder.
    """
    folder_id: Optional[uuid.UUID] = None
    status: Optional[MusicGenerationStatus] = None
    mastering_status: Optional[MasteringStatus] = None
    search: Optional[str] = None
    order_by: Literal["created_at", "title", "duration"] = "created_at"
    order: Literal["asc", "desc"] = "desc"
    limit: int = Field(default=20, ge=1, le=100)
    offset: int = Field(default=0, ge=0)

    @property
    def filters_folder(self) -> bool:
        return "folder_id" in self.model_fields_set


class PublicMusicOptions(BaseSchema):
    order_by: Literal["created_at", "likes", "plays"] = "created_at"
    order: Literal["asc", "desc"] = "desc"
    limit: int = Field(default=20, ge=1, le=100)
    offset: int = Field(default=0, ge=0)


class MusicStats(BaseSchema):
    total_tracks: int = 0
    completed_tracks: int = 0
    total_plays: int = 0
    total_likes: int = 0


# Folder Schemas
class FolderCreate(BaseSchema):
    """Schema for creating a folder"""
    user_id: str = Field(..., min_length=1)
    name: str = Field(..., min_length=1, max_length=255)
    description: Optional[str] = None
    color: Optional[str] = Field(None, pattern=r"^#[0-9A-Fa-f]{6}$", description="Folder color (hex format)")
    cover_image: Optional[str] = None


class FolderUpdate(BaseSchema):
    """Schema for updating a folder"""
    name: Optional[str] = Field(None, min_length=1, max_length=255)
    description: Optional[str] = None
    color: Optional[str] = Field(None, pattern=r"^#[0-9A-Fa-f]{6}$")
    cover_image: Optional[str] = None
    track_count: Optional[int] = Field(None, ge=0)
    total_duration: Optional[int] = Field(None, ge=0)


class FolderSummary(BaseSchema):
    """Folder with a live count of the tracks it holds"""
    id: uuid.UUID
    user_id: str
    name: str
    description: Optional[str] = None
    color: Optional[str] = None
    cover_image: Optional[str] = None
    track_count: int
    total_duration: int
    created_at: datetime
    tracks_in_folder: int = 0
