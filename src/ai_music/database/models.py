"""
AI Music Database Models
SQLAlchemy ORM models for generated music records and library folders
"""

import uuid
from datetime import datetime, timezone
from typing import List, Optional

from sqlalchemy import (
    JSON,
    Boolean,
    DateTime,
    Float,
    ForeignKey,
    Index,
    Integer,
    String,
    Text,
    Uuid,
)
from sqlalchemy.orm import Mapped, mapped_column, relationship
from sqlalchemy.sql import func

from .connection import Base


def utcnow() -> datetime:
    """Naive UTC timestamp, matching the TIMESTAMP WITHOUT TIME ZONE columns"""
    return datetime.now(timezone.utc).replace(tzinfo=None)


class MusicFolder(Base):
    """User-defined library folder grouping generated tracks"""
    __tablename__ = "music_folders"

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)
    user_id: Mapped[str] = mapped_column(String(255), nullable=False)

    name: Mapped[str] = mapped_column(String(255), nullable=False)
    description: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    color: Mapped[Optional[str]] = mapped_column(String(20), nullable=True)
    cover_image: Mapped[Optional[str]] = mapped_column(Text, nullable=True)

    # Denormalized, refreshed by FolderRepository.update_folder_stats
    track_count: Mapped[int] = mapped_column(Integer, default=0, nullable=False)
    total_duration: Mapped[int] = mapped_column(Integer, default=0, nullable=False)  # seconds

    created_at: Mapped[datetime] = mapped_column(
        DateTime, nullable=False, default=utcnow, server_default=func.now()
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime, nullable=False, default=utcnow, onupdate=utcnow, server_default=func.now()
    )

    tracks: Mapped[List["GeneratedMusic"]] = relationship(
        "GeneratedMusic",
        back_populates="folder",
        order_by=lambda: GeneratedMusic.created_at.desc()
    )

    __table_args__ = (
        Index("idx_music_folders_user_id", "user_id"),
    )

    def __repr__(self) -> str:
        return f"<MusicFolder(id={self.id}, name='{self.name}', tracks={self.track_count})>"


class GeneratedMusic(Base):
    """One generation request and everything that happened to it afterwards"""
    __tablename__ = "generated_music"

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)

    # Owner
    user_id: Mapped[str] = mapped_column(String(255), nullable=False)
    user_email: Mapped[str] = mapped_column(String(255), nullable=False)
    user_name: Mapped[Optional[str]] = mapped_column(String(255), nullable=True)

    # Request
    prompt: Mapped[str] = mapped_column(Text, nullable=False)
    enhanced_prompt: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    lyrics: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    style: Mapped[Optional[str]] = mapped_column(String(100), nullable=True)
    mood: Mapped[Optional[str]] = mapped_column(String(100), nullable=True)
    model: Mapped[str] = mapped_column(String(100), nullable=False)
    provider: Mapped[str] = mapped_column(String(50), nullable=False)  # suno, piapi, fal
    duration: Mapped[int] = mapped_column(Integer, nullable=False)  # requested seconds
    instrumental: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)
    bpm: Mapped[Optional[int]] = mapped_column(Integer, nullable=True)
    key: Mapped[Optional[str]] = mapped_column(String(20), nullable=True)
    genre: Mapped[Optional[str]] = mapped_column(String(100), nullable=True)
    title: Mapped[Optional[str]] = mapped_column(String(255), nullable=True)

    folder_id: Mapped[Optional[uuid.UUID]] = mapped_column(
        Uuid,
        ForeignKey("music_folders.id", ondelete="SET NULL"),
        nullable=True
    )

    # Credits
    credits_reserved: Mapped[int] = mapped_column(Integer, default=0, nullable=False)
    credits_used: Mapped[Optional[int]] = mapped_column(Integer, nullable=True)

    # Generation job
    job_id: Mapped[Optional[str]] = mapped_column(String(255), nullable=True)
    status: Mapped[str] = mapped_column(String(20), default="pending", nullable=False)  # pending, processing, completed, failed, cancelled
    progress: Mapped[int] = mapped_column(Integer, default=0, nullable=False)  # 0 to 100

    # Results
    audio_url: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    local_path: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    waveform_url: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    cover_image_url: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    clip_id: Mapped[Optional[str]] = mapped_column(String(255), nullable=True)  # provider clip id, used for extension

    # Mastering job
    mastering_status: Mapped[str] = mapped_column(String(20), default="none", nullable=False)  # none, pending, processing, completed, failed
    mastering_intensity: Mapped[Optional[str]] = mapped_column(String(10), nullable=True)
    mastered_url: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    mastered_local_path: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    mastering_provider: Mapped[Optional[str]] = mapped_column(String(50), nullable=True)
    mastering_job_id: Mapped[Optional[str]] = mapped_column(String(255), nullable=True)
    mastering_cost: Mapped[Optional[int]] = mapped_column(Integer, nullable=True)

    # File details
    file_size: Mapped[Optional[int]] = mapped_column(Integer, nullable=True)  # bytes
    actual_duration: Mapped[Optional[float]] = mapped_column(Float, nullable=True)  # seconds
    processing_time: Mapped[Optional[float]] = mapped_column(Float, nullable=True)  # seconds
    sample_rate: Mapped[Optional[int]] = mapped_column(Integer, nullable=True)
    bit_depth: Mapped[Optional[int]] = mapped_column(Integer, nullable=True)
    format: Mapped[Optional[str]] = mapped_column(String(10), nullable=True)
    seed: Mapped[Optional[int]] = mapped_column(Integer, nullable=True)

    error_message: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    error_code: Mapped[Optional[str]] = mapped_column(String(50), nullable=True)

    # Sharing and engagement
    is_public: Mapped[bool] = mapped_column(Boolean, default=True, nullable=False)
    likes: Mapped[int] = mapped_column(Integer, default=0, nullable=False)
    liked_by: Mapped[List[str]] = mapped_column(JSON, default=list, nullable=False)
    like_version: Mapped[int] = mapped_column(Integer, default=0, nullable=False)  # optimistic lock for likes
    plays: Mapped[int] = mapped_column(Integer, default=0, nullable=False)
    views: Mapped[int] = mapped_column(Integer, default=0, nullable=False)

    # Timestamps
    created_at: Mapped[datetime] = mapped_column(
        DateTime, nullable=False, default=utcnow, server_default=func.now()
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime, nullable=False, default=utcnow, onupdate=utcnow, server_default=func.now()
    )
    completed_at: Mapped[Optional[datetime]] = mapped_column(DateTime, nullable=True)
    mastered_at: Mapped[Optional[datetime]] = mapped_column(DateTime, nullable=True)

    folder: Mapped[Optional["MusicFolder"]] = relationship(
        "MusicFolder",
        back_populates="tracks",
        lazy="selectin"
    )

    __table_args__ = (
        Index("idx_generated_music_user_id", "user_id"),
        Index("idx_generated_music_job_id", "job_id"),
        Index("idx_generated_music_status", "status"),
        Index("idx_generated_music_folder_id", "folder_id"),
    )

    @property
    def is_terminal(self) -> bool:
        return self.status in ("completed", "failed", "cancelled")

    @property
    def is_mastering_in_progress(self) -> bool:
        return self.mastering_status in ("pending", "processing")

    def __repr__(self) -> str:
        return f"<GeneratedMusic(id={self.id}, provider='{self.provider}', status='{self.status}')>"
