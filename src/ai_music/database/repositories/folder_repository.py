"""
Folder Repository
Database operations for music library folders
"""

import uuid
from typing import List, Optional

from sqlalchemy import func, select, update
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import selectinload

from ...core.result import Result
from ..models import GeneratedMusic, MusicFolder
from ..schemas import FolderCreate, FolderSummary, FolderUpdate, MusicGenerationStatus
from .base import BaseRepository, NotFoundError


class FolderRepository(BaseRepository[MusicFolder, FolderCreate, FolderUpdate]):
    """Repository for music folders"""

    def __init__(self, session: AsyncSession):
        super().__init__(MusicFolder, session)

    async def create_folder(self, folder_data: FolderCreate) -> Result[MusicFolder]:
        try:
            folder = await self.create(folder_data, track_count=0, total_duration=0)
            await self.session.commit()
            return Result.ok(folder)

        except Exception as e:
            await self.session.rollback()
            return Result.err(f"Failed to create folder: {str(e)}")

    async def update_folder(
        self,
        folder_id: uuid.UUID,
        update_data: FolderUpdate
    ) -> Result[MusicFolder]:
        try:
            folder = await self.update(folder_id, update_data)
            await self.session.commit()
            return Result.ok(folder)

        except NotFoundError as e:
            return Result.err(str(e))
        except Exception as e:
            await self.session.rollback()
            return Result.err(f"Failed to update folder: {str(e)}")

    async def get_folder_by_id(self, folder_id: uuid.UUID) -> Result[Optional[MusicFolder]]:
        """Get a folder with its completed tracks, newest first"""
        try:
            folder = await self.get(
                folder_id,
                selectinload(MusicFolder.tracks.and_(
                    GeneratedMusic.status == MusicGenerationStatus.COMPLETED.value
                ))
            )
            return Result.ok(folder)

        except Exception as e:
            return Result.err(f"Failed to get folder: {str(e)}")

    async def get_user_folders(self, user_id: str) -> Result[List[FolderSummary]]:
        """A user's folders by name, each with the live number of tracks in it"""
        try:
            track_counts = (
                select(GeneratedMusic.folder_id, func.count(GeneratedMusic.id).label("tracks"))
                .where(GeneratedMusic.folder_id.is_not(None))
                .group_by(GeneratedMusic.folder_id)
                .subquery()
            )
            result = await self._execute(
                select(MusicFolder, func.coalesce(track_counts.c.tracks, 0))
                .outerjoin(track_counts, track_counts.c.folder_id == MusicFolder.id)
                .where(MusicFolder.user_id == user_id)
                .order_by(MusicFolder.name.asc())
            )

            summaries = []
            for folder, tracks in result.all():
                summary = FolderSummary.model_validate(folder)
                summary.tracks_in_folder = tracks
                summaries.append(summary)

            return Result.ok(summaries)

        except Exception as e:
            return Result.err(f"Failed to get user folders: {str(e)}")

    async def delete_folder(self, folder_id: uuid.UUID) -> Result[bool]:
        """Delete a folder, leaving its tracks in the library without a folder"""
        try:
            await self._execute(
                update(GeneratedMusic)
                .where(GeneratedMusic.folder_id == folder_id)
                .values(folder_id=None)
                .execution_options(synchronize_session=False)
            )
            await self.delete(folder_id)
            await self.session.commit()
            return Result.ok(True)

        except NotFoundError as e:
            await self.session.rollback()
            return Result.err(str(e))
        except Exception as e:
            await self.session.rollback()
            return Result.err(f"Failed to delete folder: {str(e)}")

    async def update_folder_stats(self, folder_id: uuid.UUID) -> Result[MusicFolder]:
        """Recompute track_count and total_duration from the completed tracks"""
        try:
            folder = await self.get_or_404(folder_id)

            count, duration = (await self._execute(
                select(
                    func.count(GeneratedMusic.id),
                    func.coalesce(func.sum(GeneratedMusic.duration), 0)
                ).where(
                    GeneratedMusic.folder_id == folder_id,
                    GeneratedMusic.status == MusicGenerationStatus.COMPLETED.value
                )
            )).one()

            folder.track_count = count
            folder.total_duration = int(duration)
            await self.session.commit()
            return Result.ok(folder)

        except NotFoundError as e:
            return Result.err(str(e))
        except Exception as e:
            await self.session.rollback()
            return Result.err(f"Failed to update folder stats: {str(e)}")
