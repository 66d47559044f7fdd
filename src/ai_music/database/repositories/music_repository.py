"""
Music Repository
Database operations for generated music records
"""

import uuid
from typing import List, Optional

from sqlalchemy import func, or_, select, update
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import selectinload

from ...core.result import Result
from ..models import GeneratedMusic, utcnow
from ..schemas import (
    MasteringStatus,
    MusicCreate,
    MusicGenerationStatus,
    MusicListOptions,
    MusicStats,
    MusicUpdate,
    PublicMusicOptions,
)
from .base import BaseRepository, NotFoundError

# Re-reads allowed when a concurrent like changes the row under us
LIKE_RETRY_LIMIT = 5

SEARCH_FIELDS = ("title", "prompt", "style", "mood")


class MusicRepository(BaseRepository[GeneratedMusic, MusicCreate, MusicUpdate]):
    """Repository for generated music records"""

    def __init__(self, session: AsyncSession):
        super().__init__(GeneratedMusic, session)

    def _search_condition(self, search: str):
        return or_(*[
            getattr(GeneratedMusic, field).ilike(f"%{search}%") for field in SEARCH_FIELDS
        ])

    def _user_filters(self, query, user_id: str, options: MusicListOptions):
        query = query.where(GeneratedMusic.user_id == user_id)

        if options.filters_folder:
            if options.folder_id is None:
                query = query.where(GeneratedMusic.folder_id.is_(None))
            else:
                query = query.where(GeneratedMusic.folder_id == options.folder_id)

        if options.status:
            query = query.where(GeneratedMusic.status == options.status)

        if options.mastering_status:
            query = query.where(GeneratedMusic.mastering_status == options.mastering_status)

        if options.search:
            query = query.where(self._search_condition(options.search))

        return query

    async def create_music_record(self, music_data: MusicCreate) -> Result[GeneratedMusic]:
        """Create a new record in pending state"""
        try:
            music = await self.create(
                music_data,
                status=MusicGenerationStatus.PENDING.value,
                is_public=True,
                liked_by=[]
            )
            await self.session.commit()
            return Result.ok(music)

        except Exception as e:
            await self.session.rollback()
            return Result.err(f"Failed to create music record: {str(e)}")

    async def update_music_record(
        self,
        music_id: uuid.UUID,
        update_data: MusicUpdate
    ) -> Result[GeneratedMusic]:
        """Write the fields explicitly set on ``update_data``"""
        try:
            music = await self.update(music_id, update_data)
            await self.session.commit()
            return Result.ok(music)

        except NotFoundError as e:
            return Result.err(str(e))
        except Exception as e:
            await self.session.rollback()
            return Result.err(f"Failed to update music record: {str(e)}")

    async def get_music_by_id(self, music_id: uuid.UUID) -> Result[Optional[GeneratedMusic]]:
        """Get a record with its folder"""
        try:
            music = await self.get(music_id, selectinload(GeneratedMusic.folder))
            return Result.ok(music)

        except Exception as e:
            return Result.err(f"Failed to get music record: {str(e)}")

    async def get_music_by_job_id(self, job_id: str) -> Result[Optional[GeneratedMusic]]:
        try:
            result = await self._execute(
                select(GeneratedMusic).where(GeneratedMusic.job_id == job_id).limit(1)
            )
            return Result.ok(result.scalar_one_or_none())

        except Exception as e:
            return Result.err(f"Failed to get music by job id: {str(e)}")

    async def get_user_music(
        self,
        user_id: str,
        options: Optional[MusicListOptions] = None
    ) -> Result[List[GeneratedMusic]]:
        """List a user's tracks with filtering, search, ordering and paging"""
        options = options or MusicListOptions()
        try:
            column = getattr(GeneratedMusic, options.order_by)
            query = (
                self._user_filters(select(GeneratedMusic), user_id, options)
                .options(selectinload(GeneratedMusic.folder))
                .order_by(column.asc() if options.order == "asc" else column.desc())
                .limit(options.limit)
                .offset(options.offset)
            )
            result = await self._execute(query)
            return Result.ok(list(result.scalars().all()))

        except Exception as e:
            return Result.err(f"Failed to get user music: {str(e)}")

    async def count_user_music(
        self,
        user_id: str,
        options: Optional[MusicListOptions] = None
    ) -> Result[int]:
        options = options or MusicListOptions()
        try:
            query = self._user_filters(select(func.count(GeneratedMusic.id)), user_id, options)
            result = await self._execute(query)
            return Result.ok(result.scalar() or 0)

        except Exception as e:
            return Result.err(f"Failed to count user music: {str(e)}")

    async def get_public_music(
        self,
        options: Optional[PublicMusicOptions] = None
    ) -> Result[List[GeneratedMusic]]:
        """Completed public tracks for the explore page"""
        options = options or PublicMusicOptions()
        try:
            column = getattr(GeneratedMusic, options.order_by)
            query = (
                select(GeneratedMusic)
                .where(
                    GeneratedMusic.is_public.is_(True),
                    GeneratedMusic.status == MusicGenerationStatus.COMPLETED.value
                )
                .order_by(column.asc() if options.order == "asc" else column.desc())
                .limit(options.limit)
                .offset(options.offset)
            )
            result = await self._execute(query)
            return Result.ok(list(result.scalars().all()))

        except Exception as e:
            return Result.err(f"Failed to get public music: {str(e)}")

    async def delete_music_record(self, music_id: uuid.UUID) -> Result[bool]:
        """Delete the row only; stored files are removed separately"""
        try:
            await self.delete(music_id)
            await self.session.commit()
            return Result.ok(True)

        except NotFoundError as e:
            return Result.err(str(e))
        except Exception as e:
            await self.session.rollback()
            return Result.err(f"Failed to delete music record: {str(e)}")

    async def set_music_public(self, music_id: uuid.UUID, is_public: bool) -> Result[GeneratedMusic]:
        try:
            music = await self.get_or_404(music_id)
            music.is_public = is_public
            await self.session.commit()
            return Result.ok(music)

        except NotFoundError as e:
            return Result.err(str(e))
        except Exception as e:
            await self.session.rollback()
            return Result.err(f"Failed to update visibility: {str(e)}")

    async def like_music(self, music_id: uuid.UUID, user_id: str) -> Result[GeneratedMusic]:
        """Toggle ``user_id`` in the like list.

        The list and the counter are written by one UPDATE, the counter taken
        from the new list length, and the write only lands if ``like_version``
        is unchanged since the read.
        """
        try:
            for _ in range(LIKE_RETRY_LIMIT):
                row = (await self._execute(
                    select(GeneratedMusic.liked_by, GeneratedMusic.like_version)
                    .where(GeneratedMusic.id == music_id)
                )).one_or_none()

                if row is None:
                    return Result.err(f"GeneratedMusic with id {music_id} not found")

                liked_by = list(row.liked_by or [])
                if user_id in liked_by:
                    liked_by = [uid for uid in liked_by if uid != user_id]
                else:
                    liked_by.append(user_id)

                result = await self._execute(
                    update(GeneratedMusic)
                    .where(
                        GeneratedMusic.id == music_id,
                        GeneratedMusic.like_version == row.like_version
                    )
                    .values(
                        liked_by=liked_by,
                        likes=len(liked_by),
                        like_version=row.like_version + 1,
                        updated_at=utcnow()
                    )
                    .execution_options(synchronize_session=False)
                )

                if result.rowcount == 1:
                    await self.session.commit()
                    return Result.ok(await self.get_or_404(music_id))

                await self.session.rollback()

            return Result.err("Failed to like music: too many concurrent updates")

        except Exception as e:
            await self.session.rollback()
            return Result.err(f"Failed to like music: {str(e)}")

    async def _increment(self, music_id: uuid.UUID, column_name: str) -> Result[int]:
        column = getattr(GeneratedMusic, column_name)
        try:
            result = await self._execute(
                update(GeneratedMusic)
                .where(GeneratedMusic.id == music_id)
                .values({column_name: column + 1})
                .execution_options(synchronize_session=False)
            )
            if result.rowcount != 1:
                await self.session.rollback()
                return Result.err(f"GeneratedMusic with id {music_id} not found")

            await self.session.commit()
            value = (await self._execute(
                select(column).where(GeneratedMusic.id == music_id)
            )).scalar_one()
            return Result.ok(value)

        except Exception as e:
            await self.session.rollback()
            return Result.err(f"Failed to increment {column_name}: {str(e)}")

    async def increment_plays(self, music_id: uuid.UUID) -> Result[int]:
        """Atomically bump the play counter, returning the new value"""
        return await self._increment(music_id, "plays")

    async def increment_views(self, music_id: uuid.UUID) -> Result[int]:
        return await self._increment(music_id, "views")

    async def move_to_folder(
        self,
        music_id: uuid.UUID,
        folder_id: Optional[uuid.UUID]
    ) -> Result[GeneratedMusic]:
        """Put a track in a folder, or take it out with ``folder_id=None``"""
        try:
            music = await self.get_or_404(music_id)
            music.folder_id = folder_id
            await self.session.commit()
            return Result.ok(await self.get_or_404(music_id, selectinload(GeneratedMusic.folder)))

        except NotFoundError as e:
            return Result.err(str(e))
        except Exception as e:
            await self.session.rollback()
            return Result.err(f"Failed to move music to folder: {str(e)}")

    async def get_processing_music(self) -> Result[List[GeneratedMusic]]:
        """Records still waiting on their generation job, oldest first"""
        try:
            result = await self._execute(
                select(GeneratedMusic)
                .where(GeneratedMusic.status.in_([
                    MusicGenerationStatus.PENDING.value,
                    MusicGenerationStatus.PROCESSING.value
                ]))
                .order_by(GeneratedMusic.created_at.asc())
            )
            return Result.ok(list(result.scalars().all()))

        except Exception as e:
            return Result.err(f"Failed to get processing music: {str(e)}")

    async def get_mastering_pending_music(self) -> Result[List[GeneratedMusic]]:
        """Records still waiting on their mastering job, oldest first"""
        try:
            result = await self._execute(
                select(GeneratedMusic)
                .where(GeneratedMusic.mastering_status.in_([
                    MasteringStatus.PENDING.value,
                    MasteringStatus.PROCESSING.value
                ]))
                .order_by(GeneratedMusic.created_at.asc())
            )
            return Result.ok(list(result.scalars().all()))

        except Exception as e:
            return Result.err(f"Failed to get mastering queue: {str(e)}")

    async def get_user_music_stats(self, user_id: str) -> Result[MusicStats]:
        try:
            totals = (await self._execute(
                select(
                    func.count(GeneratedMusic.id),
                    func.coalesce(func.sum(GeneratedMusic.plays), 0),
                    func.coalesce(func.sum(GeneratedMusic.likes), 0)
                ).where(GeneratedMusic.user_id == user_id)
            )).one()

            completed = await self.count({
                "user_id": user_id,
                "status": MusicGenerationStatus.COMPLETED.value
            })

            return Result.ok(MusicStats(
                total_tracks=totals[0],
                completed_tracks=completed,
                total_plays=totals[1],
                total_likes=totals[2]
            ))

        except Exception as e:
            return Result.err(f"Failed to get user music stats: {str(e)}")
