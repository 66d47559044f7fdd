"""Initial AI music schema

Revision ID: a3f1c2d4e5b6
Revises:
Create Date: 2026-10-18 10:12:31.204518

"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa


# revision identifiers, used by Alembic.
revision: str = 'a3f1c2d4e5b6'
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    # Create music_folders table
    op.create_table(
        'music_folders',
        sa.Column('id', sa.Uuid, primary_key=True),
        sa.Column('user_id', sa.String(255), nullable=False),
        sa.Column('name', sa.String(255), nullable=False),
        sa.Column('description', sa.Text, nullable=True),
        sa.Column('color', sa.String(20), nullable=True),
        sa.Column('cover_image', sa.Text, nullable=True),
        sa.Column('track_count', sa.Integer, nullable=False, server_default='0'),
        sa.Column('total_duration', sa.Integer, nullable=False, server_default='0'),
        sa.Column('created_at', sa.DateTime, nullable=False, server_default=sa.text('now()')),
        sa.Column('updated_at', sa.DateTime, nullable=False, server_default=sa.text('now()'))
    )

    # Create generated_music table
    op.create_table(
        'generated_music',
        sa.Column('id', sa.Uuid, primary_key=True),
        sa.Column('user_id', sa.String(255), nullable=False),
        sa.Column('user_email', sa.String(255), nullable=False),
        sa.Column('user_name', sa.String(255), nullable=True),
        sa.Column('prompt', sa.Text, nullable=False),
        sa.Column('enhanced_prompt', sa.Text, nullable=True),
        sa.Column('lyrics', sa.Text, nullable=True),
        sa.Column('style', sa.String(100), nullable=True),
        sa.Column('mood', sa.String(100), nullable=True),
        sa.Column('model', sa.String(100), nullable=False),
        sa.Column('provider', sa.String(50), nullable=False),
        sa.Column('duration', sa.Integer, nullable=False),
        sa.Column('instrumental', sa.Boolean, nullable=False, server_default=sa.false()),
        sa.Column('bpm', sa.Integer, nullable=True),
        sa.Column('key', sa.String(20), nullable=True),
        sa.Column('genre', sa.String(100), nullable=True),
        sa.Column('title', sa.String(255), nullable=True),
        sa.Column('folder_id', sa.Uuid, sa.ForeignKey('music_folders.id', ondelete='SET NULL'), nullable=True),
        sa.Column('credits_reserved', sa.Integer, nullable=False, server_default='0'),
        sa.Column('credits_used', sa.Integer, nullable=True),
        sa.Column('job_id', sa.String(255), nullable=True),
        sa.Column('status', sa.String(20), nullable=False, server_default='pending'),
        sa.Column('progress', sa.Integer, nullable=False, server_default='0'),
        sa.Column('audio_url', sa.Text, nullable=True),
        sa.Column('local_path', sa.Text, nullable=True),
        sa.Column('waveform_url', sa.Text, nullable=True),
        sa.Column('cover_image_url', sa.Text, nullable=True),
        sa.Column('clip_id', sa.String(255), nullable=True),
        sa.Column('mastering_status', sa.String(20), nullable=False, server_default='none'),
        sa.Column('mastering_intensity', sa.String(10), nullable=True),
        sa.Column('mastered_url', sa.Text, nullable=True),
        sa.Column('mastered_local_path', sa.Text, nullable=True),
        sa.Column('mastering_provider', sa.String(50), nullable=True),
        sa.Column('mastering_job_id', sa.String(255), nullable=True),
        sa.Column('mastering_cost', sa.Integer, nullable=True),
        sa.Column('file_size', sa.Integer, nullable=True),
        sa.Column('actual_duration', sa.Float, nullable=True),
        sa.Column('processing_time', sa.Float, nullable=True),
        sa.Column('sample_rate', sa.Integer, nullable=True),
        sa.Column('bit_depth', sa.Integer, nullable=True),
        sa.Column('format', sa.String(10), nullable=True),
        sa.Column('seed', sa.Integer, nullable=True),
        sa.Column('error_message', sa.Text, nullable=True),
        sa.Column('error_code', sa.String(50), nullable=True),
        sa.Column('is_public', sa.Boolean, nullable=False, server_default=sa.true()),
        sa.Column('likes', sa.Integer, nullable=False, server_default='0'),
        sa.Column('liked_by', sa.JSON, nullable=False, server_default=sa.text("'[]'")),
        sa.Column('like_version', sa.Integer, nullable=False, server_default='0'),
        sa.Column('plays', sa.Integer, nullable=False, server_default='0'),
        sa.Column('views', sa.Integer, nullable=False, server_default='0'),
        sa.Column('created_at', sa.DateTime, nullable=False, server_default=sa.text('now()')),
        sa.Column('updated_at', sa.DateTime, nullable=False, server_default=sa.text('now()')),
        sa.Column('completed_at', sa.DateTime, nullable=True),
        sa.Column('mastered_at', sa.DateTime, nullable=True)
    )

    # Create indexes
    op.create_index('idx_music_folders_user_id', 'music_folders', ['user_id'])
    op.create_index('idx_generated_music_user_id', 'generated_music', ['user_id'])
    op.create_index('idx_generated_music_job_id', 'generated_music', ['job_id'])
    op.create_index('idx_generated_music_status', 'generated_music', ['status'])
    op.create_index('idx_generated_music_folder_id', 'generated_music', ['folder_id'])


def downgrade() -> None:
    op.drop_index('idx_generated_music_folder_id', 'generated_music')
    op.drop_index('idx_generated_music_status', 'generated_music')
    op.drop_index('idx_generated_music_job_id', 'generated_music')
    op.drop_index('idx_generated_music_user_id', 'generated_music')
    op.drop_index('idx_music_folders_user_id', 'music_folders')

    op.drop_table('generated_music')
    op.drop_table('music_folders')
