"""add_media_processing_tables

Revision ID: 1a2b3c4d5e6f
Revises:
Create Date: 2026-10-17 12:00:00.000000

"""

from alembic import op
import sqlalchemy as sa

# revision identifiers, used by Alembic.
revision = "1a2b3c4d5e6f"
down_revision = None
branch_labels = None
depends_on = None


def upgrade() -> None:
    op.create_table(
        "posts",
        sa.Column("id", sa.String(36), nullable=False),
        sa.Column("content_type", sa.String(), nullable=False),
        sa.Column("media_duration_seconds", sa.Float(), nullable=True),
        sa.Column("media_width", sa.Integer(), nullable=True),
        sa.Column("media_height", sa.Integer(), nullable=True),
        sa.Column(
            "created_at", sa.DateTime(), server_default=sa.text("now()"), nullable=False
        ),
        sa.PrimaryKeyConstraint("id"),
    )

    op.create_table(
        "media_jobs",
        sa.Column("id", sa.String(36), nullable=False),
        sa.Column("post_id", sa.String(36), nullable=True),
        sa.Column("media_type", sa.String(), nullable=False),
        sa.Column("user_tier", sa.String(), nullable=False),
        sa.Column("raw_file_url", sa.String(), nullable=False),
        # Status and progress
        sa.Column("status", sa.String(), nullable=False),
        sa.Column("progress", sa.Integer(), nullable=False),
        # Output details
        sa.Column("output_url", sa.String(), nullable=True),
        sa.Column("thumbnail_url", sa.String(), nullable=True),
        sa.Column("duration_seconds", sa.Float(), nullable=True),
        sa.Column("width", sa.Integer(), nullable=True),
        sa.Column("height", sa.Integer(), nullable=True),
        # Error handling
        sa.Column("error_message", sa.Text(), nullable=True),
        sa.Column("error_kind", sa.String(), nullable=True),
        # Timestamps
        sa.Column(
            "created_at", sa.DateTime(), server_default=sa.text("now()"), nullable=False
        ),
        sa.Column(
            "updated_at", sa.DateTime(), server_default=sa.text("now()"), nullable=False
        ),
        sa.Column("processed_at", sa.DateTime(), nullable=True),
        sa.ForeignKeyConstraint(["post_id"], ["posts.id"], ondelete="SET NULL"),
        sa.CheckConstraint(
            "progress >= 0 AND progress <= 100", name="ck_media_jobs_progress"
        ),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index(
        "ix_media_jobs_status_created_at", "media_jobs", ["status", "created_at"]
    )

    op.create_table(
        "video_projects",
        sa.Column("id", sa.String(36), nullable=False),
        sa.Column("user_id", sa.String(36), nullable=False),
        sa.Column("user_tier", sa.String(), nullable=False),
        sa.Column("name", sa.String(), nullable=False),
        sa.Column("max_duration_seconds", sa.Integer(), nullable=False),
        sa.Column("current_duration_seconds", sa.Float(), nullable=True),
        sa.Column("status", sa.String(), nullable=False),
        sa.Column("processing_progress", sa.Integer(), nullable=False),
        sa.Column("processing_error", sa.Text(), nullable=True),
        sa.Column("error_kind", sa.String(), nullable=True),
        sa.Column("output_url", sa.String(), nullable=True),
        sa.Column("thumbnail_url", sa.String(), nullable=True),
        sa.Column(
            "created_at", sa.DateTime(), server_default=sa.text("now()"), nullable=False
        ),
        sa.Column(
            "updated_at", sa.DateTime(), server_default=sa.text("now()"), nullable=False
        ),
        sa.Column("processed_at", sa.DateTime(), nullable=True),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index("ix_video_projects_user_id", "video_projects", ["user_id"])

    op.create_table(
        "video_clips",
        sa.Column("id", sa.String(36), nullable=False),
        sa.Column("project_id", sa.String(36), nullable=False),
        sa.Column("source_url", sa.String(), nullable=False),
        sa.Column("source_duration", sa.Float(), nullable=False),
        sa.Column("source_width", sa.Integer(), nullable=True),
        sa.Column("source_height", sa.Integer(), nullable=True),
        sa.Column("sort_order", sa.Integer(), nullable=False),
        sa.Column("trim_start", sa.Float(), nullable=False),
        sa.Column("trim_end", sa.Float(), nullable=True),
        sa.Column("speed", sa.Float(), nullable=False),
        sa.Column("filter_preset", sa.String(), nullable=True),
        sa.Column("volume", sa.Float(), nullable=False),
        sa.ForeignKeyConstraint(
            ["project_id"], ["video_projects.id"], ondelete="CASCADE"
        ),
        sa.CheckConstraint("speed > 0", name="ck_video_clips_speed_positive"),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index(
        "ix_video_clips_project_sort", "video_clips", ["project_id", "sort_order"]
    )

    op.create_table(
        "video_overlays",
        sa.Column("id", sa.String(36), nullable=False),
        sa.Column("project_id", sa.String(36), nullable=False),
        sa.Column("sort_order", sa.Integer(), nullable=False),
        sa.Column("type", sa.String(), nullable=False),
        sa.Column("position_x", sa.Float(), nullable=False),
        sa.Column("position_y", sa.Float(), nullable=False),
        sa.Column("start_time", sa.Float(), nullable=False),
        sa.Column("end_time", sa.Float(), nullable=True),
        sa.Column("text", sa.Text(), nullable=True),
        sa.Column("font_family", sa.String(), nullable=True),
        sa.Column("font_size", sa.Integer(), nullable=False),
        sa.Column("font_color", sa.String(), nullable=False),
        sa.Column("background_color", sa.String(), nullable=True),
        sa.ForeignKeyConstraint(
            ["project_id"], ["video_projects.id"], ondelete="CASCADE"
        ),
        sa.PrimaryKeyConstraint("id"),
    )


def downgrade() -> None:
    op.drop_table("video_overlays")
    op.drop_index("ix_video_clips_project_sort", table_name="video_clips")
    op.drop_table("video_clips")
    op.drop_index("ix_video_projects_user_id", table_name="video_projects")
    op.drop_table("video_projects")
    op.drop_index("ix_media_jobs_status_created_at", table_name="media_jobs")
    op.drop_table("media_jobs")
    op.drop_table("posts")
