from uuid import uuid4

from sqlalchemy import (
    CheckConstraint,
    Column,
    DateTime,
    Float,
    ForeignKey,
    Index,
    Integer,
    String,
    Text,
)
from sqlalchemy.orm import relationship
from sqlalchemy.sql import func

from database.base import Base


def _uuid_str() -> str:
    return str(uuid4())


class Post(Base):
    __tablename__ = "posts"

    id = Column(String(36), primary_key=True, default=_uuid_str)
    content_type = Column(String, nullable=False, default="video")
    media_duration_seconds = Column(Float, nullable=True)
    media_width = Column(Integer, nullable=True)
    media_height = Column(Integer, nullable=True)
    created_at = Column(DateTime, nullable=False, server_default=func.now())

    def __repr__(self):
        return f"<Post id={self.id} content_type={self.content_type}>"


class MediaJob(Base):
    __tablename__ = "media_jobs"

    id = Column(String(36), primary_key=True, default=_uuid_str)
    post_id = Column(String(36), ForeignKey("posts.id", ondelete="SET NULL"), nullable=True)
    media_type = Column(String, nullable=False, default="video")
    user_tier = Column(String, nullable=False, default="free")
    raw_file_url = Column(String, nullable=False)

    status = Column(String, nullable=False, default="queued")
    progress = Column(Integer, nullable=False, default=0)

    output_url = Column(String, nullable=True)
    thumbnail_url = Column(String, nullable=True)
    duration_seconds = Column(Float, nullable=True)
    width = Column(Integer, nullable=True)
    height = Column(Integer, nullable=True)

    error_message = Column(Text, nullable=True)
    error_kind = Column(String, nullable=True)

    created_at = Column(DateTime, nullable=False, server_default=func.now())
    updated_at = Column(
        DateTime, nullable=False, server_default=func.now(), onupdate=func.now()
    )
    processed_at = Column(DateTime, nullable=True)

    post = relationship("Post")

    __table_args__ = (
        Index("ix_media_jobs_status_created_at", status, created_at),
        CheckConstraint("progress >= 0 AND progress <= 100", name="ck_media_jobs_progress"),
    )

    def __repr__(self):
        return f"<MediaJob id={self.id} media_type={self.media_type} status={self.status} progress={self.progress}>"


class VideoProject(Base):
    __tablename__ = "video_projects"

    id = Column(String(36), primary_key=True, default=_uuid_str)
    user_id = Column(String(36), nullable=False, index=True)
    user_tier = Column(String, nullable=False, default="free")
    name = Column(String, nullable=False, default="Untitled")
    max_duration_seconds = Column(Integer, nullable=False, default=60)
    current_duration_seconds = Column(Float, nullable=True)

    status = Column(String, nullable=False, default="queued")
    processing_progress = Column(Integer, nullable=False, default=0)
    processing_error = Column(Text, nullable=True)
    error_kind = Column(String, nullable=True)

    output_url = Column(String, nullable=True)
    thumbnail_url = Column(String, nullable=True)

    created_at = Column(DateTime, nullable=False, server_default=func.now())
    updated_at = Column(
        DateTime, nullable=False, server_default=func.now(), onupdate=func.now()
    )
    processed_at = Column(DateTime, nullable=True)

    clips = relationship(
        "VideoClip",
        back_populates="project",
        order_by="VideoClip.sort_order",
        cascade="all, delete-orphan",
    )
    overlays = relationship(
        "VideoOverlay",
        back_populates="project",
        order_by="VideoOverlay.sort_order",
        cascade="all, delete-orphan",
    )

    def __repr__(self):
        return f"<VideoProject id={self.id} status={self.status} progress={self.processing_progress}>"


class VideoClip(Base):
    __tablename__ = "video_clips"

    id = Column(String(36), primary_key=True, default=_uuid_str)
    project_id = Column(
        String(36), ForeignKey("video_projects.id", ondelete="CASCADE"), nullable=False
    )
    source_url = Column(String, nullable=False)
    source_duration = Column(Float, nullable=False)
    source_width = Column(Integer, nullable=True)
    source_height = Column(Integer, nullable=True)
    sort_order = Column(Integer, nullable=False, default=0)
    trim_start = Column(Float, nullable=False, default=0.0)
    trim_end = Column(Float, nullable=True)
    speed = Column(Float, nullable=False, default=1.0)
    filter_preset = Column(String, nullable=True)
    volume = Column(Float, nullable=False, default=1.0)

    project = relationship("VideoProject", back_populates="clips")

    __table_args__ = (
        Index("ix_video_clips_project_sort", project_id, sort_order),
        CheckConstraint("speed > 0", name="ck_video_clips_speed_positive"),
    )


class VideoOverlay(Base):
    __tablename__ = "video_overlays"

    id = Column(String(36), primary_key=True, default=_uuid_str)
    project_id = Column(
        String(36), ForeignKey("video_projects.id", ondelete="CASCADE"), nullable=False
    )
    # drawtext filters are chained in this order, so later overlays draw on top
    sort_order = Column(Integer, nullable=False, default=0)
    type = Column(String, nullable=False, default="text")
    position_x = Column(Float, nullable=False, default=50.0)
    position_y = Column(Float, nullable=False, default=50.0)
    start_time = Column(Float, nullable=False, default=0.0)
    end_time = Column(Float, nullable=True)
    text = Column(Text, nullable=True)
    font_family = Column(String, nullable=True)
    font_size = Column(Integer, nullable=False, default=48)
    font_color = Column(String, nullable=False, default="#FFFFFF")
    background_color = Column(String, nullable=True)

    project = relationship("VideoProject", back_populates="overlays")
