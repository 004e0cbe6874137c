from datetime import datetime, timezone
from enum import Enum
from sqlalchemy import DateTime
from sqlmodel import SQLModel, Field
from typing import Optional


TITLE_MAX_LENGTH = 255


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


class VideoStatus(str, Enum):
    QUEUED = "Queued"
    DOWNLOADING = "Downloading"
    PROCESSING = "Processing"
    READY = "Ready"
    FAILED = "Failed"


TERMINAL_STATUSES = (VideoStatus.READY, VideoStatus.FAILED)

# forward order of the pipeline; Failed sits outside it
_STATUS_RANK = {
    VideoStatus.QUEUED: 0,
    VideoStatus.DOWNLOADING: 1,
    VideoStatus.PROCESSING: 2,
    VideoStatus.READY: 3,
}


def can_transition(current: str, new: str) -> bool:
    """true if moving a job from `current` to `new` keeps the state machine monotonic"""
    current, new = VideoStatus(current), VideoStatus(new)
    if current == new:
        return True
    if current in TERMINAL_STATUSES:
        return False
    if new == VideoStatus.FAILED:
        return True
    return _STATUS_RANK[new] > _STATUS_RANK[current]


class Video(SQLModel, table=True):
    __tablename__ = "videos"
    id: Optional[int] = Field(default=None, primary_key=True)
    url: str
    source: str = Field(default="unknown", max_length=50, index=True)  # youtube, rutube, vk, kinopoisk, unknown
    status: str = Field(default=VideoStatus.QUEUED.value, max_length=20, index=True)

    # filled by the metadata probe
    title: Optional[str] = Field(default=None, nullable=True, max_length=TITLE_MAX_LENGTH)
    duration_seconds: Optional[int] = Field(default=None, nullable=True)
    thumbnail_url: Optional[str] = Field(default=None, nullable=True)
    description: Optional[str] = Field(default=None, nullable=True)

    # set only when status is Ready
    artifact_path: Optional[str] = Field(default=None, nullable=True)
    file_size_bytes: Optional[int] = Field(default=None, nullable=True)

    # set only when status is Failed
    failure_reason: Optional[str] = Field(default=None, nullable=True)

    created_at: datetime = Field(default_factory=utc_now, index=True, sa_type=DateTime(timezone=True))
    updated_at: datetime = Field(default_factory=utc_now, sa_type=DateTime(timezone=True))
