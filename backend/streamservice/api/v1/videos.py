import logging
import re
from pathlib import Path
from typing import Optional

from fastapi import APIRouter, Depends, HTTPException, Query, Response
from fastapi.responses import FileResponse
from pydantic import BaseModel, Field
from sqlmodel import Session

from streamservice.core.db import get_session
from streamservice.models import Video, VideoStatus
from streamservice.services.ffmpeg import PLAYLIST_NAME
from streamservice.services.job_store import JobStore
from streamservice.services.log_publisher import publish_status
from streamservice.services.sources import is_http_url
from streamservice.services.storage import StorageManager, storage_manager

logger = logging.getLogger(__name__)

router = APIRouter()

PLAYLIST_MEDIA_TYPE = "application/vnd.apple.mpegurl"
SEGMENT_MEDIA_TYPE = "video/mp2t"
STREAM_FILE_NAME = re.compile(r"^(playlist\.m3u8|segment_\d+\.ts)$")


class AddVideoRequest(BaseModel):
    url: str = Field(min_length=1, max_length=2048)
    title: Optional[str] = Field(default=None, max_length=255)


def get_job_store(session: Session = Depends(get_session)) -> JobStore:
    return JobStore(session.get_bind())


def get_storage() -> StorageManager:
    return storage_manager


def video_to_dict(video: Video) -> dict:
    ready = video.status == VideoStatus.READY.value
    return {
        "id": video.id,
        "title": video.title,
        "url": video.url,
        "source": video.source,
        "status": video.status,
        "artifact_path": video.artifact_path,
        "duration_seconds": video.duration_seconds,
        "file_size_bytes": video.file_size_bytes,
        "thumbnail_url": video.thumbnail_url,
        "description": video.description,
        "failure_reason": video.failure_reason,
        "created_at": video.created_at.isoformat() if video.created_at else None,
        "updated_at": video.updated_at.isoformat() if video.updated_at else None,
        "stream_url": f"/api/videos/{video.id}/stream/{PLAYLIST_NAME}" if ready else None,
    }


def _get_or_404(store: JobStore, video_id: int) -> Video:
    video = store.get(video_id)
    if not video:
        raise HTTPException(status_code=404, detail="video not found")
    return video


@router.get("/")
def list_videos(
    page: int = Query(default=1, ge=1),
    page_size: int = Query(default=20, ge=1, le=100),
    status: Optional[VideoStatus] = None,
    source: Optional[str] = None,
    store: JobStore = Depends(get_job_store),
):
    """videos newest first, optionally filtered by status or source"""
    videos, total = store.list_videos(
        page=page,
        page_size=page_size,
        status=status.value if status else None,
        source=source,
    )
    return {
        "videos": [video_to_dict(v) for v in videos],
        "total_count": total,
        "page": page,
        "page_size": page_size,
    }


@router.post("/", status_code=201)
def add_video(request: AddVideoRequest, store: JobStore = Depends(get_job_store)):
    """queue a url for download and conversion"""
    url = request.url.strip()
    if not is_http_url(url):
        raise HTTPException(status_code=422, detail="url must be an http(s) link")

    video = store.create(url, title=request.title)
    logger.info(f"added video to queue: {url}")
    publish_status(video.id, video.status, detail=url, source='api')
    return video_to_dict(video)


@router.get("/status")
def get_status(store: JobStore = Depends(get_job_store)):
    """queue totals by status"""
    counts = store.status_counts()
    return {
        "total_videos": sum(counts.values()),
        "ready_videos": counts.get(VideoStatus.READY.value, 0),
        "queued_videos": counts.get(VideoStatus.QUEUED.value, 0),
        "processing_videos": counts.get(VideoStatus.DOWNLOADING.value, 0) + counts.get(VideoStatus.PROCESSING.value, 0),
        "failed_videos": counts.get(VideoStatus.FAILED.value, 0),
        "status_breakdown": counts,
    }


@router.get("/{video_id}")
def get_video(video_id: int, store: JobStore = Depends(get_job_store)):
    return video_to_dict(_get_or_404(store, video_id))


@router.delete("/{video_id}", status_code=204)
def delete_video(
    video_id: int,
    store: JobStore = Depends(get_job_store),
    storage: StorageManager = Depends(get_storage),
):
    """delete the record and every file stored for it"""
    _get_or_404(store, video_id)
    storage.remove_job_dir(video_id)
    store.delete(video_id)
    return Response(status_code=204)


def _ready_playlist(store: JobStore, video_id: int) -> Path:
    video = _get_or_404(store, video_id)
    if video.status != VideoStatus.READY.value or not video.artifact_path:
        raise HTTPException(status_code=409, detail="video is not ready for streaming")
    playlist = Path(video.artifact_path)
    if not playlist.exists():
        raise HTTPException(status_code=404, detail="video file not found")
    return playlist


@router.get("/{video_id}/stream")
def stream_playlist(video_id: int, store: JobStore = Depends(get_job_store)):
    playlist = _ready_playlist(store, video_id)
    return FileResponse(playlist, media_type=PLAYLIST_MEDIA_TYPE, filename=playlist.name)


@router.get("/{video_id}/stream/{filename}")
def stream_file(video_id: int, filename: str, store: JobStore = Depends(get_job_store)):
    """playlist or segment of a ready video; segment uris in the playlist resolve here"""
    if not STREAM_FILE_NAME.match(filename):
        raise HTTPException(status_code=404, detail="file not found")
    playlist = _ready_playlist(store, video_id)
    if filename == playlist.name:
        return FileResponse(playlist, media_type=PLAYLIST_MEDIA_TYPE)
    path = playlist.parent / filename
    if not path.is_file():
        raise HTTPException(status_code=404, detail="file not found")
    return FileResponse(path, media_type=SEGMENT_MEDIA_TYPE)
