import logging
from typing import Optional, List, Tuple, Dict

from sqlalchemy import update
from sqlalchemy.exc import SQLAlchemyError
from sqlmodel import Session, select, func

from streamservice.core.errors import PersistenceFailure, InvalidTransition
from streamservice.models import Video, VideoStatus, can_transition, utc_now
from streamservice.services.sources import detect_source

logger = logging.getLogger(__name__)

# columns the pipeline may patch; id, url, source and created_at are immutable
MUTABLE_FIELDS = {
    "status",
    "title",
    "duration_seconds",
    "thumbnail_url",
    "description",
    "artifact_path",
    "file_size_bytes",
    "failure_reason",
}

MAX_FAILURE_REASON = 2000


class JobStore:
    """durable job records for the ingestion pipeline, one row per submitted url"""

    def __init__(self, engine=None):
        if engine is None:
            from streamservice.core.db import engine as default_engine
            engine = default_engine
        self.engine = engine

    def create(self, url: str, title: Optional[str] = None) -> Video:
        """create a job record in the database when a url is submitted"""
        with Session(self.engine) as session:
            video = Video(
                url=url,
                title=title,
                source=detect_source(url),
                status=VideoStatus.QUEUED.value,
            )
            session.add(video)
            session.commit()
            session.refresh(video)
            logger.info(f"queued video {video.id}: {url}")
            return video

    def get(self, video_id: int) -> Optional[Video]:
        with Session(self.engine) as session:
            return session.get(Video, video_id)

    def list_videos(
        self,
        page: int = 1,
        page_size: int = 20,
        status: Optional[str] = None,
        source: Optional[str] = None,
    ) -> Tuple[List[Video], int]:
        """newest first, with the total count matching the filters"""
        query = select(Video)
        count_query = select(func.count()).select_from(Video)
        if status:
            query = query.where(Video.status == status)
            count_query = count_query.where(Video.status == status)
        if source:
            query = query.where(Video.source == source)
            count_query = count_query.where(Video.source == source)

        query = (
            query.order_by(Video.created_at.desc(), Video.id.desc())
            .offset((page - 1) * page_size)
            .limit(page_size)
        )
        with Session(self.engine) as session:
            videos = list(session.exec(query).all())
            total = session.exec(count_query).one()
        return videos, total

    def status_counts(self) -> Dict[str, int]:
        with Session(self.engine) as session:
            rows = session.exec(select(Video.status, func.count()).group_by(Video.status)).all()
        return {status: count for status, count in rows}

    def claim_next_queued(self) -> Optional[Video]:
        """
        atomically take the oldest queued job and mark it downloading

        the claim is a single conditional update guarded on status, so when two
        workers race for the same row only one update matches; the loser moves
        on to the next queued row
        """
        while True:
            try:
                with Session(self.engine) as session:
                    candidate_id = session.exec(
                        select(Video.id)
                        .where(Video.status == VideoStatus.QUEUED.value)
                        .order_by(Video.created_at, Video.id)
                        .limit(1)
                    ).first()

                if candidate_id is None:
                    return None

                with self.engine.begin() as conn:
                    result = conn.execute(
                        update(Video)
                        .where(Video.id == candidate_id)
                        .where(Video.status == VideoStatus.QUEUED.value)
                        .values(status=VideoStatus.DOWNLOADING.value, updated_at=utc_now())
                    )
            except SQLAlchemyError as e:
                raise PersistenceFailure(f"could not claim next queued video: {e}") from e

            if result.rowcount == 1:
                logger.info(f"claimed video {candidate_id}")
                return self.get(candidate_id)

            logger.debug(f"lost claim race for video {candidate_id}, retrying")

    def update(self, video_id: int, **patch) -> Video:
        """
        apply a partial mutation and refresh updated_at

        None values are ignored so metadata is never cleared. status changes
        must move forward through the state machine, and artifact_path may
        only be present together with status Ready.
        """
        unknown = set(patch) - MUTABLE_FIELDS
        if unknown:
            raise ValueError(f"cannot update fields: {sorted(unknown)}")

        patch = {key: value for key, value in patch.items() if value is not None}
        if "failure_reason" in patch:
            patch["failure_reason"] = str(patch["failure_reason"])[:MAX_FAILURE_REASON]

        try:
            with Session(self.engine) as session:
                video = session.get(Video, video_id)
                if not video:
                    raise PersistenceFailure(f"video {video_id} not found")

                new_status = patch.pop("status", None)
                if new_status is not None:
                    if not can_transition(video.status, new_status):
                        raise InvalidTransition(
                            f"video {video_id}: {video.status} -> {VideoStatus(new_status).value} not allowed"
                        )
                    video.status = VideoStatus(new_status).value

                for key, value in patch.items():
                    setattr(video, key, value)

                is_ready = video.status == VideoStatus.READY.value
                if is_ready and not video.artifact_path:
                    raise InvalidTransition(f"video {video_id}: Ready requires an artifact path")
                if not is_ready and video.artifact_path:
                    raise InvalidTransition(f"video {video_id}: artifact path requires status Ready")
                if video.failure_reason and video.status != VideoStatus.FAILED.value:
                    raise InvalidTransition(f"video {video_id}: failure reason requires status Failed")

                video.updated_at = utc_now()
                session.add(video)
                session.commit()
                session.refresh(video)
                return video
        except SQLAlchemyError as e:
            raise PersistenceFailure(f"could not update video {video_id}: {e}") from e

    def delete(self, video_id: int) -> bool:
        try:
            with Session(self.engine) as session:
                video = session.get(Video, video_id)
                if not video:
                    return False
                session.delete(video)
                session.commit()
                return True
        except SQLAlchemyError as e:
            raise PersistenceFailure(f"could not delete video {video_id}: {e}") from e
