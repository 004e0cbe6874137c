import signal
import threading
import time
from typing import Callable, Optional

from streamservice.core.config import settings
from streamservice.core.errors import (
    InvalidTransition,
    PersistenceFailure,
    PipelineInterrupted,
    ToolError,
    handle_worker_error,
    retry_with_backoff,
)
from streamservice.core.logging_config import configure_logging, get_logger
from streamservice.models import Video, VideoStatus
from streamservice.services.acquire import Acquirer
from streamservice.services.ffmpeg import Transcoder
from streamservice.services.job_store import JobStore
from streamservice.services.log_publisher import publish_log, publish_status
from streamservice.services.metadata import MetadataExtractor
from streamservice.services.scheduler import PipelineScheduler
from streamservice.services.storage import StorageManager
from streamservice.services.tools import ToolRunner, run_external_tool

logger = get_logger(__name__)

INTERRUPTED_REASON = "interrupted by shutdown"


class VideoPipeline:
    """
    runs one claimed video through probe -> download -> transcode

    the Video returned by each store update is threaded into the next step,
    so every transition is persisted exactly once before moving on. failures
    end the job as Failed and never propagate to the scheduler.
    """

    def __init__(
        self,
        store: JobStore,
        extractor: MetadataExtractor,
        acquirer: Acquirer,
        transcoder: Transcoder,
        should_stop: Callable[[], bool] = lambda: False,
        persist_retries: int = 3,
        sleep: Callable[[float], None] = time.sleep,
    ):
        self.store = store
        self.extractor = extractor
        self.acquirer = acquirer
        self.transcoder = transcoder
        self.should_stop = should_stop
        self._persist = retry_with_backoff(
            max_retries=persist_retries,
            initial_delay=1.0,
            exceptions=(PersistenceFailure,),
            sleep=sleep,
        )(store.update)

    def _check_stop(self):
        if self.should_stop():
            raise PipelineInterrupted(INTERRUPTED_REASON)

    def process(self, video: Video) -> Video:
        video_id = video.id
        try:
            publish_status(video_id, video.status, detail=video.url)

            # metadata is best effort, a failed probe returns None
            info = self.extractor.probe(video.url)
            if info is not None:
                video = self._save_metadata(video, info.as_patch())

            self._check_stop()
            video = self._persist(video_id, status=VideoStatus.PROCESSING)
            publish_status(video_id, VideoStatus.PROCESSING, detail="fetching media")
            media_path = self.acquirer.acquire(video.url, video_id)
            publish_log('pipeline', 'INFO', f'downloaded video {video_id}', {'file': media_path.name})

            self._check_stop()
            output = self.transcoder.transcode(media_path, video_id)

            video = self._persist(
                video_id,
                status=VideoStatus.READY,
                artifact_path=str(output.playlist_path),
                file_size_bytes=output.size_bytes,
            )
            logger.info(f"video {video_id} ready: {output.playlist_path}")
            publish_status(
                video_id,
                VideoStatus.READY,
                detail=f"{output.segment_count} segments",
                segments=output.segment_count,
                size_mb=round(output.size_bytes / (1024 * 1024), 2),
            )
            return video

        except PersistenceFailure as e:
            # the store is unreachable, so the job stays in its last persisted state
            logger.error(f"video {video_id} abandoned, could not persist transition: {e}")
            publish_log('pipeline', 'ERROR', f'video {video_id} abandoned: {e}')
            return video
        except PipelineInterrupted as e:
            logger.warning(f"video {video_id} interrupted by shutdown")
            return self._mark_failed(video, e)
        except ToolError as e:
            logger.error(f"video {video_id} failed: {e}")
            return self._mark_failed(video, e)
        except Exception as e:
            handle_worker_error(video_id, e)
            return self._mark_failed(video, e)

    def _save_metadata(self, video: Video, patch: dict) -> Video:
        """a metadata write that keeps failing counts as no metadata"""
        if not patch:
            return video
        try:
            return self._persist(video.id, **patch)
        except PersistenceFailure as e:
            logger.warning(f"could not save metadata for video {video.id}, continuing without it: {e}")
            return video

    def _mark_failed(self, video: Video, error: Exception) -> Video:
        publish_status(video.id, VideoStatus.FAILED, detail=str(error))
        try:
            return self._persist(video.id, status=VideoStatus.FAILED, failure_reason=str(error) or type(error).__name__)
        except (PersistenceFailure, InvalidTransition) as e:
            logger.error(f"could not mark video {video.id} failed: {e}")
            return video


def build_scheduler(
    store: Optional[JobStore] = None,
    runner: ToolRunner = run_external_tool,
    storage: Optional[StorageManager] = None,
    workers: Optional[int] = None,
) -> PipelineScheduler:
    """wire the pipeline steps to a scheduler sharing one stop flag"""
    store = store or JobStore()
    stop_event = threading.Event()
    pipeline = VideoPipeline(
        store,
        MetadataExtractor(runner),
        Acquirer(runner, storage=storage),
        Transcoder(runner),
        should_stop=stop_event.is_set,
    )
    return PipelineScheduler(store, pipeline.process, workers=workers, stop_event=stop_event)


def main():
    configure_logging()
    from streamservice.core.db import init_db
    init_db()

    scheduler = build_scheduler()

    def request_shutdown(signum, frame):
        logger.info(f"received signal {signum}, finishing current step")
        scheduler.stop()

    signal.signal(signal.SIGINT, request_shutdown)
    signal.signal(signal.SIGTERM, request_shutdown)

    logger.info(
        f"starting pipeline: {scheduler.workers} worker(s), videos in {settings.VIDEOS_DIR}"
    )
    scheduler.run()


if __name__ == "__main__":
    main()
