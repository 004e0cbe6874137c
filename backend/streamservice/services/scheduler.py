"""
Polling scheduler for the ingestion pipeline.

Each worker repeatedly claims the oldest queued video and runs it through the
pipeline. Claims are atomic in the job store, so any number of workers can
poll the same table without two of them processing one video. Waiting goes
through an injectable `wait` callable so tests never sleep for real.
"""

import logging
import threading
from typing import Callable, List, Optional

from streamservice.core.config import settings
from streamservice.models import Video
from streamservice.services.job_store import JobStore
from streamservice.services.log_publisher import publish_log

logger = logging.getLogger(__name__)


class PipelineScheduler:
    def __init__(
        self,
        store: JobStore,
        process: Callable[[Video], Video],
        *,
        workers: Optional[int] = None,
        idle_seconds: Optional[float] = None,
        error_seconds: Optional[float] = None,
        stop_event: Optional[threading.Event] = None,
        wait: Optional[Callable[[float], object]] = None,
    ):
        self.store = store
        self.process = process
        self.workers = max(1, workers or settings.WORKER_COUNT)
        self.idle_seconds = settings.POLL_IDLE_SECONDS if idle_seconds is None else idle_seconds
        self.error_seconds = settings.POLL_ERROR_SECONDS if error_seconds is None else error_seconds
        self._stop = stop_event or threading.Event()
        # Event.wait returns early as soon as stop() is called
        self._wait = wait or self._stop.wait
        self._threads: List[threading.Thread] = []

    @property
    def stopping(self) -> bool:
        return self._stop.is_set()

    def stop(self):
        """request shutdown; idle workers wake immediately, busy ones finish their current step"""
        if not self._stop.is_set():
            logger.info("pipeline shutdown requested")
        self._stop.set()

    def select_next_job(self) -> Optional[Video]:
        return self.store.claim_next_queued()

    def run_once(self) -> bool:
        """claim and process at most one video; returns whether one was processed"""
        # no new claims once shutdown is requested
        if self._stop.is_set():
            return False
        video = self.select_next_job()
        if video is None:
            return False
        self.process(video)
        return True

    def _loop(self, name: str):
        logger.info(f"{name} started")
        while not self._stop.is_set():
            try:
                handled = self.run_once()
            except Exception as e:
                # never let one bad poll kill the worker
                logger.exception(f"{name}: error in pipeline loop")
                publish_log('pipeline', 'ERROR', f'pipeline loop error: {e}', {'worker': name})
                self._wait(self.error_seconds)
                continue

            if not handled:
                self._wait(self.idle_seconds)
        logger.info(f"{name} stopped")

    def start(self):
        """start the worker threads in the background"""
        for index in range(self.workers):
            name = f"pipeline-worker-{index + 1}"
            thread = threading.Thread(target=self._loop, args=(name,), name=name, daemon=True)
            self._threads.append(thread)
            thread.start()

    def join(self, timeout: Optional[float] = None):
        for thread in self._threads:
            thread.join(timeout)

    def run(self):
        """block until stop() is called"""
        publish_log('pipeline', 'INFO', f'pipeline started with {self.workers} worker(s)')
        if self.workers == 1:
            self._loop("pipeline-worker-1")
        else:
            self.start()
            self.join()
        publish_log('pipeline', 'INFO', 'pipeline stopped')
