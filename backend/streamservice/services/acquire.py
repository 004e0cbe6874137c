import logging
from pathlib import Path
from typing import Optional

from streamservice.core.config import settings
from streamservice.core.errors import MissingOutputArtifact, ToolError, ToolNonZeroExit
from streamservice.services.storage import StorageManager, storage_manager
from streamservice.services.tools import ToolRunner, run_external_tool

logger = logging.getLogger(__name__)

OUTPUT_STEM = "video"

# leftovers yt-dlp writes while a download is in flight
PARTIAL_SUFFIXES = {".part", ".ytdl", ".temp", ".tmp"}


def format_selector(max_height: int) -> str:
    """best stream at or below max_height, merged video+audio first, single file as fallback"""
    return f"bv*[height<={max_height}]+ba/b[height<={max_height}]"


def find_media_file(job_dir: Path) -> Optional[Path]:
    """
    pick the downloaded file deterministically

    non-empty `video.<ext>` files win over format fragments like
    `video.f137.mp4`; ties break on name
    """
    candidates = []
    for path in job_dir.glob(f"{OUTPUT_STEM}.*"):
        if not path.is_file() or path.suffix.lower() in PARTIAL_SUFFIXES:
            continue
        try:
            if path.stat().st_size <= 0:
                continue
        except OSError:
            continue
        candidates.append(path)

    if not candidates:
        return None
    candidates.sort(key=lambda p: (len(p.suffixes) > 1, p.name))
    return candidates[0]


class Acquirer:
    def __init__(
        self,
        runner: ToolRunner = run_external_tool,
        storage: Optional[StorageManager] = None,
        binary: Optional[str] = None,
        max_resolution: Optional[int] = None,
        timeout: Optional[float] = None,
    ):
        self.runner = runner
        self.storage = storage or storage_manager
        self.binary = binary or settings.YTDLP_BINARY
        self.max_resolution = max_resolution or settings.MAX_RESOLUTION
        self.timeout = timeout if timeout is not None else settings.ACQUIRE_TIMEOUT_SECONDS

    def build_args(self, url: str, job_dir: Path) -> list:
        return [
            "--format", format_selector(self.max_resolution),
            "--merge-output-format", "mp4",
            "--no-playlist",
            "--no-progress",
            "--output", str(job_dir / f"{OUTPUT_STEM}.%(ext)s"),
            url,
        ]

    def acquire(self, url: str, video_id: int) -> Path:
        """
        download the media for a job into its working directory

        returns: path of the downloaded file
        raises ToolError subclasses; on failure no media file is left behind
        """
        job_dir = self.storage.ensure_job_dir(video_id)
        logger.info(f"downloading video {video_id} from {url} (<= {self.max_resolution}p)")

        try:
            result = self.runner(self.binary, self.build_args(url, job_dir), working_dir=job_dir, timeout=self.timeout)
        except ToolError:
            self._discard_partial(job_dir)
            raise

        if not result.ok:
            self._discard_partial(job_dir)
            raise ToolNonZeroExit(self.binary, result.exit_code, result.stderr)

        # exit code 0 alone is not enough, yt-dlp can report success with nothing usable on disk
        media = find_media_file(job_dir)
        if media is None:
            self._discard_partial(job_dir)
            raise MissingOutputArtifact(self.binary, f"no {OUTPUT_STEM}.* file in {job_dir}")

        logger.info(f"downloaded video {video_id}: {media.name} ({media.stat().st_size} bytes)")
        return media

    def _discard_partial(self, job_dir: Path):
        for path in job_dir.glob(f"{OUTPUT_STEM}.*"):
            try:
                path.unlink()
                logger.debug(f"removed partial download {path}")
            except OSError as e:
                logger.warning(f"could not remove partial download {path}: {e}")
