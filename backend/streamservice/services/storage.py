import logging
import os
import shutil
from pathlib import Path
from typing import Optional

from streamservice.core.config import settings

logger = logging.getLogger(__name__)


class StorageManager:
    """owns the on-disk layout: one directory per video id under the videos root"""

    def __init__(self, videos_dir: Optional[str] = None):
        self.videos_dir = Path(videos_dir or settings.VIDEOS_DIR)

    def job_dir(self, video_id: int) -> Path:
        return self.videos_dir / str(video_id)

    def ensure_job_dir(self, video_id: int) -> Path:
        """create the working directory for a job, idempotently"""
        path = self.job_dir(video_id)
        path.mkdir(parents=True, exist_ok=True)
        return path

    def remove_job_dir(self, video_id: int) -> int:
        """
        delete a job's directory and everything in it
        returns: bytes freed (0 if nothing was there or removal failed)
        """
        path = self.job_dir(video_id)
        if not path.exists():
            return 0

        size = self._get_directory_size(str(path))
        try:
            shutil.rmtree(path)
        except OSError as e:
            logger.warning(f"failed to delete files for video {video_id}: {e}")
            return 0

        logger.info(f"deleted {path} ({size} bytes)")
        return size

    def get_disk_usage(self) -> dict:
        """get current disk usage statistics for stored videos"""
        if not self.videos_dir.exists():
            return {"videos_gb": 0.0, "job_dirs": 0}

        job_dirs = [entry for entry in os.scandir(self.videos_dir) if entry.is_dir()]
        total_size = self._get_directory_size(str(self.videos_dir))
        return {
            "videos_gb": total_size / (1024**3),
            "job_dirs": len(job_dirs),
        }

    def _get_directory_size(self, path: str) -> int:
        """recursively calculate directory size in bytes"""
        total = 0
        try:
            for entry in os.scandir(path):
                if entry.is_file():
                    total += entry.stat().st_size
                elif entry.is_dir():
                    total += self._get_directory_size(entry.path)
        except OSError as e:
            logger.warning(f"error calculating size for {path}: {e}")
        return total


# singleton instance
storage_manager = StorageManager()
