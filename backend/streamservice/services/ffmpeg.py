import logging
from dataclasses import dataclass
from pathlib import Path
from typing import Optional

from streamservice.core.config import settings
from streamservice.core.errors import MissingOutputArtifact, ToolNonZeroExit
from streamservice.services.tools import ToolRunner, run_external_tool

logger = logging.getLogger(__name__)

PLAYLIST_NAME = "playlist.m3u8"
SEGMENT_PATTERN = "segment_%03d.ts"
SEGMENT_GLOB = "segment_*.ts"


@dataclass
class HlsOutput:
    playlist_path: Path
    size_bytes: int
    segment_count: int


def hls_size(out_dir: Path) -> tuple:
    """total bytes and segment count of the playlist plus its segments"""
    playlist = out_dir / PLAYLIST_NAME
    segments = [p for p in out_dir.glob(SEGMENT_GLOB) if p.is_file()]
    total = sum(p.stat().st_size for p in segments)
    if playlist.exists():
        total += playlist.stat().st_size
    return total, len(segments)


class Transcoder:
    """packages a downloaded file as a vod HLS stream next to it"""

    def __init__(
        self,
        runner: ToolRunner = run_external_tool,
        binary: Optional[str] = None,
        segment_seconds: Optional[int] = None,
        timeout: Optional[float] = None,
    ):
        self.runner = runner
        self.binary = binary or settings.FFMPEG_BINARY
        self.segment_seconds = segment_seconds or settings.HLS_SEGMENT_SECONDS
        self.timeout = timeout if timeout is not None else settings.TRANSCODE_TIMEOUT_SECONDS

    def build_args(self, source: Path, out_dir: Path) -> list:
        return [
            "-y",                          # overwrite leftovers from an earlier attempt
            "-i", str(source),
            "-c:v", "libx264",             # H.264 video (universally supported)
            "-preset", "veryfast",
            "-pix_fmt", "yuv420p",         # pixel format for compatibility
            "-c:a", "aac",                 # AAC audio (universally supported)
            "-b:a", "128k",
            "-f", "hls",
            "-hls_time", str(self.segment_seconds),
            "-hls_list_size", "0",         # keep every segment in the playlist
            "-hls_playlist_type", "vod",
            "-hls_segment_filename", str(out_dir / SEGMENT_PATTERN),
            str(out_dir / PLAYLIST_NAME),
        ]

    def transcode(self, source: Path, video_id: int) -> HlsOutput:
        """
        convert the acquired file to HLS in the same directory

        on success the source file is deleted. on failure the source and any
        partial segments stay on disk for diagnosis.
        """
        source = Path(source)
        out_dir = source.parent
        playlist = out_dir / PLAYLIST_NAME

        logger.info(f"transcoding video {video_id}: {source.name} -> {PLAYLIST_NAME} ({self.segment_seconds}s segments)")
        result = self.runner(self.binary, self.build_args(source, out_dir), working_dir=out_dir, timeout=self.timeout)

        if not result.ok:
            raise ToolNonZeroExit(self.binary, result.exit_code, result.stderr)
        if not playlist.exists():
            raise MissingOutputArtifact(self.binary, f"{playlist} was not written")

        # clean up the original download to bound storage use
        try:
            source.unlink()
        except OSError as e:
            logger.warning(f"could not delete source file {source}: {e}")

        size, segment_count = hls_size(out_dir)
        logger.info(f"transcoded video {video_id}: {segment_count} segments, {size} bytes")
        return HlsOutput(playlist_path=playlist, size_bytes=size, segment_count=segment_count)
