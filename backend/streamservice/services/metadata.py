"""
Metadata probe for submitted urls.

Asks yt-dlp for its JSON info dump without downloading anything and keeps the
handful of fields shown in the library. Enrichment is best effort: any failure
yields no metadata and the pipeline carries on to acquisition.
"""

import logging
import math
from typing import Optional, Dict, Any

from pydantic import BaseModel, ConfigDict, ValidationError, field_validator

from streamservice.core.config import settings
from streamservice.core.errors import ParseFailure, ToolError
from streamservice.models import TITLE_MAX_LENGTH
from streamservice.services.tools import ToolRunner, run_external_tool

logger = logging.getLogger(__name__)


class VideoInfo(BaseModel):
    """the subset of yt-dlp's info dict we store; every field is optional"""

    model_config = ConfigDict(extra="ignore")

    title: Optional[str] = None
    duration: Optional[int] = None
    thumbnail: Optional[str] = None
    description: Optional[str] = None

    @field_validator("title", "thumbnail", "description", mode="before")
    @classmethod
    def _text_or_none(cls, value):
        if not isinstance(value, str) or not value.strip():
            return None
        return value

    @field_validator("title")
    @classmethod
    def _fit_title_column(cls, value):
        if value is not None and len(value) > TITLE_MAX_LENGTH:
            return value[:TITLE_MAX_LENGTH]
        return value

    @field_validator("duration", mode="before")
    @classmethod
    def _whole_seconds(cls, value):
        # yt-dlp reports fractional seconds for some extractors, live streams may report inf
        if isinstance(value, bool):
            return None
        if isinstance(value, str):
            try:
                value = float(value)
            except ValueError:
                return None
        if isinstance(value, (int, float)):
            if isinstance(value, float) and not math.isfinite(value):
                return None
            return int(value) if value >= 0 else None
        return None

    def as_patch(self) -> Dict[str, Any]:
        """job record fields, absent values left out"""
        fields = {
            "title": self.title,
            "duration_seconds": self.duration,
            "thumbnail_url": self.thumbnail,
            "description": self.description,
        }
        return {key: value for key, value in fields.items() if value is not None}


def parse_video_info(output: str) -> VideoInfo:
    """
    parse the first JSON object in yt-dlp --dump-json output

    raises ParseFailure when no line holds a JSON object
    """
    text = (output or "").strip()
    if not text:
        raise ParseFailure("empty metadata output")

    try:
        return VideoInfo.model_validate_json(text)
    except (ValidationError, ValueError, ArithmeticError):
        pass

    # one object per line when several entries are dumped
    for line in text.splitlines():
        line = line.strip()
        if not line.startswith("{"):
            continue
        try:
            return VideoInfo.model_validate_json(line)
        except (ValidationError, ValueError, ArithmeticError):
            continue

    raise ParseFailure("no JSON object in metadata output")


class MetadataExtractor:
    def __init__(
        self,
        runner: ToolRunner = run_external_tool,
        binary: Optional[str] = None,
        timeout: Optional[float] = None,
    ):
        self.runner = runner
        self.binary = binary or settings.YTDLP_BINARY
        self.timeout = timeout if timeout is not None else settings.PROBE_TIMEOUT_SECONDS

    def probe(self, url: str) -> Optional[VideoInfo]:
        args = ["--dump-json", "--no-playlist", "--skip-download", "--no-warnings", url]
        try:
            result = self.runner(self.binary, args, timeout=self.timeout)
        except ToolError as e:
            logger.warning(f"metadata probe failed for {url}: {e}")
            return None

        if not result.ok:
            logger.warning(f"metadata probe for {url} exited with code {result.exit_code}")
            return None

        try:
            info = parse_video_info(result.stdout)
        except ParseFailure as e:
            logger.warning(f"could not parse metadata for {url}: {e}")
            return None

        logger.info(f"metadata for {url}: title={info.title!r} duration={info.duration}")
        return info
