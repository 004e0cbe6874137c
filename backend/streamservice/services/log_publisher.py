from streamservice.core.config import settings
import json
import logging
from streamservice.models import utc_now
from typing import Literal, Optional

logger = logging.getLogger(__name__)

LOG_CHANNEL = 'system_logs'

# created on first publish; stays None while REDIS_URL is unset
_redis_client = None

def get_redis_client():
    global _redis_client
    if _redis_client is None and settings.REDIS_URL:
        import redis
        _redis_client = redis.from_url(settings.REDIS_URL)
    return _redis_client

LogLevel = Literal['INFO', 'WARNING', 'ERROR', 'SUCCESS', 'DEBUG']
LogSource = Literal['pipeline', 'api', 'system']

# pipeline status -> level shown in the live log
STATUS_LEVELS = {
    'Queued': 'INFO',
    'Downloading': 'INFO',
    'Processing': 'INFO',
    'Ready': 'SUCCESS',
    'Failed': 'ERROR',
}

def publish_log(
    source: LogSource,
    level: LogLevel,
    message: str,
    metadata: Optional[dict] = None
) -> bool:
    """publish one entry on the live log channel; returns whether it was sent"""
    log_entry = {
        "timestamp": utc_now().isoformat(),
        "source": source,
        "level": level,
        "message": message,
        "metadata": metadata or {}
    }

    try:
        redis_client = get_redis_client()
        if redis_client is None:
            return False
        redis_client.publish(LOG_CHANNEL, json.dumps(log_entry, default=str))
        return True
    except Exception as e:
        # live logs are best effort, the pipeline never waits on redis
        logger.debug(f"failed to publish log: {e}")
        return False

def publish_status(video_id: int, status: str, detail: str = "", source: LogSource = 'pipeline', **metadata) -> bool:
    """announce a video status change on the live log channel"""
    status = getattr(status, 'value', status)
    message = f"video {video_id} {status.lower()}"
    if detail:
        message = f"{message}: {detail}"
    return publish_log(
        source,
        STATUS_LEVELS.get(status, 'INFO'),
        message,
        {"video_id": video_id, "status": status, **metadata},
    )
