import os

class Settings:
    PROJECT_NAME: str = os.getenv("PROJECT_NAME", "StreamService")
    DATABASE_URL: str = os.getenv("DATABASE_URL", "postgresql://postgres:postgres@db:5432/streamservice")
    REDIS_URL: str = os.getenv("REDIS_URL", "")  # empty disables live log publishing

    # storage paths
    DATA_DIR: str = os.getenv("DATA_DIR", "/data")
    VIDEOS_DIR: str = os.getenv("VIDEOS_DIR", os.path.join(DATA_DIR, "videos"))

    # logging
    LOG_DIR: str = os.getenv("LOG_DIR", "")  # empty logs to stdout only
    LOG_LEVEL: str = os.getenv("LOG_LEVEL", "INFO")

    # external tools
    YTDLP_BINARY: str = os.getenv("YTDLP_BINARY", "yt-dlp")
    FFMPEG_BINARY: str = os.getenv("FFMPEG_BINARY", "ffmpeg")
    MAX_RESOLUTION: int = int(os.getenv("MAX_RESOLUTION", "1080"))
    HLS_SEGMENT_SECONDS: int = int(os.getenv("HLS_SEGMENT_SECONDS", "10"))

    # subprocess timeouts (seconds)
    PROBE_TIMEOUT_SECONDS: float = float(os.getenv("PROBE_TIMEOUT_SECONDS", "120"))
    ACQUIRE_TIMEOUT_SECONDS: float = float(os.getenv("ACQUIRE_TIMEOUT_SECONDS", "3600"))
    TRANSCODE_TIMEOUT_SECONDS: float = float(os.getenv("TRANSCODE_TIMEOUT_SECONDS", "7200"))

    # pipeline scheduler
    POLL_IDLE_SECONDS: float = float(os.getenv("POLL_IDLE_SECONDS", "5"))
    POLL_ERROR_SECONDS: float = float(os.getenv("POLL_ERROR_SECONDS", "10"))
    WORKER_COUNT: int = int(os.getenv("WORKER_COUNT", "1"))

settings = Settings()
