import logging
from typing import Callable, Any, Optional
from functools import wraps
import time

logger = logging.getLogger(__name__)

def retry_with_backoff(
    max_retries: int = 3,
    initial_delay: float = 1.0,
    backoff_factor: float = 2.0,
    exceptions: tuple = (Exception,),
    sleep: Callable[[float], None] = time.sleep,
):
    """
    decorator to retry a function with exponential backoff

    usage:
        @retry_with_backoff(max_retries=5, initial_delay=2.0, exceptions=(PersistenceFailure,))
        def save_status(video_id, status):
            # ... code that might fail ...
    """
    def decorator(func: Callable) -> Callable:
        @wraps(func)
        def wrapper(*args, **kwargs) -> Any:
            delay = initial_delay
            last_exception = None

            for attempt in range(max_retries):
                try:
                    return func(*args, **kwargs)
                except exceptions as e:
                    last_exception = e
                    if attempt < max_retries - 1:
                        logger.warning(
                            f"{func.__name__} failed (attempt {attempt + 1}/{max_retries}): {str(e)}. "
                            f"retrying in {delay}s..."
                        )
                        sleep(delay)
                        delay *= backoff_factor
                    else:
                        logger.error(
                            f"{func.__name__} failed after {max_retries} attempts: {str(e)}"
                        )

            # all retries exhausted
            raise last_exception

        return wrapper
    return decorator


def handle_worker_error(video_id: int, error: Exception):
    """
    centralized error handler for pipeline jobs
    logs the failure with traceback for server-side diagnosis
    """
    logger.error(f"video {video_id} failed: {error}", exc_info=error)


class StreamServiceException(Exception):
    """base exception for streamservice-specific errors"""
    pass


class ToolError(StreamServiceException):
    """raised when an external tool (yt-dlp, ffmpeg) does not produce what was asked"""

    def __init__(self, tool: str, message: str):
        self.tool = tool
        super().__init__(f"{tool}: {message}")


class ToolNotFound(ToolError):
    """raised when the external binary could not be started"""
    pass


# any OS-level failure to start the process is reported the same way
ToolLaunchFailure = ToolNotFound


class ToolNonZeroExit(ToolError):
    """raised when the process ran but reported failure"""

    def __init__(self, tool: str, exit_code: int, stderr: str = ""):
        self.exit_code = exit_code
        self.stderr = stderr
        tail = stderr.strip().splitlines()[-1] if stderr and stderr.strip() else ""
        message = f"exited with code {exit_code}"
        if tail:
            message = f"{message}: {tail}"
        super().__init__(tool, message)


class ToolTimeout(ToolError):
    """raised when the process exceeded its execution timeout and was killed"""

    def __init__(self, tool: str, timeout: Optional[float]):
        self.timeout = timeout
        super().__init__(tool, f"timed out after {timeout}s")


class MissingOutputArtifact(ToolError):
    """raised when the process exited 0 but the expected file is absent"""
    pass


class ParseFailure(StreamServiceException):
    """raised when metadata output is malformed"""
    pass


class PersistenceFailure(StreamServiceException):
    """raised when the job record store could not be read or updated"""
    pass


class InvalidTransition(StreamServiceException):
    """raised when a status change would move a job backward or out of a terminal state"""
    pass


class PipelineInterrupted(StreamServiceException):
    """raised between pipeline steps once shutdown has been requested"""
    pass
