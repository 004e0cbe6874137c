import logging
import subprocess
from dataclasses import dataclass
from typing import Callable, Optional, Sequence, Union
from pathlib import Path

from streamservice.core.errors import ToolNotFound, ToolTimeout

logger = logging.getLogger(__name__)


@dataclass
class ToolResult:
    """outcome of one external tool invocation"""
    exit_code: int
    stdout: str
    stderr: str

    @property
    def ok(self) -> bool:
        return self.exit_code == 0


# signature shared by run_external_tool and the fakes used in tests
ToolRunner = Callable[..., ToolResult]


def run_external_tool(
    name: str,
    args: Sequence[str],
    working_dir: Optional[Union[str, Path]] = None,
    timeout: Optional[float] = None,
) -> ToolResult:
    """
    run an external binary to completion and capture its output

    the process is never run through a shell. a non-zero exit code is
    returned, not raised, so callers decide what counts as failure.
    raises ToolNotFound when the binary cannot be started and ToolTimeout
    when it runs past `timeout` (the process is killed).
    """
    cmd = [name, *[str(a) for a in args]]
    logger.debug(f"running: {' '.join(cmd)}")

    try:
        result = subprocess.run(
            cmd,
            cwd=str(working_dir) if working_dir else None,
            capture_output=True,
            text=True,
            errors="replace",
            timeout=timeout,
        )
    except FileNotFoundError as e:
        raise ToolNotFound(name, f"binary not found ({e})") from e
    except PermissionError as e:
        raise ToolNotFound(name, f"binary not executable ({e})") from e
    except OSError as e:
        raise ToolNotFound(name, f"could not start ({e})") from e
    except subprocess.TimeoutExpired as e:
        raise ToolTimeout(name, timeout) from e

    if result.returncode != 0:
        logger.debug(f"{name} exited with {result.returncode}: {result.stderr[-500:]}")

    return ToolResult(exit_code=result.returncode, stdout=result.stdout or "", stderr=result.stderr or "")
