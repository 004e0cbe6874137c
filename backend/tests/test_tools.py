import sys

import pytest

from streamservice.core.errors import ToolNotFound, ToolTimeout
from streamservice.services.tools import run_external_tool


def test_captures_stdout():
    result = run_external_tool(sys.executable, ["-c", "print('hello')"])

    assert result.ok
    assert result.stdout.strip() == "hello"


def test_non_zero_exit_is_returned():
    result = run_external_tool(sys.executable, ["-c", "import sys; sys.stderr.write('bad'); sys.exit(3)"])

    assert not result.ok
    assert result.exit_code == 3
    assert result.stderr == "bad"


def test_arguments_are_not_shell_interpreted():
    result = run_external_tool(sys.executable, ["-c", "import sys; print(sys.argv[1])", "$HOME; echo hi"])

    assert result.stdout.strip() == "$HOME; echo hi"


def test_missing_binary_raises():
    with pytest.raises(ToolNotFound):
        run_external_tool("definitely-not-a-real-binary-xyz", ["--version"])


def test_timeout_raises():
    with pytest.raises(ToolTimeout) as exc_info:
        run_external_tool(sys.executable, ["-c", "import time; time.sleep(5)"], timeout=0.5)

    assert "timed out" in str(exc_info.value)


def test_working_dir_is_honored(tmp_path):
    result = run_external_tool(sys.executable, ["-c", "import os; print(os.getcwd())"], working_dir=tmp_path)

    assert result.stdout.strip() == str(tmp_path.resolve())
