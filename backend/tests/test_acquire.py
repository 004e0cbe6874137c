import pytest

from conftest import FakeToolRunner, download_writes, exits, raises
from streamservice.core.errors import MissingOutputArtifact, ToolNonZeroExit, ToolTimeout
from streamservice.services.acquire import Acquirer, find_media_file, format_selector
from streamservice.services.tools import ToolResult


def make_acquirer(runner, storage, max_resolution=1080):
    return Acquirer(runner, storage=storage, binary="yt-dlp", max_resolution=max_resolution, timeout=60)


def test_acquire_returns_downloaded_file(storage):
    runner = FakeToolRunner(acquire=download_writes("video.mp4"))

    path = make_acquirer(runner, storage).acquire("https://example.test/v", 7)

    assert path == storage.job_dir(7) / "video.mp4"
    assert path.read_bytes() == b"fake media bytes"


def test_download_args_carry_resolution_ceiling(storage):
    runner = FakeToolRunner(acquire=download_writes())

    make_acquirer(runner, storage, max_resolution=720).acquire("https://example.test/v", 1)

    name, args = runner.calls[0]
    assert name == "yt-dlp"
    assert args[args.index("--format") + 1] == format_selector(720)
    assert "height<=720" in format_selector(720)
    assert args[args.index("--merge-output-format") + 1] == "mp4"
    assert args[args.index("--output") + 1] == str(storage.job_dir(1) / "video.%(ext)s")
    assert args[-1] == "https://example.test/v"


def test_exit_zero_without_file_is_missing_artifact(storage):
    runner = FakeToolRunner(acquire=exits(0))

    with pytest.raises(MissingOutputArtifact):
        make_acquirer(runner, storage).acquire("https://example.test/v", 1)


def test_zero_byte_file_is_missing_artifact(storage):
    runner = FakeToolRunner(acquire=download_writes("video.mp4", content=b""))

    with pytest.raises(MissingOutputArtifact):
        make_acquirer(runner, storage).acquire("https://example.test/v", 1)

    assert list(storage.job_dir(1).glob("video.*")) == []


def test_non_zero_exit_removes_partial_download(storage):
    def partial_then_fail(args, working_dir):
        (working_dir / "video.mp4.part").write_bytes(b"half")
        return ToolResult(exit_code=1, stdout="", stderr="ERROR: HTTP Error 403: Forbidden")

    runner = FakeToolRunner(acquire=partial_then_fail)

    with pytest.raises(ToolNonZeroExit) as exc_info:
        make_acquirer(runner, storage).acquire("https://example.test/v", 1)

    assert exc_info.value.exit_code == 1
    assert "403" in str(exc_info.value)
    assert list(storage.job_dir(1).glob("video.*")) == []


def test_timeout_propagates_and_cleans_up(storage):
    def partial_then_timeout(args, working_dir):
        (working_dir / "video.webm.part").write_bytes(b"half")
        return ToolTimeout("yt-dlp", 60)

    runner = FakeToolRunner(acquire=partial_then_timeout)

    with pytest.raises(ToolTimeout):
        make_acquirer(runner, storage).acquire("https://example.test/v", 1)

    assert list(storage.job_dir(1).glob("video.*")) == []


def test_find_media_file_is_deterministic(tmp_path):
    (tmp_path / "video.webm").write_bytes(b"w")
    (tmp_path / "video.mp4").write_bytes(b"m")
    (tmp_path / "video.f137.mp4").write_bytes(b"fragment")
    (tmp_path / "video.mkv.part").write_bytes(b"partial")

    assert find_media_file(tmp_path).name == "video.mp4"


def test_find_media_file_falls_back_to_fragment(tmp_path):
    (tmp_path / "video.f137.mp4").write_bytes(b"fragment")
    (tmp_path / "video.mp4.part").write_bytes(b"partial")

    assert find_media_file(tmp_path).name == "video.f137.mp4"


def test_find_media_file_empty_dir(tmp_path):
    assert find_media_file(tmp_path) is None


def test_launch_failure_propagates(storage):
    from streamservice.core.errors import ToolNotFound

    runner = FakeToolRunner(acquire=raises(ToolNotFound("yt-dlp", "binary not found")))

    with pytest.raises(ToolNotFound):
        make_acquirer(runner, storage).acquire("https://example.test/v", 1)
