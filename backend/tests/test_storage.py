import pytest

from streamservice.core.errors import PersistenceFailure, retry_with_backoff
from streamservice.services.sources import detect_source, is_http_url


def test_job_dir_layout(storage):
    path = storage.ensure_job_dir(42)

    assert path == storage.videos_dir / "42"
    assert path.is_dir()
    # idempotent
    assert storage.ensure_job_dir(42) == path


def test_remove_job_dir_reports_bytes_freed(storage):
    path = storage.ensure_job_dir(1)
    (path / "segment_000.ts").write_bytes(b"x" * 100)
    (path / "playlist.m3u8").write_bytes(b"y" * 20)

    assert storage.remove_job_dir(1) == 120
    assert not path.exists()
    assert storage.remove_job_dir(1) == 0


def test_disk_usage(storage):
    assert storage.get_disk_usage() == {"videos_gb": 0.0, "job_dirs": 0}

    (storage.ensure_job_dir(1) / "playlist.m3u8").write_bytes(b"z" * 10)
    storage.ensure_job_dir(2)

    usage = storage.get_disk_usage()
    assert usage["job_dirs"] == 2
    assert usage["videos_gb"] > 0


@pytest.mark.parametrize("url,source", [
    ("https://www.youtube.com/watch?v=abc", "youtube"),
    ("https://youtu.be/abc", "youtube"),
    ("https://rutube.ru/video/abc/", "rutube"),
    ("https://vk.com/video-1_2", "vk"),
    ("https://www.kinopoisk.ru/film/1/", "kinopoisk"),
    ("https://notyoutube.com/x", "unknown"),
    ("https://example.test/x", "unknown"),
])
def test_detect_source(url, source):
    assert detect_source(url) == source


def test_is_http_url():
    assert is_http_url("http://example.test/a")
    assert not is_http_url("ftp://example.test/a")
    assert not is_http_url("https://")
    assert not is_http_url("")


def test_retry_with_backoff_retries_then_succeeds():
    sleeps, attempts = [], []

    @retry_with_backoff(max_retries=3, initial_delay=1.0, exceptions=(PersistenceFailure,), sleep=sleeps.append)
    def save():
        attempts.append(1)
        if len(attempts) < 3:
            raise PersistenceFailure("locked")
        return "saved"

    assert save() == "saved"
    assert sleeps == [1.0, 2.0]


def test_retry_with_backoff_gives_up_and_ignores_other_errors():
    sleeps = []

    @retry_with_backoff(max_retries=2, exceptions=(PersistenceFailure,), sleep=sleeps.append)
    def always_locked():
        raise PersistenceFailure("locked")

    with pytest.raises(PersistenceFailure):
        always_locked()
    assert sleeps == [1.0]

    @retry_with_backoff(exceptions=(PersistenceFailure,), sleep=sleeps.append)
    def broken():
        raise ValueError("not retried")

    with pytest.raises(ValueError):
        broken()
    assert sleeps == [1.0]
