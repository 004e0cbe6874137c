import json
import os
import tempfile

# configure before streamservice.core.config is imported
os.environ["DATABASE_URL"] = "sqlite://"
os.environ["DATA_DIR"] = tempfile.mkdtemp(prefix="streamservice-test-")
os.environ["REDIS_URL"] = ""
os.environ["YTDLP_BINARY"] = "yt-dlp"
os.environ["FFMPEG_BINARY"] = "ffmpeg"

from pathlib import Path

import pytest
from sqlmodel import SQLModel, create_engine
from sqlmodel.pool import StaticPool

from streamservice.core.db import make_engine
from streamservice.services.job_store import JobStore
from streamservice.services.storage import StorageManager
from streamservice.services.tools import ToolResult


class FakeToolRunner:
    """
    stands in for run_external_tool

    each handler receives (args, working_dir) and returns a ToolResult or an
    exception instance to raise; handlers are picked by tool and mode
    """

    def __init__(self, probe=None, acquire=None, transcode=None):
        self.probe = probe or exits(1, "probe not configured")
        self.acquire = acquire or exits(1, "download not configured")
        self.transcode = transcode or exits(1, "transcode not configured")
        self.calls = []

    def __call__(self, name, args, working_dir=None, timeout=None):
        args = list(args)
        self.calls.append((name, args))
        if name == "ffmpeg":
            handler = self.transcode
        elif "--dump-json" in args:
            handler = self.probe
        else:
            handler = self.acquire

        result = handler(args, Path(working_dir) if working_dir else None)
        if isinstance(result, Exception):
            raise result
        return result

    def calls_to(self, mode):
        if mode == "transcode":
            return [c for c in self.calls if c[0] == "ffmpeg"]
        if mode == "probe":
            return [c for c in self.calls if c[0] != "ffmpeg" and "--dump-json" in c[1]]
        return [c for c in self.calls if c[0] != "ffmpeg" and "--dump-json" not in c[1]]


def exits(code, stderr="", stdout=""):
    def handler(args, working_dir):
        return ToolResult(exit_code=code, stdout=stdout, stderr=stderr)
    return handler


def raises(error):
    def handler(args, working_dir):
        return error
    return handler


def probe_returns(data):
    return exits(0, stdout=json.dumps(data))


def download_writes(filename="video.mp4", content=b"fake media bytes"):
    def handler(args, working_dir):
        (working_dir / filename).write_bytes(content)
        return ToolResult(exit_code=0, stdout="", stderr="")
    return handler


def hls_writes(segments=3):
    def handler(args, working_dir):
        lines = ["#EXTM3U", "#EXT-X-TARGETDURATION:10"]
        for index in range(segments):
            name = f"segment_{index:03d}.ts"
            (working_dir / name).write_bytes(b"\x47" * 188)
            lines += ["#EXTINF:10.0,", name]
        lines.append("#EXT-X-ENDLIST")
        (working_dir / "playlist.m3u8").write_text("\n".join(lines) + "\n")
        return ToolResult(exit_code=0, stdout="", stderr="")
    return handler


@pytest.fixture(name="engine")
def engine_fixture():
    engine = create_engine(
        "sqlite:///:memory:",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    SQLModel.metadata.create_all(engine)
    yield engine
    engine.dispose()


@pytest.fixture(name="file_engine")
def file_engine_fixture(tmp_path):
    """sqlite file database, one connection per thread, for concurrency tests"""
    engine = make_engine(f"sqlite:///{tmp_path / 'jobs.db'}")
    SQLModel.metadata.create_all(engine)
    yield engine
    engine.dispose()


@pytest.fixture(name="store")
def store_fixture(engine):
    return JobStore(engine)


@pytest.fixture(name="storage")
def storage_fixture(tmp_path):
    return StorageManager(str(tmp_path / "videos"))
