import asyncio
import shutil
import subprocess
from pathlib import Path
from uuid import UUID, uuid4

import jwt
import pytest
from fastapi.testclient import TestClient

from tubely.api import deps
from tubely.core.config import get_settings
from tubely.core.db import Base, create_engine, create_session_factory
from tubely.db.models import Video
from tubely.main import create_app
from tubely.media.probe import ProbeResult, classify_orientation
from tubely.media.tools import MediaTool, faststart_output_path
from tubely.services.video_store import VideoRecord, VideoStore

TEST_SECRET = "test-secret"
TEST_ISSUER = "tubely-access"
PUBLIC_BASE = "https://cdn.tubely.test"


def pytest_configure(config):
    config.addinivalue_line(
        "markers",
        "no_default_env: disable the default Tubely environment bootstrap fixture for tests that manage their own .env",
    )


@pytest.fixture(autouse=True)
def configure_environment(request, monkeypatch, tmp_path, tmp_path_factory):
    if request.node.get_closest_marker("no_default_env"):
        get_settings.cache_clear()
        yield None
        get_settings.cache_clear()
        return
    db_path = tmp_path_factory.mktemp("db") / "tubely_test.db"

    monkeypatch.setenv("TUBELY_ENV", "test")
    monkeypatch.setenv("TUBELY_LOG_LEVEL", "debug")
    monkeypatch.setenv("TUBELY_DB_URL", f"sqlite+aiosqlite:///{db_path}")
    monkeypatch.setenv("TUBELY_STORAGE_BACKEND", "local")
    monkeypatch.setenv("TUBELY_ASSETS_ROOT", str(tmp_path / "assets"))
    monkeypatch.setenv("TUBELY_STAGING_DIR", str(tmp_path / "staging"))
    monkeypatch.setenv("TUBELY_PUBLIC_BASE_URL", PUBLIC_BASE)
    monkeypatch.setenv("TUBELY_JWT_SECRET", TEST_SECRET)
    monkeypatch.setenv("TUBELY_JWT_ISSUER", TEST_ISSUER)

    get_settings.cache_clear()
    settings = get_settings()
    engine = create_engine(settings)

    async def _setup() -> None:
        async with engine.begin() as conn:
            await conn.run_sync(Base.metadata.create_all)

    asyncio.run(_setup())

    yield settings

    async def _teardown() -> None:
        async with engine.begin() as conn:
            await conn.run_sync(Base.metadata.drop_all)
        await engine.dispose()

    asyncio.run(_teardown())
    get_settings.cache_clear()


class FakeMediaTool(MediaTool):
    """Canned probe/normalise results so tests never need real binaries."""

    def __init__(
        self,
        *,
        width: int = 1280,
        height: int = 720,
        probe_error: Exception | None = None,
        normalize_error: Exception | None = None,
    ):
        self.width = width
        self.height = height
        self.probe_error = probe_error
        self.normalize_error = normalize_error
        self.calls: list[tuple[str, Path]] = []

    def probe(self, path: Path) -> ProbeResult:
        self.calls.append(("probe", path))
        assert path.exists(), "probe must run against the staged file"
        if self.probe_error:
            raise self.probe_error
        return ProbeResult(
            width=self.width,
            height=self.height,
            orientation=classify_orientation(self.width, self.height),
            codec_name="h264",
            stream_count=2,
        )

    def normalize(self, path: Path) -> Path:
        self.calls.append(("normalize", path))
        if self.normalize_error:
            raise self.normalize_error
        output = faststart_output_path(path)
        shutil.copyfile(path, output)
        return output


@pytest.fixture()
def media_tool() -> FakeMediaTool:
    return FakeMediaTool()


@pytest.fixture()
def client(configure_environment, media_tool):
    app = create_app()
    app.dependency_overrides[deps.get_media_tool] = lambda: media_tool
    with TestClient(app) as client:
        yield client


def build_token(user_id: UUID | str, *, secret: str = TEST_SECRET, **extra) -> str:
    payload = {"sub": str(user_id), "iss": TEST_ISSUER, **extra}
    return jwt.encode(payload, secret, algorithm="HS256")


@pytest.fixture()
def user_id() -> UUID:
    return uuid4()


@pytest.fixture()
def auth_headers(user_id) -> dict[str, str]:
    return {"Authorization": f"Bearer {build_token(user_id)}"}


def insert_video(
    settings,
    *,
    user_id: UUID,
    title: str = "Sample",
    thumbnail_url: str | None = None,
    video_url: str | None = None,
) -> UUID:
    video_id = uuid4()

    async def _insert() -> None:
        engine = create_engine(settings)
        session_factory = create_session_factory(engine)
        async with session_factory() as session:
            session.add(
                Video(
                    id=str(video_id),
                    user_id=str(user_id),
                    title=title,
                    thumbnail_url=thumbnail_url,
                    video_url=video_url,
                )
            )
            await session.commit()
        await engine.dispose()

    asyncio.run(_insert())
    return video_id


def fetch_video(settings, video_id: UUID) -> VideoRecord | None:
    async def _fetch() -> VideoRecord | None:
        engine = create_engine(settings)
        session_factory = create_session_factory(engine)
        async with session_factory() as session:
            record = await VideoStore(session).get_video(video_id)
        await engine.dispose()
        return record

    return asyncio.run(_fetch())


def directory_entries(path: Path) -> list[Path]:
    if not path.exists():
        return []
    return sorted(path.rglob("*"))


class BytesStream:
    """Minimal async reader standing in for an uploaded file part."""

    def __init__(self, payload: bytes):
        self._payload = payload
        self._offset = 0

    async def read(self, size: int = -1) -> bytes:
        if size < 0:
            size = len(self._payload) - self._offset
        chunk = self._payload[self._offset : self._offset + size]
        self._offset += len(chunk)
        return chunk


def has_ffmpeg() -> bool:
    return shutil.which("ffmpeg") is not None and shutil.which("ffprobe") is not None


@pytest.fixture(scope="session")
def generated_video_file(tmp_path_factory) -> Path:
    """
    Generates a 10-second 1280x720 MP4 (index at the end) in a temporary directory.
    """
    if not has_ffmpeg():
        pytest.skip("ffmpeg/ffprobe not installed")
    video_path = tmp_path_factory.mktemp("data") / "test_video.mp4"

    command = [
        "ffmpeg",
        "-f", "lavfi",
        "-i", "testsrc=size=1280x720:rate=30",
        "-f", "lavfi",
        "-i", "sine=frequency=440:sample_rate=44100",
        "-t", "10",
        "-pix_fmt", "yuv420p",
        "-shortest",
        str(video_path),
    ]
    subprocess.run(command, check=True, capture_output=True)
    return video_path
