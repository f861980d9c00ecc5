import pytest
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

from database.base import Base
import database.models  # noqa: F401
from utils.processing_config import ProcessingConfig
from utils.storage import BlobStorage, StorageConfig


PUBLIC_BASE_URL = "https://cdn.example.com/media"


class InMemoryStorage(BlobStorage):
    """BlobStorage backed by a dict; records every call."""

    def __init__(self, objects: dict[str, bytes] | None = None):
        super().__init__(
            StorageConfig(bucket="media", public_base_url=PUBLIC_BASE_URL)
        )
        self.objects: dict[str, bytes] = dict(objects or {})
        self.content_types: dict[str, str] = {}
        self.downloads: list[str] = []
        self.uploads: list[str] = []
        self.fail_uploads_for: set[str] = set()

    def download(self, key: str) -> bytes:
        self.downloads.append(key)
        if key not in self.objects:
            raise FileNotFoundError(f"No such object: {key}")
        return self.objects[key]

    def upload(self, key: str, data: bytes, content_type: str) -> None:
        if key in self.fail_uploads_for:
            raise ConnectionError(f"Upload rejected for {key}")
        self.uploads.append(key)
        self.objects[key] = data
        self.content_types[key] = content_type


@pytest.fixture
def db():
    engine = create_engine(
        "sqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    Base.metadata.create_all(engine)
    session = sessionmaker(bind=engine, autoflush=False)()
    try:
        yield session
    finally:
        session.close()
        engine.dispose()


@pytest.fixture
def storage() -> InMemoryStorage:
    return InMemoryStorage()


@pytest.fixture
def config(tmp_path) -> ProcessingConfig:
    return ProcessingConfig(
        temp_dir=str(tmp_path / "work"),
        ffmpeg_timeout_seconds=60,
        ffprobe_timeout_seconds=10,
        stale_job_timeout_seconds=660,
    )


@pytest.fixture
def leftover_files():
    def _leftover(root) -> list:
        return [path for path in root.rglob("*") if path.is_file()]

    return _leftover
