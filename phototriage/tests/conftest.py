"""测试配置和共享fixture"""

import pytest
from sqlmodel import Session, SQLModel, create_engine
from sqlalchemy.pool import StaticPool

from phototriage.services.media.status_manager import RecordStore
from phototriage.services.media.types import FolderLayout
from phototriage.tests.fakes import CAMERA, COMPLETED, PENDING, FakeFileSystem


@pytest.fixture
def in_memory_db():
    """创建内存SQLite数据库用于测试"""
    engine = create_engine(
        "sqlite:///:memory:",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    SQLModel.metadata.create_all(engine)
    return engine


@pytest.fixture
def db_session_factory(in_memory_db):
    """数据库会话工厂"""
    def _get_session():
        return Session(in_memory_db)
    return _get_session


@pytest.fixture
def store(db_session_factory):
    return RecordStore(db_session_factory)


@pytest.fixture
def fake_fs():
    fs = FakeFileSystem()
    for folder in (CAMERA, PENDING, COMPLETED):
        fs.dirs.add(folder)
    return fs


@pytest.fixture
def folders():
    return FolderLayout(CAMERA, PENDING, COMPLETED)


@pytest.fixture
def image_extensions():
    return frozenset({"jpg", "jpeg", "png", "gif", "webp", "heic", "heif"})


@pytest.fixture
def video_extensions():
    return frozenset({"mp4", "mov", "avi", "mkv", "webm", "3gp"})


@pytest.fixture
def allowed_extensions(image_extensions, video_extensions):
    return image_extensions | video_extensions
