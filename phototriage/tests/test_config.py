"""配置模块测试用例"""

from pathlib import Path

import pytest
from pydantic import ValidationError

from phototriage.config import AppEnv, LogLevel, Settings, get_settings


@pytest.fixture
def isolated_env(tmp_path, monkeypatch):
    """切换到临时目录并清除相关环境变量，避免读取开发者本地的 .env"""
    monkeypatch.chdir(tmp_path)
    for name in Settings.model_fields:
        monkeypatch.delenv(name, raising=False)
    return tmp_path


def test_defaults(isolated_env):
    """
    Given: 没有环境变量和 .env 文件
    When: Settings 类被实例化
    Then: 使用默认的文件夹布局、扩展名和缩略图参数
    """
    settings = Settings()

    assert settings.DATABASE_URL == "sqlite:///phototriage.db"
    assert settings.CAMERA_FOLDER == "DCIM/Camera"
    assert settings.PENDING_FOLDER == "Pictures/PhotoTriage/Pending"
    assert settings.COMPLETED_FOLDER == "Pictures/PhotoTriage/Completed"
    assert settings.IMAGE_EXTENSIONS == "jpg,jpeg,png,gif,webp,heic,heif"
    assert settings.VIDEO_EXTENSIONS == "mp4,mov,avi,mkv,webm,3gp"
    assert settings.THUMBNAIL_WIDTH == 300
    assert settings.THUMBNAIL_QUALITY == 70
    assert settings.VIDEO_FRAME_OFFSET_SECONDS == 1.0
    assert settings.VIDEO_THUMBNAIL_TIMEOUT_SECONDS == 10.0
    assert settings.SCAN_INTERVAL_SECONDS == 0
    assert settings.SERIALIZE_OPERATIONS is True
    assert settings.LOG_LEVEL == LogLevel.INFO
    assert settings.APP_ENV == AppEnv.DEV
    assert settings.BASE_DIR.is_absolute()


def test_settings_from_env_file(isolated_env):
    """从 .env 文件加载配置"""
    storage = isolated_env / "storage"
    (isolated_env / ".env").write_text(
        f"""
DATABASE_URL=sqlite:///{isolated_env}/test.db
BASE_DIR={storage}
PENDING_FOLDER=Pictures\\Triage\\Pending
IMAGE_EXTENSIONS=.JPG, .Png
VIDEO_EXTENSIONS=mp4
SCAN_INTERVAL_SECONDS=60
LOG_LEVEL=DEBUG
CORS_ORIGINS=http://localhost:5173, https://example.com
""",
        encoding="utf-8",
    )

    settings = Settings()

    assert settings.DATABASE_URL.endswith("/test.db")
    assert settings.BASE_DIR == storage.resolve()
    assert settings.PENDING_FOLDER == "Pictures/Triage/Pending"
    assert settings.IMAGE_EXTENSIONS == "jpg,png"
    assert settings.VIDEO_EXTENSIONS == "mp4"
    assert settings.SCAN_INTERVAL_SECONDS == 60
    assert settings.LOG_LEVEL == LogLevel.DEBUG
    assert settings.get_cors_origins_list() == ["http://localhost:5173", "https://example.com"]


def test_env_vars_override_defaults(isolated_env, monkeypatch):
    monkeypatch.setenv("COMPLETED_FOLDER", "Done")
    monkeypatch.setenv("SERIALIZE_OPERATIONS", "false")

    settings = Settings()

    assert settings.COMPLETED_FOLDER == "Done"
    assert settings.SERIALIZE_OPERATIONS is False


@pytest.mark.parametrize("field, value", [
    ("DATABASE_URL", "postgresql://localhost/db"),
    ("CAMERA_FOLDER", "../outside"),
    ("PENDING_FOLDER", "   "),
    ("IMAGE_EXTENSIONS", ""),
    ("IMAGE_EXTENSIONS", "jpg,."),
    ("VIDEO_EXTENSIONS", "mp4,m-p4"),
    ("THUMBNAIL_WIDTH", "0"),
    ("THUMBNAIL_QUALITY", "100"),
    ("VIDEO_THUMBNAIL_TIMEOUT_SECONDS", "0"),
    ("SCAN_INTERVAL_SECONDS", "-1"),
    ("CORS_ORIGINS", "localhost:5173"),
])
def test_invalid_values_are_rejected(isolated_env, monkeypatch, field, value):
    monkeypatch.setenv(field, value)

    with pytest.raises(ValidationError):
        Settings()


def test_get_settings_singleton_and_reload(isolated_env, monkeypatch):
    first = get_settings()
    assert get_settings() is first

    monkeypatch.setenv("CAMERA_FOLDER", "Camera")
    reloaded = get_settings(force_reload=True)

    assert reloaded is not first
    assert reloaded.CAMERA_FOLDER == "Camera"

    monkeypatch.delenv("CAMERA_FOLDER")
    assert get_settings(force_reload=True).CAMERA_FOLDER == "DCIM/Camera"


def test_base_dir_expands_user(isolated_env, monkeypatch):
    monkeypatch.setenv("BASE_DIR", "~/media-root")

    settings = Settings()

    assert settings.BASE_DIR == (Path.home() / "media-root").resolve()
