from __future__ import annotations

from enum import Enum
from pathlib import Path

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict
from loguru import logger


class LogLevel(str, Enum):
    """日志级别枚举"""
    TRACE = "TRACE"
    DEBUG = "DEBUG"
    INFO = "INFO"
    WARNING = "WARNING"
    ERROR = "ERROR"
    CRITICAL = "CRITICAL"


class AppEnv(str, Enum):
    """应用运行环境枚举"""
    DEV = "development"
    PROD = "production"


def _validate_extension_list(v: str, label: str) -> str:
    """校验逗号分隔的扩展名列表，统一为小写、无前导点号的形式"""
    if not v:
        raise ValueError(f"{label}不能为空")

    extensions = [ext.strip() for ext in v.split(',') if ext.strip()]
    if not extensions:
        raise ValueError(f"{label}列表不能为空")

    validated = []
    for extension in extensions:
        body = extension[1:] if extension.startswith('.') else extension
        if not body:
            raise ValueError(f"扩展名不能只有点号: {extension}")
        if not all(c.isalnum() for c in body):
            raise ValueError(f"扩展名只能包含字母和数字: {extension}")
        validated.append(body.lower())

    return ','.join(validated)


class Settings(BaseSettings):
    """项目全局配置。

    所有字段均可通过环境变量或 `.env` 文件注入。
    三个文件夹在进程生命周期内固定不变，运行时不可修改。
    """

    # ---- 数据库 ----
    DATABASE_URL: str = "sqlite:///phototriage.db"
    SQLITE_ECHO: bool = False

    # ---- 文件夹布局 ----
    BASE_DIR: Path = Field(
        default=Path.home(),
        description="所有相对路径的根目录（相当于设备的外部存储根目录）"
    )
    CAMERA_FOLDER: str = Field(
        default="DCIM/Camera",
        description="只读的相机源文件夹（相对 BASE_DIR）"
    )
    PENDING_FOLDER: str = Field(
        default="Pictures/PhotoTriage/Pending",
        description="可写的待处理文件夹（相对 BASE_DIR）"
    )
    COMPLETED_FOLDER: str = Field(
        default="Pictures/PhotoTriage/Completed",
        description="可写的已完成文件夹（相对 BASE_DIR）"
    )

    # ---- 支持的媒体类型 ----
    IMAGE_EXTENSIONS: str = Field(
        default="jpg,jpeg,png,gif,webp,heic,heif",
        description="支持的图片扩展名，逗号分隔格式"
    )
    VIDEO_EXTENSIONS: str = Field(
        default="mp4,mov,avi,mkv,webm,3gp",
        description="支持的视频扩展名，逗号分隔格式"
    )

    # ---- 缩略图 ----
    THUMBNAIL_WIDTH: int = Field(default=300, ge=16, le=2048, description="缩略图目标宽度（像素）")
    THUMBNAIL_QUALITY: int = Field(default=70, ge=1, le=95, description="JPEG 编码质量")
    VIDEO_FRAME_OFFSET_SECONDS: float = Field(default=1.0, ge=0, description="视频截帧的时间点（秒）")
    VIDEO_THUMBNAIL_TIMEOUT_SECONDS: float = Field(default=10.0, gt=0, description="视频截帧的超时时间（秒）")
    FFMPEG_PATH: str = Field(default="ffmpeg", description="ffmpeg 可执行文件路径")

    # ---- 扫描与并发 ----
    SCAN_INTERVAL_SECONDS: int = Field(
        default=0,
        ge=0,
        description="后台重新扫描的间隔（秒），0 表示关闭后台扫描"
    )
    SERIALIZE_OPERATIONS: bool = Field(
        default=True,
        description="是否串行化扫描与状态转换，避免重扫描观察到中间状态"
    )

    # ---- 运行环境 & 日志 ----
    LOG_LEVEL: LogLevel = Field(LogLevel.INFO, description="日志级别")
    APP_ENV: AppEnv = Field(AppEnv.DEV, description="运行环境: development/production")

    # ---- 跨域 ----
    CORS_ORIGINS: str = Field(default="*", description="允许的跨域来源，逗号分隔")

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
        validate_default=True,
    )

    # ---- 验证器 ----
    @field_validator("DATABASE_URL")
    @classmethod
    def validate_database_url(cls, v: str) -> str:
        """验证SQLite数据库URL格式"""
        if not v.startswith("sqlite:///"):
            raise ValueError("仅支持SQLite数据库，URL必须以'sqlite:///'开头")
        return v

    @field_validator("BASE_DIR")
    @classmethod
    def validate_base_dir(cls, v: Path) -> Path:
        """根目录统一为绝对路径；是否存在及读写权限由 PermissionPort 在运行时判断"""
        return v.expanduser().resolve()

    @field_validator("CAMERA_FOLDER", "PENDING_FOLDER", "COMPLETED_FOLDER")
    @classmethod
    def validate_folder(cls, v: str) -> str:
        """文件夹必须是相对路径，统一使用 '/' 分隔"""
        folder = v.strip().replace("\\", "/").strip("/")
        if not folder:
            raise ValueError("文件夹路径不能为空")
        if any(part == ".." for part in folder.split("/")):
            raise ValueError(f"文件夹路径不能包含 '..': {v}")
        return folder

    @field_validator("IMAGE_EXTENSIONS")
    @classmethod
    def validate_image_extensions(cls, v: str) -> str:
        return _validate_extension_list(v, "图片扩展名")

    @field_validator("VIDEO_EXTENSIONS")
    @classmethod
    def validate_video_extensions(cls, v: str) -> str:
        return _validate_extension_list(v, "视频扩展名")

    @field_validator("CORS_ORIGINS")
    @classmethod
    def validate_cors_origins(cls, v: str) -> str:
        """验证CORS源地址格式"""
        if not v:
            raise ValueError("CORS源地址不能为空")

        if v.strip() == "*":
            return "*"

        origins = [origin.strip() for origin in v.split(',') if origin.strip()]
        if not origins:
            raise ValueError("CORS源地址列表不能为空")

        for origin in origins:
            if origin != "*" and not (origin.startswith("http://") or origin.startswith("https://")):
                raise ValueError(f"CORS源地址必须以http://或https://开头，或使用通配符*: {origin}")

        return ','.join(origins)

    def get_cors_origins_list(self) -> list[str]:
        """获取CORS_ORIGINS的列表形式"""
        return self.CORS_ORIGINS.split(',')


# 全局单例
_settings: Settings | None = None


def get_settings(force_reload: bool = False) -> Settings:
    """返回全局配置单例，如果不存在则创建。

    Args:
        force_reload: 是否强制重新加载配置

    Returns:
        Settings实例
    """
    global _settings
    if _settings is None or force_reload:
        _settings = Settings()
        logger.debug(
            f"配置已加载 - 根目录: {_settings.BASE_DIR}, "
            f"相机: {_settings.CAMERA_FOLDER}, 待处理: {_settings.PENDING_FOLDER}, "
            f"已完成: {_settings.COMPLETED_FOLDER}"
        )
    return _settings


# 初始化单例
settings = get_settings()

__all__ = [
    "Settings",
    "LogLevel",
    "AppEnv",
    "settings",
    "get_settings",
]
