from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from contextlib import asynccontextmanager

import asyncio
import sys

from loguru import logger
from phototriage.config import settings
from phototriage.api import router as api_router, tags_metadata
from phototriage.db import create_db_and_tables, get_session_factory
from phototriage.core.platform import LocalFileSystem, LocalPermission, LoggingMediaIndex
from phototriage.services.media.scanner import background_scanner_task
from phototriage.services.media.status_manager import RecordStore
from phototriage.services.media.thumbnails import ThumbnailPipeline
from phototriage.services.media.triage import TriageService

# 配置日志
logger.remove()
logger.add(
    sink=sys.stderr,
    level=settings.LOG_LEVEL.value,
    format="<green>{time:YYYY-MM-DD HH:mm:ss}</green> | "
            "<level>{level}</level> | "
            "{extra} {message}"
)


def build_service(db_session_factory) -> TriageService:
    """根据全局配置组装分拣服务及其本地适配器"""
    store = RecordStore(db_session_factory)
    fs = LocalFileSystem(settings.BASE_DIR)
    thumbnails = ThumbnailPipeline(
        store,
        resolve_path=fs.resolve,
        width=settings.THUMBNAIL_WIDTH,
        quality=settings.THUMBNAIL_QUALITY,
        frame_offset_seconds=settings.VIDEO_FRAME_OFFSET_SECONDS,
        video_timeout_seconds=settings.VIDEO_THUMBNAIL_TIMEOUT_SECONDS,
        ffmpeg_path=settings.FFMPEG_PATH,
    )
    return TriageService.from_settings(
        settings,
        store,
        fs,
        LocalPermission(settings.BASE_DIR),
        media_index=LoggingMediaIndex(),
        thumbnails=thumbnails,
    )


@asynccontextmanager
async def lifespan(app: FastAPI):
    # Startup
    logger.info("应用启动，开始初始化...")
    create_db_and_tables()
    logger.info("数据库和表初始化完成")

    service = build_service(get_session_factory())
    app.state.triage_service = service
    service.thumbnails.start()

    # 首次扫描失败不阻止启动，调用方可通过 /api/scan 重试
    try:
        report = await service.load_records()
        if report.blocked:
            logger.warning("启动扫描被跳过：存储权限未授予")
    except Exception as e:
        logger.error(f"启动扫描失败: {e}")

    background_tasks = []
    if settings.SCAN_INTERVAL_SECONDS > 0:
        scanner_task = asyncio.create_task(
            background_scanner_task(service.load_records, settings.SCAN_INTERVAL_SECONDS)
        )
        scanner_task.set_name("scanner")
        background_tasks.append(scanner_task)
        logger.info(f"启动后台扫描任务（间隔: {settings.SCAN_INTERVAL_SECONDS}秒）")

    yield

    # Shutdown
    logger.info("正在关闭所有后台任务...")
    for task in background_tasks:
        task.cancel()
    await asyncio.gather(*background_tasks, return_exceptions=True)
    await service.thumbnails.stop()
    logger.info("所有后台任务已关闭")


app = FastAPI(title="PhotoTriage API", lifespan=lifespan, openapi_tags=tags_metadata)

# 添加 CORS 中间件
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.get_cors_origins_list(),
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

# 引入API路由
app.include_router(api_router)


@app.get("/")
def read_root():
    return {"message": "Welcome to PhotoTriage API"}
