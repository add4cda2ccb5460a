"""分拣服务门面

把扫描、合并、状态转换和缩略图流水线组装成一个显式组件。
所有外部协作方（文件系统、权限、媒体索引、记录存储）都通过构造参数注入，
测试时可以替换为内存实现。

扫描与用户发起的转换通过同一把 asyncio.Lock 串行执行（SERIALIZE_OPERATIONS），
这样重新扫描不会观察到转换进行到一半的文件系统状态。
"""

from __future__ import annotations

import asyncio
import contextlib
from typing import Sequence

from loguru import logger

from ...config import Settings
from ...core.models import MediaRecord, RecordStatus
from ...core.ports import FileSystemPort, MediaIndexPort, PermissionPort, PermissionState, RecordStorePort
from .reconciler import reconcile
from .scanner import list_media_files, parse_extensions
from .thumbnails import ThumbnailPipeline
from .transitions import TransitionEngine
from .types import BatchResult, FolderLayout, ScanReport, TransitionResult


class TriageService:

    def __init__(
        self,
        store: RecordStorePort,
        fs: FileSystemPort,
        permission: PermissionPort,
        *,
        folders: FolderLayout,
        image_extensions: frozenset[str],
        video_extensions: frozenset[str],
        media_index: MediaIndexPort | None = None,
        thumbnails: ThumbnailPipeline | None = None,
        serialize_operations: bool = True,
    ):
        self.store = store
        self.fs = fs
        self.permission = permission
        self.folders = folders
        self.video_extensions = frozenset(video_extensions)
        self.allowed_extensions = frozenset(image_extensions) | self.video_extensions
        self.thumbnails = thumbnails
        self.engine = TransitionEngine(
            store,
            fs,
            folders,
            allowed_extensions=self.allowed_extensions,
            media_index=media_index,
            permission=permission,
            thumbnails=thumbnails,
        )
        self._lock = asyncio.Lock() if serialize_operations else None

    @classmethod
    def from_settings(
        cls,
        settings: Settings,
        store: RecordStorePort,
        fs: FileSystemPort,
        permission: PermissionPort,
        *,
        media_index: MediaIndexPort | None = None,
        thumbnails: ThumbnailPipeline | None = None,
    ) -> "TriageService":
        return cls(
            store,
            fs,
            permission,
            folders=FolderLayout(settings.CAMERA_FOLDER, settings.PENDING_FOLDER, settings.COMPLETED_FOLDER),
            image_extensions=parse_extensions(settings.IMAGE_EXTENSIONS),
            video_extensions=parse_extensions(settings.VIDEO_EXTENSIONS),
            media_index=media_index,
            thumbnails=thumbnails,
            serialize_operations=settings.SERIALIZE_OPERATIONS,
        )

    def _serialized(self):
        return self._lock if self._lock is not None else contextlib.nullcontext()

    # ------------------------------------------------------------------
    # 权限
    # ------------------------------------------------------------------

    async def ensure_permissions(self) -> bool:
        """检查存储权限，未授权时申请一次

        Returns:
            bool: 是否已授权
        """
        try:
            status = await self.permission.check_status()
            logger.debug(f"存储权限状态: {status}")
            if status == PermissionState.GRANTED:
                return True
            status = await self.permission.request()
            logger.info(f"存储权限申请结果: {status}")
            return status == PermissionState.GRANTED
        except Exception as e:
            logger.error(f"检查权限时出错: {e}")
            return False

    # ------------------------------------------------------------------
    # 扫描
    # ------------------------------------------------------------------

    async def initialize_folders(self) -> None:
        """创建待处理与已完成文件夹（已存在时不做任何事）"""
        for folder in (self.folders.pending, self.folders.completed):
            await self.fs.mkdir(folder)

    async def load_records(self) -> ScanReport:
        """完整扫描三个文件夹并合并为记录

        权限未授予时返回 blocked=True。文件夹初始化或记录存储的故障会向上抛出，
        由调用方整体重试。
        """
        if not await self.ensure_permissions():
            logger.warning("存储权限未授予，跳过扫描")
            return ScanReport(blocked=True, records=[])

        async with self._serialized():
            logger.info("开始完整扫描...")
            await self.initialize_folders()

            camera, pending, completed = await asyncio.gather(
                list_media_files(self.fs, self.folders.camera, self.allowed_extensions),
                list_media_files(self.fs, self.folders.pending, self.allowed_extensions),
                list_media_files(self.fs, self.folders.completed, self.allowed_extensions),
            )
            logger.info(
                f"相机: {len(camera)} 个文件, 待处理: {len(pending)} 个文件, 已完成: {len(completed)} 个文件"
            )

            records = await reconcile(
                camera,
                pending,
                completed,
                store=self.store,
                fs=self.fs,
                folders=self.folders,
                video_extensions=self.video_extensions,
                thumbnails=self.thumbnails,
            )

        logger.info(f"共加载 {len(records)} 条记录")
        return ScanReport(
            blocked=False,
            records=records,
            camera_files=len(camera),
            pending_files=len(pending),
            completed_files=len(completed),
        )

    # ------------------------------------------------------------------
    # 查询
    # ------------------------------------------------------------------

    def get_record(self, record_id: str) -> MediaRecord | None:
        return self.store.get(record_id)

    def filter_by_status(self, status: RecordStatus | None = None) -> Sequence[MediaRecord]:
        """按状态筛选记录（None 表示全部），按修改时间倒序"""
        return self.store.enumerate(status)

    # ------------------------------------------------------------------
    # 状态转换
    # ------------------------------------------------------------------

    async def transition(self, record_id: str, target: RecordStatus | str) -> TransitionResult:
        async with self._serialized():
            return await self.engine.transition(record_id, target)

    async def mark_pending(self, record_id: str) -> TransitionResult:
        return await self.transition(record_id, RecordStatus.PENDING)

    async def complete(self, record_id: str) -> TransitionResult:
        return await self.transition(record_id, RecordStatus.COMPLETED)

    async def revert_to_camera(self, record_id: str) -> TransitionResult:
        return await self.transition(record_id, RecordStatus.CAMERA)

    async def complete_all_pending(self) -> BatchResult:
        async with self._serialized():
            return await self.engine.complete_all_pending()
