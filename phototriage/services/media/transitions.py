"""状态转换引擎

实现记录在 camera / pending / completed 之间的六种转换，以及批量完成操作。

每次转换的流程：
1. 检查权限、记录是否存在、目标状态是否与当前相同（相同则直接成功，不做任何文件操作）
2. 检查当前状态所需的路径字段是否存在，不满足时在任何文件操作之前失败。
   回退到相机时如果缺少 camera_path（相机文件被同名工作副本遮盖），重新列出相机文件夹推导
3. 乐观更新：先把新状态和路径写入记录存储
4. 执行文件操作；任一操作失败时把 status / camera_path / pending_path / completed_path / display_uri
   恢复为转换前的值，并返回失败结果
5. 成功后通知媒体索引，并刷新记录的文件元数据

部分成功的文件操作（例如复制成功但随后删除失败）留下的孤立文件不会被清理或重试。
所有公开方法都返回结果值，不向调用方抛出异常。
"""

from __future__ import annotations

from typing import TYPE_CHECKING, Awaitable, Callable, Iterable, NamedTuple, Sequence

from loguru import logger

from ...core.filename import base_of, extension_of, version_of
from ...core.models import MediaRecord, RecordStatus
from ...core.ports import FileSystemPort, MediaIndexPort, PermissionPort, PermissionState, RecordStorePort
from .reconciler import fetch_file_info
from .scanner import list_media_files
from .types import BatchResult, FolderLayout, TransitionResult

if TYPE_CHECKING:
    from .thumbnails import ThumbnailPipeline

TRANSITION_LOG_PREFIX = "[Transition]"


class _Snapshot(NamedTuple):
    status: RecordStatus
    camera_path: str
    pending_path: str | None
    completed_path: str | None
    display_uri: str


def resolve_latest_version(
    filenames: Iterable[str],
    record_id: str,
    extension: str,
    original_name: str,
) -> tuple[str, list[str]]:
    """在待处理文件夹的文件名中找出记录的最新版本

    同一记录的版本文件：基础名等于记录 id 且扩展名相同。
    取版本号最大的一个，版本号相同时保留先出现的。磁盘上的文件名（包括扩展名大小写）原样返回；
    没有任何版本文件时才退回规范文件名。

    Returns:
        tuple: (最新版本文件名, 所有版本文件名)
    """
    siblings = [
        name for name in filenames
        if base_of(name) == record_id and extension_of(name) == extension
    ]
    if not siblings:
        return original_name, siblings
    latest_name, latest_version = siblings[0], version_of(siblings[0])
    for name in siblings[1:]:
        version = version_of(name)
        if version > latest_version:
            latest_name, latest_version = name, version
    return latest_name, siblings


def _basename(path: str) -> str:
    return path.rsplit("/", 1)[-1]


class TransitionEngine:
    """记录状态转换

    Args:
        store: 记录存储
        fs: 文件系统接口
        folders: 三个文件夹的路径
        allowed_extensions: 重新扫描待处理文件夹时允许的扩展名
        media_index: 可选的媒体索引，文件复制/删除后通知
        permission: 可选的权限接口，未授权时拒绝所有转换
        thumbnails: 可选的缩略图流水线，完成待处理记录后刷新预览
    """

    def __init__(
        self,
        store: RecordStorePort,
        fs: FileSystemPort,
        folders: FolderLayout,
        *,
        allowed_extensions: Iterable[str],
        media_index: MediaIndexPort | None = None,
        permission: PermissionPort | None = None,
        thumbnails: ThumbnailPipeline | None = None,
    ):
        self.store = store
        self.fs = fs
        self.folders = folders
        self.allowed_extensions = frozenset(allowed_extensions)
        self.media_index = media_index
        self.permission = permission
        self.thumbnails = thumbnails

        self._handlers: dict[tuple[RecordStatus, RecordStatus], Callable[[MediaRecord], Awaitable[list[str]]]] = {
            (RecordStatus.CAMERA, RecordStatus.PENDING): self._camera_to_pending,
            (RecordStatus.CAMERA, RecordStatus.COMPLETED): self._camera_to_completed,
            (RecordStatus.PENDING, RecordStatus.COMPLETED): self._pending_to_completed,
            (RecordStatus.PENDING, RecordStatus.CAMERA): self._pending_to_camera,
            (RecordStatus.COMPLETED, RecordStatus.PENDING): self._completed_to_pending,
            (RecordStatus.COMPLETED, RecordStatus.CAMERA): self._completed_to_camera,
        }

    # ------------------------------------------------------------------
    # 公开操作
    # ------------------------------------------------------------------

    async def mark_pending(self, record_id: str) -> TransitionResult:
        return await self.transition(record_id, RecordStatus.PENDING)

    async def mark_completed(self, record_id: str) -> TransitionResult:
        return await self.transition(record_id, RecordStatus.COMPLETED)

    async def revert_to_camera(self, record_id: str) -> TransitionResult:
        return await self.transition(record_id, RecordStatus.CAMERA)

    async def complete_pending(self, record_id: str) -> TransitionResult:
        """完成一条待处理记录；记录不在待处理状态时不做任何操作并返回失败"""
        try:
            record = self.store.get(record_id)
        except Exception as e:
            return TransitionResult(False, f"读取记录失败: {e}")
        if record is not None and record.status != RecordStatus.PENDING:
            return TransitionResult(False, f"记录不在待处理状态: {record.status}")
        return await self.transition(record_id, RecordStatus.COMPLETED)

    async def transition(self, record_id: str, target: RecordStatus | str) -> TransitionResult:
        """把记录转换到目标状态"""
        ctx_logger = logger.bind(record_id=record_id)

        try:
            target = RecordStatus(target)
        except ValueError:
            return TransitionResult(False, f"无效的目标状态: {target}")

        if not await self._permission_granted():
            ctx_logger.warning(f"{TRANSITION_LOG_PREFIX} 存储权限未授予，拒绝转换")
            return TransitionResult(False, "存储权限未授予")

        try:
            record = self.store.get(record_id)
        except Exception as e:
            ctx_logger.error(f"{TRANSITION_LOG_PREFIX} 读取记录失败: {e}")
            return TransitionResult(False, f"读取记录失败: {e}")
        if record is None:
            return TransitionResult(False, f"记录不存在: {record_id}")

        source = record.status
        if source == target:
            ctx_logger.debug(f"{TRANSITION_LOG_PREFIX} 已处于 {target}，无需操作")
            return TransitionResult(True)

        invalid = self._check_preconditions(record)
        if invalid:
            ctx_logger.warning(f"{TRANSITION_LOG_PREFIX} {source} -> {target} 被拒绝: {invalid}")
            return TransitionResult(False, invalid)

        snapshot = _Snapshot(
            record.status, record.camera_path, record.pending_path, record.completed_path, record.display_uri
        )
        if target == RecordStatus.CAMERA and not record.camera_path:
            record.camera_path = await self._locate_camera_file(record)
            ctx_logger.debug(f"{TRANSITION_LOG_PREFIX} 相机路径缺失，使用 {record.camera_path}")
        new_path = self._target_path(record, target)

        # 乐观更新
        try:
            display_uri = await self.fs.get_uri(new_path)
            self.store.update(record_id, self._optimistic(target, new_path, display_uri, record.camera_path))
        except Exception as e:
            ctx_logger.error(f"{TRANSITION_LOG_PREFIX} 更新记录失败: {e}")
            return TransitionResult(False, f"更新记录失败: {e}")

        ctx_logger.info(f"{TRANSITION_LOG_PREFIX} {source} -> {target} 开始")
        try:
            touched = await self._handlers[(source, target)](record)
        except Exception as e:
            ctx_logger.error(f"{TRANSITION_LOG_PREFIX} {source} -> {target} 文件操作失败，回滚记录: {e}")
            self._rollback(record_id, snapshot)
            return TransitionResult(False, f"{source} -> {target} 失败: {e}")

        await self._notify_media_index(touched)
        await self._refresh_metadata(record_id, new_path)

        if source == RecordStatus.PENDING and target == RecordStatus.COMPLETED and self.thumbnails is not None:
            self.thumbnails.enqueue(display_uri, record.is_video, record_id)

        ctx_logger.info(f"{TRANSITION_LOG_PREFIX} {source} -> {target} 完成")
        return TransitionResult(True)

    async def complete_all_pending(self) -> BatchResult:
        """依次完成所有待处理记录

        单条失败不会中断批量操作，已成功的记录也不会回滚。
        """
        try:
            pending: Sequence[MediaRecord] = self.store.enumerate(RecordStatus.PENDING)
        except Exception as e:
            logger.error(f"{TRANSITION_LOG_PREFIX} 读取待处理记录失败: {e}")
            return BatchResult(False, 0, 0, f"读取待处理记录失败: {e}")

        succeeded = 0
        failed = 0
        for record in pending:
            result = await self.transition(record.id, RecordStatus.COMPLETED)
            if result.success:
                succeeded += 1
            else:
                failed += 1
                logger.warning(f"{TRANSITION_LOG_PREFIX} 批量完成 {record.id} 失败: {result.error}")

        logger.info(f"{TRANSITION_LOG_PREFIX} 批量完成结束 - 成功: {succeeded}, 失败: {failed}")
        if failed:
            return BatchResult(
                False,
                succeeded,
                failed,
                f"批量完成: 成功 {succeeded} 个，失败 {failed} 个",
            )
        return BatchResult(True, succeeded, 0)

    # ------------------------------------------------------------------
    # 六种转换的文件操作，返回需要通知媒体索引的路径
    # ------------------------------------------------------------------

    async def _camera_to_pending(self, record: MediaRecord) -> list[str]:
        destination = f"{self.folders.pending}/{record.original_name}"
        await self.fs.mkdir(self.folders.pending)
        await self.fs.copy(record.camera_path, destination)
        return [destination]

    async def _camera_to_completed(self, record: MediaRecord) -> list[str]:
        destination = f"{self.folders.completed}/{record.original_name}"
        await self.fs.mkdir(self.folders.completed)
        await self.fs.copy(record.camera_path, destination)
        return [destination]

    async def _pending_to_completed(self, record: MediaRecord) -> list[str]:
        names = await list_media_files(self.fs, self.folders.pending, self.allowed_extensions)
        latest, siblings = resolve_latest_version(names, record.id, record.extension, record.original_name)
        logger.bind(record_id=record.id).debug(
            f"{TRANSITION_LOG_PREFIX} 最新版本: {latest} (共 {len(siblings)} 个版本)"
        )

        destination = f"{self.folders.completed}/{record.original_name}"
        await self.fs.mkdir(self.folders.completed)
        await self.fs.copy(f"{self.folders.pending}/{latest}", destination)

        touched = [destination]
        for name in siblings:
            path = f"{self.folders.pending}/{name}"
            await self.fs.delete(path)
            touched.append(path)
        return touched

    async def _pending_to_camera(self, record: MediaRecord) -> list[str]:
        names = await list_media_files(self.fs, self.folders.pending, self.allowed_extensions)
        _, siblings = resolve_latest_version(names, record.id, record.extension, record.original_name)
        if not siblings:
            siblings = [_basename(record.pending_path)]

        touched = []
        for name in siblings:
            path = f"{self.folders.pending}/{name}"
            await self.fs.delete(path)
            touched.append(path)
        return touched

    async def _completed_to_pending(self, record: MediaRecord) -> list[str]:
        destination = f"{self.folders.pending}/{record.original_name}"
        await self.fs.mkdir(self.folders.pending)
        await self.fs.copy(record.completed_path, destination)
        await self.fs.delete(record.completed_path)
        return [destination, record.completed_path]

    async def _completed_to_camera(self, record: MediaRecord) -> list[str]:
        await self.fs.delete(record.completed_path)
        return [record.completed_path]

    # ------------------------------------------------------------------
    # 内部辅助
    # ------------------------------------------------------------------

    async def _permission_granted(self) -> bool:
        if self.permission is None:
            return True
        try:
            return await self.permission.check_status() == PermissionState.GRANTED
        except Exception as e:
            logger.error(f"{TRANSITION_LOG_PREFIX} 检查权限失败: {e}")
            return False

    @staticmethod
    def _check_preconditions(record: MediaRecord) -> str | None:
        if not record.path_for(record.status):
            return f"记录处于 {record.status} 状态但缺少 {record.status}_path"
        return None

    async def _locate_camera_file(self, record: MediaRecord) -> str:
        """为缺少 camera_path 的记录推导相机路径

        同名的工作副本会在合并时把相机条目过滤掉，所以这里重新列出相机文件夹，
        优先取与规范文件名完全相同的文件，其次取基础名和扩展名匹配的第一个，
        都没有时使用 相机文件夹/规范文件名。
        """
        names = await list_media_files(self.fs, self.folders.camera, self.allowed_extensions)
        matches = [
            name for name in names
            if base_of(name) == record.id and extension_of(name) == record.extension
        ]
        if record.original_name in matches:
            name = record.original_name
        elif matches:
            name = matches[0]
        else:
            name = record.original_name
        return f"{self.folders.camera}/{name}"

    def _target_path(self, record: MediaRecord, target: RecordStatus) -> str:
        if target == RecordStatus.CAMERA:
            return record.camera_path
        if target == RecordStatus.PENDING:
            return f"{self.folders.pending}/{record.original_name}"
        return f"{self.folders.completed}/{record.original_name}"

    @staticmethod
    def _optimistic(target: RecordStatus, new_path: str, display_uri: str, camera_path: str):
        def _apply(record: MediaRecord) -> None:
            record.camera_path = camera_path
            # 离开 pending / completed 时该文件夹中的副本会被删除
            if record.status == RecordStatus.PENDING:
                record.pending_path = None
            elif record.status == RecordStatus.COMPLETED:
                record.completed_path = None
            record.status = target
            record.display_uri = display_uri
            if target == RecordStatus.PENDING:
                record.pending_path = new_path
            elif target == RecordStatus.COMPLETED:
                record.completed_path = new_path
        return _apply

    def _rollback(self, record_id: str, snapshot: _Snapshot) -> None:
        def _restore(record: MediaRecord) -> None:
            record.status = snapshot.status
            record.camera_path = snapshot.camera_path
            record.pending_path = snapshot.pending_path
            record.completed_path = snapshot.completed_path
            record.display_uri = snapshot.display_uri

        try:
            self.store.update(record_id, _restore)
        except Exception as e:
            logger.bind(record_id=record_id).error(f"{TRANSITION_LOG_PREFIX} 回滚记录失败: {e}")

    async def _notify_media_index(self, paths: list[str]) -> None:
        if self.media_index is None:
            return
        for path in paths:
            try:
                await self.media_index.scan_file(path)
            except Exception as e:
                logger.warning(f"{TRANSITION_LOG_PREFIX} 通知媒体索引失败 {path}: {e}")

    async def _refresh_metadata(self, record_id: str, path: str) -> None:
        info = await fetch_file_info(self.fs, path)

        def _apply(record: MediaRecord) -> None:
            record.size = info.size
            record.modified_time = info.modified_time

        try:
            self.store.update(record_id, _apply)
        except Exception as e:
            logger.bind(record_id=record_id).warning(f"{TRANSITION_LOG_PREFIX} 刷新文件信息失败: {e}")
