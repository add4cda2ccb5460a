"""记录合并模块

把相机、待处理、已完成三个文件夹的列表合并为一组一致的记录。

优先级：已完成 > 待处理 > 相机。它由两层规则共同保证：
1. 原始列表按完整文件名过滤：同名文件出现在更高优先级的文件夹中时，从低优先级列表中移除
2. 记录层面按固定顺序处理：相机 -> 待处理 -> 已完成，后处理的覆盖先处理的。
   待处理列表按版本号升序处理，所以记录的 pending_path 指向最新版本

第二层按基础名（记录 id）生效，所以大小写或版本后缀不同的文件名即使通过了第一层过滤，
最终也由处理顺序决定状态。
"""

from __future__ import annotations

import time
from typing import TYPE_CHECKING, Iterable, Sequence

from loguru import logger

from ...core.filename import base_of, canonical_name, extension_of, is_video_extension, version_of
from ...core.models import MediaRecord, RecordStatus
from ...core.ports import FileInfo, FileSystemPort, RecordStorePort
from .types import FolderLayout

if TYPE_CHECKING:
    from .thumbnails import ThumbnailPipeline

RECONCILER_LOG_PREFIX = "[Reconciler]"


def filter_by_precedence(
    camera: Sequence[str],
    pending: Sequence[str],
    completed: Sequence[str],
) -> tuple[list[str], list[str], list[str]]:
    """按完整文件名去除被更高优先级文件夹覆盖的条目

    Returns:
        tuple: (过滤后的相机列表, 过滤后的待处理列表, 已完成列表)
    """
    completed_names = set(completed)
    pending_names = set(pending)
    filtered_camera = [n for n in camera if n not in pending_names and n not in completed_names]
    filtered_pending = [n for n in pending if n not in completed_names]
    return filtered_camera, filtered_pending, list(completed)


async def fetch_file_info(fs: FileSystemPort, path: str) -> FileInfo:
    """获取文件元数据，失败时返回 size=0、当前时间"""
    try:
        return await fs.stat(path)
    except Exception as e:
        logger.warning(f"{RECONCILER_LOG_PREFIX} 获取文件信息失败 {path}: {e}")
        return FileInfo(size=0, modified_time=time.time() * 1000)


def _path_setter(status: RecordStatus, path: str):
    def _apply(record: MediaRecord) -> None:
        if status == RecordStatus.CAMERA:
            record.camera_path = path
        elif status == RecordStatus.PENDING:
            record.pending_path = path
        else:
            record.completed_path = path
    return _apply


async def _upsert(
    filename: str,
    status: RecordStatus,
    folder: str,
    store: RecordStorePort,
    fs: FileSystemPort,
    video_extensions: frozenset[str],
) -> tuple[MediaRecord, bool]:
    """插入或更新一条记录

    Returns:
        tuple: (记录快照, 是否为新插入)
    """
    record_id = base_of(filename)
    extension = extension_of(filename)
    path = f"{folder}/{filename}"
    info = await fetch_file_info(fs, path)
    display_uri = await fs.get_uri(path)
    set_path = _path_setter(status, path)

    if store.get(record_id) is not None:
        def _apply(record: MediaRecord) -> None:
            record.status = status
            record.display_uri = display_uri
            record.size = info.size
            record.modified_time = info.modified_time
            set_path(record)

        return store.update(record_id, _apply), False

    record = MediaRecord(
        id=record_id,
        original_name=canonical_name(record_id, extension),
        status=status,
        display_uri=display_uri,
        extension=extension,
        is_video=is_video_extension(extension, video_extensions),
        size=info.size,
        modified_time=info.modified_time,
    )
    set_path(record)
    return store.insert(record), True


async def reconcile(
    camera_files: Sequence[str],
    pending_files: Sequence[str],
    completed_files: Sequence[str],
    *,
    store: RecordStorePort,
    fs: FileSystemPort,
    folders: FolderLayout,
    video_extensions: Iterable[str],
    thumbnails: ThumbnailPipeline | None = None,
) -> list[MediaRecord]:
    """合并三个文件夹的扫描结果并写入记录存储

    每个文件的处理严格串行，顺序为相机 -> 待处理 -> 已完成。
    单个文件的元数据获取或写入失败不会中断其余文件。

    Args:
        camera_files: 相机文件夹中的文件名
        pending_files: 待处理文件夹中的文件名
        completed_files: 已完成文件夹中的文件名
        store: 记录存储
        fs: 文件系统接口
        folders: 三个文件夹的路径
        video_extensions: 视频扩展名集合
        thumbnails: 可选的缩略图流水线，新记录（以及所有待处理条目）会入队

    Returns:
        list[MediaRecord]: 存储中所有记录，按修改时间倒序
    """
    video_exts = frozenset(video_extensions)
    camera, pending, completed = filter_by_precedence(camera_files, pending_files, completed_files)
    # 同一记录的多个待处理版本中，版本号最大的最后处理，预览指向最新版本
    pending = sorted(pending, key=version_of)

    logger.debug(
        f"{RECONCILER_LOG_PREFIX} 开始合并 - 相机: {len(camera)}/{len(camera_files)}, "
        f"待处理: {len(pending)}/{len(pending_files)}, 已完成: {len(completed)}"
    )

    inserted = 0
    updated = 0
    failed = 0
    passes = (
        (RecordStatus.CAMERA, folders.camera, camera),
        (RecordStatus.PENDING, folders.pending, pending),
        (RecordStatus.COMPLETED, folders.completed, completed),
    )
    for status, folder, filenames in passes:
        for filename in filenames:
            try:
                record, is_new = await _upsert(filename, status, folder, store, fs, video_exts)
            except Exception as e:
                failed += 1
                logger.error(f"{RECONCILER_LOG_PREFIX} 处理文件失败 {folder}/{filename}: {e}")
                continue

            if is_new:
                inserted += 1
                logger.info(f"{RECONCILER_LOG_PREFIX} 新增记录: {record.id} ({status})")
            else:
                updated += 1

            # 待处理文件可能被外部编辑过，每次都刷新预览
            if thumbnails is not None and (is_new or status == RecordStatus.PENDING):
                thumbnails.enqueue(record.display_uri, record.is_video, record.id)

    logger.info(
        f"{RECONCILER_LOG_PREFIX} 合并完成 - 新增: {inserted}, 更新: {updated}, 失败: {failed}"
    )
    return list(store.enumerate())
