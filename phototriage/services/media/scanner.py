"""
扫描器模块

列出单个文件夹中受支持的媒体文件名，并提供周期性重新扫描的后台任务。
读取失败（目录不存在、无权限、I/O 错误）只记录日志并返回空列表，
因为首次运行时工作文件夹可能尚未创建。
"""

import asyncio
from typing import Awaitable, Callable, Iterable

from loguru import logger

from ...core.filename import is_supported
from ...core.ports import FileSystemPort

# 常量定义
SCANNER_LOG_PREFIX = "[Scanner]"


def parse_extensions(exts: str) -> frozenset[str]:
    """
    解析扩展名字符串，返回标准化的扩展名集合。

    Args:
        exts: 逗号分隔的扩展名字符串（如 "jpg,png" 或 ".JPG, .png"）

    Returns:
        frozenset[str]: 全部小写且不带"."的扩展名集合（如 {'jpg', 'png'}）
    """
    if not exts:
        return frozenset()

    result = set()
    for part in exts.split(','):
        part = part.strip().lower().lstrip('.')
        if part:  # 跳过空字符串
            result.add(part)

    return frozenset(result)


async def list_media_files(
    fs: FileSystemPort,
    folder: str,
    allowed_extensions: Iterable[str],
) -> list[str]:
    """
    列出文件夹中扩展名在允许列表内的文件名，不排序。

    Args:
        fs: 文件系统接口
        folder: 相对根目录的文件夹路径
        allowed_extensions: 允许的扩展名集合（小写、不带点号）

    Returns:
        list[str]: 匹配的文件名；读取失败时为空列表
    """
    allowed = frozenset(allowed_extensions)
    try:
        names = await fs.readdir(folder)
    except Exception as e:
        logger.warning(f"{SCANNER_LOG_PREFIX} 读取目录失败，视为空目录 {folder}: {e}")
        return []

    matched = [name for name in names if is_supported(name, allowed)]
    skipped = len(names) - len(matched)
    if skipped:
        logger.trace(f"{SCANNER_LOG_PREFIX} {folder} 中跳过 {skipped} 个不支持的文件")
    logger.debug(f"{SCANNER_LOG_PREFIX} {folder}: {len(matched)} 个媒体文件")
    return matched


async def background_scanner_task(
    scan: Callable[[], Awaitable[object]],
    interval_seconds: float,
    stop_event: asyncio.Event | None = None,
) -> None:
    """
    后台扫描任务，按固定间隔触发一次完整扫描。

    Args:
        scan: 执行一次完整扫描的协程函数
        interval_seconds: 两次扫描之间的等待时间（秒）
        stop_event: 可选的停止事件，用于优雅关闭
    """
    if stop_event is None:
        stop_event = asyncio.Event()

    logger.info(f"{SCANNER_LOG_PREFIX} 后台扫描任务启动 - 扫描间隔: {interval_seconds}秒")
    scan_count = 0

    try:
        while not stop_event.is_set():
            # 等待指定间隔，同时检查停止事件
            try:
                await asyncio.wait_for(stop_event.wait(), timeout=interval_seconds)
                break
            except asyncio.TimeoutError:
                pass

            scan_count += 1
            logger.debug(f"{SCANNER_LOG_PREFIX} 开始第 {scan_count} 次扫描")
            try:
                await scan()
            except Exception as e:
                logger.error(f"{SCANNER_LOG_PREFIX} 第 {scan_count} 次扫描失败: {e}")

    except asyncio.CancelledError:
        logger.info(f"{SCANNER_LOG_PREFIX} 后台扫描任务被取消")
        raise
    finally:
        logger.info(
            f"{SCANNER_LOG_PREFIX} 后台扫描任务结束 - "
            f"总共执行了 {scan_count} 次扫描"
        )
