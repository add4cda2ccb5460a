"""本地文件操作模块

提供本地磁盘上的同步文件原语：创建目录、列目录、获取元数据、复制、删除和读写。
异步的 LocalFileSystem 通过 asyncio.to_thread 调用这些函数。

与只返回状态的检查不同，这里的操作失败一律抛出 OSError（或其子类），
由上层的状态转换引擎捕获并回滚。

Example:
    >>> from pathlib import Path
    >>> from phototriage.core.fileops import copy_file
    >>>
    >>> copy_file(Path("/sdcard/DCIM/Camera/IMG_1.jpg"),
    ...           Path("/sdcard/Pictures/PhotoTriage/Completed/IMG_1.jpg"))
"""

from __future__ import annotations

import os
import shutil
from pathlib import Path

from loguru import logger

from .ports import FileInfo


def ensure_directory(path: Path) -> None:
    """创建目录（已存在时不做任何事）"""
    path.mkdir(parents=True, exist_ok=True)
    logger.trace(f"目录已确保存在: {path}")


def list_directory(path: Path) -> list[str]:
    """返回目录下所有常规文件的文件名，顺序不作保证

    Raises:
        FileNotFoundError: 目录不存在
        NotADirectoryError: 路径不是目录
        PermissionError: 没有读取权限
    """
    with os.scandir(path) as entries:
        return [entry.name for entry in entries if entry.is_file()]


def file_info(path: Path) -> FileInfo:
    """获取文件大小与修改时间（毫秒）"""
    stat_info = path.stat()
    return FileInfo(size=stat_info.st_size, modified_time=stat_info.st_mtime * 1000)


def copy_file(source_path: Path, destination_path: Path) -> None:
    """复制文件内容到目标路径，目标已存在时覆盖

    实现步骤：
    1. 验证源文件存在且是常规文件
    2. 确保目标目录存在
    3. 执行复制（保留修改时间）

    Raises:
        FileNotFoundError: 源文件不存在或不是常规文件
        OSError: 目录创建或复制失败
    """
    logger.debug(f"复制操作开始: {source_path} -> {destination_path}")

    if not source_path.is_file():
        logger.warning(f"源文件不存在或不是常规文件: {source_path}")
        raise FileNotFoundError(f"源文件不存在: {source_path}")

    destination_path.parent.mkdir(parents=True, exist_ok=True)

    try:
        shutil.copy2(source_path, destination_path)
    except OSError as e:
        logger.error(f"复制文件失败: {source_path} -> {destination_path}, 错误: {e}")
        raise

    logger.success(f"文件复制成功: {source_path} -> {destination_path}")


def delete_file(path: Path) -> None:
    """删除文件

    Raises:
        FileNotFoundError: 文件不存在
        IsADirectoryError: 路径是目录
    """
    if path.is_dir():
        raise IsADirectoryError(f"不能删除目录: {path}")
    path.unlink()
    logger.debug(f"文件已删除: {path}")


def read_bytes(path: Path) -> bytes:
    return path.read_bytes()


def write_bytes(path: Path, data: bytes) -> None:
    """写入文件，必要时创建父目录"""
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_bytes(data)
