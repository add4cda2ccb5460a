"""本地宿主平台适配器

在普通文件系统上实现核心所需的外部接口：
- LocalFileSystem: 以 BASE_DIR 为根，所有阻塞调用放入线程池执行
- LocalPermission: 根据根目录的读写权限给出授权状态
- LoggingMediaIndex: 桌面环境没有媒体索引服务，仅记录通知
"""

from __future__ import annotations

import asyncio
import os
from pathlib import Path, PurePosixPath
from urllib.parse import unquote, urlparse
from urllib.request import url2pathname

from loguru import logger

from . import fileops
from .ports import FileInfo, PermissionState


class LocalFileSystem:
    """以根目录为基准的异步文件系统"""

    def __init__(self, base_dir: Path):
        self.base_dir = Path(base_dir).resolve()

    def _absolute(self, path: str) -> Path:
        relative = PurePosixPath(path)
        if relative.is_absolute() or ".." in relative.parts:
            raise PermissionError(f"路径越界: {path}")
        return self.base_dir.joinpath(*relative.parts)

    async def mkdir(self, path: str) -> None:
        await asyncio.to_thread(fileops.ensure_directory, self._absolute(path))

    async def readdir(self, path: str) -> list[str]:
        return await asyncio.to_thread(fileops.list_directory, self._absolute(path))

    async def stat(self, path: str) -> FileInfo:
        return await asyncio.to_thread(fileops.file_info, self._absolute(path))

    async def copy(self, source: str, destination: str) -> None:
        await asyncio.to_thread(fileops.copy_file, self._absolute(source), self._absolute(destination))

    async def delete(self, path: str) -> None:
        await asyncio.to_thread(fileops.delete_file, self._absolute(path))

    async def read(self, path: str) -> bytes:
        return await asyncio.to_thread(fileops.read_bytes, self._absolute(path))

    async def write(self, path: str, data: bytes) -> None:
        await asyncio.to_thread(fileops.write_bytes, self._absolute(path), data)

    async def get_uri(self, path: str) -> str:
        return self._absolute(path).as_uri()

    def resolve(self, uri: str) -> Path:
        """把 file:// 引用或相对路径还原为本地绝对路径"""
        parsed = urlparse(uri)
        if parsed.scheme == "file":
            return Path(url2pathname(unquote(parsed.path)))
        return self._absolute(uri)


class LocalPermission:
    """根目录可读写即视为已授权"""

    def __init__(self, base_dir: Path):
        self.base_dir = Path(base_dir)

    async def check_status(self) -> PermissionState:
        granted = await asyncio.to_thread(os.access, self.base_dir, os.R_OK | os.W_OK)
        return PermissionState.GRANTED if granted else PermissionState.DENIED

    async def request(self) -> PermissionState:
        # 本地平台没有授权弹窗，尝试创建根目录后重新检查
        try:
            await asyncio.to_thread(fileops.ensure_directory, self.base_dir)
        except OSError as e:
            logger.warning(f"无法创建根目录 {self.base_dir}: {e}")
            return PermissionState.DENIED
        return await self.check_status()


class LoggingMediaIndex:

    async def scan_file(self, path: str) -> None:
        logger.debug(f"[MediaIndex] 通知媒体索引: {path}")
