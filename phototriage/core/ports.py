"""外部协作方接口定义

核心逻辑只依赖这里声明的协议，不依赖具体的存储后端或宿主平台：
- FileSystemPort: 目录、元数据、复制、删除、读写以及可显示引用的解析
- PermissionPort: 存储访问权限检查与申请
- MediaIndexPort: 文件变更后通知外部媒体索引
- RecordStorePort: 媒体记录的键值存储
"""

from __future__ import annotations

from enum import StrEnum
from pathlib import Path
from typing import Callable, NamedTuple, Protocol, Sequence, runtime_checkable

from .models import MediaRecord, RecordStatus


class PermissionState(StrEnum):
    GRANTED = "granted"
    DENIED = "denied"
    PROMPT = "prompt"


class FileInfo(NamedTuple):
    """文件元数据"""
    size: int
    modified_time: float  # 毫秒时间戳


@runtime_checkable
class FileSystemPort(Protocol):
    """所有路径均为相对根目录、以 '/' 分隔的字符串；失败时抛出 OSError"""

    async def mkdir(self, path: str) -> None: ...

    async def readdir(self, path: str) -> list[str]: ...

    async def stat(self, path: str) -> FileInfo: ...

    async def copy(self, source: str, destination: str) -> None: ...

    async def delete(self, path: str) -> None: ...

    async def read(self, path: str) -> bytes: ...

    async def write(self, path: str, data: bytes) -> None: ...

    async def get_uri(self, path: str) -> str: ...

    def resolve(self, uri: str) -> Path: ...


@runtime_checkable
class PermissionPort(Protocol):

    async def check_status(self) -> PermissionState: ...

    async def request(self) -> PermissionState: ...


@runtime_checkable
class MediaIndexPort(Protocol):
    """即发即忘的媒体索引通知"""

    async def scan_file(self, path: str) -> None: ...


RecordTransform = Callable[[MediaRecord], None]


class RecordNotFoundError(LookupError):
    """更新一条不存在的记录"""

    def __init__(self, record_id: str):
        super().__init__(f"记录不存在: {record_id}")
        self.record_id = record_id


@runtime_checkable
class RecordStorePort(Protocol):
    """媒体记录存储

    `update` 取出当前值、就地应用 transform 后写回；记录不存在时抛出 RecordNotFoundError。
    transform 是修改记录字段的唯一入口。
    """

    def get(self, record_id: str) -> MediaRecord | None: ...

    def insert(self, record: MediaRecord) -> MediaRecord: ...

    def update(self, record_id: str, transform: RecordTransform) -> MediaRecord: ...

    def enumerate(self, status: RecordStatus | None = None) -> Sequence[MediaRecord]: ...

    def count(self, status: RecordStatus | None = None) -> int: ...
