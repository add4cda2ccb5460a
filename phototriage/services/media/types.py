"""媒体处理相关的数据结构和类型定义"""

from typing import NamedTuple

from ...core.models import MediaRecord


class FolderLayout(NamedTuple):
    """三个固定文件夹（相对根目录）"""
    camera: str
    pending: str
    completed: str


class TransitionResult(NamedTuple):
    """单次状态转换结果"""
    success: bool
    error: str | None = None


class BatchResult(NamedTuple):
    """批量转换结果，不做整体回滚"""
    success: bool
    succeeded: int
    failed: int
    error: str | None = None


class ScanReport(NamedTuple):
    """一次完整扫描的结果

    blocked 为 True 表示存储权限未授予，扫描没有执行。
    """
    blocked: bool
    records: list[MediaRecord]
    camera_files: int = 0
    pending_files: int = 0
    completed_files: int = 0
