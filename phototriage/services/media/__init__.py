"""媒体分拣服务模块

按职责拆分为多个子模块：
- types: 数据结构和类型定义
- scanner: 单个文件夹的媒体文件列表与后台重扫描
- reconciler: 三个文件夹扫描结果的合并
- transitions: 记录状态转换与批量完成
- thumbnails: 串行缩略图流水线
- status_manager: 记录存储
- triage: 组装以上组件的服务门面
"""


from .types import BatchResult, FolderLayout, ScanReport, TransitionResult
from .scanner import list_media_files, parse_extensions, background_scanner_task
from .reconciler import reconcile
from .transitions import TransitionEngine, resolve_latest_version
from .thumbnails import ThumbnailPipeline
from .status_manager import RecordStore
from .triage import TriageService

__all__ = [
    "BatchResult",
    "FolderLayout",
    "ScanReport",
    "TransitionResult",
    "list_media_files",
    "parse_extensions",
    "background_scanner_task",
    "reconcile",
    "TransitionEngine",
    "resolve_latest_version",
    "ThumbnailPipeline",
    "RecordStore",
    "TriageService",
]
