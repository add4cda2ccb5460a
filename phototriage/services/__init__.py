"""服务层包

按领域组织的服务层模块：
- media: 媒体记录的扫描、合并、状态转换和缩略图服务
"""

from .media import (
    TriageService,
    TransitionEngine,
    ThumbnailPipeline,
    RecordStore,
    reconcile,
)

__all__ = [
    "TriageService",
    "TransitionEngine",
    "ThumbnailPipeline",
    "RecordStore",
    "reconcile",
]
