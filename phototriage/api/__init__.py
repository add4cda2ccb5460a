"""PhotoTriage API 聚合器包

此包负责聚合各 endpoints 子模块的路由，并向外暴露统一的 `router` 变量，
供 `main.py` 及测试用例 `from phototriage.api import router` 使用。
"""

from fastapi import APIRouter

from .endpoints.media import media_router

# 创建聚合路由器
router = APIRouter()
router.include_router(media_router)

# OpenAPI 标签元数据，供 FastAPI 应用在生成文档时使用
tags_metadata = [
    {
        "name": "media",
        "description": "媒体记录相关接口：记录列表、详情、统计、完整扫描、状态转换与批量完成",
    },
]

__all__ = ["router", "tags_metadata"]
