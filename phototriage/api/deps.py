"""
FastAPI 依赖模块

提供服务实例获取与查询参数验证，对于不支持的参数值返回 HTTP 422 错误。
"""

from typing import Optional
from fastapi import HTTPException, Query, Request
from ..core.models import RecordStatus
from ..services.media.triage import TriageService

# 定义所有有效的记录状态
VALID_STATUSES = [status.value for status in RecordStatus]


def get_triage_service(request: Request) -> TriageService:
    """从 app.state 获取在应用启动时创建的分拣服务"""
    service = getattr(request.app.state, "triage_service", None)
    if service is None:
        raise HTTPException(status_code=503, detail="分拣服务尚未初始化")
    return service


def validate_status_parameter(status: Optional[str] = Query(
    None,
    description=f"按状态筛选: {', '.join(VALID_STATUSES)}，不传或 all 表示全部"
)) -> Optional[RecordStatus]:
    """
    验证状态参数有效性

    Args:
        status: 状态参数字符串，如 'pending'

    Returns:
        Optional[RecordStatus]: 验证通过的状态，None 表示不筛选

    Raises:
        HTTPException: 当状态值无效时抛出422错误
    """
    if not status or not status.strip() or status.strip().lower() == "all":
        return None

    value = status.strip().lower()
    if value not in VALID_STATUSES:
        raise HTTPException(
            status_code=422,
            detail=f"不支持的状态值: {status}。支持的状态: {', '.join(VALID_STATUSES)}"
        )
    return RecordStatus(value)
