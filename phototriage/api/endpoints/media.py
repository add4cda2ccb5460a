"""
媒体记录API路由模块

提供记录查询、统计、完整扫描、状态转换和批量完成等REST API端点。
"""

from typing import Dict, List, Optional
from fastapi import APIRouter, Depends, HTTPException
from loguru import logger

from ...core.models import RecordStatus
from ...core.schemas import (
    BatchCompleteResponse,
    MediaRecordItem,
    PermissionResponse,
    ScanResponse,
    TransitionRequest,
    TransitionResponse,
)
from ...core.ports import PermissionState
from ...services.media.triage import TriageService
from ..deps import get_triage_service, validate_status_parameter


media_router = APIRouter(prefix="/api", tags=["media"])


@media_router.get("/records", response_model=List[MediaRecordItem])
def get_records(
    status: Optional[RecordStatus] = Depends(validate_status_parameter),
    service: TriageService = Depends(get_triage_service),
):
    """
    查询媒体记录列表，按修改时间倒序，可按状态筛选。
    """
    return service.filter_by_status(status)


@media_router.get("/records/{record_id}", response_model=MediaRecordItem)
def get_record(
    record_id: str,
    service: TriageService = Depends(get_triage_service),
):
    """
    根据 id 获取单条记录。

    Raises:
        HTTPException: 当记录不存在时返回404错误
    """
    record = service.get_record(record_id)
    if record is None:
        raise HTTPException(status_code=404, detail=f"记录不存在: {record_id}")
    return record


@media_router.get("/stats", response_model=Dict[str, int])
def get_record_stats(service: TriageService = Depends(get_triage_service)):
    """
    获取按状态分组的记录数量统计，格式为 {status: count}；没有记录时返回空对象。
    """
    return service.store.count_by_status()


@media_router.post("/scan", response_model=ScanResponse)
async def scan_folders(service: TriageService = Depends(get_triage_service)):
    """
    重新扫描三个文件夹并合并记录。

    Raises:
        HTTPException:
            - 403: 存储权限未授予
            - 500: 扫描整体失败，可整体重试
    """
    try:
        report = await service.load_records()
    except Exception as e:
        logger.error(f"完整扫描失败: {e}")
        raise HTTPException(status_code=500, detail=f"扫描失败: {e}")

    if report.blocked:
        raise HTTPException(status_code=403, detail="存储权限未授予")

    return {
        "blocked": report.blocked,
        "total": len(report.records),
        "camera_files": report.camera_files,
        "pending_files": report.pending_files,
        "completed_files": report.completed_files,
        "items": report.records,
    }


@media_router.post("/records/complete-pending", response_model=BatchCompleteResponse)
async def complete_all_pending(service: TriageService = Depends(get_triage_service)):
    """
    依次完成所有待处理记录，单条失败不会回滚已完成的记录。
    """
    result = await service.complete_all_pending()
    message = result.error or f"批量完成成功：共 {result.succeeded} 个"
    return {
        "success": result.success,
        "message": message,
        "succeeded": result.succeeded,
        "failed": result.failed,
    }


@media_router.post("/records/{record_id}/transition", response_model=TransitionResponse)
async def transition_record(
    record_id: str,
    request: TransitionRequest,
    service: TriageService = Depends(get_triage_service),
):
    """
    把记录转换到目标状态。

    Raises:
        HTTPException:
            - 404: 记录不存在
            - 409: 转换失败（记录状态已回滚）
    """
    record = service.get_record(record_id)
    if record is None:
        raise HTTPException(status_code=404, detail=f"记录不存在: {record_id}")

    previous_status = record.status
    result = await service.transition(record_id, request.target)
    if not result.success:
        raise HTTPException(status_code=409, detail=result.error)

    logger.info(f"记录 {record_id} 已从 {previous_status} 转换为 {request.target}")
    return {
        "message": "状态转换成功",
        "record_id": record_id,
        "previous_status": previous_status,
        "current_status": request.target,
    }


@media_router.get("/permission", response_model=PermissionResponse)
async def get_permission(service: TriageService = Depends(get_triage_service)):
    status = await service.permission.check_status()
    return {"status": str(status), "granted": status == PermissionState.GRANTED}


@media_router.post("/permission/request", response_model=PermissionResponse)
async def request_permission(service: TriageService = Depends(get_triage_service)):
    granted = await service.ensure_permissions()
    status = PermissionState.GRANTED if granted else await service.permission.check_status()
    return {"status": str(status), "granted": granted}
