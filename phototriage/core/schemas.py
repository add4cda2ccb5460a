"""
Pydantic模型（Schemas）模块

定义用于API请求/响应数据校验、序列化和文档生成的Pydantic模型。
与数据库模型（models.py）分离，以实现更灵活的API接口定义。
"""

from pydantic import BaseModel, ConfigDict
from typing import List, Optional
import datetime

from .models import RecordStatus


# 媒体记录
class MediaRecordItem(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: str
    original_name: str
    status: RecordStatus
    display_uri: str
    camera_path: str
    pending_path: Optional[str] = None
    completed_path: Optional[str] = None
    extension: str
    is_video: bool
    size: int
    modified_time: float
    thumbnail: Optional[str] = None
    created_at: datetime.datetime
    updated_at: datetime.datetime


# 扫描响应模型
class ScanResponse(BaseModel):
    blocked: bool
    total: int
    camera_files: int
    pending_files: int
    completed_files: int
    items: List[MediaRecordItem]


# 状态转换请求模型
class TransitionRequest(BaseModel):
    target: RecordStatus


# 状态转换响应模型
class TransitionResponse(BaseModel):
    message: str
    record_id: str
    previous_status: RecordStatus
    current_status: RecordStatus


# 批量完成响应模型
class BatchCompleteResponse(BaseModel):
    success: bool
    message: str
    succeeded: int
    failed: int


# 权限状态响应模型
class PermissionResponse(BaseModel):
    status: str
    granted: bool
