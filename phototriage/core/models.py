import datetime
from enum import StrEnum
from typing import Optional
from sqlmodel import Field, SQLModel


def utc_now() -> datetime.datetime:
    """获取当前UTC时间，用于数据库时间戳"""
    return datetime.datetime.now(datetime.timezone.utc)


class RecordStatus(StrEnum):
    """媒体记录所在的位置，也是它对外呈现的唯一状态"""
    CAMERA = "camera"
    PENDING = "pending"
    COMPLETED = "completed"


class MediaRecord(SQLModel, table=True):
    """
    一个逻辑媒体实体：同一基础文件名在三个文件夹中的所有物理副本只对应一条记录。
    """
    # --------------------------------------------------------------------------
    # 身份标识
    # --------------------------------------------------------------------------
    id: str = Field(primary_key=True, description="去掉扩展名和版本后缀的基础文件名，在记录生命周期内不变")
    original_name: str = Field(nullable=False, description="规范文件名（不含版本后缀），已完成文件夹中使用此名称")

    created_at: datetime.datetime = Field(default_factory=utc_now, nullable=False)
    updated_at: datetime.datetime = Field(default_factory=utc_now, nullable=False, sa_column_kwargs={"onupdate": utc_now})

    # --------------------------------------------------------------------------
    # 状态与位置
    # 仅与 status 对应的路径字段是权威的，其余字段可能缺失或已过期
    # --------------------------------------------------------------------------
    status: RecordStatus = Field(
        default=RecordStatus.CAMERA,
        index=True,
        nullable=False,
        description=f"当前状态: {', '.join(s.value for s in RecordStatus)}"
    )
    display_uri: str = Field(default="", nullable=False, description="与当前状态对应路径的可显示引用")
    camera_path: str = Field(default="", nullable=False, description="相机文件夹中的路径，从未在相机中出现时为空")
    pending_path: Optional[str] = Field(default=None, description="待处理文件夹中的路径")
    completed_path: Optional[str] = Field(default=None, description="已完成文件夹中的路径")

    # --------------------------------------------------------------------------
    # 文件元数据
    # --------------------------------------------------------------------------
    extension: str = Field(default="", nullable=False, description="小写扩展名，无扩展名时为空字符串")
    is_video: bool = Field(default=False, nullable=False)
    size: int = Field(default=0, nullable=False, description="文件大小（字节）")
    modified_time: float = Field(default=0, index=True, nullable=False, description="修改时间（毫秒时间戳）")

    # 异步生成的预览图，可缺失，不影响正确性
    thumbnail: Optional[str] = Field(default=None, description="data URI 形式的 JPEG 预览图")

    def path_for(self, status: RecordStatus) -> Optional[str]:
        """返回指定状态对应的路径字段"""
        if status == RecordStatus.CAMERA:
            return self.camera_path or None
        if status == RecordStatus.PENDING:
            return self.pending_path
        return self.completed_path
