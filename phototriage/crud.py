"""
数据库CRUD操作模块

提供 MediaRecord 模型的底层查询与写入函数，均接收一个已打开的会话。
上层的记录存储（status_manager.RecordStore）负责会话生命周期。
"""

from typing import Optional, Sequence

from sqlmodel import Session, func, select

from .core.models import MediaRecord, RecordStatus


def get_record_by_id(db: Session, record_id: str) -> Optional[MediaRecord]:
    """
    根据 id 查询 MediaRecord 记录。

    Args:
        db: 数据库会话
        record_id: 记录 id（基础文件名）

    Returns:
        Optional[MediaRecord]: 匹配的记录，不存在则返回None
    """
    return db.get(MediaRecord, record_id)


def create_record(db: Session, record: MediaRecord) -> MediaRecord:
    """
    插入新的 MediaRecord 记录。

    Raises:
        sqlalchemy.exc.IntegrityError: id 已存在
    """
    db.add(record)
    db.commit()
    db.refresh(record)
    return record


def list_records(db: Session, status: Optional[RecordStatus] = None) -> Sequence[MediaRecord]:
    """按修改时间倒序列出记录，可按状态筛选"""
    statement = select(MediaRecord)
    if status is not None:
        statement = statement.where(MediaRecord.status == status)
    statement = statement.order_by(MediaRecord.modified_time.desc(), MediaRecord.id)
    return db.exec(statement).all()


def count_records(db: Session, status: Optional[RecordStatus] = None) -> int:
    statement = select(func.count(MediaRecord.id))
    if status is not None:
        statement = statement.where(MediaRecord.status == status)
    return db.exec(statement).one()


def count_by_status(db: Session) -> dict[str, int]:
    """按状态分组统计记录数量"""
    statement = select(MediaRecord.status, func.count(MediaRecord.id)).group_by(MediaRecord.status)
    return {str(status): count for status, count in db.exec(statement).all()}
