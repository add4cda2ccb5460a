"""媒体记录存储模块

基于 SQLModel 会话工厂实现 RecordStorePort：
- get / insert / enumerate / count
- update: 取出当前值 -> 应用 transform -> 写回，记录不存在时失败

记录的字段只应在 transform 中被修改。返回的记录是会话关闭后的快照，修改它们不会影响存储。
"""

from typing import Callable, Sequence

from sqlmodel import Session
from loguru import logger

from ... import crud
from ...core.models import MediaRecord, RecordStatus
from ...core.ports import RecordNotFoundError, RecordStorePort, RecordTransform


class RecordStore:
    """SQLite 记录存储，同一 id 的写入遵循最后写入者获胜"""

    def __init__(self, db_session_factory: Callable[[], Session]):
        self.db_session_factory = db_session_factory

    def get(self, record_id: str) -> MediaRecord | None:
        with self.db_session_factory() as db:
            return crud.get_record_by_id(db, record_id)

    def insert(self, record: MediaRecord) -> MediaRecord:
        with self.db_session_factory() as db:
            return crud.create_record(db, record)

    def update(self, record_id: str, transform: RecordTransform) -> MediaRecord:
        """统一的记录更新入口（原子提交）

        Args:
            record_id: 记录 id
            transform: 接收可变记录草稿并就地修改的函数

        Returns:
            MediaRecord: 更新后的记录快照

        Raises:
            RecordNotFoundError: 记录不存在
        """
        with self.db_session_factory() as db:
            record = crud.get_record_by_id(db, record_id)
            if record is None:
                raise RecordNotFoundError(record_id)

            transform(record)

            db.add(record)
            db.commit()
            db.refresh(record)
            return record

    def enumerate(self, status: RecordStatus | None = None) -> Sequence[MediaRecord]:
        with self.db_session_factory() as db:
            return crud.list_records(db, status)

    def count(self, status: RecordStatus | None = None) -> int:
        with self.db_session_factory() as db:
            return crud.count_records(db, status)

    def count_by_status(self) -> dict[str, int]:
        with self.db_session_factory() as db:
            return crud.count_by_status(db)


def set_thumbnail(store: RecordStorePort, record_id: str, thumbnail: str) -> bool:
    """写回缩略图；记录不存在或写入失败时仅记录日志

    Returns:
        bool: 是否写入成功
    """
    def _apply(record: MediaRecord) -> None:
        record.thumbnail = thumbnail

    try:
        store.update(record_id, _apply)
        return True
    except RecordNotFoundError:
        logger.warning(f"写回缩略图时记录不存在: {record_id}")
    except Exception as e:
        logger.error(f"写回缩略图失败 {record_id}: {e}")
    return False
