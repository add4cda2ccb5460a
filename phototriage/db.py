from sqlmodel import create_engine, Session, SQLModel
from .config import settings
from typing import Callable

# 确保模型在 create_all 之前已注册到 metadata
from .core import models  # noqa: F401

# 数据库文件路径
DATABASE_URL = settings.DATABASE_URL

# 创建数据库引擎
# connect_args 是 SQLite 特有的配置，允许多个线程共享同一个连接。
# FastAPI 的同步路由运行在线程池中，与事件循环中的后台任务不在同一线程。
engine = create_engine(DATABASE_URL, echo=settings.SQLITE_ECHO, connect_args={"check_same_thread": False})


def create_db_and_tables():
    """
    在应用启动时创建数据库文件和所有定义的表。
    """
    SQLModel.metadata.create_all(engine)

    # ------------------------------------------------------------------
    # 确保关键索引存在 (idempotent)
    # ------------------------------------------------------------------
    index_statements = [
        # 按状态筛选后按修改时间倒序展示
        "CREATE INDEX IF NOT EXISTS idx_record_status_mtime ON mediarecord (status, modified_time DESC)"
    ]

    with engine.begin() as conn:
        for stmt in index_statements:
            conn.exec_driver_sql(stmt)


# ---------------------------------------------------------------------------
#   通用会话工厂函数 (记录存储 / 后台任务 / 脚本均可复用)
# ---------------------------------------------------------------------------

def get_session_factory() -> Callable[[], Session]:
    """返回一个调用即得 `Session` 的工厂函数。

    记录存储在每次读写时各自打开一个短生命周期的会话，
    同步路由（线程池）与事件循环中的协程可以安全共用。
    """

    return lambda: Session(engine)
