"""
数据库配置 - 持久化层
所有业务操作通过服务层进行，数据库仅作为行存储
"""
import logging
from contextlib import contextmanager
from typing import Iterator

from sqlalchemy import create_engine, text
from sqlalchemy.exc import OperationalError
from sqlalchemy.orm import Session, sessionmaker, declarative_base
from sqlalchemy.orm.exc import StaleDataError

from hotelops.config import settings
from hotelops.errors import ConcurrentUpdate, TransientStoreFailure

logger = logging.getLogger(__name__)


def _connect_args(url: str) -> dict:
    if url.startswith("sqlite"):
        return {"check_same_thread": False, "timeout": settings.DB_TIMEOUT_SECONDS}
    return {}


engine = create_engine(
    settings.DATABASE_URL,
    connect_args=_connect_args(settings.DATABASE_URL)
)

SessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)

Base = declarative_base()


def get_db():
    """依赖注入：获取数据库会话"""
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()


@contextmanager
def transaction(db: Session) -> Iterator[Session]:
    """
    事务边界：正常退出时提交，任何异常回滚

    复合操作（入住、退房、服务请求）在同一个 transaction 内完成，
    不会留下部分状态。
    """
    try:
        yield db
        db.commit()
    except StaleDataError as e:
        db.rollback()
        logger.warning(f"Concurrent modification detected: {e}")
        raise ConcurrentUpdate("记录已被其他操作修改，请刷新后重试") from e
    except OperationalError as e:
        db.rollback()
        logger.error(f"Store operation failed: {e}")
        raise TransientStoreFailure("数据存储暂时不可用，请稍后重试") from e
    except Exception:
        db.rollback()
        raise


def init_db():
    """初始化数据库表"""
    from hotelops.models import ontology  # noqa
    Base.metadata.create_all(bind=engine)

    if engine.dialect.name == "sqlite" and ":memory:" not in settings.DATABASE_URL:
        # 启用 WAL 模式以提高并发性能
        with engine.connect() as conn:
            conn.execute(text("PRAGMA journal_mode=WAL"))
            conn.execute(text("PRAGMA synchronous=NORMAL"))
            conn.commit()
