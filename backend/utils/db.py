# backend/utils/db.py
from __future__ import annotations
from contextlib import contextmanager
from typing import Generator
import logging
import os
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker, DeclarativeBase, Session

logger = logging.getLogger(__name__)


class Base(DeclarativeBase):
    pass

_engine = None
SessionLocal: sessionmaker | None = None
EFFECTIVE_DB_URL = ""

DEFAULT_SQLITE_URL = "sqlite:///data/sitekit.db"


def _normalize_url(url: str) -> str:
    if not url:
        return url
    # 自動將舊驅動前綴改為 psycopg（v3）
    return url.replace("postgresql://", "postgresql+psycopg://", 1) if url.startswith("postgresql://") else url


def init_engine_session(url: str | None = None) -> None:
    """
    初始化資料庫：
    1) 參數或 DATABASE_URL 有值 -> 直接使用
    2) 否則回退到本機 SQLite（data/sitekit.db）
    """
    global _engine, SessionLocal, EFFECTIVE_DB_URL

    raw = url or os.getenv("DATABASE_URL", "") or DEFAULT_SQLITE_URL
    target = _normalize_url(raw)
    if target.startswith("sqlite:///") and not target.startswith("sqlite:////"):
        # 相對路徑的 SQLite 需要先建立資料夾
        folder = os.path.dirname(target[len("sqlite:///"):])
        if folder:
            os.makedirs(folder, exist_ok=True)

    eng = create_engine(target, pool_pre_ping=True)
    # 立刻測試一次連線，避免把壞 URL 留到後面出錯
    with eng.connect() as conn:
        conn.exec_driver_sql("SELECT 1")

    _engine = eng
    SessionLocal = sessionmaker(bind=_engine, autoflush=False, autocommit=False, expire_on_commit=False)
    import models  # noqa: F401  註冊所有資料表
    Base.metadata.create_all(_engine)
    EFFECTIVE_DB_URL = target
    logger.info("DB connected: %s", _mask_url(target))


def get_engine():
    if _engine is None:
        init_engine_session()
    return _engine


def _mask_url(url: str) -> str:
    if '://' not in url or '@' not in url:
        return url
    left, rest = url.split('://', 1)
    cred_part, host_part = rest.rsplit('@', 1)
    if ':' in cred_part:
        user = cred_part.split(':', 1)[0]
        masked = f"{user}:***"
    else:
        masked = cred_part
    return f"{left}://{masked}@{host_part}"


def get_db_health() -> dict:
    """回傳 DB 健康狀態，供 /api/healthz 使用。"""
    ok = False
    driver = None
    err = None
    url = EFFECTIVE_DB_URL or os.getenv("DATABASE_URL", "")
    try:
        eng = get_engine()
        with eng.connect() as conn:
            conn.exec_driver_sql("SELECT 1")
        ok = True
        driver = eng.url.drivername
    except Exception as e:
        err = str(e)
    return {
        "ok": ok,
        "url": _mask_url(url),
        "driver": driver,
        **({"error": err} if err else {}),
    }


@contextmanager
def get_session() -> Generator[Session, None, None]:
    if SessionLocal is None:
        init_engine_session()
    db = SessionLocal()
    try:
        yield db
    except Exception:
        db.rollback()
        raise
    finally:
        db.close()
