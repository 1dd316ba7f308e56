import time

from sqlalchemy import create_engine, event
from sqlalchemy.engine import Engine
from sqlalchemy.orm import sessionmaker

from app.cashclose.core.config import settings
from app.cashclose.core.db_timing import current_query_time_ms, record_query_time


def build_engine(database_url: str) -> Engine:
    connect_args = {}
    if database_url.startswith("sqlite"):
        # writers wait this long for the file lock before "database is locked"
        connect_args = {"check_same_thread": False, "timeout": settings.DB_LOCK_TIMEOUT_SECONDS}
    built = create_engine(database_url, echo=False, future=True, connect_args=connect_args)
    event.listen(built, "before_cursor_execute", _start_query_clock)
    event.listen(built, "after_cursor_execute", _stop_query_clock)
    return built


def _start_query_clock(conn, cursor, statement, parameters, context, executemany):
    if current_query_time_ms() is not None:
        conn.info["query_started"] = time.perf_counter()


def _stop_query_clock(conn, cursor, statement, parameters, context, executemany):
    started = conn.info.pop("query_started", None)
    if started is not None:
        record_query_time((time.perf_counter() - started) * 1000)


engine = build_engine(settings.DATABASE_URL)
SessionLocal = sessionmaker(bind=engine, autoflush=False, autocommit=False, expire_on_commit=False, future=True)


def get_db():
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()
