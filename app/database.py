# app/database.py
from __future__ import annotations
import logging
import time

from sqlalchemy import create_engine, event
from sqlalchemy.orm import sessionmaker, declarative_base
from .config import settings

logger = logging.getLogger(__name__)

# Usa siempre la URL desde settings (que a su vez lee .env)
DATABASE_URL: str | None = settings.DATABASE_URL
if not DATABASE_URL:
    raise RuntimeError("DATABASE_URL no está configurada (revisa tu .env).")

IS_SQLITE = DATABASE_URL.startswith("sqlite")

if IS_SQLITE:
    # Hilos de uvicorn comparten el archivo; timeout = espera al lock de escritura
    engine = create_engine(
        DATABASE_URL,
        connect_args={"check_same_thread": False, "timeout": 30},
        pool_pre_ping=True,
    )

    @event.listens_for(engine, "connect")
    def _sqlite_pragmas(dbapi_conn, _record):
        cur = dbapi_conn.cursor()
        cur.execute("PRAGMA foreign_keys=ON")
        cur.close()
else:
    # Postgres: los locks de fila hacen el trabajo pesado del control de cupos
    engine = create_engine(
        DATABASE_URL,
        pool_size=settings.DB_POOL_SIZE,
        max_overflow=settings.DB_MAX_OVERFLOW,
        pool_timeout=settings.DB_POOL_TIMEOUT,
        pool_recycle=settings.DB_POOL_RECYCLE,
        pool_pre_ping=True,
    )

if settings.DB_SLOW_QUERY_SECONDS > 0:

    @event.listens_for(engine, "before_cursor_execute")
    def _before_cursor_execute(conn, _cursor, _statement, _parameters, _context, _executemany):
        conn.info.setdefault("query_start_time", []).append(time.perf_counter())

    @event.listens_for(engine, "after_cursor_execute")
    def _after_cursor_execute(conn, _cursor, statement, _parameters, _context, _executemany):
        elapsed = time.perf_counter() - conn.info["query_start_time"].pop(-1)
        if elapsed > settings.DB_SLOW_QUERY_SECONDS:
            # En SQLite casi siempre es espera por el lock de escritura
            logger.warning("Query lenta (%.2fs): %s", elapsed, statement[:200])

SessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)

Base = declarative_base()


def init_db():
    """
    Crea las tablas si no existen. Importa modelos antes para que SQLAlchemy
    conozca todos los metadatos.
    """
    from . import models  # noqa: F401
    Base.metadata.create_all(bind=engine)
    logger.info("Tablas verificadas (%s)", engine.dialect.name)


def get_db():
    """Una sesión por request; nada se comparte entre requests."""
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()
