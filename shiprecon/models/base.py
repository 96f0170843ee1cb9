"""
Database engine, sessions and schema bootstrap
"""
import os
from typing import List
from sqlalchemy import create_engine, inspect, text
from sqlalchemy.engine import Engine
from sqlalchemy.pool import NullPool, StaticPool
from sqlalchemy.orm import declarative_base, sessionmaker
from shiprecon.config import get_settings
from shiprecon.utils.logger import log

settings = get_settings()


def _absolute_sqlite_url(url: str) -> str:
    """sqlite:///relative.db -> sqlite:////abs/path/relative.db"""
    if not url.startswith("sqlite:///") or url.startswith("sqlite:////") or ":memory:" in url:
        return url
    return "sqlite:///" + os.path.abspath(url[len("sqlite:///"):])


def build_engine(url: str) -> Engine:
    """
    Engine for the configured database.

    In-memory SQLite shares one connection across threads so every session
    sees the same tables; file SQLite opens a connection per session; other
    databases get a small pool.
    """
    url = _absolute_sqlite_url(url)
    if url in ("sqlite://", "sqlite:///:memory:"):
        return create_engine(url, connect_args={"check_same_thread": False}, poolclass=StaticPool)
    if url.startswith("sqlite"):
        return create_engine(
            url,
            connect_args={"check_same_thread": False, "timeout": 60},
            poolclass=NullPool,
        )
    return create_engine(url, pool_pre_ping=True, pool_size=3, max_overflow=5, pool_recycle=300)


engine = build_engine(settings.database_url)

SessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)

Base = declarative_base()


def get_db():
    """FastAPI dependency: one session per request"""
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()


def add_missing_columns(bind: Engine) -> List[str]:
    """
    ALTER existing tables to add model columns they lack.

    create_all() never touches tables that already exist, so a column added
    to Order/Shipment after the first deploy would otherwise be missing.
    Returns the "table.column" names that were added.
    """
    inspector = inspect(bind)
    added = []
    with bind.connect() as conn:
        for table_name, table in Base.metadata.tables.items():
            if not inspector.has_table(table_name):
                continue
            existing = {c["name"] for c in inspector.get_columns(table_name)}
            for col in table.columns:
                if col.name in existing:
                    continue
                col_type = col.type.compile(dialect=bind.dialect)
                conn.execute(text(f"ALTER TABLE {table_name} ADD COLUMN {col.name} {col_type}"))
                added.append(f"{table_name}.{col.name}")
        conn.commit()
    return added


def init_db(bind: Engine = None):
    """Create the shipping tables and add any columns new since the last run."""
    import shiprecon.models  # noqa: F401  (registers tables)

    bind = bind or engine
    Base.metadata.create_all(bind=bind)
    added = add_missing_columns(bind)
    if added:
        log.info(f"Added columns: {', '.join(added)}")
