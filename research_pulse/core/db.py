from __future__ import annotations

from pathlib import Path

from sqlalchemy import text
from sqlalchemy.ext.asyncio import AsyncEngine, AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.orm import DeclarativeBase

CREATE_TABLES_SQL = [
    '''
    CREATE TABLE IF NOT EXISTS articles (
        link TEXT PRIMARY KEY,
        title TEXT,
        date DATETIME NOT NULL,
        source TEXT,
        snippet TEXT,
        tags TEXT,
        embedding TEXT,
        created_at DATETIME DEFAULT (CURRENT_TIMESTAMP)
    );
    ''',
    'CREATE INDEX IF NOT EXISTS ix_articles_date ON articles(date);',
]

def sqlite_url(path: str) -> str:
    return f"sqlite+aiosqlite:///{path}"

def ensure_db_dir(path: str) -> None:
    # sqlite is file-based, the parent directory has to exist before connecting
    if path != ":memory:":
        Path(path).parent.mkdir(parents=True, exist_ok=True)

def create_engine(db_path: str) -> AsyncEngine:
    return create_async_engine(sqlite_url(db_path), echo=False, future=True)

def create_sessionmaker(engine: AsyncEngine) -> async_sessionmaker[AsyncSession]:
    return async_sessionmaker(engine, expire_on_commit=False, class_=AsyncSession)

async def init_db(engine: AsyncEngine) -> None:
    # Create tables (simple, no migration tool needed)
    async with engine.begin() as conn:
        for stmt in CREATE_TABLES_SQL:
            await conn.execute(text(stmt))

class Base(DeclarativeBase):
    pass
