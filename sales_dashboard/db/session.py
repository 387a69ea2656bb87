import os
import re
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool
from dotenv import load_dotenv

load_dotenv()


def _normalize_database_url(raw_url: str) -> str:
    cleaned = re.sub(r"\s+", "", (raw_url or "").strip())
    if cleaned.startswith("postgres://"):
        cleaned = "postgresql://" + cleaned[len("postgres://") :]
    return cleaned


def _is_in_memory_sqlite(url: str) -> bool:
    return url in {"sqlite://", "sqlite:///:memory:", "sqlite+pysqlite://", "sqlite+pysqlite:///:memory:"}


DATABASE_URL = _normalize_database_url(os.getenv("DATABASE_URL", "sqlite://"))

engine_kwargs = {
    "pool_pre_ping": True,
}

if DATABASE_URL.startswith("sqlite"):
    engine_kwargs["connect_args"] = {"check_same_thread": False}
    # one shared connection, otherwise every session gets its own empty database
    if _is_in_memory_sqlite(DATABASE_URL):
        engine_kwargs["poolclass"] = StaticPool
elif DATABASE_URL.startswith("postgresql"):
    engine_kwargs.update(
        {
            "pool_recycle": int(os.getenv("DB_POOL_RECYCLE", "1800")),
            "pool_size": int(os.getenv("DB_POOL_SIZE", "5")),
            "max_overflow": int(os.getenv("DB_MAX_OVERFLOW", "10")),
        }
    )

engine = create_engine(DATABASE_URL, **engine_kwargs)
# records are handed back after commit without a refresh round-trip
SessionLocal = sessionmaker(autocommit=False, autoflush=False, expire_on_commit=False, bind=engine)
