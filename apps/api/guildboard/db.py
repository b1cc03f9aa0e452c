from pathlib import Path

from sqlalchemy import create_engine
from sqlalchemy.engine import Engine
from sqlalchemy.orm import declarative_base, sessionmaker
from sqlalchemy.pool import StaticPool

from .config import DATABASE_URL


Base = declarative_base()


def normalize_database_url(raw_url: str) -> str:
    url = str(raw_url or "").strip()
    if url.startswith("postgres://"):
        return "postgresql+psycopg2://" + url[len("postgres://") :]
    if url.startswith("postgresql://") and "+psycopg" not in url:
        return "postgresql+psycopg2://" + url[len("postgresql://") :]
    return url


def _sqlite_path(url: str) -> Path | None:
    raw_path = url.replace("sqlite:///", "", 1)
    if not raw_path or raw_path == ":memory:":
        return None
    return Path(raw_path).expanduser()


def build_engine(raw_url: str) -> Engine:
    """Engine for a document store database.

    SQLite files get their parent directory created; ``sqlite:///:memory:``
    shares one connection so every session sees the same tables.
    """
    url = normalize_database_url(raw_url)
    if not url.startswith("sqlite"):
        return create_engine(
            url,
            pool_pre_ping=True,
            pool_recycle=1800,
            pool_size=5,
            max_overflow=10,
            pool_timeout=30,
        )
    path = _sqlite_path(url)
    if path is None:
        return create_engine(url, connect_args={"check_same_thread": False}, poolclass=StaticPool)
    path.parent.mkdir(parents=True, exist_ok=True)
    return create_engine(url, connect_args={"check_same_thread": False}, pool_pre_ping=True)


def build_session_factory(bind: Engine) -> sessionmaker:
    Base.metadata.create_all(bind=bind)
    return sessionmaker(autocommit=False, autoflush=False, bind=bind)


engine = build_engine(DATABASE_URL)
SessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)
