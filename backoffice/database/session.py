from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker, Session
from sqlalchemy.orm import declarative_base

from backoffice.config import settings

SQLALCHEMY_DATABASE_URL = settings.DATABASE_URL


def build_engine(url: str = SQLALCHEMY_DATABASE_URL):
    # SQLite (local runs, tests) has no pool sizing
    if url.startswith("sqlite"):
        return create_engine(url, echo=False, connect_args={"check_same_thread": False})

    return create_engine(
        url,
        echo=False,
        pool_pre_ping=True,
        pool_size=settings.DB_POOL_SIZE,
        max_overflow=settings.DB_MAX_OVERFLOW,
        pool_timeout=settings.DB_POOL_TIMEOUT,
        pool_recycle=settings.DB_POOL_RECYCLE
    )


engine = build_engine()
SessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)

Base = declarative_base()

def get_db():
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()

def init_db():
    """Create all tables (schema migrations are managed outside this service)"""
    import backoffice.models  # noqa: F401  register models on Base.metadata

    Base.metadata.create_all(bind=engine)
