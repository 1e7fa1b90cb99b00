from sqlalchemy import create_engine
from sqlalchemy.orm import declarative_base, sessionmaker
from sqlalchemy.pool import StaticPool

from .config import settings


def get_engine():
    if settings.is_sqlite:
        # In-memory databases must share one connection across threads
        extra = {"poolclass": StaticPool} if settings.database_url in ("sqlite://", "sqlite:///:memory:") else {}
        return create_engine(
            settings.database_url,
            connect_args={"check_same_thread": False},
            **extra,
        )
    return create_engine(
        settings.database_url,
        pool_pre_ping=True,
        pool_size=settings.db_pool_size,
        max_overflow=settings.db_max_overflow,
        pool_recycle=settings.db_pool_recycle,
    )


engine = get_engine()
SessionLocal = sessionmaker(bind=engine, autoflush=False, autocommit=False)

Base = declarative_base()


def get_db():
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()
