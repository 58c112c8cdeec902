from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker, declarative_base
from sqlalchemy.pool import StaticPool
from app.core.config import settings

Base = declarative_base()


def make_engine(database_url: str):
    """
    Support both PostgreSQL and SQLite via centralized settings.
    In-memory SQLite shares one connection so every session sees the same data.
    """
    if database_url.startswith("postgresql"):
        return create_engine(database_url, pool_pre_ping=True)
    if database_url.endswith(":memory:"):
        return create_engine(
            database_url,
            connect_args={"check_same_thread": False},
            poolclass=StaticPool,
        )
    return create_engine(database_url, connect_args={"check_same_thread": False})


engine = make_engine(settings.database_url)

SessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)


def init_db(bind=None):
    """
    Registers the document model and initializes the database schema.
    Called from the application lifespan when the SQL store is selected.
    """
    from app.models import document  # noqa: F401
    Base.metadata.create_all(bind=bind or engine)
