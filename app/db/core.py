from loguru import logger
from sqlmodel import Session, SQLModel, create_engine

from app.core.config import settings


connect_args = {}
if settings.database_url.startswith("sqlite"):
    # Sync handlers run on a thread pool
    connect_args = {"check_same_thread": False}

engine = create_engine(settings.database_url, connect_args=connect_args)


def init_db(bind=None) -> None:
    """Creates missing tables. Schema changes beyond that are managed outside the app."""
    # Imported for its side effect of registering every table on the metadata
    from app.db import schema  # noqa: F401

    SQLModel.metadata.create_all(bind or engine)
    logger.info("Database schema ready")


def get_session():
    with Session(engine) as session:
        yield session
