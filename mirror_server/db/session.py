"""Engine and session factory built from server settings."""

from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker

from mirror_server.core.config import get_settings
from mirror_server.db.base import Base
import mirror_server.db.models  # noqa: F401

settings = get_settings()

connect_args = {"check_same_thread": False} if settings.database_url.startswith("sqlite") else {}
engine = create_engine(settings.database_url, pool_pre_ping=True, connect_args=connect_args)
SessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)


def init_db(bind=None) -> None:
    """Create every table that does not exist yet."""
    Base.metadata.create_all(bind=bind or engine)
