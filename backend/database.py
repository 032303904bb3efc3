import logging

from sqlalchemy import create_engine
from sqlalchemy.orm import declarative_base, sessionmaker
from sqlalchemy.pool import StaticPool
from config import DATABASE_URL

logger = logging.getLogger(__name__)

Base = declarative_base()
db_engine = None
SessionLocal = None


def init_db(url: str = None):
    global db_engine, SessionLocal
    db_url = url or DATABASE_URL
    if not db_url:
        logger.warning("DATABASE_URL not set - running without database storage")
        return False

    db_url = db_url.replace("postgres://", "postgresql://", 1)
    if db_url.startswith("sqlite"):
        # In-memory SQLite must share one connection across sessions
        engine_kwargs = {"connect_args": {"check_same_thread": False}}
        if db_url in ("sqlite://", "sqlite:///:memory:"):
            engine_kwargs["poolclass"] = StaticPool
        db_engine = create_engine(db_url, **engine_kwargs)
    else:
        db_engine = create_engine(db_url, pool_pre_ping=True)
    SessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=db_engine)

    # Register tables on Base.metadata before create_all
    import models  # noqa: F401

    try:
        Base.metadata.create_all(bind=db_engine)
        logger.info("Database initialized successfully")
    except Exception as e:
        logger.error("Database table creation failed (will retry on first request): %s", e)
    return True


def is_initialized() -> bool:
    return SessionLocal is not None


def get_db():
    if SessionLocal is None:
        return None
    return SessionLocal()
