import logging

from fastapi import HTTPException
from sqlalchemy import create_engine
from sqlalchemy.orm import Session, sessionmaker

from app.core.config import settings
from app.core.exceptions import IdentityServiceError

logger = logging.getLogger(__name__)


def _connect_args(url: str) -> dict:
    if url.startswith("sqlite"):
        return {"check_same_thread": False}
    return {"connect_timeout": 30}


# Create the SQLAlchemy engine
engine = create_engine(settings.DATABASE_URL,
                       connect_args=_connect_args(settings.DATABASE_URL),
                       pool_pre_ping=True,
                       pool_recycle=3600,
)

# Create a configured "Session" class
SessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)

# do not change the order of the code below
# Dependency that can be used in routes to get the session
def get_db() -> Session:
    db = SessionLocal()  # generate a new SessionLocal
    try:
        yield db
    except Exception as e:
        db.rollback()
        if isinstance(e, (HTTPException, IdentityServiceError)):
            raise e
        logger.exception("database session error")
        raise IdentityServiceError("Internal server error") from e
    finally:
        db.close()


def get_session_factory() -> sessionmaker:
    """Session factory for work that outlives the request, e.g. background tasks."""
    return SessionLocal
