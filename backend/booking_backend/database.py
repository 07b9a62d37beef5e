from sqlalchemy import create_engine, event
from sqlalchemy.orm import sessionmaker
from .config import settings

# check_same_thread=False: sessions are opened from FastAPI worker threads
# and from the availability fan-out (asyncio.to_thread)
engine = create_engine(
    settings.resolved_database_url,
    connect_args={"check_same_thread": False}
)


@event.listens_for(engine, "connect")
def enable_sqlite_fk(dbapi_connection, _):
    cursor = dbapi_connection.cursor()
    cursor.execute("PRAGMA foreign_keys=ON")
    cursor.close()


SessionLocal = sessionmaker(
    autocommit=False,
    autoflush=False,
    bind=engine
)


# Dependency for FastAPI
def get_db():
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()


def get_session_factory():
    """Session factory for code that opens its own sessions per call."""
    return SessionLocal


def init_db() -> None:
    """Create missing tables (existing ones are left untouched)."""
    from .models.generated import Base

    Base.metadata.create_all(bind=engine)
