"""Job store engine and sessions.

SQLite databases run in WAL mode so the API and the Celery worker can read
while the other writes; any other URL (e.g. a hosted Postgres) is used as-is.
"""
from sqlalchemy import Engine, create_engine, event
from sqlalchemy.orm import sessionmaker, DeclarativeBase
from videogen.config import get_settings


class Base(DeclarativeBase):
    pass


def build_engine(url: str, echo: bool = False) -> Engine:
    if not url.startswith("sqlite"):
        return create_engine(url, echo=echo, pool_pre_ping=True)

    engine = create_engine(url, echo=echo, connect_args={"check_same_thread": False})

    @event.listens_for(engine, "connect")
    def _enable_wal(dbapi_conn, connection_record):
        cursor = dbapi_conn.cursor()
        cursor.execute("PRAGMA journal_mode=WAL;")
        cursor.close()

    return engine


engine = build_engine(get_settings().DATABASE_URL, echo=get_settings().DEBUG)

SessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)


def get_db():
    """FastAPI dependency that yields a database session."""
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()


def create_tables():
    """Create the job table if it does not exist yet."""
    import videogen.models  # noqa: F401  (register mappers on Base.metadata)
    Base.metadata.create_all(bind=engine)
