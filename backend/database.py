import os
from datetime import datetime, timezone
from dotenv import load_dotenv
from threading import Lock

from sqlalchemy import create_engine
from sqlalchemy.orm import declarative_base, sessionmaker


load_dotenv()
DATABASE_URL = os.getenv("DATABASE_URL")

engine = create_engine(DATABASE_URL, pool_pre_ping=True)

SessionLocal = sessionmaker(
    autocommit=False,
    autoflush=False,
    bind=engine,
)

Base = declarative_base()

_schema_lock = Lock()
_schema_checked = False


def utcnow() -> datetime:
    # Columns hold naive UTC so SQLite and Postgres compare the same way.
    return datetime.now(timezone.utc).replace(tzinfo=None)


def get_db():
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()


def ensure_auth_schema() -> None:
    global _schema_checked

    if _schema_checked:
        return

    with _schema_lock:
        if _schema_checked:
            return

        # Registers every table on Base.metadata.
        from backend.models import admin, counter, identity, reset_token, student, teacher  # noqa: F401

        Base.metadata.create_all(bind=engine)
        _schema_checked = True
