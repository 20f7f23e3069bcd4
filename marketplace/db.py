from sqlalchemy import create_engine, event
from sqlalchemy.orm import sessionmaker, declarative_base

from . import config

DATABASE_URL = config.state.database_url


def enable_sqlite_foreign_keys(engine):
    # SQLite only enforces FK actions (SET NULL / CASCADE) with this pragma
    @event.listens_for(engine, "connect")
    def set_sqlite_pragma(dbapi_connection, connection_record):
        cursor = dbapi_connection.cursor()
        cursor.execute("PRAGMA foreign_keys=ON")
        cursor.close()


def make_engine(url: str):
    # For SQLite, enable check_same_thread=False for multithreading in FastAPI
    connect_args = {"check_same_thread": False} if url.startswith("sqlite") else {}
    eng = create_engine(url, connect_args=connect_args, future=True)
    if url.startswith("sqlite"):
        enable_sqlite_foreign_keys(eng)
    return eng


engine = make_engine(DATABASE_URL)

SessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine, future=True)
Base = declarative_base()


def init_db(bind=None):
    # Create tables if not existing. In production, use Alembic.
    from . import models  # noqa: F401

    Base.metadata.create_all(bind=bind or engine)
