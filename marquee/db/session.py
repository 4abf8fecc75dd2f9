from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker, declarative_base
from marquee.core.config import settings


def _connect_args(url: str) -> dict:
    # SQLite sessions are handed across threads by the stream endpoint
    if url.startswith("sqlite"):
        return {"check_same_thread": False}
    return {}


engine = create_engine(
    settings.DATABASE_URL,
    pool_pre_ping=True,
    connect_args=_connect_args(settings.DATABASE_URL),
)

SessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)

Base = declarative_base()

def get_db():
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()
