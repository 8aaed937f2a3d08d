from collections.abc import Iterator

from sqlalchemy import create_engine
from sqlalchemy.orm import Session, sessionmaker

from app.core.config import settings

# Bound every statement so a stuck ledger/membership lookup fails fast (surfaced as 503).
engine = create_engine(
    settings.database_url,
    pool_pre_ping=True,
    connect_args={"options": f"-c statement_timeout={settings.db_statement_timeout_ms}"},
)
SessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)


def get_db() -> Iterator[Session]:
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()
