from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker

from moedinha.core.config import get_settings


settings = get_settings()


def _engine_options(database_url: str) -> dict:
    if database_url.startswith("sqlite"):
        # Local runs: FastAPI serves sync routes from a threadpool.
        return {"connect_args": {"check_same_thread": False}}
    # Cron batches and request handlers never hold more than one session each.
    return {
        "pool_pre_ping": True,
        "pool_size": 5,
        "max_overflow": 5,
        "pool_recycle": 300,
    }


engine = create_engine(settings.database_url, future=True, **_engine_options(settings.database_url))

SessionLocal = sessionmaker(
    bind=engine,
    autoflush=False,
    autocommit=False,
    expire_on_commit=False,
)
