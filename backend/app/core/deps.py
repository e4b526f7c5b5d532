from functools import lru_cache
from typing import Iterator

from sqlalchemy.orm import Session

from app.core.db import SessionLocal
from app.eligibility.tiers import TierTable
from app.jobs.delay_monitor.config import load_config


def get_db() -> Iterator[Session]:
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()


@lru_cache(maxsize=1)
def get_tier_table() -> TierTable:
    return load_config().tiers
