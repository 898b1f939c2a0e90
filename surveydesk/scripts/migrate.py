from __future__ import annotations

import logging
import os
import time
import subprocess
from sqlalchemy import create_engine, text
from sqlalchemy.exc import OperationalError

from surveydesk.core.config import settings

logger = logging.getLogger("surveydesk.migrate")


def wait_for_db(engine, timeout_s: int = 60) -> None:
    """Wait until the database is accepting connections."""
    start = time.time()
    delay = 1.0

    while True:
        try:
            with engine.begin() as conn:
                conn.execute(text("SELECT 1"))
            return
        except OperationalError:
            if time.time() - start > timeout_s:
                raise
            logger.info("Database not ready, retrying in %.1fs", delay)
            time.sleep(delay)
            delay = min(delay * 1.5, 5.0)


def run(cmd: list[str]) -> int:
    p = subprocess.run(cmd, check=False)
    return p.returncode


def main() -> int:
    logging.basicConfig(level=logging.INFO, format="%(asctime)s %(levelname)s %(name)s: %(message)s")
    dsn = os.getenv("DATABASE_DSN") or settings.DATABASE_DSN
    engine = create_engine(dsn, future=True, pool_pre_ping=True)

    # Wait for DB readiness (important in docker-compose)
    wait_for_db(engine, timeout_s=int(os.getenv("DB_WAIT_TIMEOUT", "90")))

    rc = run(["alembic", "upgrade", "head"])
    if rc != 0:
        return rc

    # Seed sample dataset (idempotent)
    if settings.AUTO_SEED_SAMPLE:
        from sqlalchemy.orm import Session
        from surveydesk.db.session import SessionLocal
        from surveydesk.scripts.seed_sample import seed_sample

        db: Session = SessionLocal()
        try:
            seed_sample(db)
            db.commit()
        finally:
            db.close()

    return 0


if __name__ == "__main__":
    raise SystemExit(main())
