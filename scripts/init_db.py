from __future__ import annotations

import structlog
from sqlalchemy import text

from parkway.core.logging import setup_logging
from parkway.db.base import Base
from parkway.db.session import engine

# Import models to register with SQLAlchemy
import parkway.models  # noqa: F401


logger = structlog.get_logger(__name__)

NO_OVERLAP_CONSTRAINT = """
ALTER TABLE reservations
ADD CONSTRAINT reservations_no_overlap
EXCLUDE USING gist (
    space_id WITH =,
    tstzrange(start_at, end_at, '[)') WITH &&
)
WHERE (status IN ('pending', 'confirmed'));
"""


def _constraint_exists(conn) -> bool:
    row = conn.execute(text("SELECT 1 FROM pg_constraint WHERE conname = 'reservations_no_overlap'")).first()
    return row is not None


def main() -> int:
    setup_logging()
    is_postgres = engine.dialect.name == "postgresql"

    if is_postgres:
        # Extension needed for the exclusion constraint (overlap prevention)
        with engine.begin() as conn:
            conn.execute(text("CREATE EXTENSION IF NOT EXISTS btree_gist"))

    Base.metadata.create_all(bind=engine)

    if is_postgres:
        with engine.begin() as conn:
            if not _constraint_exists(conn):
                conn.execute(text(NO_OVERLAP_CONSTRAINT))
                logger.info("exclusion_constraint_created", name="reservations_no_overlap")
    else:
        logger.warning("exclusion_constraint_skipped", dialect=engine.dialect.name)

    logger.info("db_initialized", dialect=engine.dialect.name)
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
