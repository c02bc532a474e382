from __future__ import annotations

import structlog

from parkway.core.logging import setup_logging
from parkway.db.session import SessionLocal
from parkway.services.event_service import OutboxEventPublisher
from parkway.services.reservation_service import complete_elapsed, expire_stale_pending

logger = structlog.get_logger(__name__)


def main() -> int:
    """Expire unpaid pending reservations and complete elapsed ones.

    Meant to run from cron every few minutes.
    """
    setup_logging()
    publisher = OutboxEventPublisher()
    db = SessionLocal()
    try:
        expired = expire_stale_pending(db, publisher=publisher)
        completed = complete_elapsed(db, publisher=publisher)
        logger.info("maintenance_finished", expired=expired, completed=completed)
        return 0
    finally:
        db.close()


if __name__ == "__main__":
    raise SystemExit(main())
