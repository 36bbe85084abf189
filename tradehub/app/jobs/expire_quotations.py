from __future__ import annotations

import logging

from tradehub.app.core.config import get_settings
from tradehub.app.core.logging_config import configure_logging
from tradehub.app.db.session import SessionLocal
from tradehub.services.quotations import expire_stale_quotations

logger = logging.getLogger(__name__)


def run_expire() -> int:
    db = SessionLocal()
    try:
        count = expire_stale_quotations(db)
        logger.info("Quotation expiry job done: %d expired", count)
        return count
    finally:
        db.close()


if __name__ == "__main__":
    configure_logging(get_settings().log_level)
    run_expire()
