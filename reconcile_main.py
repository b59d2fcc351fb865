import logging
import sys

from dotenv import load_dotenv

from infrastructure.config import Settings
from infrastructure.logging_setup import configure_logging
from infrastructure.wiring import build_container


load_dotenv()

logger = logging.getLogger("reconcile")


def main() -> int:
    """Refund stale unsettled wagers once; exit non-zero if any failed."""

    settings = Settings.from_env()
    configure_logging(settings.log_level)

    report = build_container(settings).reconciler.run()
    if report.refunded:
        logger.warning("Refunded %d wager(s), %d points in total", len(report.refunded), report.total_refunded)
    return 1 if report.failed else 0


if __name__ == "__main__":
    sys.exit(main())
