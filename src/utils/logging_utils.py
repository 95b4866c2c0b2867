import logging

logger = logging.getLogger(__name__)

BANNER_WIDTH = 80


def log_header(title: str, separator: str = "=") -> None:
    logger.info("")
    logger.info(separator * BANNER_WIDTH)
    logger.info(title.center(BANNER_WIDTH))
    logger.info(separator * BANNER_WIDTH)


def log_footer(separator: str = "=") -> None:
    logger.info(separator * BANNER_WIDTH)


def log_counts(title: str, counts: dict) -> None:
    """Log a block of named row counts, e.g. the outcome of a cleaning run"""
    log_header(title, separator="-")
    for name, value in counts.items():
        logger.info(f"{name:<40}{value:>12,}")
    log_footer(separator="-")
