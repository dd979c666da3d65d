# scorecard/core/logging.py
import logging
import sys

_FORMAT = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"


def setup_logging(level: str = "INFO") -> None:
    """Configure root logging to stdout. Safe to call more than once."""
    root_logger = logging.getLogger()
    if not any(getattr(h, "_scorecard_handler", False) for h in root_logger.handlers):
        handler = logging.StreamHandler(sys.stdout)
        handler.setFormatter(logging.Formatter(_FORMAT, datefmt="%Y-%m-%d %H:%M:%S"))
        handler._scorecard_handler = True
        root_logger.addHandler(handler)
    root_logger.setLevel(level.upper())

    # Noisy libraries
    logging.getLogger("sqlalchemy").setLevel(logging.WARNING)
    logging.getLogger("asyncio").setLevel(logging.WARNING)
