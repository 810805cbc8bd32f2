"""Process-wide logging setup."""
import logging

LOG_FORMAT = "%(asctime)s %(levelname)s [%(name)s] %(message)s"


def configure_logging(level: str = "INFO") -> None:
    logging.basicConfig(level=level.upper(), format=LOG_FORMAT)
    # uvicorn access lines are noisy next to ours
    logging.getLogger("uvicorn.access").setLevel(logging.WARNING)
