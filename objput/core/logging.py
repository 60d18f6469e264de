import logging
import os


def setup_logging(default_level: str = "WARNING") -> None:
    level = os.getenv("LOG_LEVEL", default_level).upper()
    logging.basicConfig(
        level=level,
        format="%(asctime)s %(levelname)s %(name)s %(message)s",
    )
    logging.getLogger().setLevel(level)
