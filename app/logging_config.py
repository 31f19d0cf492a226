import logging
import sys

_configured = False


def setup_logging(level: str = "INFO") -> None:
    """Configure the root logger. Later calls only adjust the level."""
    global _configured
    if not _configured:
        logging.basicConfig(
            level=level.upper(),
            format="%(asctime)s - %(name)s - [%(levelname)s] - %(message)s",
            stream=sys.stdout,
        )
        logging.getLogger("httpx").setLevel(logging.WARNING)
        _configured = True
    logging.getLogger("app").setLevel(level.upper())
