"""
Process-wide logging setup.

Modules log through `logging.getLogger(__name__)`; this only installs the
root handler and format. Gunicorn adds its own access/error streams.
"""
import logging

LOG_FORMAT = "%(asctime)s %(levelname)s [%(name)s] %(message)s"

_configured = False


def configure_logging(level: str = "INFO") -> None:
    """Install the root handler once. Later calls only adjust the level."""
    global _configured
    numeric = logging.getLevelName(level.upper())
    if not isinstance(numeric, int):
        numeric = logging.INFO

    if not _configured:
        logging.basicConfig(level=numeric, format=LOG_FORMAT)
        _configured = True
    logging.getLogger().setLevel(numeric)
