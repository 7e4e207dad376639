# fraudgate/utils/logging.py
import logging
import sys

from ..config import settings

_FORMAT = "%(asctime)s %(levelname)s [%(name)s] %(message)s"

def _build_logger() -> logging.Logger:
    log = logging.getLogger("fraudgate")
    if not log.handlers:
        handler = logging.StreamHandler(sys.stdout)
        handler.setFormatter(logging.Formatter(_FORMAT))
        log.addHandler(handler)
    log.setLevel(getattr(logging, settings.LOG_LEVEL.upper(), logging.INFO))
    return log

logger = _build_logger()
