import json
import logging
import os
import sys
import time
import uuid


class _C:
    RESET = "\033[0m"
    RED = "\033[31m"
    GREEN = "\033[32m"
    YELLOW = "\033[33m"
    CYAN = "\033[36m"
    MAGENTA = "\033[35m"


def _use_color() -> bool:
    # Color only if explicitly enabled and terminal supports it.
    return os.getenv("TYPED_COLUMNS_LOG_COLOR", "0") == "1" and sys.stdout.isatty()


def _event_color(event_type: str) -> str:
    et = (event_type or "").upper()
    if "FAILED" in et or "ERROR" in et:
        return _C.RED
    if "WARNING" in et or "MISMATCH" in et or "FALLBACK" in et or "CANCELLED" in et:
        return _C.YELLOW
    if "STARTED" in et or "COMPLETED" in et:
        return _C.GREEN
    if "INFERRED" in et:
        return _C.CYAN
    return _C.MAGENTA


def get_logger():
    logger = logging.getLogger("typed_columns")
    if logger.handlers:
        return logger

    logger.setLevel(os.getenv("TYPED_COLUMNS_LOG_LEVEL", "INFO").upper())
    handler = logging.StreamHandler(sys.stdout)
    formatter = logging.Formatter('%(message)s')
    handler.setFormatter(formatter)
    logger.addHandler(handler)
    logger.propagate = False
    return logger


logger = get_logger()


def generate_batch_id():
    return str(uuid.uuid4())


# Structured Log Event
def log_event(event_type: str, payload: dict, level: int = logging.INFO):
    if not logger.isEnabledFor(level):
        return

    record = {"event_type": event_type, **payload}
    text = json.dumps(record, default=str)

    if _use_color():
        color = _event_color(event_type)
        logger.log(level, f"{color}{text}{_C.RESET}")
    else:
        logger.log(level, text)


class BuildTimer:
    """
    Simple execution timer.
    """
    def __init__(self):
        self.start_time = time.perf_counter()

    def duration(self):
        return round(time.perf_counter() - self.start_time, 4)
