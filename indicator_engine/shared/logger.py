import logging
import queue
import sys
from logging.handlers import QueueHandler, QueueListener
from typing import Optional
from indicator_engine.config import config

# Global state for logging
_log_queue: Optional[queue.Queue] = None
_listener: Optional[QueueListener] = None

LOG_FORMAT = '%(asctime)s | %(levelname)-8s | [%(process)d] | %(name)s | %(message)s'


def get_logger(name: str) -> logging.Logger:
    """
    Returns a logger instance.
    Standard usage: logger = get_logger("indicator.graph")
    """
    logger = logging.getLogger(name)
    if not logger.handlers and name != "":
        logger.propagate = True
    return logger


def setup_main_logging() -> queue.Queue:
    """
    Initializes the logging system for an application embedding the engine.
    Branch evaluation threads log through a single QueueListener writer.
    Calling it twice is a no-op while the listener is running.
    """
    global _log_queue, _listener

    if _listener is not None and _log_queue is not None:
        return _log_queue

    root = logging.getLogger()
    root.setLevel(logging.DEBUG)

    formatter = logging.Formatter(LOG_FORMAT, datefmt='%Y-%m-%d %H:%M:%S')

    # 1. Console
    console = logging.StreamHandler(sys.stdout)
    console.setLevel(getattr(logging, config.LOG_LEVEL.upper(), logging.INFO))
    console.setFormatter(formatter)

    # 2. Main Log File
    config.LOG_DIR.mkdir(parents=True, exist_ok=True)
    file_h = logging.FileHandler(config.LOG_DIR / "app.log", mode='a', encoding='utf-8')
    file_h.setLevel(logging.DEBUG)
    file_h.setFormatter(formatter)

    # 3. Error Log File
    error_h = logging.FileHandler(config.LOG_DIR / "error.log", mode='a', encoding='utf-8')
    error_h.setLevel(logging.ERROR)
    error_h.setFormatter(formatter)

    _log_queue = queue.Queue(-1)
    _listener = QueueListener(_log_queue, console, file_h, error_h, respect_handler_level=True)
    _listener.start()

    for h in root.handlers[:]:
        root.removeHandler(h)
    root.addHandler(QueueHandler(_log_queue))

    return _log_queue


def stop_main_logging():
    """Stops the logging listener and closes its handlers."""
    global _listener, _log_queue
    if _listener:
        _listener.stop()
        for h in _listener.handlers:
            h.close()
        _listener = None
    if _log_queue is not None:
        root = logging.getLogger()
        for h in root.handlers[:]:
            if isinstance(h, QueueHandler) and h.queue is _log_queue:
                root.removeHandler(h)
        _log_queue = None
