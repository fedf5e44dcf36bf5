import logging
import logging.handlers
import sys
from contextvars import ContextVar
from pathlib import Path
from pythonjsonlogger import jsonlogger

# Set per request by RequestIDMiddleware; contextvars keep concurrent requests apart
request_id_var: ContextVar[str] = ContextVar("request_id", default="-")

MAX_LOG_BYTES = 10 * 1024 * 1024
LOG_BACKUPS = 5


class RequestIDFilter(logging.Filter):
    """Stamps every record with the id of the request that produced it."""

    def filter(self, record):
        if not hasattr(record, "request_id"):
            record.request_id = request_id_var.get()
        return True


class CustomJsonFormatter(jsonlogger.JsonFormatter):
    """
    JSON formatter adding source location and request id to every entry.
    """
    def add_fields(self, log_record, record, message_dict):
        super(CustomJsonFormatter, self).add_fields(log_record, record, message_dict)

        log_record.update(
            timestamp=record.created,
            level=record.levelname,
            logger=record.name,
            function=record.funcName,
            line=record.lineno,
            request_id=getattr(record, "request_id", "-"),
        )


def _rotating_file_handler(path: Path, level: int, formatter: logging.Formatter) -> logging.Handler:
    handler = logging.handlers.RotatingFileHandler(
        path, maxBytes=MAX_LOG_BYTES, backupCount=LOG_BACKUPS, encoding="utf-8"
    )
    handler.setLevel(level)
    handler.setFormatter(formatter)
    return handler


def setup_logging(log_level: str = "INFO", log_dir: str = "logs"):
    """
    Configure application-wide logging.

    Console gets a human-readable format at ``log_level``; ``app.log``
    (everything) and ``error.log`` (ERROR and up) get JSON lines.
    Safe to call more than once.

    Args:
        log_level: Minimum console level (DEBUG, INFO, WARNING, ERROR, CRITICAL)
        log_dir: Directory where log files will be stored
    """
    log_path = Path(log_dir)
    log_path.mkdir(parents=True, exist_ok=True)

    json_formatter = CustomJsonFormatter('%(timestamp)s %(level)s %(logger)s %(message)s')

    console_handler = logging.StreamHandler(sys.stdout)
    console_handler.setLevel(getattr(logging, log_level.upper(), logging.INFO))
    console_handler.setFormatter(logging.Formatter(
        '%(asctime)s - %(name)s - %(levelname)s - [%(request_id)s] %(message)s',
        datefmt='%Y-%m-%d %H:%M:%S'
    ))

    handlers = [
        console_handler,
        _rotating_file_handler(log_path / "app.log", logging.DEBUG, json_formatter),
        _rotating_file_handler(log_path / "error.log", logging.ERROR, json_formatter),
    ]

    root_logger = logging.getLogger()
    root_logger.setLevel(logging.DEBUG)
    root_logger.handlers.clear()

    request_id_filter = RequestIDFilter()
    for handler in handlers:
        handler.addFilter(request_id_filter)
        root_logger.addHandler(handler)

    for noisy in ("uvicorn", "uvicorn.access", "uvicorn.error", "sqlalchemy.engine", "httpx"):
        logging.getLogger(noisy).setLevel(logging.WARNING)

    root_logger.info(
        "Logging configured",
        extra={"log_level": log_level, "log_dir": str(log_path.absolute())}
    )
