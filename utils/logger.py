"""
Logging helpers shared by the service modules.
"""

import logging
from typing import Any, Dict, Optional

SENSITIVE_KEYS = ('token', 'secret', 'password', 'api_key', 'authorization')
REDACTED = "***REDACTED***"


def get_logger(name: str) -> logging.Logger:
    """
    Usage:
        from utils.logger import get_logger
        logger = get_logger(__name__)
    """
    return logging.getLogger(name)


def _mask(key: str, value: str) -> str:
    # Token prefixes stay visible so log lines can be correlated
    if 'token' in key and len(value) > 8:
        return f"{value[:8]}..."
    return REDACTED


def sanitize_log_data(data: Dict[str, Any]) -> Dict[str, Any]:
    """
    Return a copy of ``data`` safe to log: string values under sensitive
    keys are masked, nested dicts are sanitized recursively.
    """
    sanitized = {}

    for key, value in data.items():
        lowered = key.lower()
        if isinstance(value, dict):
            sanitized[key] = sanitize_log_data(value)
        elif isinstance(value, str) and any(s in lowered for s in SENSITIVE_KEYS):
            sanitized[key] = _mask(lowered, value)
        else:
            sanitized[key] = value

    return sanitized


def log_request(
    logger: logging.Logger,
    method: str,
    path: str,
    status_code: int,
    duration_ms: float,
    client_ip: Optional[str] = None,
    extra: Optional[Dict[str, Any]] = None
):
    """
    Log one HTTP exchange; 5xx at ERROR, 4xx at WARNING, the rest at INFO.
    """
    log_data = {
        "http_method": method,
        "path": path,
        "status_code": status_code,
        "duration_ms": round(duration_ms, 2),
        "client_ip": client_ip or "unknown",
    }
    if extra:
        log_data.update(sanitize_log_data(extra))

    if status_code >= 500:
        level = logging.ERROR
    elif status_code >= 400:
        level = logging.WARNING
    else:
        level = logging.INFO

    logger.log(level, f'{log_data["client_ip"]} - "{method} {path}" {status_code}', extra=log_data)
