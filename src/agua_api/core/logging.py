"""Loguru logging configuration.

Human readable stderr output, a JSON stderr sink for records bound with
``json_output``, and optional rotating files when ``log_dir`` is set.
Records bound with ``security_event`` additionally go to their own
``security.log`` so the audit trail can be shipped separately.
"""

import sys
from pathlib import Path

from loguru import logger

_LOG_FORMAT = "{time:YYYY-MM-DD HH:mm:ss.SSS} | {level:<8} | {name}:{function}:{line} | {message}"
_SECURITY_FORMAT = "{time:YYYY-MM-DD HH:mm:ss.SSS} | {extra[security_event]} | {message}"


def _is_security_record(record: dict) -> bool:
    return "security_event" in record["extra"]


def setup_logging(log_level: str = "INFO", log_dir: str | None = None) -> None:
    """Configure Loguru sinks.

    Args:
        log_level: Minimum log level to emit.
        log_dir: Optional directory for log files.  When set, rotating
            ``agua-api.log`` and ``security.log`` sinks are added
            (rotated every 24 hours, retained 7 days).
    """
    level = log_level.upper()
    logger.remove()
    logger.add(
        sys.stderr,
        level=level,
        format=_LOG_FORMAT,
        serialize=False,
    )
    logger.add(
        sys.stderr,
        level=level,
        serialize=True,
        filter=lambda record: record["extra"].get("json_output", False),
    )

    if log_dir:
        log_path = Path(log_dir)
        log_path.mkdir(parents=True, exist_ok=True)
        logger.add(
            log_path / "agua-api.log",
            level=level,
            format=_LOG_FORMAT,
            rotation="24h",
            retention="7 days",
        )
        logger.add(
            log_path / "security.log",
            level="INFO",
            format=_SECURITY_FORMAT,
            filter=_is_security_record,
            rotation="24h",
            retention="7 days",
        )
