"""
Logging configuration for the booking API.
Plain text for local runs, one JSON object per line when LOG_JSON is set.
"""
import logging
import logging.config
from datetime import datetime
from typing import Any, Dict

from pythonjsonlogger import jsonlogger

from infrastructure.config import get_settings


class CustomJsonFormatter(jsonlogger.JsonFormatter):
    """JSON formatter with timestamp, level, logger and environment fields"""

    def add_fields(self, log_record: Dict[str, Any], record: logging.LogRecord, message_dict: Dict[str, Any]):
        super().add_fields(log_record, record, message_dict)

        log_record['timestamp'] = datetime.utcnow().isoformat()
        log_record['level'] = record.levelname
        log_record['logger'] = record.name
        log_record['environment'] = get_settings().ENVIRONMENT

        if hasattr(record, 'booking_id'):
            log_record['booking_id'] = str(record.booking_id)
        if hasattr(record, 'user_id'):
            log_record['user_id'] = str(record.user_id)


def build_logging_config(level: str, json_output: bool) -> Dict[str, Any]:
    return {
        'version': 1,
        'disable_existing_loggers': False,
        'formatters': {
            'standard': {
                'format': '%(asctime)s [%(levelname)s] %(name)s: %(message)s'
            },
            'json': {
                '()': CustomJsonFormatter,
                'format': '%(timestamp)s %(level)s %(logger)s %(message)s'
            },
        },
        'handlers': {
            'console': {
                'class': 'logging.StreamHandler',
                'formatter': 'json' if json_output else 'standard',
                'stream': 'ext://sys.stdout',
            },
        },
        'loggers': {
            'uvicorn.access': {
                'level': 'WARNING',
                'handlers': ['console'],
                'propagate': False,
            },
        },
        'root': {
            'level': level.upper(),
            'handlers': ['console'],
        },
    }


def setup_logging() -> None:
    """Configure logging once at application start-up"""
    settings = get_settings()
    logging.config.dictConfig(build_logging_config(settings.LOG_LEVEL, settings.LOG_JSON))
    logging.getLogger(__name__).debug(
        "Logging configured (level=%s, json=%s)", settings.LOG_LEVEL, settings.LOG_JSON
    )
