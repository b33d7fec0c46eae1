"""
Logging configuration for applications embedding flashbundle.

The package itself only creates module loggers; applications call
configure_logging() once at startup to route them to the console.

File: flashbundle/logging_config.py
"""

import logging.config
import os
import sys
from typing import Any, Dict, Optional


def build_logging_config(level: str = "INFO") -> Dict[str, Any]:
    """
    Build a dictConfig dictionary for the flashbundle loggers.

    Args:
        level: Level for the flashbundle logger hierarchy

    Returns:
        Logging configuration dictionary
    """
    return {
        'version': 1,
        'disable_existing_loggers': False,
        'formatters': {
            'verbose': {
                'format': '[{levelname}] {asctime} {name} {process:d} {thread:d} {message}',
                'style': '{',
                'datefmt': '%Y-%m-%d %H:%M:%S',
            },
            'simple': {
                'format': '[{levelname}] {asctime} {name} {message}',
                'style': '{',
                'datefmt': '%Y-%m-%d %H:%M:%S',
            },
        },
        'handlers': {
            'console': {
                'class': 'logging.StreamHandler',
                'stream': sys.stdout,
                'formatter': 'verbose' if level == 'DEBUG' else 'simple',
                'level': level,
            },
        },
        'loggers': {
            'flashbundle': {
                'handlers': ['console'],
                'level': level,
                'propagate': False,
            },
        },
    }


def configure_logging(level: Optional[str] = None) -> None:
    """
    Apply the logging configuration.

    Args:
        level: Log level; defaults to FLASHBUNDLE_LOG_LEVEL or INFO
    """
    level = (level or os.getenv("FLASHBUNDLE_LOG_LEVEL", "INFO")).upper()
    logging.config.dictConfig(build_logging_config(level))
    logging.getLogger(__name__).debug(f"Logging configured at {level}")
