"""
REPCOACH Shared Module

Common utilities used across all services.
"""

from .utils import setup_logger, success_response, now_ms, format_elapsed

__all__ = [
    'setup_logger',
    'success_response',
    'now_ms',
    'format_elapsed',
]
