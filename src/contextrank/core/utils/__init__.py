"""
Core utilities module for contextrank.
"""

from .datetime_utils import utc_now, ensure_utc, format_iso, set_mock_time
from .deadline import Deadline
from .retry import retry_sync

__all__ = [
    # Datetime utilities
    'utc_now',
    'ensure_utc',
    'format_iso',
    'set_mock_time',
    # Deadline
    'Deadline',
    # Retry utilities
    'retry_sync',
]
