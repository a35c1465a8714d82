"""
Retry policy and the delayed retry scheduler.
"""

from .config import RetryConfig
from .scheduler import RetryScheduler

__all__ = ["RetryConfig", "RetryScheduler"]
