"""
Structured logging with contextual fields and performance timing.
"""

from .structured_logger import StructuredLogger, ContextLogger, timed

__all__ = [
    'StructuredLogger',
    'ContextLogger',
    'timed'
]
