"""
Async utilities for background work.
"""

from .task_manager import TaskManager

__all__ = [
    'TaskManager'
]
