"""
Utility modules for tiered_cache.

This package provides:
- Structured logging with performance timing
- Background task tracking
- Atomic file I/O and JSON envelope serialization
"""
