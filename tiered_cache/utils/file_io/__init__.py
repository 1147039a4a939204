"""
File I/O utilities for the durable cache tier.

This package provides:
- Atomic writes for the on-disk store
- JSON envelope serialization and size estimation
"""

from .atomic_writer import AtomicWriter
from .json_utils import dumps, loads, loads_envelope, estimate_size

__all__ = [
    'AtomicWriter',
    'dumps',
    'loads',
    'loads_envelope',
    'estimate_size'
]
