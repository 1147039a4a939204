"""
tiered_cache testing package.

Test Organization:
    unit/: Unit tests for individual components
    mocks.py: Fake clock and key/value stores shared by the tests
    conftest.py: Pytest fixtures
"""
