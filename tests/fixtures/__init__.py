"""Test fixtures for RuntimeKit tests.

- runtimes: In-memory runtime archives and a recording subprocess runner

Import helpers in your tests using:
    from tests.fixtures.runtimes import build_tar, FakeRunner
"""

__all__ = [
    "runtimes",
]
