"""
Failures that abort an indexing pass.

Lookup misses and malformed change-feed messages are not errors: they yield
empty results where they occur. Everything defined here propagates to the
pass boundary in `indexer.index_thing`, where it is logged and swallowed.
"""


class IndexerError(Exception):
    """Base class for indexing failures."""


class ReadTimeout(IndexerError, TimeoutError):
    def __init__(self, soul: str, timeout: float) -> None:
        super().__init__(f"Read timeout after {timeout:.3f}s: {soul}")
        self.soul = soul
        self.timeout = timeout


class WriteTimeout(IndexerError, TimeoutError):
    def __init__(self, soul: str, timeout: float) -> None:
        super().__init__(f"Write timeout after {timeout:.3f}s: {soul}")
        self.soul = soul
        self.timeout = timeout
