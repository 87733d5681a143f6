from __future__ import annotations


class DuplicateRecordError(Exception):
    """A unique constraint rejected the insert.

    Raised by every repo implementation so callers never have to know
    whether the store is Postgres or in-memory.
    """
