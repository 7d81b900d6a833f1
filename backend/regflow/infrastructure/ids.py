"""Id generators for staging records.

Generators are plain callables returning a new id on every call. Production
uses UUIDs; tests use a sequence so ordering and confirmation scenarios are
reproducible.
"""

import itertools
import uuid
from typing import Callable

IdGenerator = Callable[[], str]


def uuid_id_generator(prefix: str = "stg_") -> IdGenerator:
    """Return a generator of ``{prefix}{uuid4 hex}`` ids."""

    def generate() -> str:
        return f"{prefix}{uuid.uuid4().hex}"

    return generate


class SequentialIdGenerator:
    """Deterministic ``{prefix}{n:06d}`` ids.

    Zero padding keeps lexical order equal to issue order.

    Example:
        >>> ids = SequentialIdGenerator()
        >>> ids(), ids()
        ('stg-000001', 'stg-000002')
    """

    def __init__(self, prefix: str = "stg-", start: int = 1):
        self.prefix = prefix
        self._counter = itertools.count(start)

    def __call__(self) -> str:
        return f"{self.prefix}{next(self._counter):06d}"
