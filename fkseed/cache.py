from __future__ import annotations

import logging
import random
from typing import Any, Dict, List, Optional

logger = logging.getLogger(__name__)


class InsertedIdCache:
    """
    Primary keys generated during one run, keyed by "schema.table".

    Append-only between clears. A table only gets an entry after a real
    successful insert, so an absent key is a plain cache miss.
    """

    def __init__(self, rng: Optional[random.Random] = None):
        self._ids: Dict[str, List[Any]] = {}
        self._rng = rng or random

    def add(self, table_key: str, value: Any) -> None:
        self._ids.setdefault(table_key, []).append(value)
        logger.debug("ID cached: %s = %s", table_key, value)

    def has(self, table_key: str) -> bool:
        return bool(self._ids.get(table_key))

    def get(self, table_key: str) -> List[Any]:
        return list(self._ids.get(table_key, []))

    def pick(self, table_key: str) -> Any:
        """Uniform random choice over the cached ids; None on a miss."""
        ids = self._ids.get(table_key)
        if not ids:
            return None
        return self._rng.choice(ids)

    def clear(self) -> int:
        size = len(self._ids)
        self._ids.clear()
        if size:
            logger.info("Cache cleared (%d tables)", size)
        return size

    def stats(self) -> Dict[str, int]:
        return {table: len(ids) for table, ids in self._ids.items()}

    def __len__(self) -> int:
        return len(self._ids)

    def __contains__(self, table_key: str) -> bool:
        return self.has(table_key)
