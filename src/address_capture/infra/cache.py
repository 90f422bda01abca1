from __future__ import annotations

import time
from typing import Callable

from cachetools import TTLCache


class Cache:
    def __init__(self, *, maxsize: int, ttl_seconds: int, timer: Callable[[], float] = time.monotonic) -> None:
        self._cache: TTLCache[str, object] = TTLCache(maxsize=maxsize, ttl=ttl_seconds, timer=timer)

    def get(self, key: str) -> object | None:
        return self._cache.get(key)

    def set(self, key: str, value: object) -> None:
        # re-setting an existing key restarts its ttl
        self._cache[key] = value
