# This file is part of the FeatureTiles project.
# Copyright (C) 2024 FeatureTiles developers
#
# Licensed under the Apache License, Version 2.0 (the "License");
# you may not use this file except in compliance with the License.
# You may obtain a copy of the License at
#
#    http://www.apache.org/licenses/LICENSE-2.0
#
# Unless required by applicable law or agreed to in writing, software
# distributed under the License is distributed on an "AS IS" BASIS,
# WITHOUT WARRANTIES OR CONDITIONS OF ANY KIND, either express or implied.
# See the License for the specific language governing permissions and
# limitations under the License.

import threading
import time
from abc import ABC, abstractmethod


class CacheBackendError(Exception):
    pass


class CacheStore(ABC):
    """
    Key/value store for cached tiles and client styles.

    Keys and values are bytes. Implementations raise `CacheBackendError`
    if the backend is not reachable.
    """

    @abstractmethod
    def get(self, key: bytes) -> bytes | None:
        """
        Return the value for `key` or ``None`` if it is missing or expired.
        """
        pass

    @abstractmethod
    def set(self, key: bytes, value: bytes, ttl: int) -> None:
        """
        Store `value` for `ttl` seconds. Existing values are replaced.
        """
        pass


class MemoryCacheStore(CacheStore):
    """
    In-process store with expiring entries. Useful for development
    servers and tests.

    Expired entries are purged when new values are stored. If the store
    still holds `max_entries` values, the oldest entries are dropped.
    """
    def __init__(self, max_entries=None, timer=time.monotonic):
        self.max_entries = max_entries
        self._timer = timer
        self._data = {}
        self._lock = threading.Lock()

    def get(self, key):
        with self._lock:
            entry = self._data.get(key)
            if entry is None:
                return None
            value, expires = entry
            if expires is not None and expires <= self._timer():
                del self._data[key]
                return None
            return value

    def set(self, key, value, ttl):
        now = self._timer()
        expires = now + ttl if ttl else None
        with self._lock:
            self._data.pop(key, None)
            self._purge_expired(now)
            if self.max_entries is not None:
                while len(self._data) >= self.max_entries:
                    # dicts keep insertion order, drop the oldest entry
                    del self._data[next(iter(self._data))]
            self._data[key] = (value, expires)

    def _purge_expired(self, now):
        expired = [k for k, (_, expires) in self._data.items()
                   if expires is not None and expires <= now]
        for k in expired:
            del self._data[k]

    def __len__(self):
        return len(self._data)
