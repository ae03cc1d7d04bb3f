# Copyright 2025 Vijaykumar Singh <singhvjd@gmail.com>
#
# Licensed under the Apache License, Version 2.0 (the "License");
# you may not use this file except in compliance with the License.
# You may obtain a copy of the License at
#
#     http://www.apache.org/licenses/LICENSE-2.0
#
# Unless required by applicable law or agreed to in writing, software
# distributed under the License is distributed on an "AS IS" BASIS,
# WITHOUT WARRANTIES OR CONDITIONS OF ANY KIND, either express or implied.
# See the License for the specific language governing permissions and
# limitations under the License.

"""Per-path locks that serialize commits touching the same file.

Two transactions staging edits against the same canonical path are not
safe to commit concurrently: the later commit overwrites the earlier
result and its pre-image no longer matches the disk. Holding a lock per
path for the duration of a commit (and any rollback it triggers) orders
such commits within one process. Nothing here protects against other
processes writing the same files.

Locks are never evicted: a registry keeps one lock for every distinct
path it has seen, so the process-wide registry grows with the number of
files committed over the life of the process. Pass a short-lived
PathLockRegistry to transactions that touch many unrelated files.
"""

import threading
from contextlib import contextmanager
from typing import Dict, Iterable, Iterator, List


class PathLockRegistry:
    """Registry of reentrant locks keyed by canonical path."""

    def __init__(self) -> None:
        self._guard = threading.Lock()
        self._locks: Dict[str, threading.RLock] = {}

    def lock_for(self, path: str) -> threading.RLock:
        """Get (or create) the lock for a canonical path."""
        with self._guard:
            lock = self._locks.get(path)
            if lock is None:
                lock = threading.RLock()
                self._locks[path] = lock
            return lock

    @contextmanager
    def acquire(self, paths: Iterable[str]) -> Iterator[List[str]]:
        """Hold the locks of all paths, taken in sorted order to avoid deadlocks.

        Yields:
            The sorted, de-duplicated paths that are locked
        """
        ordered = sorted(set(paths))
        held: List[threading.RLock] = []
        try:
            for path in ordered:
                lock = self.lock_for(path)
                lock.acquire()
                held.append(lock)
            yield ordered
        finally:
            for lock in reversed(held):
                lock.release()

    def __len__(self) -> int:
        return len(self._locks)


_default_registry = PathLockRegistry()


def get_lock_registry() -> PathLockRegistry:
    """Get the process-wide lock registry."""
    return _default_registry
