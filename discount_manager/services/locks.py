from contextlib import contextmanager
from threading import Lock, RLock
from typing import Dict, Iterable


class ItemLockRegistry:
    """
    One re-entrant lock per item id, created on demand and dropped when no
    thread holds or waits for it. `hold` takes several locks in sorted order
    so two callers locking overlapping item sets cannot deadlock.
    """

    def __init__(self):
        self._guard = Lock()
        self._locks: Dict[str, RLock] = {}
        self._users: Dict[str, int] = {}

    def _checkout(self, item_id: str) -> RLock:
        with self._guard:
            lock = self._locks.get(item_id)
            if lock is None:
                lock = self._locks[item_id] = RLock()
            self._users[item_id] = self._users.get(item_id, 0) + 1
            return lock

    def _checkin(self, item_id: str) -> None:
        with self._guard:
            self._users[item_id] -= 1
            if self._users[item_id] == 0:
                del self._users[item_id]
                del self._locks[item_id]

    @contextmanager
    def hold(self, item_ids: Iterable[str]):
        ids = sorted(set(item_ids))
        acquired = []
        try:
            for item_id in ids:
                lock = self._checkout(item_id)
                lock.acquire()
                acquired.append((item_id, lock))
            yield ids
        finally:
            for item_id, lock in reversed(acquired):
                lock.release()
                self._checkin(item_id)

    def __len__(self) -> int:
        with self._guard:
            return len(self._locks)


# shared by every service instance in this process
item_locks = ItemLockRegistry()
