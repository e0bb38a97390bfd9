"""Per-account asyncio locks serialising syncs of the same linked account."""

import asyncio


class AccountLocks:
    """
    Lazily created asyncio.Lock per key.

    A manual resync racing a webhook-triggered sync of the same account
    would otherwise compute overlapping diffs. Locks are process-local;
    separate processes are not excluded.
    """

    def __init__(self):
        self._locks: dict[str, asyncio.Lock] = {}

    def get(self, key: str) -> asyncio.Lock:
        lock = self._locks.get(key)
        if lock is None:
            lock = asyncio.Lock()
            self._locks[key] = lock
        return lock

    def clear(self) -> None:
        self._locks.clear()


# Module-level singleton
account_locks = AccountLocks()
