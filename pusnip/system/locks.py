# pusnip/system/locks.py

import asyncio
import logging
import os
from contextlib import asynccontextmanager
from typing import AsyncIterator, Iterable, List

from pusnip.core.errors import LockNotHeldError

POLL_INTERVAL = 0.1


class LockManager:
    """
    Advisory locks backed by marker files in a directory.
    A marker is claimed with O_CREAT | O_EXCL, so the existence check and the
    creation are a single atomic step and two acquirers can never both win,
    whether they run in this process or in another one.
    There is no timeout: a holder that dies without releasing wedges the lock
    until the marker is removed by hand.
    """

    def __init__(self, lock_dir: str = "."):
        self.lock_dir = lock_dir

    def marker_path(self, name: str) -> str:
        return os.path.join(self.lock_dir, f"{name}.lock")

    def _try_create(self, path: str) -> bool:
        try:
            fd = os.open(path, os.O_WRONLY | os.O_CREAT | os.O_EXCL, 0o644)
        except FileExistsError:
            return False
        with os.fdopen(fd, "w") as fh:
            fh.write(f"{os.getpid()}\n")
        return True

    async def acquire(self, name: str):
        """Waits until the lock is free, then claims it."""
        path = self.marker_path(name)
        while not self._try_create(path):
            await asyncio.sleep(POLL_INTERVAL)
        logging.debug(f"Lock '{name}' acquired")

    def release(self, name: str):
        path = self.marker_path(name)
        try:
            os.remove(path)
        except FileNotFoundError as e:
            raise LockNotHeldError(f"Lock '{name}' is not held ({path} does not exist)") from e
        logging.debug(f"Lock '{name}' released")

    @asynccontextmanager
    async def hold(self, name: str) -> AsyncIterator[None]:
        await self.acquire(name)
        try:
            yield
        finally:
            self.release(name)

    def stale_markers(self, names: Iterable[str]) -> List[str]:
        """Markers of the given locks present right now; at startup these are leftovers of a crashed holder."""
        return [path for path in map(self.marker_path, names) if os.path.exists(path)]
