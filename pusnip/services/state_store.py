# pusnip/services/state_store.py

import asyncio
import json
import logging
import os
import tempfile
from typing import Any, Callable, Dict, Optional

from pusnip.core.errors import StateIOError
from pusnip.system.locks import LockManager

STATE_LOCK = "state"

State = Dict[str, Dict[str, Any]]


def write_file_atomic(path: str, content: str):
    """Writes content next to path and renames it into place."""
    directory = os.path.dirname(os.path.abspath(path))
    fd, tmp_path = tempfile.mkstemp(prefix=".tmp-", dir=directory)
    try:
        with os.fdopen(fd, "w", encoding="utf-8") as fh:
            fh.write(content)
            fh.flush()
            os.fsync(fh.fileno())
        os.chmod(tmp_path, 0o644)
        os.replace(tmp_path, path)
    except BaseException:
        if os.path.exists(tmp_path):
            os.remove(tmp_path)
        raise


class StateStore:
    """
    JSON file holding every registered client: { "name": {"ip", "sourceip", "dev"} }.
    Each access re-reads the file under the state lock; there is no in-memory copy.
    A state file that cannot be parsed is treated as empty and is overwritten
    by the next successful registration.
    """

    def __init__(self, path: str, locks: LockManager):
        self.path = path
        self.locks = locks

    def _read(self) -> State:
        try:
            with open(self.path, "r", encoding="utf-8") as fh:
                data = fh.read()
        except FileNotFoundError:
            return {}
        except OSError as e:
            raise StateIOError(self.path, str(e)) from e

        try:
            state = json.loads(data)
        except ValueError as e:
            logging.warning(f"State file '{self.path}' is not valid JSON ({e}); starting from empty state.")
            return {}
        if not isinstance(state, dict):
            logging.warning(f"State file '{self.path}' does not hold a JSON object; starting from empty state.")
            return {}
        return state

    def _write(self, state: State):
        try:
            write_file_atomic(self.path, json.dumps(state, indent=2) + "\n")
        except (OSError, TypeError, ValueError) as e:
            raise StateIOError(self.path, str(e)) from e

    async def with_state(self, mutator: Optional[Callable[[State], Any]] = None) -> State:
        """
        Returns the current state. When a mutator is given it is called with the
        state to edit in place, and the result is written back before the lock
        is released.
        """
        async with self.locks.hold(STATE_LOCK):
            state = await asyncio.to_thread(self._read)
            if mutator is None:
                return state
            mutator(state)
            await asyncio.to_thread(self._write, state)
            return state
