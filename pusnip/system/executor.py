# pusnip/system/executor.py

import asyncio
import logging
import shlex
import subprocess
from typing import Sequence

from pusnip.core.errors import CommandError


class CommandExecutor:
    """
    Runs external commands to completion without blocking the event loop.
    subprocess.run is pushed to a worker thread with asyncio.to_thread, so a
    request waiting on nft only suspends itself.
    """

    async def run(self, command: Sequence[str]) -> str:
        """Executes the command and returns its trimmed stdout, or raises CommandError."""
        command_line = shlex.join(command)
        logging.info(f"Executing command: {command_line}")
        try:
            process = await asyncio.to_thread(
                subprocess.run,
                list(command),
                capture_output=True,
                text=True,
                encoding="utf-8",
            )
        except OSError as e:
            logging.error(f"Could not start '{command_line}': {e}")
            raise CommandError(command_line, None, "", str(e)) from e

        stdout = (process.stdout or "").strip()
        stderr = (process.stderr or "").strip()
        if process.returncode != 0:
            logging.error(f"Error executing '{command_line}'. exit code: {process.returncode}, stderr: {stderr}")
            raise CommandError(command_line, process.returncode, stdout, stderr)
        return stdout
