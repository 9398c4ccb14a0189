# pusnip/services/firewall.py

import asyncio
import logging
from typing import Sequence, Union

from pusnip.core.errors import CommandError, PusnipError, RuleInsertionError, StateIOError
from pusnip.services.rules import derive_rules
from pusnip.services.state_store import StateStore, write_file_atomic
from pusnip.system.executor import CommandExecutor
from pusnip.system.locks import LockManager

NFTABLES_LOCK = "nftables"

CONF_HEADER = "#!/usr/sbin/nft -f\nflush ruleset\n"

POSTROUTING_CHAIN = "{ type nat hook postrouting priority 100; policy accept; }"


def render_config(ruleset: str) -> str:
    """Config file content that replays the captured ruleset on boot."""
    return f"{CONF_HEADER}{ruleset}\n"


class FirewallSynchronizer:
    """
    Rebuilds the live nftables ruleset from the state file and saves it for replay.
    The nftables lock only keeps two rebuilds from interleaving; registrations may
    still change state while a rebuild runs, and the next rebuild picks that up.
    """

    def __init__(
        self,
        store: StateStore,
        locks: LockManager,
        executor: CommandExecutor,
        nft_command: Sequence[str],
        conf_path: str,
    ):
        self.store = store
        self.locks = locks
        self.executor = executor
        self.nft_command = list(nft_command)
        self.conf_path = conf_path

    async def _nft(self, *args: str) -> str:
        return await self.executor.run(self.nft_command + list(args))

    async def _apply(self):
        state = await self.store.with_state()
        groups = derive_rules(state)
        logging.info(f"Derived {len(groups)} SNAT group(s): {[g.model_dump() for g in groups]}")

        await self._nft("flush", "ruleset")
        await self._nft("add", "table", "nat")
        await self._nft("add", "chain", "ip", "nat", "postrouting", POSTROUTING_CHAIN)
        for group in groups:
            logging.info(f"Adding SNAT rule for {group.sourceip} via {group.dev}: {group.ip_set}")
            try:
                await self._nft(*group.rule_args())
            except CommandError as e:
                raise RuleInsertionError(e) from e

        ruleset = await self._nft("list", "ruleset")
        try:
            await asyncio.to_thread(write_file_atomic, self.conf_path, render_config(ruleset))
        except OSError as e:
            raise StateIOError(self.conf_path, str(e)) from e
        logging.info(f"refresh_nftables: updated {self.conf_path}")

    async def synchronize(self) -> Union[bool, str]:
        """Returns True once the ruleset is live and saved, otherwise the reason it is not."""
        try:
            async with self.locks.hold(NFTABLES_LOCK):
                await self._apply()
        except PusnipError as e:
            logging.error(f"Error refresh_nftables: {e}")
            return str(e)
        return True
