# pusnip/services/pusnip_service.py

import asyncio
import ipaddress
import json
import logging
from typing import Dict, Optional, Union

from pusnip.api.models import StateEntry
from pusnip.core.config import Config
from pusnip.core.errors import AddressError, ConfigError, NotFoundError, PusnipError
from pusnip.services.firewall import NFTABLES_LOCK, FirewallSynchronizer
from pusnip.services.state_store import STATE_LOCK, StateStore
from pusnip.system.executor import CommandExecutor
from pusnip.system.interfaces import InterfaceResolver
from pusnip.system.locks import LockManager


class PusnipService:
    def __init__(
            self,
            config: Config,
            store: StateStore,
            resolver: InterfaceResolver,
            synchronizer: FirewallSynchronizer,
            locks: LockManager,
    ):
        self.config = config
        self.store = store
        self.resolver = resolver
        self.synchronizer = synchronizer
        self.locks = locks

    @classmethod
    def from_config(
            cls,
            config: Config,
            executor: Optional[CommandExecutor] = None,
            resolver: Optional[InterfaceResolver] = None,
    ) -> "PusnipService":
        """Wires the default components from the configuration."""
        locks = LockManager(config.lock_dir)
        store = StateStore(config.state_file, locks)
        synchronizer = FirewallSynchronizer(
            store, locks, executor or CommandExecutor(), config.nft_command, config.nftables_conf
        )
        return cls(config, store, resolver or InterfaceResolver(), synchronizer, locks)

    def check_stale_locks(self):
        for marker in self.locks.stale_markers((STATE_LOCK, NFTABLES_LOCK)):
            logging.warning(f"Lock marker {marker} exists at startup; remove it if no other instance is running.")

    def _read_mapping(self) -> Dict[str, str]:
        path = self.config.mapping_file
        try:
            with open(path, "r", encoding="utf-8") as fh:
                mapping = json.load(fh)
        except (OSError, ValueError) as e:
            raise ConfigError(f"Error while parsing mapping configuration {path}: {e}") from e
        if not isinstance(mapping, dict):
            raise ConfigError(f"Error while parsing mapping configuration {path}: expected a JSON object")
        return mapping

    async def load_source_ip(self, name: str) -> str:
        mapping = await asyncio.to_thread(self._read_mapping)
        source_ip = mapping.get(name)
        # TODO: fall back to a "default" mapping entry for unknown names
        if not source_ip:
            raise NotFoundError(f"Server '{name}' not found in {self.config.mapping_file}")
        return source_ip

    async def register(self, ip: str, name: str) -> StateEntry:
        """Resolves the egress address and interface for name and records ip under it."""
        try:
            ipaddress.IPv4Address(ip)
        except ValueError as e:
            raise AddressError(f"'{ip}' is not a valid IPv4 address") from e

        source_ip = await self.load_source_ip(name)
        logging.info(f"push_new_ip: sNAT from '{name}({ip})' to {source_ip}")
        dev = self.resolver.find_interface_for(source_ip)
        entry = StateEntry(ip=ip, sourceip=source_ip, dev=dev)

        def upsert(state):
            state[name] = entry.model_dump()

        await self.store.with_state(upsert)
        return entry

    async def push_new_ip(self, ip: str, name: str) -> Union[bool, str]:
        """Registers the client; True on success, otherwise the reason it failed."""
        try:
            await self.register(ip, name)
        except PusnipError as e:
            logging.error(f"Error push_new_ip: {e}")
            return str(e)
        return True

    async def refresh(self) -> Union[bool, str]:
        return await self.synchronizer.synchronize()
