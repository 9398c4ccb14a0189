# pusnip/services/rules.py

import logging
from typing import Dict, List

from pusnip.api.models import DeviceGroup
from pusnip.services.state_store import State

REQUIRED_FIELDS = ("ip", "sourceip", "dev")


def _is_valid_entry(entry) -> bool:
    if not isinstance(entry, dict):
        return False
    return all(isinstance(entry.get(f), str) and entry[f] for f in REQUIRED_FIELDS)


def derive_rules(state: State) -> List[DeviceGroup]:
    """
    Groups registered clients by source address, one DeviceGroup per distinct
    sourceip in first-seen order. Client addresses keep state order and appear
    once per group; the interface is the last one recorded for the sourceip.
    """
    groups: Dict[str, DeviceGroup] = {}
    for name, entry in state.items():
        if not _is_valid_entry(entry):
            logging.warning(f"Skipping malformed state entry for '{name}': {entry!r}")
            continue
        source_ip = entry["sourceip"]
        group = groups.get(source_ip)
        if group is None:
            group = groups[source_ip] = DeviceGroup(sourceip=source_ip, dev=entry["dev"])
        else:
            group.dev = entry["dev"]
        if entry["ip"] not in group.ips:
            group.ips.append(entry["ip"])
    return list(groups.values())
