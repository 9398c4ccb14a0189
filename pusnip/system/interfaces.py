# pusnip/system/interfaces.py

import ipaddress
import logging
import socket

import psutil

from pusnip.core.errors import InterfaceNotFoundError


class InterfaceResolver:
    """
    Finds the local interface an egress address is bound to.
    Nothing is cached: every call enumerates the interfaces again, so an
    address moved to another interface is picked up on the next registration.
    """

    def find_interface_for(self, source_ip: str) -> str:
        for iface, addrs in psutil.net_if_addrs().items():
            for addr in addrs:
                if addr.family != socket.AF_INET or addr.address != source_ip:
                    continue
                if ipaddress.IPv4Address(addr.address).is_loopback:
                    continue
                logging.info(f"Source address {source_ip} is bound to interface {iface}")
                return iface
        raise InterfaceNotFoundError(f"No Network interface found for sourceip '{source_ip}'")
