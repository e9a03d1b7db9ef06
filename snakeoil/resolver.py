# resolver.py
# Collects SAN material: IPv4 addresses of local interfaces and the DNS names
# those addresses reverse-resolve to.

import logging
import socket
import threading
from dataclasses import replace
from ipaddress import IPv4Address, ip_address
from typing import Iterable, List

import psutil

from .errors import InterfaceNotFound, InterfaceQueryError
from .models import IPAddress, NameSet
from .utils import dedupe

logger = logging.getLogger(__name__)

DNS_TIMEOUT = 5.0


def addresses_for_interfaces(names: Iterable[str]) -> List[IPv4Address]:
    """Non-loopback IPv4 addresses assigned to the named interfaces.

    Raises InterfaceNotFound for an unknown name and InterfaceQueryError when
    the interface table cannot be read at all.
    """
    wanted = sorted(set(names))
    if not wanted:
        return []
    try:
        table = psutil.net_if_addrs()
    except (OSError, psutil.Error) as e:
        raise InterfaceQueryError(",".join(wanted), e) from e

    addresses: List[IPv4Address] = []
    for name in wanted:
        if name not in table:
            raise InterfaceNotFound(name)
        found = []
        for snic in table[name]:
            if snic.family != socket.AF_INET:
                continue
            try:
                addr = ip_address(snic.address)
            except ValueError:
                continue
            if isinstance(addr, IPv4Address) and not addr.is_loopback:
                found.append(addr)
        logger.debug("interface %s: %s", name, ", ".join(map(str, found)) or "no IPv4 addresses")
        addresses += found
    return addresses


def _bounded(fn, timeout, *args):
    # getaddrinfo/gethostbyaddr ignore socket timeouts, so bound them from
    # outside. The daemon thread is abandoned if the resolver never answers.
    box = {}

    def run():
        try:
            box["value"] = fn(*args)
        except Exception as e:
            box["error"] = e

    t = threading.Thread(target=run, name="snakeoil-dns", daemon=True)
    t.start()
    t.join(timeout)
    if t.is_alive():
        raise TimeoutError(f"lookup timed out after {timeout}s")
    if "error" in box:
        raise box["error"]
    return box["value"]


def _canonical_name(host: str):
    infos = socket.getaddrinfo(host, None, 0, socket.SOCK_STREAM, 0, socket.AI_CANONNAME)
    for info in infos:
        if info[3]:
            return info[3]
    return None


def names_for_address(addr: IPAddress, timeout: float = DNS_TIMEOUT) -> List[str]:
    """Reverse-resolve `addr`, following CNAMEs of each name found.

    Lookup failures are not errors: they just mean no names.
    """
    try:
        primary, aliases, _ = _bounded(socket.gethostbyaddr, timeout, str(addr))
    except (OSError, UnicodeError, ValueError) as e:
        logger.debug("reverse lookup of %s failed: %s", addr, e)
        return []

    result: List[str] = []
    for name in [primary, *aliases]:
        host = name.rstrip(".")
        if not host:
            continue
        result.append(host)
        try:
            cname = _bounded(_canonical_name, timeout, host)
        except (OSError, UnicodeError, ValueError) as e:
            logger.debug("canonical name lookup of %s failed: %s", host, e)
            continue
        if cname and cname.rstrip(".") != host:
            result.append(cname.rstrip("."))
    return result


def resolve_names(names: NameSet, timeout: float = DNS_TIMEOUT) -> NameSet:
    found = []
    for addr in names.ip_addresses:
        hosts = names_for_address(addr, timeout=timeout)
        if hosts:
            logger.info("%s resolves to %s", addr, ", ".join(hosts))
        found += hosts
    return replace(names, dns_names=list(names.dns_names) + found)


def merge_interface_addresses(names: NameSet, interfaces: Iterable[str]) -> NameSet:
    scanned = addresses_for_interfaces(interfaces)
    return replace(names, ip_addresses=dedupe(list(names.ip_addresses) + scanned))


def default_common_name() -> str:
    return socket.gethostname()
