"""Cached host names for IP addresses."""

from __future__ import annotations

import abc
import ipaddress
import socket
import sys
import threading
import time
from datetime import timedelta

from cachetools import Cache, TTLCache


class HostNamer(abc.ABC):
    """Provides cached host names for IP addresses given as strings."""

    @abc.abstractmethod
    def get_hostname(self, ip_addr):
        """Return the list of host names for ``ip_addr``."""

    @abc.abstractmethod
    def flush(self):
        """Drop all cached names."""


def _seconds(value):
    if isinstance(value, timedelta):
        return value.total_seconds()
    return float(value)


class HostNamerRDNS(HostNamer):
    """Host names from reverse DNS lookups, cached for a while.

    Entries live for ``default_expiration`` seconds (or a timedelta); a
    non-positive value keeps them forever. Expired entries are purged every
    ``cleanup_interval``.
    """

    def __init__(self, default_expiration, cleanup_interval):
        ttl = _seconds(default_expiration)
        self._cleanup_interval = _seconds(cleanup_interval)
        self._cache = TTLCache(sys.maxsize, ttl) if ttl > 0 else Cache(sys.maxsize)
        self._last_cleanup = time.monotonic()
        self._lock = threading.Lock()

    def _maybe_cleanup(self):
        if self._cleanup_interval <= 0 or not isinstance(self._cache, TTLCache):
            return
        now = time.monotonic()
        if now - self._last_cleanup >= self._cleanup_interval:
            self._cache.expire()
            self._last_cleanup = now

    def get_hostname(self, ip_addr):
        """Return the host names for ``ip_addr``, without trailing dots.

        Raises ``ValueError`` for an invalid address and ``OSError`` when
        the lookup fails.
        """
        with self._lock:
            self._maybe_cleanup()
            cached = self._cache.get(ip_addr)
            if cached is not None:
                return list(cached)
            try:
                ipaddress.ip_address(ip_addr)
            except ValueError as exc:
                raise ValueError(f"unrecognized address: {ip_addr}") from exc
            name, aliases, _ = socket.gethostbyaddr(ip_addr)
            names = [hn.rstrip(".") for hn in (name, *aliases)]
            self._cache[ip_addr] = names
            return list(names)

    def flush(self):
        """Clear the cache."""
        with self._lock:
            self._cache.clear()