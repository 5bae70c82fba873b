"""Compact binary representation of flow metadata."""

from __future__ import annotations

import enum
import io
import ipaddress
import struct
from dataclasses import dataclass
from datetime import datetime, timezone

from fever.eve import parse_suricata_time


class FlowFlag(enum.IntFlag):
    """Bits used in :attr:`FlowEvent.flags`."""

    TCP = 1 << 0
    UDP = 1 << 1


FLOW_EVENT_FLAGS = {"TCP": int(FlowFlag.TCP), "UDP": int(FlowFlag.UDP)}

MAX_COUNTER = 2**32 - 1
_UINT16 = 0xFFFF
_UINT32 = 0xFFFFFFFF
_UINT64 = 2**64 - 1
_EPOCH = datetime(1970, 1, 1, tzinfo=timezone.utc)

_HEAD = struct.Struct("<BQ")
_PORT = struct.Struct("<H")
_TAIL = struct.Struct("<HIIIIH")


def parse_ip(text):
    """Return the packed bytes of an IP address: 4 bytes for IPv4, 16 for IPv6.

    IPv4-mapped IPv6 addresses are returned in their 4-byte form.
    """
    if not isinstance(text, str) or "%" in text:
        raise ValueError("invalid IP")
    try:
        address = ipaddress.ip_address(text)
    except ValueError as exc:
        raise ValueError("invalid IP") from exc
    if isinstance(address, ipaddress.IPv6Address) and address.ipv4_mapped is not None:
        return address.ipv4_mapped.packed
    return address.packed


def _unix_nanos(moment):
    delta = moment - _EPOCH
    return (delta.days * 86400 + delta.seconds) * 10**9 + delta.microseconds * 1000


def _read_exact(stream, size):
    buf = bytearray()
    while len(buf) < size:
        chunk = stream.read(size - len(buf))
        if not chunk:
            break
        buf += chunk
    if len(buf) != size:
        raise EOFError(f"expected {size} bytes, got {len(buf)}")
    return bytes(buf)


@dataclass
class FlowEvent:
    """The meta-data of a flow event in a compact, binary form."""

    timestamp: int = 0
    format: int = 0
    src_ip: bytes = b""
    dest_ip: bytes = b""
    src_port: int = 0
    dest_port: int = 0
    bytes_to_server: int = 0
    bytes_to_client: int = 0
    pkts_to_server: int = 0
    pkts_to_client: int = 0
    flags: int = 0

    @classmethod
    def from_entry(cls, entry):
        """Build a flow event from an :class:`~fever.entry.Entry`."""
        moment = parse_suricata_time(entry.timestamp)
        src_ip = parse_ip(entry.src_ip)
        dest_ip = parse_ip(entry.dest_ip)

        flags = 0
        if entry.proto == "TCP":
            flags |= FlowFlag.TCP
        if entry.proto == "UDP":
            flags |= FlowFlag.UDP

        fmt = 1
        if len(src_ip) == 16:
            fmt |= 1 << 1
        fmt |= 1 << 2  # bits 3 to 6 carry the version, currently 1

        if len(src_ip) != len(dest_ip):
            raise ValueError("source and destination IPs have different lengths")
        for name in ("bytes_to_server", "bytes_to_client",
                     "pkts_to_server", "pkts_to_client"):
            if getattr(entry, name) > MAX_COUNTER:
                raise ValueError(f"{name} is too large")

        return cls(
            timestamp=_unix_nanos(moment) & _UINT64,
            format=fmt,
            src_ip=src_ip,
            dest_ip=dest_ip,
            src_port=entry.src_port & _UINT16,
            dest_port=entry.dest_port & _UINT16,
            bytes_to_server=entry.bytes_to_server & _UINT32,
            bytes_to_client=entry.bytes_to_client & _UINT32,
            pkts_to_server=entry.pkts_to_server & _UINT32,
            pkts_to_client=entry.pkts_to_client & _UINT32,
            flags=int(flags),
        )

    @classmethod
    def read(cls, stream):
        """Read one flow event from a binary stream."""
        fmt = _read_exact(stream, 1)[0]
        if fmt & 0x01 != 0x01:
            raise ValueError("invalid format byte (should start with a 1)")
        ip_len = 16 if fmt & 0x02 else 4
        (timestamp,) = struct.unpack("<Q", _read_exact(stream, 8))
        src_ip = _read_exact(stream, ip_len)
        (src_port,) = _PORT.unpack(_read_exact(stream, _PORT.size))
        dest_ip = _read_exact(stream, ip_len)
        (dest_port, pkts_to_server, pkts_to_client, bytes_to_server,
         bytes_to_client, flags) = _TAIL.unpack(_read_exact(stream, _TAIL.size))
        return cls(
            timestamp=timestamp,
            format=fmt,
            src_ip=src_ip,
            dest_ip=dest_ip,
            src_port=src_port,
            dest_port=dest_port,
            bytes_to_server=bytes_to_server,
            bytes_to_client=bytes_to_client,
            pkts_to_server=pkts_to_server,
            pkts_to_client=pkts_to_client,
            flags=flags,
        )

    def to_bytes(self):
        """Return the binary encoding of this event."""
        return b"".join(
            (
                _HEAD.pack(self.format, self.timestamp),
                bytes(self.src_ip),
                _PORT.pack(self.src_port),
                bytes(self.dest_ip),
                _TAIL.pack(
                    self.dest_port,
                    self.pkts_to_server,
                    self.pkts_to_client,
                    self.bytes_to_server,
                    self.bytes_to_client,
                    self.flags,
                ),
            )
        )

    def write(self, stream):
        """Write the binary encoding of this event to a stream."""
        stream.write(self.to_bytes())

    @classmethod
    def from_bytes(cls, data):
        """Decode a flow event from bytes."""
        return cls.read(io.BytesIO(data))