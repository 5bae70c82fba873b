"""Compact record of the fields extracted from an EVE-JSON line."""

from __future__ import annotations

from dataclasses import dataclass, field


@dataclass
class DNSAnswer:
    """A single DNS answer as observed by Suricata."""

    dns_rrname: str = ""
    dns_rrtype: str = ""
    dns_rcode: str = ""
    dns_rdata: str = ""
    dns_type: str = ""


@dataclass
class Entry:
    """The subset of an EVE event that is needed for fast processing."""

    src_ip: str = ""
    src_hosts: list[str] = field(default_factory=list)
    src_port: int = 0
    dest_ip: str = ""
    dest_hosts: list[str] = field(default_factory=list)
    dest_port: int = 0
    timestamp: str = ""
    event_type: str = ""
    proto: str = ""
    http_host: str = ""
    http_url: str = ""
    http_method: str = ""
    json_line: str = ""
    dns_version: int = 0
    dns_rrname: str = ""
    dns_rrtype: str = ""
    dns_rcode: str = ""
    dns_rdata: str = ""
    dns_type: str = ""
    dns_answers: list[DNSAnswer] | None = None
    tls_sni: str = ""
    bytes_to_client: int = 0
    bytes_to_server: int = 0
    pkts_to_client: int = 0
    pkts_to_server: int = 0
    flow_id: str = ""
    iface: str = ""
    app_proto: str = ""
    tls_fingerprint: str = ""