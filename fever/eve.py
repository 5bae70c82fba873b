"""Suricata EVE-JSON event model and timestamp handling."""

from __future__ import annotations

import json
import re
from collections.abc import Mapping
from dataclasses import dataclass, field, fields
from datetime import datetime, timedelta, timezone
from typing import Any

EVENT_TYPE_FLOW = "flow"
EVENT_TYPE_ALERT = "alert"

_TIME_RE = re.compile(
    r"(\d{4})-(\d{2})-(\d{2})T(\d{2}):(\d{2}):(\d{2})(?:\.(\d+))?([+-])(\d{2})(\d{2})",
    re.ASCII,
)
_JSON_NUMBER_RE = re.compile(r"-?(?:0|[1-9]\d*)(?:\.\d+)?(?:[eE][+-]?\d+)?", re.ASCII)
_INT64_MIN = -(2**63)
_INT64_MAX = 2**63 - 1

_JSON_ESCAPES = str.maketrans(
    {
        "<": "\\u003c",
        ">": "\\u003e",
        "&": "\\u0026",
        "\u2028": "\\u2028",
        "\u2029": "\\u2029",
    }
)


def parse_suricata_time(text):
    """Parse a Suricata timestamp such as ``2017-03-06T06:54:06.047429+0000``."""
    if not isinstance(text, str):
        raise ValueError(f"timestamp must be a string, got {type(text).__name__}")
    match = _TIME_RE.fullmatch(text)
    if match is None:
        raise ValueError(f"invalid Suricata timestamp: {text!r}")
    year, month, day, hour, minute, second, frac, sign, off_h, off_m = match.groups()
    micro = int((frac or "")[:6].ljust(6, "0"))
    offset = timedelta(hours=int(off_h), minutes=int(off_m))
    if sign == "-":
        offset = -offset
    try:
        return datetime(
            int(year),
            int(month),
            int(day),
            int(hour),
            int(minute),
            int(second),
            micro,
            tzinfo=timezone(offset),
        )
    except ValueError as exc:
        raise ValueError(f"invalid Suricata timestamp: {text!r}: {exc}") from exc


def format_suricata_time(value):
    """Format a datetime in Suricata's style; naive values are taken as UTC."""
    if value.tzinfo is None:
        value = value.replace(tzinfo=timezone.utc)
    frac = f"{value.microsecond:06d}".rstrip("0")
    offset = value.utcoffset() or timedelta(0)
    total_minutes = int(offset.total_seconds()) // 60 if offset >= timedelta(0) else -(
        int(-offset.total_seconds()) // 60
    )
    sign = "-" if total_minutes < 0 else "+"
    hours, minutes = divmod(abs(total_minutes), 60)
    text = value.strftime("%Y-%m-%dT%H:%M:%S")
    if len(text.split("-", 1)[0]) < 4:
        text = f"{value.year:04d}" + text[text.index("-"):]
    if frac:
        text += "." + frac
    return f"{text}{sign}{hours:02d}{minutes:02d}"


def _dumps(obj):
    text = json.dumps(obj, ensure_ascii=False, separators=(",", ":"))
    return text.translate(_JSON_ESCAPES)


_STR = "str"
_INT = "int"
_BOOL = "bool"
_TIME = "time"
_STRLIST = "strlist"
_ANY = "any"


def _type_error(key, expected, value):
    return ValueError(
        f"cannot decode {type(value).__name__} into {expected} field {key!r}"
    )


def _zero(kind):
    if kind == _STR:
        return ""
    if kind == _INT:
        return 0
    if kind == _BOOL:
        return False
    if isinstance(kind, dict):
        return _normalize(kind, {})
    return None


def _decode(kind, value, key):
    if kind == _STR:
        if not isinstance(value, str):
            raise _type_error(key, "string", value)
        return value
    if kind == _INT:
        if isinstance(value, bool) or not isinstance(value, int):
            raise _type_error(key, "integer", value)
        return value
    if kind == _BOOL:
        if not isinstance(value, bool):
            raise _type_error(key, "boolean", value)
        return value
    if kind == _TIME:
        return parse_suricata_time(value)
    if kind == _STRLIST:
        if not isinstance(value, list) or not all(isinstance(v, str) for v in value):
            raise _type_error(key, "string list", value)
        return list(value)
    if kind == _ANY:
        return value
    if isinstance(kind, dict):
        if not isinstance(value, Mapping):
            raise _type_error(key, "object", value)
        return _normalize(kind, value)
    return kind.from_dict(value)


def _normalize(schema, data):
    return {
        key: _zero(kind) if data.get(key) is None else _decode(kind, data[key], key)
        for key, kind in schema.items()
    }


def _encode(kind, value):
    if value is None:
        return None
    if kind == _TIME:
        return format_suricata_time(value)
    if hasattr(value, "to_dict"):
        return value.to_dict()
    if isinstance(value, list):
        return list(value)
    return value


def _is_empty(kind, value):
    if value is None:
        return True
    if kind == _ANY:
        return False
    if isinstance(value, (str, list, dict)):
        return not value
    if isinstance(value, int):
        return value == 0
    return False


def _field(key, kind, *, omitempty=False):
    default = _zero(kind) if kind in (_STR, _INT, _BOOL) else None
    return field(
        default=default,
        metadata={"json": key, "kind": kind, "omitempty": omitempty},
    )


def _ints(*names):
    return {name: _INT for name in names}


_TCP_SCHEMA = {
    "state": _STR,
    "syn": _BOOL,
    "tcp_flags": _STR,
    "tcp_flags_tc": _STR,
    "tcp_flags_ts": _STR,
}
_PACKET_INFO_SCHEMA = {"linktype": _INT}
_SMTP_SCHEMA = {"helo": _STR, "mail_from": _STR, "rcpt_to": _STRLIST}
_EMAIL_SCHEMA = {"status": _STR}
_SSH_PEER_SCHEMA = {"proto_version": _STR, "software_version": _STR}
_SSH_SCHEMA = {"client": _SSH_PEER_SCHEMA, "server": _SSH_PEER_SCHEMA}
_DEFRAG_FAMILY_SCHEMA = _ints("fragments", "reassembled", "timeouts")
_STATS_SCHEMA = {
    "uptime": _INT,
    "capture": _ints("kernel_packets", "kernel_drops"),
    "decoder": {
        **_ints(
            "pkts", "bytes", "invalid", "ipv4", "ipv6", "ethernet", "raw", "null",
            "sll", "tcp", "udp", "sctp", "icmpv4", "icmpv6", "ppp", "pppoe", "gre",
            "vlan", "vlan_qinq", "teredo", "ipv4_in_ipv6", "ipv6_in_ipv6", "mpls",
            "avg_pkt_size", "max_pkt_size", "erspan",
        ),
        "ipraw": _ints("invalid_ip_version"),
        "ltnull": _ints("pkt_too_small", "unsupported_type"),
        "dce": _ints("pkt_too_small"),
    },
    "flow": _ints(
        "memcap", "spare", "emerg_mode_entered", "emerg_mode_over", "tcp_reuse",
        "memuse",
    ),
    "defrag": {
        "ipv4": _DEFRAG_FAMILY_SCHEMA,
        "ipv6": _DEFRAG_FAMILY_SCHEMA,
        "max_frag_hits": _INT,
    },
    "stream": _ints(
        "3whs_ack_in_wrong_dir",
        "3whs_async_wrong_seq",
        "3whs_right_seq_wrong_ack_evasion",
    ),
    "tcp": _ints(
        "sessions", "ssn_memcap_drop", "pseudo", "pseudo_failed",
        "invalid_checksum", "no_flow", "syn", "synack", "rst",
        "segment_memcap_drop", "stream_depth_reached", "reassembly_gap",
        "memuse", "reassembly_memuse",
    ),
    "detect": _ints("alert"),
    "flow_mgr": _ints("closed_pruned", "new_pruned", "est_pruned"),
    "dns": _ints("memuse", "memcap_state", "memcap_global"),
    "http": _ints("memuse", "memcap"),
}


def _load(cls, data):
    """Build a dataclass instance of ``cls`` from a decoded JSON object."""
    if data is None:
        return cls()
    if not isinstance(data, Mapping):
        raise ValueError(f"cannot decode {type(data).__name__} into {cls.__name__}")
    values = {}
    for f in fields(cls):
        key = f.metadata["json"]
        raw = data.get(key)
        if raw is not None:
            values[f.name] = _decode(f.metadata["kind"], raw, key)
    return cls(**values)


def _dump(obj):
    """Return the JSON object for a dataclass instance."""
    out = {}
    for f in fields(obj):
        meta = f.metadata
        value = getattr(obj, f.name)
        if meta["omitempty"] and _is_empty(meta["kind"], value):
            continue
        out[meta["json"]] = _encode(meta["kind"], value)
    return out


@dataclass
class AlertEvent:
    """The ``alert`` sub-object of an EVE event."""

    action: str = _field("action", _STR)
    gid: int = _field("gid", _INT)
    signature_id: int = _field("signature_id", _INT)
    rev: int = _field("rev", _INT)
    signature: str = _field("signature", _STR)
    category: str = _field("category", _STR)
    severity: int = _field("severity", _INT)

    @classmethod
    def from_dict(cls, data):
        """Build an instance from a decoded JSON object."""
        return _load(cls, data)

    def to_dict(self):
        """Return the JSON object for this instance."""
        return _dump(self)


@dataclass
class DNSEvent:
    """The ``dns`` sub-object of an EVE event."""

    type: str = _field("type", _STR)
    id: int = _field("id", _INT)
    rcode: str = _field("rcode", _STR)
    rrname: str = _field("rrname", _STR)
    rrtype: str = _field("rrtype", _STR)
    ttl: int = _field("ttl", _INT)
    rdata: str = _field("rdata", _STR)
    tx_id: int = _field("tx_id", _INT)

    @classmethod
    def from_dict(cls, data):
        """Build an instance from a decoded JSON object."""
        return _load(cls, data)

    def to_dict(self):
        """Return the JSON object for this instance."""
        return _dump(self)


@dataclass
class HTTPEvent:
    """The ``http`` sub-object of an EVE event."""

    hostname: str = _field("hostname", _STR)
    url: str = _field("url", _STR)
    http_user_agent: str = _field("http_user_agent", _STR)
    http_content_type: str = _field("http_content_type", _STR)
    http_method: str = _field("http_method", _STR)
    protocol: str = _field("protocol", _STR)
    status: int = _field("status", _INT)
    length: int = _field("length", _INT)

    @classmethod
    def from_dict(cls, data):
        """Build an instance from a decoded JSON object."""
        return _load(cls, data)

    def to_dict(self):
        """Return the JSON object for this instance."""
        return _dump(self)


@dataclass
class FileinfoEvent:
    """The ``fileinfo`` sub-object of an EVE event."""

    filename: str = _field("filename", _STR)
    magic: str = _field("magic", _STR)
    state: str = _field("state", _STR)
    md5: str = _field("md5", _STR)
    stored: bool = _field("stored", _BOOL)
    size: int = _field("size", _INT)
    tx_id: int = _field("tx_id", _INT)

    @classmethod
    def from_dict(cls, data):
        """Build an instance from a decoded JSON object."""
        return _load(cls, data)

    def to_dict(self):
        """Return the JSON object for this instance."""
        return _dump(self)


@dataclass
class EveFlowEvent:
    """The ``flow`` sub-object of an EVE event."""

    pkts_toserver: int = _field("pkts_toserver", _INT)
    pkts_toclient: int = _field("pkts_toclient", _INT)
    bytes_toserver: int = _field("bytes_toserver", _INT)
    bytes_toclient: int = _field("bytes_toclient", _INT)
    start: datetime | None = _field("start", _TIME)
    end: datetime | None = _field("end", _TIME)
    age: int = _field("age", _INT)
    state: str = _field("state", _STR)
    reason: str = _field("reason", _STR)

    @classmethod
    def from_dict(cls, data):
        """Build an instance from a decoded JSON object."""
        return _load(cls, data)

    def to_dict(self):
        """Return the JSON object for this instance."""
        return _dump(self)


@dataclass
class TLSEvent:
    """The ``tls`` sub-object of an EVE event."""

    subject: str = _field("subject", _STR)
    issuerdn: str = _field("issuerdn", _STR)
    fingerprint: str = _field("fingerprint", _STR)
    sni: str = _field("sni", _STR)
    version: str = _field("version", _STR)

    @classmethod
    def from_dict(cls, data):
        """Build an instance from a decoded JSON object."""
        return _load(cls, data)

    def to_dict(self):
        """Return the JSON object for this instance."""
        return _dump(self)


@dataclass
class ExtraInfo:
    """Non-standard extra information kept under ``_extra``."""

    bloom_ioc: str = _field("bloom-ioc", _STR, omitempty=True)
    vast_ioc: str = _field("vast-ioc", _STR, omitempty=True)
    stenosis_info: Any = _field("stenosis-info", _ANY, omitempty=True)

    @classmethod
    def from_dict(cls, data):
        """Build an instance from a decoded JSON object."""
        return _load(cls, data)

    def to_dict(self):
        """Return the JSON object for this instance."""
        return _dump(self)


@dataclass
class EveEvent:
    """A parsed Suricata EVE-JSON log event."""

    timestamp: datetime | None = _field("timestamp", _TIME)
    event_type: str = _field("event_type", _STR)
    flow_id: int = _field("flow_id", _INT, omitempty=True)
    in_iface: str = _field("in_iface", _STR, omitempty=True)
    src_ip: str = _field("src_ip", _STR, omitempty=True)
    src_port: int = _field("src_port", _INT, omitempty=True)
    src_host: list[str] | None = _field("src_host", _STRLIST, omitempty=True)
    dest_ip: str = _field("dest_ip", _STR, omitempty=True)
    dest_port: int = _field("dest_port", _INT, omitempty=True)
    dest_host: list[str] | None = _field("dest_host", _STRLIST, omitempty=True)
    proto: str = _field("proto", _STR, omitempty=True)
    app_proto: str = _field("app_proto", _STR, omitempty=True)
    tx_id: int = _field("tx_id", _INT, omitempty=True)
    tcp: dict | None = _field("tcp", _TCP_SCHEMA, omitempty=True)
    packet_info: dict | None = _field("packet_info", _PACKET_INFO_SCHEMA, omitempty=True)
    alert: AlertEvent | None = _field("alert", AlertEvent, omitempty=True)
    payload: str = _field("payload", _STR, omitempty=True)
    payload_printable: str = _field("payload_printable", _STR, omitempty=True)
    stream: int = _field("stream", _INT, omitempty=True)
    packet: str = _field("packet", _STR, omitempty=True)
    smtp: dict | None = _field("smtp", _SMTP_SCHEMA, omitempty=True)
    email: dict | None = _field("email", _EMAIL_SCHEMA, omitempty=True)
    dns: DNSEvent | None = _field("dns", DNSEvent, omitempty=True)
    http: HTTPEvent | None = _field("http", HTTPEvent, omitempty=True)
    fileinfo: FileinfoEvent | None = _field("fileinfo", FileinfoEvent, omitempty=True)
    flow: EveFlowEvent | None = _field("flow", EveFlowEvent, omitempty=True)
    ssh: dict | None = _field("ssh", _SSH_SCHEMA, omitempty=True)
    tls: TLSEvent | None = _field("tls", TLSEvent, omitempty=True)
    stats: dict | None = _field("stats", _STATS_SCHEMA, omitempty=True)
    extra_info: ExtraInfo | None = _field("_extra", ExtraInfo, omitempty=True)

    @classmethod
    def from_dict(cls, data):
        """Build an event from a decoded JSON object."""
        return _load(cls, data)

    def to_dict(self):
        """Return the JSON object for this event."""
        return _dump(self)

    def to_json(self):
        """Serialise to a compact JSON string."""
        return _dumps(self.to_dict())

    @classmethod
    def from_json(cls, text):
        """Parse an event from a JSON string or bytes."""
        try:
            data = json.loads(text)
        except json.JSONDecodeError as exc:
            raise ValueError(f"invalid JSON: {exc}") from exc
        return cls.from_dict(data)


def _number_to_int(value):
    if value is None:
        return 0
    if isinstance(value, bool):
        raise ValueError("cannot decode boolean into flow_id")
    if isinstance(value, int):
        return value if _INT64_MIN <= value <= _INT64_MAX else 0
    if isinstance(value, float):
        return 0
    if isinstance(value, str):
        if not _JSON_NUMBER_RE.fullmatch(value):
            raise ValueError(f"invalid number literal for flow_id: {value!r}")
        if re.fullmatch(r"-?\d+", value):
            number = int(value)
            return number if _INT64_MIN <= number <= _INT64_MAX else 0
        return 0
    raise ValueError(f"cannot decode {type(value).__name__} into flow_id")


@dataclass
class EveOutEvent(EveEvent):
    """An EVE event for downstream output, with the flow ID as a string."""

    @classmethod
    def from_dict(cls, data):
        """Build an event, accepting the flow ID as a string or a number."""
        if data is None:
            return cls()
        if not isinstance(data, Mapping):
            raise ValueError(
                f"cannot decode {type(data).__name__} into {cls.__name__}"
            )
        rest = {k: v for k, v in data.items() if k != "flow_id"}
        event = _load(cls, rest)
        event.flow_id = _number_to_int(data.get("flow_id"))
        return event

    def to_dict(self):
        """Return the JSON object, with ``flow_id`` first and as a string."""
        body = _dump(self)
        body.pop("flow_id", None)
        return {"flow_id": str(self.flow_id), **body}