"""EVE-JSON field extraction and assorted helpers."""

from __future__ import annotations

import json
import random
import re
import ssl
from dataclasses import dataclass
from pathlib import Path

from fever.entry import DNSAnswer, Entry

TOOL_NAME = "fever"
TOOL_NAME_UPPER = "FEVER"

MACHINE_ID_PATH = "/etc/machine-id"
NO_MACHINE_ID = "<no_machine_id>"

_INT64_MIN = -(2**63)
_INT64_MAX = 2**63 - 1

_ESCAPE_RE = re.compile("[\"\\\\\x00-\x1f<>&\u2028\u2029]")
_SURROGATE_RE = re.compile(r"[\ud800-\udfff]")
_SHORT_ESCAPES = {
    '"': '\\"',
    "\\": "\\\\",
    "\n": "\\n",
    "\r": "\\r",
    "\t": "\\t",
}
_INT_RE = re.compile(r"-?\d*", re.ASCII)


def _escape_char(match):
    char = match.group()
    return _SHORT_ESCAPES.get(char) or f"\\u{ord(char):04x}"


def escape_json(value):
    """Return ``value`` as a quoted JSON string literal, HTML-safe."""
    if not isinstance(value, str):
        raise TypeError(f"expected str, got {type(value).__name__}")
    value = _SURROGATE_RE.sub("\ufffd", value)
    return '"' + _ESCAPE_RE.sub(_escape_char, value) + '"'


@dataclass(frozen=True)
class _Number:
    """A JSON number kept in its literal form."""

    text: str


def _reject_constant(name):
    raise ValueError(f"invalid JSON value: {name}")


def _to_text(value):
    """Render a decoded JSON value back to compact JSON text."""
    if isinstance(value, str):
        return escape_json(value)
    if isinstance(value, _Number):
        return value.text
    if value is True:
        return "true"
    if value is False:
        return "false"
    if value is None:
        return "null"
    if isinstance(value, list):
        return "[" + ",".join(_to_text(v) for v in value) + "]"
    return "{" + ",".join(
        f"{escape_json(k)}:{_to_text(v)}" for k, v in value.items()
    ) + "}"


def _as_text(value):
    """String values as they are, anything else as its JSON text."""
    if isinstance(value, str):
        return value
    return _to_text(value)


def _as_int(value):
    text = _as_text(value)
    if not text or not _INT_RE.fullmatch(text):
        raise ValueError(f"malformed integer value: {text!r}")
    number = 0 if text == "-" else int(text)
    if not _INT64_MIN <= number <= _INT64_MAX:
        raise ValueError(f"integer value out of range: {text}")
    return number


_ANSWERS = "dns_answers"

_TOP_LEVEL = {
    "event_type": ("event_type", _as_text),
    "src_ip": ("src_ip", _as_text),
    "src_port": ("src_port", _as_int),
    "dest_ip": ("dest_ip", _as_text),
    "dest_port": ("dest_port", _as_int),
    "timestamp": ("timestamp", _as_text),
    "proto": ("proto", _as_text),
    "flow_id": ("flow_id", _as_text),
    "in_iface": ("iface", _as_text),
    "app_proto": ("app_proto", _as_text),
}

_NESTED = {
    "flow": {
        "bytes_toclient": ("bytes_to_client", _as_int),
        "bytes_toserver": ("bytes_to_server", _as_int),
        "pkts_toclient": ("pkts_to_client", _as_int),
        "pkts_toserver": ("pkts_to_server", _as_int),
    },
    "http": {
        "hostname": ("http_host", _as_text),
        "url": ("http_url", _as_text),
        "http_method": ("http_method", _as_text),
    },
    "dns": {
        "rrname": ("dns_rrname", _as_text),
        "rcode": ("dns_rcode", _as_text),
        "rdata": ("dns_rdata", _as_text),
        "rrtype": ("dns_rrtype", _as_text),
        "type": ("dns_type", _as_text),
        "version": ("dns_version", _as_int),
        "answers": (_ANSWERS, None),
    },
    "tls": {
        "sni": ("tls_sni", _as_text),
        "fingerprint": ("tls_fingerprint", _as_text),
    },
}


def _answer_string(obj, key, required):
    if key not in obj:
        if required:
            raise ValueError(f"key path not found in DNS answer: {key}")
        return ""
    value = obj[key]
    if not isinstance(value, str):
        raise ValueError(f"value is not a string: {_to_text(value)}")
    return value


def _parse_answers(value, rcode):
    answers = []
    if not isinstance(value, list):
        return answers
    for item in value:
        obj = item if isinstance(item, dict) else {}
        rdata = _answer_string(obj, "rdata", required=False)
        rrname = _answer_string(obj, "rrname", required=True)
        rrtype = _answer_string(obj, "rrtype", required=True)
        answers.append(
            DNSAnswer(
                dns_rcode=rcode,
                dns_rdata=rdata,
                dns_rrname=rrname,
                dns_rrtype=rrtype,
            )
        )
    return answers


def _apply(entry, spec, value):
    if value is None:
        return
    attr, convert = spec
    if attr == _ANSWERS:
        if entry.dns_version == 2:
            entry.dns_answers = _parse_answers(value, entry.dns_rcode)
        return
    setattr(entry, attr, convert(value))


def parse_json(line):
    """Extract the relevant fields of an EVE-JSON line into an :class:`Entry`.

    Fields are visited in document order, so DNS answers are only collected
    when ``dns.version`` (2) precedes ``dns.answers``. Null values are skipped.
    Raises ``ValueError`` on malformed JSON or values of the wrong shape.
    """
    text = line.decode("utf-8") if isinstance(line, (bytes, bytearray)) else line
    try:
        data = json.loads(
            text,
            parse_int=_Number,
            parse_float=_Number,
            parse_constant=_reject_constant,
        )
    except json.JSONDecodeError as exc:
        raise ValueError(f"invalid JSON: {exc}") from exc

    entry = Entry(json_line=text)
    if not isinstance(data, dict):
        return entry
    for key, value in data.items():
        if key in _TOP_LEVEL:
            _apply(entry, _TOP_LEVEL[key], value)
        elif key in _NESTED and isinstance(value, dict):
            specs = _NESTED[key]
            for sub_key, sub_value in value.items():
                if sub_key in specs:
                    _apply(entry, specs[sub_key], sub_value)
    return entry


def get_sensor_id():
    """Return this machine's ID, or ``<no_machine_id>`` if it is unavailable."""
    try:
        return Path(MACHINE_ID_PATH).read_text(encoding="utf-8", errors="replace").strip()
    except OSError:
        return NO_MACHINE_ID


def rnd_string_from_chars(chars, n):
    """Return a string of length ``n`` drawn randomly from ``chars``."""
    if n < 0:
        raise ValueError("length must not be negative")
    pool = list(chars)
    if n and not pool:
        raise ValueError("cannot pick from an empty character set")
    return "".join(random.choice(pool) for _ in range(n))


def rnd_string_from_alpha(n):
    """Return ``n`` random lower-case letters."""
    return rnd_string_from_chars("abcdefghijklmnopqrstuvwxyz", n)


def rnd_hex_string(n):
    """Return ``n`` random lower-case hex digits."""
    return rnd_string_from_chars("0123456789abcdef", n)


def rnd_tls_fingerprint():
    """Return a random string shaped like a TLS fingerprint."""
    return ":".join(rnd_hex_string(2) for _ in range(20))


def make_tls_config(cert_file, key_file, root_cas, skip_verify):
    """Build an SSL context with an optional client key pair and root CAs.

    The key pair is only loaded when both file names are given. Only the
    listed root CAs are trusted.
    """
    context = ssl.SSLContext(ssl.PROTOCOL_TLS_CLIENT)
    if cert_file and key_file:
        context.load_cert_chain(cert_file, key_file)
    for filename in root_cas:
        pem = Path(filename).read_bytes().decode("latin-1")
        try:
            context.load_verify_locations(cadata=pem)
        except ssl.SSLError:
            # Files without usable certificates are ignored.
            pass
    if skip_verify:
        context.check_hostname = False
        context.verify_mode = ssl.CERT_NONE
    return context