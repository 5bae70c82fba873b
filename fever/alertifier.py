"""Creation of EVE-JSON alerts from arbitrary EVE-JSON events."""

from __future__ import annotations

import abc
import dataclasses
import json
import logging
import re
from datetime import datetime, timezone

from fever.added_fields import preprocess_added_fields
from fever.eve import format_suricata_time, parse_suricata_time
from fever.util import escape_json

log = logging.getLogger(__name__)

_NAIVE_TIME_RE = re.compile(
    r"(\d{4})-(\d{2})-(\d{2})T(\d{2}):(\d{2}):(\d{2})(?:\.(\d+))?", re.ASCII
)


class _Raw:
    """A JSON value kept as literal text."""

    __slots__ = ("text",)

    def __init__(self, text):
        self.text = text


def _reject_constant(name):
    raise ValueError(f"invalid JSON value: {name}")


def _load(document):
    try:
        return json.loads(
            document,
            parse_int=_Raw,
            parse_float=_Raw,
            parse_constant=_reject_constant,
        )
    except json.JSONDecodeError as exc:
        raise ValueError(f"invalid JSON: {exc}") from exc


def _dump(value):
    if isinstance(value, _Raw):
        return value.text
    if isinstance(value, str):
        return escape_json(value)
    if value is True:
        return "true"
    if value is False:
        return "false"
    if value is None:
        return "null"
    if isinstance(value, list):
        return "[" + ",".join(_dump(v) for v in value) + "]"
    return "{" + ",".join(f"{escape_json(k)}:{_dump(v)}" for k, v in value.items()) + "}"


def _json_set(document, raw_value, *path):
    """Set the JSON text ``raw_value`` at ``path`` inside ``document``.

    Existing keys keep their position; new keys are appended and missing
    intermediate objects are created.
    """
    if isinstance(document, (bytes, bytearray)):
        document = document.decode("utf-8")
    if isinstance(raw_value, (bytes, bytearray)):
        raw_value = raw_value.decode("utf-8")
    _load(raw_value)  # must itself be valid JSON
    data = _load(document)
    if not isinstance(data, dict):
        raise ValueError("JSON document is not an object")
    node = data
    for key in path[:-1]:
        child = node.get(key)
        if not isinstance(child, dict):
            child = {}
            node[key] = child
        node = child
    node[path[-1]] = _Raw(raw_value)
    return _dump(data)


def _parse_naive_time(text):
    match = _NAIVE_TIME_RE.fullmatch(text)
    if match is None:
        raise ValueError(f"invalid timestamp: {text!r}")
    year, month, day, hour, minute, second, frac = match.groups()
    micro = int((frac or "")[:6].ljust(6, "0"))
    return datetime(
        int(year), int(month), int(day), int(hour), int(minute), int(second),
        micro, tzinfo=timezone.utc,
    )


def _normalize_timestamp(text):
    """Return ``text`` in Suricata format where it can be made so."""
    try:
        parse_suricata_time(text)
        return text
    except ValueError:
        pass
    try:
        return format_suricata_time(_parse_naive_time(text))
    except ValueError as exc:
        log.warning(
            "keeping non-offset timestamp '%s', could not be transformed: %s", text, exc
        )
        return text


class AlertJSONProvider(abc.ABC):
    """A source of the ``alert`` sub-object for an alert event."""

    @abc.abstractmethod
    def get_alert_json(self, event, prefix, ioc):
        """Return the JSON text of the ``alert`` sub-object."""


def generic_get_alert_obj_for_ioc(event, prefix, ioc, msg):
    """Build an ``alert`` object whose signature is ``msg % (prefix, ioc)``.

    Category and action are set to fixed values.
    """
    signature = msg % (prefix, ioc)
    obj = _json_set("{}", escape_json(signature), "signature")
    obj = _json_set(obj, '"Potentially Bad Traffic"', "category")
    return _json_set(obj, '"allowed"', "action")


class Alertifier:
    """Turns metadata events into alerts using registered providers.

    ``prefix`` is prepended to every signature; ``extra_modifier``, when set,
    is called with the new entry and the IoC to adjust its ``_extra`` object.
    """

    def __init__(self, prefix):
        self.prefix = prefix
        self.extra_modifier = None
        self._added_fields = ""
        self._match_types = {}

    def register_match_type(self, name, provider):
        """Make ``provider`` available under the match type ``name``."""
        self._match_types[name] = provider

    def set_added_fields(self, fields):
        """Set string key-value pairs to be appended to every alert."""
        self._added_fields = preprocess_added_fields(fields)

    def make_alert(self, event, ioc, match_type):
        """Return a new alert entry derived from ``event``.

        Raises ``ValueError`` for an unknown match type or malformed JSON.
        """
        provider = self._match_types.get(match_type)
        if provider is None:
            raise ValueError(
                f"cannot create alert for metadata, unknown matchtype '{match_type}'"
            )
        alert = dataclasses.replace(event, event_type="alert")
        alert.json_line = _json_set(alert.json_line, '"alert"', "event_type")

        alert_obj = provider.get_alert_json(event, self.prefix, ioc)
        alert.json_line = _json_set(alert.json_line, alert_obj, "alert")

        if self.extra_modifier is not None:
            self.extra_modifier(alert, ioc)

        event_time = _normalize_timestamp(alert.timestamp)
        line = _json_set(alert.json_line, escape_json(event_time), "timestamp_event")
        now = format_suricata_time(datetime.now(timezone.utc))
        line = _json_set(line, escape_json(now), "timestamp")

        if len(self._added_fields) > 1:
            line = line[:-1] + self._added_fields

        alert.timestamp = event_time
        alert.json_line = line
        return alert