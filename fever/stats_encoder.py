"""Encoding of performance statistics as InfluxDB lines for submission."""

from __future__ import annotations

import dataclasses
import logging
import math
import threading
import time
from collections.abc import Mapping

from fever.util import TOOL_NAME

_log = logging.getLogger(__name__)

_STATS_HEADERS = {"database": "telegraf", "retention_policy": "default"}


def _escape(text, specials):
    for char in "\\" + specials:
        text = text.replace(char, "\\" + char)
    return text


def _escape_measurement(text):
    return _escape(str(text), ", ")


def _escape_key(text):
    return _escape(str(text), ",= ")


def _format_value(key, value):
    if isinstance(value, bool):
        return "true" if value else "false"
    if isinstance(value, int):
        return str(value)
    if isinstance(value, float):
        if not math.isfinite(value):
            raise ValueError(f"field {key!r} is not a finite number")
        return repr(value)
    if isinstance(value, str):
        return '"' + _escape(value, '"') + '"'
    raise ValueError(f"unsupported type {type(value).__name__} for field {key!r}")


def encode_line(measurement, values, tags):
    """Return one InfluxDB line for ``values`` with the given ``tags``.

    ``values`` is a mapping (or dataclass instance) of field names to
    numbers, booleans or strings; integers carry no type suffix. Tags are
    sorted by key and empty tag values are left out. The line ends with the
    current time in nanoseconds and a newline.
    """
    if dataclasses.is_dataclass(values) and not isinstance(values, type):
        values = dataclasses.asdict(values)
    if not isinstance(values, Mapping) or not values:
        raise ValueError("no fields to encode")
    head = _escape_measurement(measurement)
    for key in sorted(tags or {}):
        if tags[key] == "":
            continue
        head += f",{_escape_key(key)}={_escape_key(tags[key])}"
    body = ",".join(
        f"{_escape_key(key)}={_format_value(key, value)}" for key, value in values.items()
    )
    return f"{head} {body} {time.time_ns()}\n"


class PerformanceStatsEncoder:
    """Encodes statistics and hands them to a :class:`StatsSubmitter`."""

    def __init__(self, submitter, submit_period, dummy_mode):
        self.logger = logging.LoggerAdapter(_log, {"domain": "statscollect"})
        self.submitter = submitter
        self.dummy_mode = dummy_mode
        self.tags = {}
        self.last_submitted = time.time()
        self.submit_period = submit_period
        self._lock = threading.Lock()

    def submit_with_tags(self, values, tags):
        """Encode ``values`` with ``tags`` and submit the resulting line."""
        with self._lock:
            try:
                line = encode_line(TOOL_NAME, values, tags)
            except ValueError as exc:
                self.logger.warning("%s", exc)
                line = ""
            line = line.strip()
            if not line:
                self.logger.warning("skipping empty influx line")
                return
            self.submitter.submit_with_headers(
                line.encode("utf-8"), "", "text/plain", dict(_STATS_HEADERS)
            )

    def submit(self, values):
        """Encode ``values`` with the encoder's own tags and submit them."""
        self.submit_with_tags(values, self.tags)