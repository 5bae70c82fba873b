"""Interface for stats submitters and a submitter that only logs."""

from __future__ import annotations

import abc
import logging

from fever.util import get_sensor_id

_log = logging.getLogger(__name__)


class StatsSubmitter(abc.ABC):
    """An entity that sends raw payloads to some endpoint."""

    @abc.abstractmethod
    def submit(self, raw_data, key, content_type):
        """Send ``raw_data`` under the routing ``key``."""

    @abc.abstractmethod
    def submit_with_headers(self, raw_data, key, content_type, headers):
        """Send ``raw_data``, adding the key-value pairs in ``headers``."""

    @abc.abstractmethod
    def use_compression(self):
        """Enable gzip compression of submitted payloads."""

    @abc.abstractmethod
    def finish(self):
        """Release any resources held by the submitter."""


def is_ascii_printable(text):
    """Return True if every character of ``text`` is printable ASCII."""
    return all(" " <= char <= "~" for char in text)


class DummySubmitter(StatsSubmitter):
    """A submitter that logs submissions instead of sending them."""

    def __init__(self):
        self.logger = logging.LoggerAdapter(
            _log, {"domain": "submitter", "submitter": "dummy"}
        )
        self.sensor_id = get_sensor_id()

    def submit(self, raw_data, key, content_type):
        """Log the payload."""
        self.submit_with_headers(raw_data, key, content_type, None)

    def submit_with_headers(self, raw_data, key, content_type, headers):
        """Log the payload as text, or its length if it is not printable."""
        text = bytes(raw_data).decode("utf-8", errors="replace")
        if is_ascii_printable(text):
            self.logger.info("%s", text)
        else:
            self.logger.info(
                "%s (%s) - submitting non-printable byte array of length %d",
                key,
                content_type,
                len(raw_data),
            )

    def use_compression(self):
        """Compression does not apply to this submitter."""

    def finish(self):
        """Nothing to release."""