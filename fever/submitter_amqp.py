"""Stats submitter publishing to a RabbitMQ exchange, with reconnection."""

from __future__ import annotations

import contextlib
import gzip
import logging
import queue
import threading

import pika
import pika.exceptions

from fever.submitter import StatsSubmitter
from fever.util import get_sensor_id

AMQP_RECONNECT_DELAY = 5.0

_log = logging.getLogger(__name__)
_STOP = object()
_CONNECTION_ERRORS = (
    pika.exceptions.AMQPConnectionError,
    pika.exceptions.AMQPChannelError,
)

_submitters = {}
_registry_lock = threading.Lock()


def _default_reconnector(url):
    return pika.BlockingConnection(pika.URLParameters(url))


class AMQPBaseSubmitter:
    """A shared RabbitMQ connection that reconnects on failure.

    ``reconnector`` is called with the URL and must return a connection
    object offering ``channel()`` and ``close()``. Connecting happens in a
    background thread, retried every ``AMQP_RECONNECT_DELAY`` seconds.
    """

    def __init__(self, url, verbose, reconnector):
        self.url = url
        self.verbose = verbose
        self.reconnector = reconnector or _default_reconnector
        self.connection = None
        self.channel = None
        self.nof_submitters = 0
        self.logger = logging.LoggerAdapter(
            _log, {"domain": "submitter", "submitter": "AMQP", "url": url}
        )
        self.logger.debug("new base submitter created")
        self.sensor_id = get_sensor_id()
        self._lock = threading.Lock()
        self._errors = queue.Queue()
        self._stopped = threading.Event()
        self._thread = threading.Thread(
            target=self._reconnect_loop, name=f"amqp-reconnect {url}", daemon=True
        )
        self._thread.start()
        self._notify_failure("Initial connect")

    def _notify_failure(self, reason):
        self._errors.put(reason)

    def _reconnect_loop(self):
        while True:
            reason = self._errors.get()
            if reason is _STOP or self._stopped.is_set():
                return
            self.logger.warning("RabbitMQ connection failed: %s", reason)
            while not self._stopped.is_set():
                try:
                    self.connect()
                except Exception as exc:  # any dial failure is retried
                    self.logger.warning("RabbitMQ error: %s", exc)
                else:
                    self.logger.info("Reestablished connection to %s", self.url)
                    break
                self._stopped.wait(AMQP_RECONNECT_DELAY)

    def connect(self):
        """Open a new connection and channel, raising on failure."""
        with self._lock:
            self.logger.debug("calling reconnector")
            try:
                self.connection = self.reconnector(self.url)
            except Exception:
                self.connection = None
                raise
            try:
                self.channel = self.connection.channel()
            except Exception:
                with contextlib.suppress(Exception):
                    self.connection.close()
                self.connection = None
                raise
            self.logger.debug("Submitter established connection to %s", self.url)

    def stop(self):
        """Stop the reconnection thread."""
        if not self._stopped.is_set():
            self._stopped.set()
            self._errors.put(_STOP)


class AMQPSubmitter(StatsSubmitter):
    """A submitter sending payloads to an exchange over a shared connection."""

    def __init__(self, base, target):
        self.base = base
        self.target = target
        self.compress = False

    def use_compression(self):
        """Enable gzip compression of submitted payloads."""
        self.compress = True

    def submit(self, raw_data, key, content_type):
        """Publish ``raw_data`` with routing ``key``."""
        self.submit_with_headers(raw_data, key, content_type, None)

    def submit_with_headers(self, raw_data, key, content_type, headers):
        """Publish ``raw_data``, adding ``headers`` to the message headers."""
        raw_data = bytes(raw_data)
        if self.compress:
            payload = gzip.compress(raw_data, mtime=0)
            compressed, encoding = "true", "gzip"
        else:
            payload = raw_data
            compressed, encoding = "false", None

        message_headers = {"sensor_id": self.base.sensor_id, "compressed": compressed}
        message_headers.update(headers or {})
        properties = pika.BasicProperties(
            content_type=content_type,
            content_encoding=encoding,
            headers=message_headers,
        )

        base = self.base
        with base._lock:
            if base.channel is None:
                base.logger.error(
                    "channel was nil, skipping submission for %s/%s",
                    base.url,
                    self.target,
                )
                return
            try:
                base.channel.basic_publish(
                    exchange=self.target,
                    routing_key=key,
                    body=payload,
                    properties=properties,
                )
            except Exception as exc:
                base.logger.warning("%s", exc)
                if isinstance(exc, _CONNECTION_ERRORS):
                    base._notify_failure(str(exc) or type(exc).__name__)
            else:
                base.logger.debug(
                    "submission to %s:%s (%s) successful (raw %d, payload %d bytes)",
                    base.url,
                    self.target,
                    key,
                    len(raw_data),
                    len(payload),
                )

    def finish(self):
        """Release this submitter; the last one closes the connection."""
        base = self.base
        base.logger.debug("finishing submitter %s (%s)", base.url, self.target)
        if base.nof_submitters == 1:
            base.stop()
            if base.verbose:
                base.logger.info("closing connection")
            if base.channel is not None:
                with contextlib.suppress(Exception):
                    base.channel.close()
            with base._lock:
                if base.connection is not None:
                    with contextlib.suppress(Exception):
                        base.connection.close()
            with _registry_lock:
                if _submitters.get(base.url) is base:
                    del _submitters[base.url]
        else:
            base.nof_submitters -= 1
            base.logger.debug("number of submitters now %d", base.nof_submitters)


def make_amqp_submitter(url, target, verbose, reconnector=None):
    """Return a submitter for ``target``, sharing one connection per URL.

    Without a ``reconnector`` a blocking pika connection is used.
    """
    with _registry_lock:
        base = _submitters.get(url)
        if base is None:
            base = AMQPBaseSubmitter(url, verbose, reconnector)
            _submitters[url] = base
            base.nof_submitters += 1
            base.logger.debug("number of submitters now %d", base.nof_submitters)
    return AMQPSubmitter(base, target)