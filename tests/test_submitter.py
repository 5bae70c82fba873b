import logging

import pytest

from fever.submitter import DummySubmitter, StatsSubmitter, is_ascii_printable
from fever.util import get_sensor_id


@pytest.mark.parametrize(
    "text, expected",
    [
        ("hello world ~!", True),
        ("", True),
        ("tab\there", False),
        ("line\n", False),
        ("caf\u00e9", False),
        ("\x7f", False),
    ],
)
def test_is_ascii_printable(text, expected):
    assert is_ascii_printable(text) is expected


def test_dummy_submitter_is_stats_submitter():
    submitter = DummySubmitter()
    assert isinstance(submitter, StatsSubmitter)
    assert submitter.sensor_id == get_sensor_id()


def test_dummy_logs_printable_payload(caplog):
    caplog.set_level(logging.INFO, logger="fever.submitter")
    submitter = DummySubmitter()
    submitter.submit(b"hello world", "key", "text/plain")
    messages = [r.getMessage() for r in caplog.records]
    assert "hello world" in messages


def test_dummy_logs_length_of_binary_payload(caplog):
    caplog.set_level(logging.INFO, logger="fever.submitter")
    submitter = DummySubmitter()
    submitter.submit_with_headers(b"\x00\x01\xff", "k", "application/octet-stream", {"a": "b"})
    messages = [r.getMessage() for r in caplog.records]
    assert messages == [
        "k (application/octet-stream) - submitting non-printable byte array of length 3"
    ]


def test_dummy_compression_does_not_change_logging(caplog):
    caplog.set_level(logging.INFO, logger="fever.submitter")
    submitter = DummySubmitter()
    submitter.use_compression()
    submitter.submit(b"plain", "k", "text/plain")
    submitter.finish()
    assert [r.getMessage() for r in caplog.records] == ["plain"]