import json
from datetime import datetime, timedelta, timezone

import pytest

from fever.alertifier import (
    AlertJSONProvider,
    Alertifier,
    generic_get_alert_obj_for_ioc,
)
from fever.entry import Entry
from fever.eve import EveEvent, HTTPEvent, format_suricata_time, parse_suricata_time


def make_test_http_event(host, url):
    event_time = datetime(2013, 2, 3, tzinfo=timezone.utc)
    entry = Entry(
        src_ip="10.0.0.3",
        src_port=40000,
        dest_ip="10.0.0.20",
        dest_port=80,
        timestamp=format_suricata_time(event_time),
        event_type="http",
        proto="TCP",
        http_host=host,
        http_url=url,
        http_method="GET",
    )
    eve = EveEvent(
        timestamp=datetime.now(timezone.utc),
        event_type=entry.event_type,
        src_ip=entry.src_ip,
        src_port=entry.src_port,
        dest_ip=entry.dest_ip,
        dest_port=entry.dest_port,
        proto=entry.proto,
        http=HTTPEvent(
            hostname=host,
            url=url,
            http_method="GET",
            status=200,
            length=19000,
            protocol="HTTP/1.1",
            http_content_type="application/html",
            http_user_agent="Go",
        ),
    )
    entry.json_line = eve.to_json()
    return entry


class HostProvider(AlertJSONProvider):
    def get_alert_json(self, event, prefix, ioc):
        sig = f"{prefix} Possibly bad HTTP Host match for '{ioc}'"
        return json.dumps({"signature": sig})


class URLPathProvider(AlertJSONProvider):
    def get_alert_json(self, event, prefix, ioc):
        sig = f"{prefix} Possibly bad HTTP Path match for '{ioc}' in '{event.http_url}'"
        return json.dumps({"signature": sig})


def vast_ioc_modifier(entry, ioc):
    doc = json.loads(entry.json_line)
    doc.setdefault("_extra", {})["vast-ioc"] = ioc
    entry.json_line = json.dumps(doc)


def make_alertifier():
    a = Alertifier("TEST")
    a.extra_modifier = vast_ioc_modifier
    a.register_match_type("http_host", HostProvider())
    a.register_match_type("http_path", URLPathProvider())
    return a


def check_alert(alert, msg, ioc):
    parsed = EveEvent.from_json(alert.json_line)
    assert parsed.alert.signature == msg
    assert parsed.extra_info is not None
    assert parsed.extra_info.vast_ioc == ioc
    doc = json.loads(alert.json_line)
    assert doc["timestamp_event"] == "2013-02-03T00:00:00+0000"
    alert_time = parse_suricata_time(doc["timestamp"])
    assert alert_time + timedelta(hours=48) > datetime.now(timezone.utc)


def test_alertifier_simple():
    a = make_alertifier()
    e = make_test_http_event("foo.bar", "http://foo.bar/baz")
    alert = a.make_alert(e, "foo.bar", "http_host")
    check_alert(alert, "TEST Possibly bad HTTP Host match for 'foo.bar'", "foo.bar")
    alert = a.make_alert(e, "foo.bar", "http_path")
    check_alert(
        alert,
        "TEST Possibly bad HTTP Path match for 'foo.bar' in 'http://foo.bar/baz'",
        "foo.bar",
    )


def test_alert_sets_event_type_and_leaves_input_alone():
    a = make_alertifier()
    e = make_test_http_event("foo.bar", "http://foo.bar/baz")
    original_line = e.json_line
    alert = a.make_alert(e, "foo.bar", "http_host")
    assert alert.event_type == "alert"
    assert json.loads(alert.json_line)["event_type"] == "alert"
    assert e.event_type == "http"
    assert e.json_line == original_line


def test_alertifier_timestamp_missing_offset():
    a = make_alertifier()
    e = make_test_http_event("foo.bar", "http://foo.bar/baz")
    new_timestamp = datetime.now().strftime("%Y-%m-%dT%H:%M:%S.%f")
    e.timestamp = new_timestamp
    doc = json.loads(e.json_line)
    doc["timestamp"] = new_timestamp
    e.json_line = json.dumps(doc)

    with pytest.raises(ValueError):
        parse_suricata_time(e.timestamp)

    alert = a.make_alert(e, "foo.bar", "http_host")
    parse_suricata_time(alert.timestamp)
    out = json.loads(alert.json_line)
    assert parse_suricata_time(out["timestamp"]).tzinfo is not None
    assert out["timestamp_event"] == alert.timestamp


def test_alertifier_unknown_matchtype():
    a = make_alertifier()
    e = make_test_http_event("foo.bar", "http://foo.bar/baz")
    with pytest.raises(ValueError):
        a.make_alert(e, "foo.bar", "nonexistant")


def test_added_fields_are_appended():
    a = make_alertifier()
    a.set_added_fields({"foo": "bar"})
    e = make_test_http_event("foo.bar", "http://foo.bar/baz")
    alert = a.make_alert(e, "foo.bar", "http_host")
    assert alert.json_line.endswith(',"foo":"bar"}')
    assert json.loads(alert.json_line)["foo"] == "bar"


def test_empty_added_fields_change_nothing():
    a = make_alertifier()
    a.set_added_fields({})
    e = make_test_http_event("foo.bar", "http://foo.bar/baz")
    alert = a.make_alert(e, "foo.bar", "http_host")
    doc = json.loads(alert.json_line)
    assert list(doc)[-2:] == ["timestamp_event", "_extra"] or "foo" not in doc
    assert "foo" not in doc


def test_extra_modifier_error_propagates():
    def failing(entry, ioc):
        raise RuntimeError("modifier failed")

    a = Alertifier("TEST")
    a.register_match_type("http_host", HostProvider())
    a.extra_modifier = failing
    e = make_test_http_event("foo.bar", "http://foo.bar/baz")
    with pytest.raises(RuntimeError):
        a.make_alert(e, "foo.bar", "http_host")


def test_without_extra_modifier_no_extra_object():
    a = Alertifier("TEST")
    a.register_match_type("http_host", HostProvider())
    e = make_test_http_event("foo.bar", "http://foo.bar/baz")
    alert = a.make_alert(e, "foo.bar", "http_host")
    assert "_extra" not in json.loads(alert.json_line)


def test_prefix_can_be_changed():
    a = make_alertifier()
    a.prefix = "OTHER"
    e = make_test_http_event("foo.bar", "http://foo.bar/baz")
    alert = a.make_alert(e, "foo.bar", "http_host")
    sig = EveEvent.from_json(alert.json_line).alert.signature
    assert sig == "OTHER Possibly bad HTTP Host match for 'foo.bar'"


def test_broken_json_line_raises():
    a = make_alertifier()
    e = make_test_http_event("foo.bar", "http://foo.bar/baz")
    e.json_line = '{"event_type": "http"'
    with pytest.raises(ValueError):
        a.make_alert(e, "foo.bar", "http_host")


def test_generic_alert_object():
    e = make_test_http_event("foo.bar", "/")
    obj = json.loads(generic_get_alert_obj_for_ioc(e, "TEST", "foo.bar", "%s bad %s"))
    assert obj == {
        "signature": "TEST bad foo.bar",
        "category": "Potentially Bad Traffic",
        "action": "allowed",
    }
    assert list(obj) == ["signature", "category", "action"]