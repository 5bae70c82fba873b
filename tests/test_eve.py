import json
from datetime import datetime, timedelta, timezone

import pytest

from fever.eve import (
    EveEvent,
    EveFlowEvent,
    EveOutEvent,
    ExtraInfo,
    HTTPEvent,
    format_suricata_time,
    parse_suricata_time,
)

CEST = timezone(timedelta(hours=2))


def _http_event(cls, flow_id):
    return cls(
        timestamp=datetime(2019, 8, 6, 13, 30, 1, 690233, tzinfo=CEST),
        event_type="http",
        src_ip="1.2.3.4",
        src_port=2222,
        dest_ip="3.4.5.6",
        dest_port=80,
        proto="tcp",
        flow_id=flow_id,
        http=HTTPEvent(hostname="test", url="/"),
    )


def test_eve_roundtrip_timestamp():
    ev = _http_event(EveEvent, 642)
    back = EveEvent.from_json(ev.to_json())
    assert back.timestamp == ev.timestamp
    assert back == ev


def test_eve_roundtrip_zero_time():
    ev = EveEvent(timestamp=datetime(1, 1, 1, tzinfo=timezone.utc), event_type="http")
    out = ev.to_json()
    assert '"timestamp":"0001-01-01T00:00:00+0000"' in out
    assert EveEvent.from_json(out).timestamp == ev.timestamp


def test_eve_string_flow_id_roundtrip():
    ev = _http_event(EveOutEvent, 649)
    out = ev.to_json()
    assert '"flow_id":"649"' in out
    assert out.startswith('{"flow_id":"649"')
    back = EveOutEvent.from_json(out)
    assert back.flow_id == ev.flow_id
    assert back.http == HTTPEvent(hostname="test", url="/")


def test_out_event_accepts_numeric_flow_id():
    assert EveOutEvent.from_dict({"event_type": "x", "flow_id": 123}).flow_id == 123


def test_out_event_non_integer_flow_id_defaults_to_zero():
    assert EveOutEvent.from_dict({"flow_id": "1.5"}).flow_id == 0
    assert EveOutEvent.from_dict({"event_type": "x"}).flow_id == 0


def test_out_event_invalid_flow_id_string_raises():
    with pytest.raises(ValueError):
        EveOutEvent.from_dict({"flow_id": "abc"})


def test_plain_event_rejects_string_flow_id():
    with pytest.raises(ValueError):
        EveEvent.from_dict({"flow_id": "649"})


def test_type_mismatch_raises():
    with pytest.raises(ValueError):
        EveEvent.from_dict({"src_port": "80"})


def test_parse_suricata_time_values():
    assert parse_suricata_time("2017-03-06T06:54:06.047429+0000") == datetime(
        2017, 3, 6, 6, 54, 6, 47429, tzinfo=timezone.utc
    )
    parsed = parse_suricata_time("2013-02-03T00:00:00-0130")
    assert parsed.utcoffset() == -timedelta(hours=1, minutes=30)
    assert parsed == datetime(2013, 2, 3, 1, 30, tzinfo=timezone.utc)


def test_parse_suricata_time_requires_offset():
    with pytest.raises(ValueError):
        parse_suricata_time("2013-02-03T00:00:00.123456")


def test_format_suricata_time_values():
    assert format_suricata_time(datetime(2013, 2, 3, tzinfo=timezone.utc)) == (
        "2013-02-03T00:00:00+0000"
    )
    assert format_suricata_time(datetime(2013, 2, 3, 1, 2, 3, 500000, tzinfo=CEST)) == (
        "2013-02-03T01:02:03.5+0200"
    )
    assert format_suricata_time(datetime(2013, 2, 3)) == "2013-02-03T00:00:00+0000"


def test_omitempty_fields_are_dropped():
    assert EveEvent(event_type="flow").to_dict() == {
        "timestamp": None,
        "event_type": "flow",
    }


def test_sub_objects_emit_all_fields():
    assert HTTPEvent(hostname="h").to_dict() == {
        "hostname": "h",
        "url": "",
        "http_user_agent": "",
        "http_content_type": "",
        "http_method": "",
        "protocol": "",
        "status": 0,
        "length": 0,
    }


def test_stats_are_normalised():
    ev = EveEvent.from_dict(
        {"event_type": "stats", "stats": {"uptime": 5, "decoder": {"pkts": 3}}}
    )
    assert ev.stats["uptime"] == 5
    assert ev.stats["decoder"]["pkts"] == 3
    assert ev.stats["decoder"]["ipraw"]["invalid_ip_version"] == 0
    assert ev.stats["capture"]["kernel_drops"] == 0


def test_extra_info_mapping():
    ev = EveEvent.from_dict({"event_type": "alert", "_extra": {"vast-ioc": "foo.bar"}})
    assert ev.extra_info.vast_ioc == "foo.bar"
    assert ExtraInfo(vast_ioc="x").to_dict() == {"vast-ioc": "x"}


def test_flow_sub_object_times():
    line = json.dumps(
        {
            "event_type": "flow",
            "vlan": 61,
            "flow": {
                "pkts_toserver": 4,
                "start": "2017-03-06T06:54:06.047429+0000",
                "end": "2017-03-06T06:54:07+0000",
            },
        }
    )
    ev = EveEvent.from_json(line)
    assert isinstance(ev.flow, EveFlowEvent)
    assert ev.flow.pkts_toserver == 4
    assert ev.flow.end - ev.flow.start == timedelta(microseconds=952571)


def test_html_characters_are_escaped():
    assert '"event_type":"a\\u003cb\\u0026c"' in EveEvent(event_type="a<b&c").to_json()


def test_invalid_json_raises():
    with pytest.raises(ValueError):
        EveEvent.from_json("{not json")