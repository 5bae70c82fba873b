# fever

Building blocks for processing Suricata EVE-JSON events.

## Modules

- `fever.util.parse_json(line)` takes an EVE-JSON line as `str` or `bytes` and
  returns a `fever.entry.Entry` holding the commonly used fields: addresses,
  ports, protocol, timestamp, flow counters, HTTP host, URL and method, DNS
  fields, TLS SNI and fingerprint, interface, app protocol and flow ID. Null
  values are skipped. DNS answers are collected into `dns_answers` when the
  event has `dns.version` 2. The original line is kept in `json_line`.
  Malformed JSON or values of the wrong shape raise `ValueError`.
  The same module also provides:
  - `escape_json`, which returns an HTML-safe quoted JSON string literal.
  - `get_sensor_id`, which returns the contents of `/etc/machine-id`, or
    `<no_machine_id>` if that file cannot be read.
  - Random-string helpers: `rnd_string_from_chars`, `rnd_string_from_alpha`,
    `rnd_hex_string` and `rnd_tls_fingerprint`.
  - `make_tls_config`, which builds an `ssl.SSLContext` from an optional
    client key pair, a list of root CA files and a flag that turns off
    verification.
- `fever.eve` has typed dataclass models of EVE events: `EveEvent`,
  `AlertEvent`, `DNSEvent`, `HTTPEvent`, `FileinfoEvent`, `EveFlowEvent`,
  `TLSEvent` and `ExtraInfo`. Each has `from_dict` and `to_dict`; `EveEvent`
  also has `from_json` and `to_json`.
  - `EveOutEvent` writes `flow_id` as a string and accepts it back as either
    a string or a number. This keeps large IDs intact in downstream JSON
    parsers.
  - `parse_suricata_time` and `format_suricata_time` handle Suricata's
    timestamp format, for example `2017-03-06T06:54:06.047429+0000`.
- `fever.flow_event.FlowEvent` is a compact little-endian binary form of flow
  metadata.
  - `FlowEvent.from_entry` builds one from an `Entry`.
  - `write` and `to_bytes` encode it; `read` and `from_bytes` decode it.
  - `parse_ip` returns 4 packed bytes for IPv4 and 16 for IPv6.
- `fever.alertifier.Alertifier` turns a metadata `Entry` into an `alert`
  entry, in these steps:
  1. Sets `event_type` to `alert`.
  2. Inserts the `alert` sub-object produced by the provider registered for
     the match type.
  3. Calls the optional `extra_modifier(entry, ioc)`.
  4. Stores the event's own timestamp as `timestamp_event`, turned into
     Suricata format if it lacked an offset.
  5. Sets `timestamp` to the current time.
  6. Appends any fields given to `set_added_fields`.

  An unknown match type raises `ValueError`. `generic_get_alert_obj_for_ioc`
  builds an alert object with a signature, a fixed category and a fixed
  action.
- `fever.alert_providers` has ready-made providers: `HTTPURLProvider`,
  `HTTPHostProvider`, `DNSRequestProvider`, `DNSResponseProvider`,
  `TLSSNIProvider` and `TLSFingerprintProvider`.
- `fever.added_fields.preprocess_added_fields` renders a mapping as a JSON
  snippet, for example `,"foo":"bar"}`, that replaces the closing brace of an
  object.
- `fever.hostnamer.HostNamerRDNS` does reverse DNS lookups and caches the
  results for a configurable time. Trailing dots are removed from the names.
- Submitters implementing `fever.submitter.StatsSubmitter`:
  - `fever.submitter.DummySubmitter` only logs what it receives.
  - `fever.submitter_amqp.make_amqp_submitter(url, target, verbose,
    reconnector=None)` returns an `AMQPSubmitter` that publishes to a RabbitMQ
    exchange. Submitters with the same URL share one connection, which a
    background thread re-establishes every five seconds after a failure.
    `use_compression()` turns on gzip for payloads. Every message carries a
    `sensor_id` header and a `compressed` header.
- `fever.stats_encoder`:
  - `encode_line` renders a mapping or dataclass as one InfluxDB line.
  - `PerformanceStatsEncoder` submits such lines, measured as `fever`,
    through a submitter with `database` and `retention_policy` headers.

## Installation

```
pip install .
```

With the test dependencies:

```
pip install .[test]
```

## Example

```python
from fever.util import parse_json
from fever.alertifier import Alertifier
from fever.alert_providers import HTTPHostProvider

line = '{"timestamp":"2017-03-06T06:54:14.002504+0000","event_type":"http","src_ip":"10.0.0.10","src_port":24092,"dest_ip":"10.0.0.11","dest_port":80,"proto":"TCP","http":{"hostname":"foobar","url":"/x","http_method":"POST"}}'
entry = parse_json(line)

alertifier = Alertifier("TEST")
alertifier.register_match_type("http_host", HTTPHostProvider())
alert = alertifier.make_alert(entry, "foobar", "http_host")
print(alert.json_line)
```

## What it does not do

This is a library. It has no command-line program and no long-running service. It does not:

- read EVE-JSON from sockets or files;
- match events against indicator lists;
- keep state in a database.

Those steps are left to the code that uses these modules.

## Running the tests

```
pytest
```