"""Parsing, alerting, binary flow encoding and submission for Suricata EVE-JSON events."""

__version__ = "0.1.0"