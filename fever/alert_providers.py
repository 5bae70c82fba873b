"""Alert sub-object providers for the common match types."""

from __future__ import annotations

from fever.alertifier import AlertJSONProvider, generic_get_alert_obj_for_ioc


class HTTPURLProvider(AlertJSONProvider):
    """Alerts for HTTP URL matches."""

    def get_alert_json(self, event, prefix, ioc):
        """Return the ``alert`` object naming method, host and URL."""
        value = f"{event.http_method} | {event.http_host} | {event.http_url}"
        return generic_get_alert_obj_for_ioc(
            event, prefix, value, "%s Possibly bad HTTP URL: %s"
        )


class HTTPHostProvider(AlertJSONProvider):
    """Alerts for HTTP Host header matches."""

    def get_alert_json(self, event, prefix, ioc):
        """Return the ``alert`` object for a bad HTTP host."""
        return generic_get_alert_obj_for_ioc(
            event, prefix, ioc, "%s Possibly bad HTTP host: %s"
        )


class DNSRequestProvider(AlertJSONProvider):
    """Alerts for DNS request matches."""

    def get_alert_json(self, event, prefix, ioc):
        """Return the ``alert`` object for a bad DNS lookup."""
        return generic_get_alert_obj_for_ioc(
            event, prefix, ioc, "%s Possibly bad DNS lookup to %s"
        )


class DNSResponseProvider(AlertJSONProvider):
    """Alerts for DNS response matches."""

    def get_alert_json(self, event, prefix, ioc):
        """Return the ``alert`` object for a bad DNS response."""
        return generic_get_alert_obj_for_ioc(
            event, prefix, ioc, "%s Possibly bad DNS response for %s"
        )


class TLSSNIProvider(AlertJSONProvider):
    """Alerts for TLS SNI matches."""

    def get_alert_json(self, event, prefix, ioc):
        """Return the ``alert`` object for a bad TLS SNI."""
        return generic_get_alert_obj_for_ioc(
            event, prefix, ioc, "%s Possibly bad TLS SNI: %s"
        )


class TLSFingerprintProvider(AlertJSONProvider):
    """Alerts for TLS fingerprint matches."""

    def get_alert_json(self, event, prefix, ioc):
        """Return the ``alert`` object for a bad TLS fingerprint."""
        return generic_get_alert_obj_for_ioc(
            event, prefix, ioc, "%s Possibly bad TLS Fingerprint: %s"
        )