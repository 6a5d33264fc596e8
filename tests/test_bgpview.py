"""Tests for BGPViewClient: envelope handling, parsing and retry schedule."""

from unittest.mock import MagicMock

import pytest
import requests

from shield.clients.bgpview import BGPViewClient
from shield.errors import LookupAPIError, UpstreamError

IP_LOOKUP = {
    "status": "ok",
    "status_message": "Query was successful",
    "data": {
        "ip": "8.6.8.0",
        "ptr_record": None,
        "prefixes": [
            {
                "prefix": "8.6.8.0/24",
                "ip": "8.6.8.0",
                "cidr": 24,
                "asn": {
                    "asn": 20473,
                    "name": "AS-CHOOPA",
                    "description": "Choopa, LLC",
                    "country_code": "US",
                },
                "name": "LVLT-CHOOP-1-8-6-8",
                "description": "Choopa, LLC",
                "country_code": "US",
            },
            {
                "prefix": "8.0.0.0/9",
                "ip": "8.0.0.0",
                "cidr": 9,
                "asn": {
                    "asn": 3356,
                    "name": "LEVEL3",
                    "description": "Level 3 Parent, LLC",
                    "country_code": "US",
                },
                "name": "LVLT-ORG-8-8",
                "description": "Level 3 Parent, LLC",
                "country_code": "US",
            },
        ],
        "rir_allocation": {"rir_name": "ARIN", "prefix": "8.0.0.0/9"},
    },
    "@meta": {"time_zone": "UTC", "api_version": 1},
}

ASN_LOOKUP = {
    "status": "ok",
    "status_message": "Query was successful",
    "data": {
        "asn": 20473,
        "name": "AS-CHOOPA",
        "description_short": "Choopa, LLC",
        "description_full": ["Choopa, LLC"],
        "country_code": "US",
        "website": "https://www.choopa.com/",
    },
}

ASN_PREFIXES = {
    "status": "ok",
    "status_message": "Query was successful",
    "data": {
        "ipv4_prefixes": [
            {
                "prefix": "8.6.8.0/24",
                "ip": "8.6.8.0",
                "cidr": 24,
                "name": "LVLT-CHOOP-1-8-6-8",
                "description": "Choopa, LLC",
                "country_code": "US",
                "parent": {"prefix": "8.0.0.0/9"},
            },
            {
                "prefix": "45.32.0.0/15",
                "ip": "45.32.0.0",
                "cidr": 15,
                "name": "CHOOPA",
                "description": "Choopa, LLC",
                "country_code": "US",
            },
        ],
        "ipv6_prefixes": [
            {
                "prefix": "2001:19f0::/38",
                "ip": "2001:19f0::",
                "cidr": 38,
                "name": "CHOOPA",
                "description": "Choopa, LLC",
                "country_code": "US",
            },
        ],
    },
}


def _response(status_code=200, json_data=None):
    response = MagicMock()
    response.status_code = status_code
    response.json.return_value = json_data or {}
    return response


def _client(*responses, schedule=(1, 3, 5, 10)):
    session = MagicMock()
    session.headers = {}
    session.get.side_effect = list(responses)
    sleeps = []
    client = BGPViewClient(
        base_url="https://bgpview.test/",
        backoff_schedule=schedule,
        session=session,
        sleep=sleeps.append,
    )
    return client, session, sleeps


class TestLookups:
    def test_lookup_ip(self):
        client, session, _ = _client(_response(json_data=IP_LOOKUP))

        result = client.lookup_ip("8.6.8.0")

        session.get.assert_called_once_with("https://bgpview.test/ip/8.6.8.0", timeout=300.0)
        assert result.ip == "8.6.8.0"
        assert [(p.prefix, p.cidr, p.asn.number) for p in result.prefixes] == [
            ("8.6.8.0/24", 24, 20473),
            ("8.0.0.0/9", 9, 3356),
        ]
        assert result.prefixes[0].asn.name == "AS-CHOOPA"
        assert result.prefixes[0].asn.description == "Choopa, LLC"
        assert result.prefixes[0].asn.country_code == "US"

    def test_lookup_asn(self):
        client, session, _ = _client(_response(json_data=ASN_LOOKUP))

        result = client.lookup_asn("20473")

        session.get.assert_called_once_with("https://bgpview.test/asn/20473", timeout=300.0)
        assert result.number == 20473
        assert result.name == "AS-CHOOPA"
        assert result.description == "Choopa, LLC"
        assert result.country_code == "US"
        assert result.website == "https://www.choopa.com/"

    def test_lookup_asn_prefixes(self):
        client, session, _ = _client(_response(json_data=ASN_PREFIXES))

        result = client.lookup_asn_prefixes("20473")

        session.get.assert_called_once_with("https://bgpview.test/asn/20473/prefixes", timeout=300.0)
        assert [(p.prefix, p.cidr) for p in result.ipv4] == [("8.6.8.0/24", 24), ("45.32.0.0/15", 15)]
        assert [p.prefix for p in result.ipv6] == ["2001:19f0::/38"]

    def test_accept_header(self):
        client, session, _ = _client()
        assert session.headers["Accept"] == "application/json; charset=utf-8"

    def test_null_fields_become_empty_strings(self):
        data = {"status": "ok", "data": {"asn": 64500, "name": None, "country_code": None}}
        client, _, _ = _client(_response(json_data=data))

        result = client.lookup_asn("64500")

        assert result.name == ""
        assert result.country_code == ""


class TestErrors:
    def test_status_not_ok_is_not_retried(self):
        body = {"status": "error", "status_message": "Malformed input", "data": {}}
        client, session, sleeps = _client(_response(json_data=body))

        with pytest.raises(LookupAPIError, match="Malformed input") as exc_info:
            client.lookup_asn("nope")

        assert exc_info.value.status == "error"
        assert session.get.call_count == 1
        assert sleeps == []

    def test_invalid_json(self):
        response = _response()
        response.json.side_effect = ValueError("Expecting value")
        client, _, _ = _client(response)

        with pytest.raises(UpstreamError, match="invalid JSON"):
            client.lookup_asn("20473")


class TestRetries:
    def test_recovers_after_transient_failures(self):
        client, session, sleeps = _client(
            _response(status_code=500),
            requests.ConnectionError("connection reset"),
            _response(json_data=ASN_LOOKUP),
        )

        result = client.lookup_asn("20473")

        assert result.number == 20473
        assert session.get.call_count == 3
        assert sleeps == [1, 3]

    def test_gives_up_after_schedule(self):
        client, session, sleeps = _client(*[_response(status_code=429)] * 5)

        with pytest.raises(UpstreamError, match="status code: 429"):
            client.lookup_asn("20473")

        assert session.get.call_count == 5
        assert sleeps == [1, 3, 5, 10]

    def test_transport_error_is_wrapped(self):
        client, _, sleeps = _client(
            requests.Timeout("read timed out"),
            requests.Timeout("read timed out"),
            schedule=(2,),
        )

        with pytest.raises(UpstreamError, match="read timed out"):
            client.lookup_ip("8.6.8.0")

        assert sleeps == [2]

    def test_empty_schedule_means_single_attempt(self):
        client, session, sleeps = _client(_response(status_code=503), schedule=())

        with pytest.raises(UpstreamError):
            client.lookup_asn("20473")

        assert session.get.call_count == 1
        assert sleeps == []


class TestMalformedResponses:
    def test_non_object_body(self):
        client, session, sleeps = _client(_response(json_data=["not", "an", "envelope"]))

        with pytest.raises(UpstreamError, match="not a JSON object"):
            client.lookup_asn("1")

        assert session.get.call_count == 1
        assert sleeps == []

    def test_non_object_data(self):
        client, _, _ = _client(_response(json_data={"status": "ok", "data": [1, 2]}))

        with pytest.raises(UpstreamError, match="data is not a JSON object"):
            client.lookup_asn_prefixes("1")

    def test_null_cidr_and_asn_become_zero(self):
        body = {
            "status": "ok",
            "data": {
                "ip": "8.6.8.0",
                "prefixes": [{"prefix": "8.6.8.0/24", "cidr": None, "asn": {"asn": None}}],
            },
        }
        client, _, _ = _client(_response(json_data=body))

        result = client.lookup_ip("8.6.8.0")

        assert result.prefixes[0].cidr == 0
        assert result.prefixes[0].asn.number == 0

    def test_null_cidr_in_asn_prefixes(self):
        body = {"status": "ok", "data": {"ipv4_prefixes": [{"prefix": "8.6.8.0/24", "cidr": None}]}}
        client, _, _ = _client(_response(json_data=body))

        result = client.lookup_asn_prefixes("20473")

        assert result.ipv4[0].cidr == 0


class TestSession:
    def test_close_keeps_injected_session(self):
        client, session, _ = _client()

        client.close()

        session.close.assert_not_called()

    def test_context_manager_closes_own_session(self, monkeypatch):
        session = MagicMock()
        session.headers = {}
        monkeypatch.setattr(requests, "Session", MagicMock(return_value=session))

        with BGPViewClient(base_url="https://bgpview.test/") as client:
            assert client.session is session

        session.close.assert_called_once_with()
