from datetime import datetime, timezone
from unittest.mock import MagicMock

import pytest
import requests

from linkshield.core.domain_age import DomainAgeChecker
from linkshield.schemas import ErrorKind

NOW = datetime(2024, 6, 1, tzinfo=timezone.utc)


def rdap_response(events, status=200):
    response = MagicMock()
    response.status_code = status
    response.json.return_value = {"objectClassName": "domain", "events": events}
    return response


@pytest.fixture
def session():
    return MagicMock()


@pytest.fixture
def checker(session):
    checker = DomainAgeChecker(session=session, now=lambda: NOW)
    checker.enabled = True
    return checker


class TestParseRdap:
    def test_registration_event(self, checker):
        result = checker.parse_rdap("fresh.com", {"events": [
            {"eventAction": "last changed", "eventDate": "2024-05-30T00:00:00Z"},
            {"eventAction": "registration", "eventDate": "2024-05-22T10:00:00Z"},
        ]})

        assert result.age_in_days == 9
        assert result.is_new_domain
        assert result.is_young_domain

    def test_young_but_not_new(self, checker):
        result = checker.parse_rdap("young.com", {"events": [
            {"eventAction": "registration", "eventDate": "2024-03-01T00:00:00+00:00"},
        ]})

        assert result.age_in_days == 92
        assert not result.is_new_domain
        assert result.is_young_domain

    def test_falls_back_to_earliest_event(self, checker):
        result = checker.parse_rdap("old.com", {"events": [
            {"eventAction": "expiration", "eventDate": "2030-01-01T00:00:00Z"},
            {"eventAction": "last changed", "eventDate": "2010-01-01T00:00:00"},
        ]})

        assert result.registration_date == datetime(2010, 1, 1, tzinfo=timezone.utc)
        assert not result.is_young_domain

    @pytest.mark.parametrize("data", [{}, {"events": []}, {"events": [{"eventDate": "garbage"}]}, []])
    def test_no_usable_dates(self, checker, data):
        result = checker.parse_rdap("x.com", data)

        assert result.age_in_days is None
        assert not result.is_new_domain


class TestCheck:
    def test_queries_registry_for_registrable_domain(self, checker, session):
        session.get.return_value = rdap_response([
            {"eventAction": "registration", "eventDate": "2024-05-25T00:00:00Z"},
        ])

        outcome = checker.check("https://login.brand-new-shop.com/path")

        assert outcome.ok
        assert outcome.value.domain == "brand-new-shop.com"
        assert outcome.value.is_new_domain
        session.get.assert_called_once_with(
            "https://rdap.verisign.com/com/v1/domain/brand-new-shop.com", timeout=checker.timeout
        )

    def test_cached(self, checker, session):
        session.get.return_value = rdap_response([])

        checker.check("shop.com")
        checker.check("www.shop.com")

        assert session.get.call_count == 1

    def test_unknown_registry_is_unknown_age(self, checker, session):
        outcome = checker.check("example.fr")

        assert outcome.ok
        assert outcome.value.age_in_days is None
        session.get.assert_not_called()

    @pytest.mark.parametrize("host", ["192.168.0.1", "javascript:alert(1)", "localhost"])
    def test_invalid_input(self, checker, host):
        assert checker.check(host).error == ErrorKind.INVALID_INPUT

    def test_disabled(self, checker, session):
        checker.enabled = False

        assert checker.check("shop.com").error == ErrorKind.DISABLED
        session.get.assert_not_called()

    def test_timeout(self, checker, session):
        session.get.side_effect = requests.Timeout()
        assert checker.check("slow.com").error == ErrorKind.TIMEOUT

    def test_http_error(self, checker, session):
        session.get.return_value = rdap_response([], status=404)
        assert checker.check("missing.com").error == ErrorKind.UNAVAILABLE

    def test_invalid_json(self, checker, session):
        response = rdap_response([])
        response.json.side_effect = ValueError("not json")
        session.get.return_value = response

        assert checker.check("broken.com").error == ErrorKind.MALFORMED


@pytest.mark.parametrize("suffix,server", [
    ("co.id", "https://rdap.pandi.or.id/v1"),
    ("com.sg", "https://rdap.sgnic.sg/v1"),
    ("xyz", "https://rdap.centralnic.com/xyz/v1"),
    ("fr", None),
])
def test_rdap_server(suffix, server):
    assert DomainAgeChecker.rdap_server(suffix) == server
