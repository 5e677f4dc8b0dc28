from unittest.mock import MagicMock

import pytest
import requests
from requests.structures import CaseInsensitiveDict

from linkshield.core.redirect_resolver import RedirectChainResolver
from linkshield.schemas import ErrorKind, HopType, RedirectKind


def make_response(status=200, headers=None, body=b""):
    response = MagicMock()
    response.status_code = status
    response.headers = CaseInsensitiveDict(headers or {})
    response.encoding = "utf-8"
    response.iter_content.return_value = iter([body])
    return response


def redirect(location, status=302):
    return make_response(status, {"Location": location})


def html(body):
    return make_response(200, {"Content-Type": "text/html; charset=utf-8"}, body.encode())


@pytest.fixture
def session():
    return MagicMock()


@pytest.fixture
def resolver(session):
    return RedirectChainResolver(session=session, max_hops=10, timeout=1.0, total_budget=10.0)


def test_no_redirect(resolver, session):
    session.get.return_value = make_response(200)

    outcome = resolver.resolve("https://example.com/page")

    assert outcome.ok
    chain = outcome.value
    assert chain.final_url == "https://example.com/page"
    assert chain.total_redirects == 0
    assert [hop.hop_type for hop in chain.chain] == [HopType.ORIGIN, HopType.FINAL]
    assert not chain.is_suspicious_redirect
    session.get.assert_called_once_with(
        "https://example.com/page", allow_redirects=False, timeout=1.0, stream=True
    )


def test_bare_domain_is_requested_over_https(resolver, session):
    session.get.return_value = make_response(200)

    resolver.resolve("example.com")

    assert session.get.call_args[0][0] == "https://example.com"


def test_cross_domain_chain_is_suspicious(resolver, session):
    session.get.side_effect = [
        redirect("https://tracker.net/r", 301),
        redirect("https://landing.xyz/win"),
        make_response(200),
    ]

    chain = resolver.resolve("https://short.link/abc").value

    assert chain.final_url == "https://landing.xyz/win"
    assert chain.total_redirects == 2
    assert chain.cross_domain_hops == 2
    assert chain.is_suspicious_redirect
    assert [hop.hop_type for hop in chain.chain] == [HopType.ORIGIN, HopType.REDIRECT, HopType.FINAL]
    assert chain.chain[1].status_code == 301
    assert chain.chain[1].redirect_kind == RedirectKind.HTTP
    assert chain.chain[2].domain == "landing.xyz"


def test_many_same_domain_redirects_are_suspicious(resolver, session):
    session.get.side_effect = [
        redirect("/2"), redirect("/3"), redirect("/4"), redirect("/5"), make_response(200),
    ]

    chain = resolver.resolve("https://example.com/1").value

    assert chain.final_url == "https://example.com/5"
    assert chain.total_redirects == 4
    assert chain.cross_domain_hops == 0
    assert chain.is_suspicious_redirect


def test_single_cross_domain_hop_is_not_suspicious(resolver, session):
    session.get.side_effect = [redirect("https://www.example.org/"), make_response(200)]

    chain = resolver.resolve("https://example.com").value

    assert chain.cross_domain_hops == 1
    assert not chain.is_suspicious_redirect


def test_meta_refresh(resolver, session):
    session.get.side_effect = [
        html('<html><head><meta http-equiv="refresh" content="0; url=https://landing.xyz/"></head></html>'),
        make_response(200),
    ]

    chain = resolver.resolve("https://example.com").value

    assert chain.final_url == "https://landing.xyz/"
    assert chain.chain[-1].redirect_kind == RedirectKind.META_REFRESH


def test_javascript_redirect(resolver, session):
    session.get.side_effect = [
        html('<script>window.location.href = "https://js-target.com/next";</script>'),
        make_response(200),
    ]

    chain = resolver.resolve("https://example.com").value

    assert chain.final_url == "https://js-target.com/next"
    assert chain.chain[-1].redirect_kind == RedirectKind.JAVASCRIPT


def test_non_http_location_ends_chain(resolver, session):
    session.get.return_value = redirect("javascript:alert(1)")

    chain = resolver.resolve("https://example.com").value

    assert chain.total_redirects == 0


def test_responses_are_closed(resolver, session):
    first, last = redirect("https://b.com/"), make_response(200)
    session.get.side_effect = [first, last]

    resolver.resolve("https://a.com/")

    first.close.assert_called_once()
    last.close.assert_called_once()


def test_hop_limit(session):
    resolver = RedirectChainResolver(session=session, max_hops=3, timeout=1.0, total_budget=10.0)
    counter = iter(range(100))
    session.get.side_effect = lambda *a, **kw: redirect(f"https://hop{next(counter)}.com/")

    chain = resolver.resolve("https://start.com").value

    assert chain.total_redirects == 3
    assert session.get.call_count == 3


def test_loop_detection(resolver, session):
    session.get.side_effect = [redirect("https://b.com/"), redirect("https://a.com/")]

    chain = resolver.resolve("https://a.com/").value

    assert chain.total_redirects == 1
    assert chain.final_url == "https://b.com/"


def test_time_budget(session):
    clock = MagicMock(side_effect=[0.0, 0.0, 20.0])
    resolver = RedirectChainResolver(session=session, max_hops=10, timeout=1.0, total_budget=10.0, clock=clock)
    session.get.return_value = redirect("https://b.com/")

    chain = resolver.resolve("https://a.com/").value

    assert chain.total_redirects == 1
    assert session.get.call_count == 1


def test_first_hop_timeout_is_an_error(resolver, session):
    session.get.side_effect = requests.Timeout()

    outcome = resolver.resolve("https://slow.example.com")

    assert not outcome.ok
    assert outcome.error == ErrorKind.TIMEOUT


def test_first_hop_connection_error_is_unavailable(resolver, session):
    session.get.side_effect = requests.ConnectionError("refused")

    outcome = resolver.resolve("https://down.example.com")

    assert outcome.error == ErrorKind.UNAVAILABLE


def test_later_failure_keeps_partial_chain(resolver, session):
    session.get.side_effect = [redirect("https://b.com/"), requests.ConnectionError("refused")]

    outcome = resolver.resolve("https://a.com/")

    assert outcome.ok
    assert outcome.value.final_url == "https://b.com/"


def test_unparseable_input_is_not_requested(resolver, session):
    outcome = resolver.resolve("javascript:alert(1)")

    assert outcome.error == ErrorKind.INVALID_INPUT
    session.get.assert_not_called()


def test_fallback_chain(resolver):
    chain = resolver.fallback("https://a.com/x")

    assert chain.final_url == "https://a.com/x"
    assert len(chain.chain) == 2
    assert chain.total_redirects == 0
    assert not chain.is_suspicious_redirect
