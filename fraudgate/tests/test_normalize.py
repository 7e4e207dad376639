# tests/test_normalize.py
import ipaddress

import pytest

from fraudgate.rules.normalize import (
    domain_matches,
    email_domain,
    ip_in_network,
    normalize_country,
    normalize_domain,
    normalize_email,
    parse_ip,
    parse_ip_or_range,
)


def test_normalize_email_trims_and_lowercases():
    assert normalize_email("  Fraud@Evil.COM ") == "fraud@evil.com"
    assert email_domain("Buyer@Mail.Example.com") == "mail.example.com"


@pytest.mark.parametrize("bad", [None, "", "no-at-sign", "a@b@c.com", "@evil.com", "x@localhost", 42, "a b@x.com"])
def test_normalize_email_malformed_is_sentinel(bad):
    assert normalize_email(bad) == ""


def test_normalize_domain():
    assert normalize_domain(" @Example.COM. ") == "example.com"
    assert normalize_domain("*.Example.com") == "*.example.com"
    assert normalize_domain("mail.*.example.com") == ""
    assert normalize_domain("*") == ""
    assert normalize_domain(None) == ""


def test_wildcard_domain_matching():
    assert domain_matches("*.example.com", "mail.example.com")
    assert domain_matches("*.example.com", "a.b.example.com")
    assert not domain_matches("*.example.com", "example.com")
    assert not domain_matches("*.example.com", "shop.example.com.evil.com")
    assert not domain_matches("*.example.com", "badexample.com")
    assert domain_matches("example.com", "example.com")
    assert not domain_matches("example.com", "mail.example.com")
    assert not domain_matches("", "example.com")


def test_normalize_country():
    assert normalize_country(" us ") == "US"
    assert normalize_country("USA") == ""
    assert normalize_country(None) == ""


def test_parse_ip_or_range():
    assert parse_ip_or_range("10.0.0.1") == ipaddress.ip_network("10.0.0.1/32")
    assert parse_ip_or_range("10.0.0.7/24") == ipaddress.ip_network("10.0.0.0/24")
    assert parse_ip_or_range("2001:db8::1") == ipaddress.ip_network("2001:db8::1/128")
    assert parse_ip_or_range("::ffff:192.0.2.0/120") == ipaddress.ip_network("192.0.2.0/24")
    assert parse_ip_or_range("not-an-ip") is None
    assert parse_ip_or_range("10.0.0.0/33") is None
    assert parse_ip_or_range(None) is None


def test_parse_ip_unwraps_v4_mapped():
    assert parse_ip("::ffff:203.0.113.9") == ipaddress.ip_address("203.0.113.9")
    assert parse_ip("999.1.1.1") is None


def test_ip_in_network_requires_same_family():
    v6_all = ipaddress.ip_network("::/0")
    assert not ip_in_network(ipaddress.ip_address("1.2.3.4"), v6_all)
    assert ip_in_network(ipaddress.ip_address("2001:db8::5"), v6_all)
    assert not ip_in_network(None, v6_all)
