# fraudgate/rules/normalize.py
"""
Normalizers shared by the snapshot builder and admin-side validation.

All functions are total: malformed input never raises, it collapses to a
sentinel ("" for strings, None for addresses) that matches nothing.
"""
from __future__ import annotations
import ipaddress
import re
from typing import Any, Optional, Union

IpNetwork = Union[ipaddress.IPv4Network, ipaddress.IPv6Network]
IpAddress = Union[ipaddress.IPv4Address, ipaddress.IPv6Address]

WILDCARD_PREFIX = "*."

_LABEL_RE = re.compile(r"^(?!-)[a-z0-9-]{1,63}(?<!-)$")
_COUNTRY_RE = re.compile(r"^[A-Z]{2}$")
_FIELD_RE = re.compile(r"[\s\-]+")


def _text(value: Any) -> str:
    if not isinstance(value, str):
        return ""
    return value.strip()


def _valid_hostname(host: str) -> bool:
    if not host or len(host) > 253:
        return False
    labels = host.split(".")
    if len(labels) < 2:
        return False
    return all(_LABEL_RE.match(label) for label in labels)


def normalize_email(value: Any) -> str:
    """
    - lowercase + trim
    - must look like local@domain with a valid domain, otherwise ""
    """
    v = _text(value).lower()
    if v.count("@") != 1:
        return ""
    local, _, host = v.partition("@")
    if not local or any(c.isspace() for c in local):
        return ""
    host = host.rstrip(".")
    if not _valid_hostname(host):
        return ""
    return f"{local}@{host}"


def email_domain(email: Any) -> str:
    norm = normalize_email(email)
    if not norm:
        return ""
    return norm.rsplit("@", 1)[1]


def normalize_domain(value: Any) -> str:
    """
    Lowercase, drop a leading "@" and a trailing ".".
    A single leading "*." wildcard segment is kept; any other "*" is invalid.
    """
    v = _text(value).lower().lstrip("@").rstrip(".")
    wildcard = v.startswith(WILDCARD_PREFIX)
    host = v[len(WILDCARD_PREFIX):] if wildcard else v
    if "*" in host or not _valid_hostname(host):
        return ""
    return WILDCARD_PREFIX + host if wildcard else host


def domain_matches(entry: str, domain: str) -> bool:
    """
    Exact match, or suffix match for wildcard entries.
    "*.example.com" matches "mail.example.com" but not "example.com".
    """
    if not entry or not domain:
        return False
    if entry.startswith(WILDCARD_PREFIX):
        return domain.endswith(entry[1:])
    return domain == entry


def normalize_country(value: Any) -> str:
    v = _text(value).upper()
    return v if _COUNTRY_RE.match(v) else ""


def normalize_field_name(value: Any) -> str:
    v = _text(value).lower()
    return _FIELD_RE.sub("_", v)


def _unwrap(addr: IpAddress) -> IpAddress:
    # ::ffff:1.2.3.4 is the same buyer as 1.2.3.4
    if isinstance(addr, ipaddress.IPv6Address) and addr.ipv4_mapped is not None:
        return addr.ipv4_mapped
    return addr


def parse_ip(value: Any) -> Optional[IpAddress]:
    v = _text(value)
    if not v:
        return None
    try:
        return _unwrap(ipaddress.ip_address(v))
    except ValueError:
        return None


def parse_ip_or_range(value: Any) -> Optional[IpNetwork]:
    """
    Exact addresses become single-host networks (/32 or /128).
    CIDR ranges with host bits set are accepted ("10.0.0.7/24" -> 10.0.0.0/24).
    """
    v = _text(value)
    if not v:
        return None
    if "/" not in v:
        addr = parse_ip(v)
        return ipaddress.ip_network(addr) if addr is not None else None
    try:
        net = ipaddress.ip_network(v, strict=False)
    except ValueError:
        return None
    if isinstance(net, ipaddress.IPv6Network) and net.network_address.ipv4_mapped is not None and net.prefixlen >= 96:
        mapped = net.network_address.ipv4_mapped
        return ipaddress.ip_network(f"{mapped}/{net.prefixlen - 96}", strict=False)
    return net


def ip_in_network(addr: Optional[IpAddress], net: Optional[IpNetwork]) -> bool:
    if addr is None or net is None or addr.version != net.version:
        return False
    return addr in net
