# shield/models.py
from __future__ import annotations
from dataclasses import dataclass, field
from typing import List


@dataclass
class IPSet:
    id: str                 # WAF IPSetId; "" never appears here
    name: str               # "SHIELD-ASN20473-IPs"
    ip_count: int = 0       # descriptors currently in the set


@dataclass
class Rule:
    id: str
    name: str               # "KOALA-SHIELD-BLOCK-LIST"
    metric_name: str        # lowercase alphanumeric slug of name
    predicate_count: int = 0


@dataclass(frozen=True)
class ASNInfo:
    number: int
    name: str = ""
    description: str = ""
    country_code: str = ""  # ISO 3166 alpha-2, may be empty
    website: str = ""


@dataclass(frozen=True)
class IPPrefix:
    """A prefix covering a looked-up IP, with the ASN announcing it."""
    prefix: str             # "8.6.8.0/24"
    ip: str                 # network address, "8.6.8.0"
    cidr: int               # 24
    asn: ASNInfo


@dataclass(frozen=True)
class IPLookup:
    ip: str
    prefixes: List[IPPrefix] = field(default_factory=list)


@dataclass(frozen=True)
class Prefix:
    """A prefix owned by an ASN."""
    prefix: str
    ip: str
    cidr: int
    name: str = ""
    description: str = ""
    country_code: str = ""


@dataclass(frozen=True)
class ASNPrefixes:
    asn: str
    ipv4: List[Prefix] = field(default_factory=list)
    ipv6: List[Prefix] = field(default_factory=list)


@dataclass
class LookupResult:
    type: str               # "IP" | "ASN"
    record: str             # what was looked up, as echoed back
    asn_name: str
    asn_number: int
    asn_description: str
    asn_country: str
    asn_ipv4_count: int
