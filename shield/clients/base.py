# shield/clients/base.py

from __future__ import annotations
from typing import List, Protocol

from shield.models import ASNInfo, ASNPrefixes, IPLookup, IPSet, Rule


class RoutingInfoClient(Protocol):
    """
    Read-only source of routing facts (IP -> prefixes, ASN -> metadata,
    ASN -> owned prefixes).

    Implementations raise shield.errors.UpstreamError (or a subclass) when
    the remote service cannot answer.
    """

    def lookup_ip(self, ip: str) -> IPLookup: ...

    def lookup_asn(self, asn: str) -> ASNInfo: ...

    def lookup_asn_prefixes(self, asn: str) -> ASNPrefixes: ...

    def close(self) -> None: ...


class FirewallClient(Protocol):
    """
    Mutable firewall store holding named IP sets and rules that reference
    them.

    find_* return "" when nothing matches; get_or_create_* never create a
    second object for a name that already exists.
    """

    def list_ip_sets(self) -> List[IPSet]: ...

    def find_ip_set(self, name: str) -> str: ...

    def get_or_create_ip_set(self, name: str) -> IPSet: ...

    def is_supported_cidr(self, cidr: int) -> bool: ...

    def add_ips(self, ipset_id: str, ips: List[str]) -> None: ...

    def max_batch_size(self) -> int: ...

    def find_rule(self, name: str) -> str: ...

    def get_or_create_rule(self, name: str) -> Rule: ...

    def add_ip_set_to_rule(self, rule_id: str, ipset_id: str) -> None: ...

    def remove_ip_set_from_rule(self, rule_id: str, ipset_id: str) -> None: ...
