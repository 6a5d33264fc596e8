# shield/core.py

from __future__ import annotations
import ipaddress
from typing import List, Tuple

from shield.clients.base import FirewallClient, RoutingInfoClient
from shield.config import ShieldSettings
from shield.errors import NotFoundError, ValidationError
from shield.models import IPSet, LookupResult
from shield.utils.logging import get_logger

log = get_logger(__name__)

RULE_NAME = "KOALA-SHIELD-BLOCK-LIST"


def is_ip(value: str) -> bool:
    """True for a literal IPv4 or IPv6 address (not a network)."""
    try:
        ipaddress.ip_address(value)
    except ValueError:
        return False
    return True


def rule_name() -> str:
    return RULE_NAME


def ipset_name(asn: str) -> str:
    return f"SHIELD-ASN{asn}-IPs"


def batch_prefixes(prefixes: List[str], max_size: int) -> List[List[str]]:
    """
    Split ``prefixes`` into ordered batches for the firewall.

    The size check runs after each append, so a batch is only closed once it
    holds ``max_size + 1`` entries. Empty batches are never returned.
    """
    batches: List[List[str]] = [[]]
    for prefix in prefixes:
        batches[-1].append(prefix)
        if len(batches[-1]) > max_size:
            batches.append([])

    return [b for b in batches if b]


class Shield:
    """
    Turns routing facts from a RoutingInfoClient into block lists in a
    FirewallClient.

    Each blocked ASN gets its own IP set (named by ipset_name()) and is
    switched on or off by referencing that set from the single rule named by
    rule_name().
    """

    def __init__(self, waf: FirewallClient, lookup: RoutingInfoClient):
        self.waf = waf
        self.lookup_client = lookup

    @classmethod
    def from_settings(cls, settings: ShieldSettings) -> "Shield":
        """Build a Shield wired to bgpview.io and AWS WAF Classic."""
        from shield.clients.bgpview import BGPViewClient
        from shield.clients.waf_classic import WAFClassicClient

        return cls(
            waf=WAFClassicClient(
                region=settings.aws_region,
                connect_timeout=settings.waf_connect_timeout,
                read_timeout=settings.waf_read_timeout,
            ),
            lookup=BGPViewClient(
                base_url=settings.bgpview_url,
                backoff_schedule=settings.backoff_schedule,
                timeout=settings.http_timeout,
            ),
        )

    def close(self) -> None:
        """Release the routing client's HTTP session."""
        self.lookup_client.close()

    def __enter__(self) -> "Shield":
        return self

    def __exit__(self, *exc_info) -> None:
        self.close()

    def create_block_list(self, asn: str) -> Tuple[IPSet, int]:
        """
        Look up every IPv4 prefix registered to ``asn`` and load the ones WAF
        supports into the ASN's IP set, creating the set if needed.

        Returns the IP set and the number of prefixes submitted. If a batch
        fails, batches already sent stay in place.
        """
        if is_ip(asn):
            raise ValidationError(
                "Can only create block lists for ASNs. Did you use an IP address?"
            )

        lookup = self.lookup_client.lookup_asn_prefixes(asn)
        ipset = self.waf.get_or_create_ip_set(ipset_name(asn))

        accepted = []
        for prefix in lookup.ipv4:
            if self.waf.is_supported_cidr(prefix.cidr):
                accepted.append(prefix.prefix)
            else:
                log.debug("Skipping %s: /%d not supported by WAF", prefix.prefix, prefix.cidr)

        batches = batch_prefixes(accepted, self.waf.max_batch_size())
        log.info(
            "ASN %s: %d of %d IPv4 prefixes in %d batch(es) for %s",
            asn, len(accepted), len(lookup.ipv4), len(batches), ipset.name,
        )

        for batch in batches:
            self.waf.add_ips(ipset.id, batch)

        return ipset, len(accepted)

    def enable_block_list(self, asn: str) -> None:
        """Reference the ASN's IP set from the shield rule."""
        ipset_id = self.waf.find_ip_set(ipset_name(asn))
        if not ipset_id:
            log.warning("No IP set named %s; enabling with an empty IP set ID", ipset_name(asn))

        rule = self.waf.get_or_create_rule(rule_name())
        self.waf.add_ip_set_to_rule(rule.id, ipset_id)

    def disable_block_list(self, asn: str) -> None:
        """Drop the ASN's IP set from the shield rule. The set itself is kept."""
        ipset_id = self.waf.find_ip_set(ipset_name(asn))
        if not ipset_id:
            raise NotFoundError(f"Could not find a WAF Classic IP Set for ASN {asn}")

        rule = self.waf.get_or_create_rule(rule_name())
        self.waf.remove_ip_set_from_rule(rule.id, ipset_id)

    def list_ip_sets(self) -> List[IPSet]:
        return self.waf.list_ip_sets()

    def lookup(self, record: str) -> LookupResult:
        """
        Describe an IP address or an AS number.

        For an IP the most specific covering prefix (highest CIDR, first in
        response order on ties) decides which ASN is reported.
        """
        if is_ip(record):
            response = self.lookup_client.lookup_ip(record)
            if not response.prefixes:
                raise NotFoundError(f"No announced prefixes found for IP {record}")

            prefix = sorted(response.prefixes, key=lambda p: p.cidr, reverse=True)[0]
            prefixes = self.lookup_client.lookup_asn_prefixes(str(prefix.asn.number))

            return LookupResult(
                type="IP",
                record=response.ip,
                asn_name=prefix.asn.name,
                asn_number=prefix.asn.number,
                asn_description=prefix.asn.description,
                asn_country=prefix.asn.country_code,
                asn_ipv4_count=len(prefixes.ipv4),
            )

        response = self.lookup_client.lookup_asn(record)
        prefixes = self.lookup_client.lookup_asn_prefixes(record)

        return LookupResult(
            type="ASN",
            record=record,
            asn_name=response.name,
            asn_number=response.number,
            asn_description=response.description,
            asn_country=response.country_code,
            asn_ipv4_count=len(prefixes.ipv4),
        )
