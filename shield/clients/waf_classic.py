# shield/clients/waf_classic.py

from __future__ import annotations
import re
from typing import Any, Callable, Dict, Iterator, List, Optional

import boto3
from botocore.config import Config
from botocore.exceptions import BotoCoreError, ClientError

from shield.errors import FirewallError
from shield.models import IPSet, Rule
from shield.utils.logging import get_logger

log = get_logger(__name__)

# ListIPSets / ListRules accept at most 100 per page
PAGE_LIMIT = 100

# Largest number of descriptors pushed in one UpdateIPSet call
MAX_BATCH_SIZE = 900

_METRIC_NAME_STRIP = re.compile(r"[^a-zA-Z0-9]+")


def metric_name_for(name: str) -> str:
    """CloudWatch metric name for a rule: alphanumerics only, lowercased."""
    return _METRIC_NAME_STRIP.sub("", name).lower()


class WAFClassicClient:
    """
    IP sets and rules in AWS WAF Classic (regional).

    Every mutation fetches a fresh change token first and submits the update
    with it. botocore errors are re-raised as FirewallError.
    """

    def __init__(
            self,
            region: str = "us-east-1",
            client: Optional[Any] = None,
            connect_timeout: float = 10.0,
            read_timeout: float = 60.0,
    ) -> None:
        if client is None:
            client = boto3.client(
                "waf-regional",
                region_name=region,
                config=Config(
                    connect_timeout=connect_timeout,
                    read_timeout=read_timeout,
                ),
            )
        self.waf = client
        self.region = region

    def _call(self, operation: str, **params) -> Dict[str, Any]:
        method: Callable[..., Dict[str, Any]] = getattr(self.waf, operation)
        try:
            return method(**params)
        except (ClientError, BotoCoreError) as e:
            raise FirewallError(operation, e) from e

    def _change_token(self) -> str:
        return self._call("get_change_token")["ChangeToken"]

    def _pages(self, operation: str, key: str) -> Iterator[Dict[str, Any]]:
        """Yield every summary from a NextMarker-paginated list call."""
        marker = None
        while True:
            params: Dict[str, Any] = {"Limit": PAGE_LIMIT}
            if marker:
                params["NextMarker"] = marker
            page = self._call(operation, **params)
            for item in page.get(key, []):
                yield item
            marker = page.get("NextMarker")
            if not marker:
                return

    # ------------------------------------------------------------------
    # IP sets
    # ------------------------------------------------------------------

    def list_ip_sets(self) -> List[IPSet]:
        """All IP sets in the region, each with its current descriptor count."""
        # Drain the listing before fetching any set
        summaries = list(self._pages("list_ip_sets", "IPSets"))

        final = []
        for summary in summaries:
            result = self._call("get_ip_set", IPSetId=summary["IPSetId"])
            final.append(_ip_set(result["IPSet"]))
        return final

    def find_ip_set(self, name: str) -> str:
        """IPSetId of the set called ``name``, or "" if there is none."""
        for summary in self._pages("list_ip_sets", "IPSets"):
            if summary["Name"] == name:
                return summary["IPSetId"]
        return ""

    def get_or_create_ip_set(self, name: str) -> IPSet:
        ipset_id = self.find_ip_set(name)

        if not ipset_id:
            result = self._call(
                "create_ip_set", Name=name, ChangeToken=self._change_token()
            )
            log.info("Created IP set %s (%s)", name, result["IPSet"]["IPSetId"])
            return IPSet(
                id=result["IPSet"]["IPSetId"],
                name=result["IPSet"]["Name"],
                ip_count=0,
            )

        result = self._call("get_ip_set", IPSetId=ipset_id)
        return _ip_set(result["IPSet"])

    def is_supported_cidr(self, cidr: int) -> bool:
        """WAF Classic accepts /8 and /16 through /32 for IPv4."""
        return cidr == 8 or 16 <= cidr <= 32

    def max_batch_size(self) -> int:
        return MAX_BATCH_SIZE

    def add_ips(self, ipset_id: str, ips: List[str]) -> None:
        """Insert CIDR-notation IPv4 ranges into an IP set in one update."""
        updates = [
            {
                "Action": "INSERT",
                "IPSetDescriptor": {"Type": "IPV4", "Value": ip},
            }
            for ip in ips
        ]
        self._call(
            "update_ip_set",
            IPSetId=ipset_id,
            ChangeToken=self._change_token(),
            Updates=updates,
        )
        log.info("Inserted %d ranges into IP set %s", len(updates), ipset_id)

    # ------------------------------------------------------------------
    # rules
    # ------------------------------------------------------------------

    def find_rule(self, name: str) -> str:
        for summary in self._pages("list_rules", "Rules"):
            if summary["Name"] == name:
                return summary["RuleId"]
        return ""

    def get_or_create_rule(self, name: str) -> Rule:
        rule_id = self.find_rule(name)

        if not rule_id:
            result = self._call(
                "create_rule",
                Name=name,
                MetricName=metric_name_for(name),
                ChangeToken=self._change_token(),
            )
            log.info("Created rule %s (%s)", name, result["Rule"]["RuleId"])
            return _rule(result["Rule"])

        result = self._call("get_rule", RuleId=rule_id)
        return _rule(result["Rule"])

    def add_ip_set_to_rule(self, rule_id: str, ipset_id: str) -> None:
        self._modify_rule("INSERT", rule_id, ipset_id)

    def remove_ip_set_from_rule(self, rule_id: str, ipset_id: str) -> None:
        self._modify_rule("DELETE", rule_id, ipset_id)

    def _modify_rule(self, action: str, rule_id: str, ipset_id: str) -> None:
        self._call(
            "update_rule",
            RuleId=rule_id,
            ChangeToken=self._change_token(),
            Updates=[
                {
                    "Action": action,
                    "Predicate": {
                        "Negated": False,
                        "Type": "IPMatch",
                        "DataId": ipset_id,
                    },
                }
            ],
        )
        log.info("%s IP set %s on rule %s", action, ipset_id, rule_id)


def _ip_set(raw: Dict[str, Any]) -> IPSet:
    return IPSet(
        id=raw["IPSetId"],
        name=raw.get("Name", ""),
        ip_count=len(raw.get("IPSetDescriptors", [])),
    )


def _rule(raw: Dict[str, Any]) -> Rule:
    return Rule(
        id=raw["RuleId"],
        name=raw.get("Name", ""),
        metric_name=raw.get("MetricName", ""),
        predicate_count=len(raw.get("Predicates", [])),
    )
