# shield/clients/bgpview.py

from __future__ import annotations
import time
from typing import Any, Callable, Dict, Optional, Sequence

import requests

from shield.config import DEFAULT_BACKOFF_SCHEDULE, DEFAULT_BGPVIEW_URL
from shield.errors import LookupAPIError, UpstreamError
from shield.models import ASNInfo, ASNPrefixes, IPLookup, IPPrefix, Prefix
from shield.utils.logging import get_logger

log = get_logger(__name__)


class BGPViewClient:
    """
    Routing lookups against the bgpview.io REST API.

    Every call is a single GET. Transport errors and non-200 responses are
    retried once per entry of ``backoff_schedule`` (sleeping that many
    seconds first); a response whose envelope status is not "ok" is raised
    straight away as LookupAPIError.

    The first attempt is not counted against the schedule, so the default
    ``(1, 3, 5, 10)`` allows 5 attempts in total, one more than the
    schedule has entries.

    The client owns its ``requests.Session`` unless one is passed in; call
    close() or use it as a context manager to release it.
    """

    def __init__(
            self,
            base_url: str = DEFAULT_BGPVIEW_URL,
            backoff_schedule: Sequence[float] = DEFAULT_BACKOFF_SCHEDULE,
            timeout: float = 300.0,
            session: Optional[requests.Session] = None,
            sleep: Callable[[float], None] = time.sleep,
    ) -> None:
        self.base_url = base_url.rstrip("/")
        self.backoff_schedule = tuple(backoff_schedule)
        self.timeout = timeout
        self._owns_session = session is None
        self.session = session or requests.Session()
        self.session.headers.update({"Accept": "application/json; charset=utf-8"})
        self._sleep = sleep

    def close(self) -> None:
        """Close the HTTP session if this client created it."""
        if self._owns_session:
            self.session.close()

    def __enter__(self) -> "BGPViewClient":
        return self

    def __exit__(self, *exc_info) -> None:
        self.close()

    # ------------------------------------------------------------------
    # transport
    # ------------------------------------------------------------------

    def _execute(self, url: str) -> requests.Response:
        response = self.session.get(url, timeout=self.timeout)
        # Only 200 counts as success
        if response.status_code != 200:
            raise UpstreamError(
                f"unknown error, status code: {response.status_code} ({url})"
            )
        return response

    def _get(self, path: str) -> Dict[str, Any]:
        """
        GET ``path`` with retries and return the envelope's ``data`` member.
        """
        url = f"{self.base_url}{path}"
        delays = iter(self.backoff_schedule)

        while True:
            try:
                response = self._execute(url)
                break
            except (requests.RequestException, UpstreamError) as e:
                delay = next(delays, None)
                if delay is None:
                    log.error("Giving up on %s: %s", url, e)
                    if isinstance(e, UpstreamError):
                        raise
                    raise UpstreamError(f"request to {url} failed: {e}") from e
                log.warning("Request to %s failed (%s); retrying in %ss", url, e, delay)
                self._sleep(delay)

        try:
            envelope = response.json()
        except ValueError as e:
            raise UpstreamError(f"invalid JSON from {url}: {e}") from e

        if not isinstance(envelope, dict):
            raise UpstreamError(f"unexpected response from {url}: not a JSON object")

        status = envelope.get("status")
        if status != "ok":
            raise LookupAPIError(envelope.get("status_message", ""), status=status)

        data = envelope.get("data") or {}
        if not isinstance(data, dict):
            raise UpstreamError(f"unexpected response from {url}: data is not a JSON object")
        return data

    # ------------------------------------------------------------------
    # lookups
    # ------------------------------------------------------------------

    def lookup_ip(self, ip: str) -> IPLookup:
        """Prefixes (and their announcing ASNs) covering ``ip``."""
        data = self._get(f"/ip/{ip}")

        prefixes = []
        for p in data.get("prefixes") or []:
            asn = p.get("asn") or {}
            prefixes.append(
                IPPrefix(
                    prefix=p.get("prefix", ""),
                    ip=p.get("ip", ""),
                    cidr=int(p.get("cidr") or 0),
                    asn=ASNInfo(
                        number=int(asn.get("asn") or 0),
                        name=asn.get("name") or "",
                        description=asn.get("description") or "",
                        country_code=asn.get("country_code") or "",
                    ),
                )
            )

        log.debug("IP %s is covered by %d prefixes", ip, len(prefixes))
        return IPLookup(ip=data.get("ip", ip), prefixes=prefixes)

    def lookup_asn(self, asn: str) -> ASNInfo:
        data = self._get(f"/asn/{asn}")
        return ASNInfo(
            number=int(data.get("asn") or 0),
            name=data.get("name") or "",
            description=data.get("description_short") or "",
            country_code=data.get("country_code") or "",
            website=data.get("website") or "",
        )

    def lookup_asn_prefixes(self, asn: str) -> ASNPrefixes:
        """IPv4 and IPv6 prefixes announced by ``asn``."""
        data = self._get(f"/asn/{asn}/prefixes")
        return ASNPrefixes(
            asn=str(asn),
            ipv4=[_prefix(p) for p in data.get("ipv4_prefixes") or []],
            ipv6=[_prefix(p) for p in data.get("ipv6_prefixes") or []],
        )


def _prefix(raw: Dict[str, Any]) -> Prefix:
    return Prefix(
        prefix=raw.get("prefix", ""),
        ip=raw.get("ip", ""),
        cidr=int(raw.get("cidr") or 0),
        name=raw.get("name") or "",
        description=raw.get("description") or "",
        country_code=raw.get("country_code") or "",
    )
