"""Shared test fixtures."""

import logging

import pytest

from shield.core import Shield
from shield.models import ASNInfo
from tests.fakes import FakeFirewallClient, FakeRoutingClient, make_ip_lookup, make_prefix


@pytest.fixture(autouse=True)
def restore_root_logging():
    """The CLI callback reconfigures the root logger; undo it after each test."""
    root = logging.getLogger()
    handlers, level = root.handlers[:], root.level
    yield
    root.handlers[:] = handlers
    root.setLevel(level)


@pytest.fixture
def routing():
    """Routing facts for AS20473 (two prefixes) and AS4, plus 8.6.8.0."""
    return FakeRoutingClient(
        ips={"8.6.8.0": make_ip_lookup("8.6.8.0")},
        asns={
            "20473": ASNInfo(number=20473, name="AS-20473", description="Sketchy, LLC", country_code="US"),
        },
        prefixes={
            "20473": [
                make_prefix("192.167.0.0/8", "Home", "US"),
                make_prefix("192.167.1.0/24", "Casa", "MX"),
            ],
            "4": [
                make_prefix("8.6.8.0/24"),
                make_prefix("8.6.9.0/24"),
            ],
        },
    )


@pytest.fixture
def firewall():
    return FakeFirewallClient()


@pytest.fixture
def shield(firewall, routing):
    return Shield(waf=firewall, lookup=routing)
