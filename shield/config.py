# shield/config.py

from __future__ import annotations
from dataclasses import dataclass
from typing import Tuple

DEFAULT_AWS_REGION = "us-east-1"
DEFAULT_BGPVIEW_URL = "https://api.bgpview.io"

# Seconds to wait before each retry of a failed bgpview request.
# After the last delay one final attempt is made and its failure is returned.
DEFAULT_BACKOFF_SCHEDULE: Tuple[float, ...] = (1, 3, 5, 10)


@dataclass(frozen=True)
class ShieldSettings:
    """
    Runtime settings for one CLI invocation.

    The CLI builds this from its options (which also read AWS_REGION and
    SHIELD_BGPVIEW_URL from the environment); library users can build it
    directly and pass it to Shield.from_settings().
    """
    aws_region: str = DEFAULT_AWS_REGION
    bgpview_url: str = DEFAULT_BGPVIEW_URL
    backoff_schedule: Tuple[float, ...] = DEFAULT_BACKOFF_SCHEDULE
    http_timeout: float = 300.0
    waf_connect_timeout: float = 10.0
    waf_read_timeout: float = 60.0
