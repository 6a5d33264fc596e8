# shield/viz/export.py

from __future__ import annotations
from pathlib import Path
from typing import Iterable, Union

import pandas as pd

from shield.models import IPSet, LookupResult
from shield.utils.logging import get_logger

log = get_logger(__name__)


PathLike = Union[str, Path]

IPSET_COLUMNS = ["WAF Type", "IP Set Name", "IP Set ID", "IP Set Count"]
LOOKUP_COLUMNS = [
    "Type",
    "Record",
    "ASN Name",
    "ASN Number",
    "ASN Description",
    "ASN IPv4 Prefixes",
    "ASN Country",
]

# Regional indicator symbol A; flags are pairs of these
_REGIONAL_INDICATOR_A = 0x1F1E6


def country_code_to_emoji(code: str) -> str:
    """
    Turn an ISO 3166 alpha-2 code ("US") into its flag emoji.

    Anything that is not two ASCII letters renders as "".
    """
    code = (code or "").strip().upper()
    if len(code) != 2 or not code.isascii() or not code.isalpha():
        return ""
    return "".join(chr(_REGIONAL_INDICATOR_A + ord(c) - ord("A")) for c in code)


def ipsets_to_dataframe(ipsets: Iterable[IPSet]) -> pd.DataFrame:
    rows = [["WAF Classic", s.name, s.id, s.ip_count] for s in ipsets]
    return pd.DataFrame(rows, columns=IPSET_COLUMNS)


def lookups_to_dataframe(results: Iterable[LookupResult], flags: bool = True) -> pd.DataFrame:
    """
    One row per lookup result.

    With ``flags`` the country column holds flag emoji (for the terminal),
    otherwise the raw country code (for files).
    """
    rows = [
        [
            r.type,
            r.record,
            r.asn_name,
            r.asn_number,
            r.asn_description,
            r.asn_ipv4_count,
            country_code_to_emoji(r.asn_country) if flags else r.asn_country,
        ]
        for r in results
    ]
    return pd.DataFrame(rows, columns=LOOKUP_COLUMNS)


def render_table(df: pd.DataFrame) -> str:
    """Plain-text table for stdout."""
    if df.empty:
        return " | ".join(df.columns)
    return df.to_string(index=False)


def save_table(df: pd.DataFrame, path: PathLike) -> Path:
    """
    Save a result table; the format follows the file suffix.

    Supported suffixes: .csv, .json, .html / .htm
    """
    out_path = Path(path).expanduser().resolve()
    suffix = out_path.suffix.lower()
    out_path.parent.mkdir(parents=True, exist_ok=True)

    if suffix == ".csv":
        df.to_csv(out_path, index=False)
    elif suffix == ".json":
        df.to_json(out_path, orient="records", indent=2, force_ascii=False)
    elif suffix in (".html", ".htm"):
        out_path.write_text(df.to_html(index=False), encoding="utf-8")
    else:
        raise ValueError(f"Unsupported output format: {suffix or '(none)'}")

    log.info("Wrote %d rows to %s", len(df), out_path)
    return out_path
