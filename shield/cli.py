from __future__ import annotations

import sys
from pathlib import Path
from typing import List, NoReturn, Optional

import typer

from shield.config import DEFAULT_AWS_REGION, DEFAULT_BGPVIEW_URL, ShieldSettings
from shield.core import Shield
from shield.errors import ShieldError
from shield.viz.export import (
    ipsets_to_dataframe,
    lookups_to_dataframe,
    render_table,
    save_table,
)
from shield.utils.logging import get_logger, setup_logging

app = typer.Typer(
    help=(
        "Trace an IP address to its Autonomous System Number (ASN) and block "
        "every prefix the ASN owns with AWS WAF.\n\n"
        "Be careful when blocking an entire ASN! Make sure the ASN owner is "
        "never a commercial or residential ISP!"
    ),
    no_args_is_help=True,
)

log = get_logger(__name__)

OUTPUT_SUFFIXES = (".csv", ".json", ".html", ".htm")

RegionOption = typer.Option(
    DEFAULT_AWS_REGION,
    "--aws-region",
    envvar="AWS_REGION",
    help="AWS region holding the WAF Classic (regional) resources.",
)
BGPViewOption = typer.Option(
    DEFAULT_BGPVIEW_URL,
    "--bgpview-url",
    envvar="SHIELD_BGPVIEW_URL",
    help="Base URL of the bgpview.io API.",
    hidden=True,
)
OutputOption = typer.Option(
    None,
    "--output",
    "-o",
    help="Also save the table to a file (.csv, .json or .html).",
)


def _make_shield(aws_region: str, bgpview_url: str) -> Shield:
    settings = ShieldSettings(aws_region=aws_region, bgpview_url=bgpview_url)
    log.debug("Settings: %s", settings)
    return Shield.from_settings(settings)


def _fail(err: Exception) -> NoReturn:
    typer.secho(str(err), fg=typer.colors.RED)
    raise typer.Exit(code=1)


def _check_output(output: Optional[Path]) -> None:
    if output is not None and output.suffix.lower() not in OUTPUT_SUFFIXES:
        raise typer.BadParameter(
            f"Unsupported output format: {output.suffix or '(none)'}",
            param_hint="--output",
        )


@app.callback()
def main_callback(
        verbose: bool = typer.Option(False, "--verbose", "-v", help="Enable debug logging."),
):
    setup_logging(verbose)


@app.command()
def block(
        asns: List[str] = typer.Argument(..., metavar="ASN...", help="AS numbers to block, e.g. 20473"),
        aws_region: str = RegionOption,
        bgpview_url: str = BGPViewOption,
        yes: bool = typer.Option(False, "--yes", "-y", help="Enable without asking for confirmation."),
):
    """
    Block all the prefixes owned by an ASN using an AWS WAF IP list.

    Example:

        koala-shield block 20473
    """
    with _make_shield(aws_region, bgpview_url) as s:
        for asn in asns:
            try:
                ipset, count = s.create_block_list(asn)
            except ShieldError as e:
                _fail(e)

            typer.echo(f"IP Set {ipset.name} holds {count} prefixes for ASN {asn}.")

            if not yes and not typer.confirm(f"Block IP Set for ASN {asn}", default=False):
                typer.secho("Canceling block. IP Set exists but is not enabled.", fg=typer.colors.RED)
                raise typer.Exit(code=1)

            typer.secho("Enabling block in AWS WAF...", fg=typer.colors.BLUE)

            try:
                s.enable_block_list(asn)
            except ShieldError as e:
                _fail(e)

            typer.secho(f"Done! ASN {asn} has been blocked!", fg=typer.colors.GREEN)


@app.command("un-block")
def un_block(
        asns: List[str] = typer.Argument(..., metavar="ASN...", help="AS numbers to un-block"),
        aws_region: str = RegionOption,
        bgpview_url: str = BGPViewOption,
):
    """
    Un-block an ASN by removing their IP Set from WAF Rules.
    """
    with _make_shield(aws_region, bgpview_url) as s:
        for asn in asns:
            try:
                s.disable_block_list(asn)
            except ShieldError as e:
                _fail(e)
            typer.secho(f"Done! {asn} has been un-blocked!", fg=typer.colors.GREEN)


@app.command()
def ipsets(
        aws_region: str = RegionOption,
        bgpview_url: str = BGPViewOption,
        output: Optional[Path] = OutputOption,
):
    """
    List all IP sets registered in AWS WAF.
    """
    _check_output(output)

    with _make_shield(aws_region, bgpview_url) as s:
        try:
            sets = s.list_ip_sets()
        except ShieldError as e:
            _fail(e)

    df = ipsets_to_dataframe(sets)
    typer.echo(render_table(df))

    if output is not None:
        written = save_table(df, output)
        typer.echo(f"Wrote {len(df)} IP sets to {written}")


@app.command()
def lookup(
        records: List[str] = typer.Argument(..., metavar="RECORD...", help="IP addresses and/or AS numbers"),
        aws_region: str = RegionOption,
        bgpview_url: str = BGPViewOption,
        output: Optional[Path] = OutputOption,
):
    """
    Lookup information about IP addresses and ASN numbers.

    Example:

        koala-shield lookup 8.6.8.0 20473
    """
    _check_output(output)

    results = []
    with _make_shield(aws_region, bgpview_url) as s:
        for record in records:
            try:
                results.append(s.lookup(record))
            except ShieldError as e:
                _fail(e)

    typer.echo(render_table(lookups_to_dataframe(results)))

    if output is not None:
        df = lookups_to_dataframe(results, flags=False)
        written = save_table(df, output)
        typer.echo(f"Wrote {len(df)} records to {written}")


def main() -> None:
    """Entry point for console_scripts."""
    try:
        app()
    except KeyboardInterrupt:
        # Graceful Ctrl+C handling
        typer.echo("Interrupted by user.", err=True)
        sys.exit(130)


if __name__ == "__main__":
    main()
