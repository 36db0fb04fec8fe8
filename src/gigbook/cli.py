"""CLI entry point for gigbook."""

from __future__ import annotations

import json
import logging
import mimetypes
from datetime import date, datetime
from decimal import Decimal
from pathlib import Path
from typing import TextIO

import click
from pydantic import TypeAdapter, ValidationError

from gigbook.adapters.api import (
    DuplicateCheckClient,
    ExtractionClient,
    ServiceError,
    SupplierMappingClient,
)
from gigbook.classifier import DocumentClassifier
from gigbook.config import get_anthropic_api_key, get_base_currency, get_company_country
from gigbook.currency import ExchangeRateError, FrankfurterRates
from gigbook.gigs import sweep_orphan_drafts
from gigbook.importer import ImportSession, StoreImporter
from gigbook.models import ExpenseData, InvoiceLine, SupplierData
from gigbook.store import PostgresRowStore
from gigbook.suppliers import find_historical_match, normalize_supplier
from gigbook.vat import compute_totals, is_reverse_charge, resolve_vat_rates

_lines_adapter = TypeAdapter(list[InvoiceLine])
_rates_adapter = TypeAdapter(dict[str, Decimal])
_mapping_adapter = TypeAdapter(dict[str, SupplierData])
_clients_adapter = TypeAdapter(list[dict[str, str]])


@click.group()
@click.option("-v", "--verbose", is_flag=True, help="Log debug output.")
def cli(verbose: bool) -> None:
    """Gigbook: invoices, gigs and receipt import for freelancers."""
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.WARNING,
        format="%(levelname)s %(name)s: %(message)s",
    )


@cli.command()
@click.argument("lines_file", type=click.File("r"))
@click.option("--buyer-country", help="Client country code, for reverse charge.")
def totals(lines_file: TextIO, buyer_country: str | None) -> None:
    """Compute invoice totals from a JSON file.

    The file holds ``{"gig_types": {id: rate}, "lines": [...]}``.
    """
    try:
        payload = json.load(lines_file)
        lines = _lines_adapter.validate_python(payload.get("lines", []))
        rates = _rates_adapter.validate_python(payload.get("gig_types", {}))
    except (ValueError, ValidationError) as exc:
        raise click.ClickException(f"Invalid lines file: {exc}") from exc

    reverse = is_reverse_charge(get_company_country(), buyer_country)
    result = compute_totals(resolve_vat_rates(lines, rates), is_reverse_charge=reverse)

    for group in result.vat_groups:
        click.echo(f"VAT {group.vat_rate}%: base {group.underlag}, VAT {group.vat}")
    click.echo(f"Subtotal: {result.subtotal}")
    click.echo(f"VAT: {result.vat_amount}" + (" (reverse charge)" if reverse else ""))
    click.echo(f"Total: {result.total}")


@cli.command()
@click.argument("name")
def normalize(name: str) -> None:
    """Print the normalized form of a supplier name."""
    click.echo(normalize_supplier(name))


@cli.command()
@click.argument("name")
@click.argument("mapping_file", type=click.File("r"))
def match(name: str, mapping_file: TextIO) -> None:
    """Look up a supplier's historical category in a mapping JSON file."""
    try:
        mapping = _mapping_adapter.validate_python(json.load(mapping_file))
    except (ValueError, ValidationError) as exc:
        raise click.ClickException(f"Invalid mapping file: {exc}") from exc

    found = find_historical_match(name, mapping)
    if found is None:
        click.echo("No match")
        raise SystemExit(1)
    click.echo(f"{found.category} ({found.count} previous expenses)")


@cli.command()
@click.argument("from_currency")
@click.argument("to_currency", required=False)
@click.argument("on", required=False, type=click.DateTime(formats=["%Y-%m-%d"]))
def rate(from_currency: str, to_currency: str | None, on: datetime | None) -> None:
    """Print the exchange rate FROM -> TO (default base currency) on a date."""
    day = on.date() if on is not None else date.today()
    target = (to_currency or get_base_currency()).upper()
    try:
        value = FrankfurterRates().get_rate(from_currency.upper(), target, day)
    except ExchangeRateError as exc:
        raise click.ClickException(str(exc)) from exc
    click.echo(f"1 {from_currency.upper()} = {value} {target} ({day.isoformat()})")


@cli.command("sweep-drafts")
def sweep_drafts() -> None:
    """Delete draft gigs left behind by abandoned forms."""
    store = PostgresRowStore.connect()
    click.echo(f"Deleted {sweep_orphan_drafts(store)} draft gigs.")


@cli.command("import")
@click.argument(
    "files",
    nargs=-1,
    required=True,
    type=click.Path(exists=True, dir_okay=False, path_type=Path),
)
@click.option("--commit", is_flag=True, help="Store the selected files.")
@click.option(
    "--include-duplicates",
    is_flag=True,
    help="Store likely duplicates too instead of reporting them as skipped.",
)
@click.option("--local", is_flag=True, help="Classify with the LLM directly, not the backend.")
@click.option(
    "--clients",
    "clients_file",
    type=click.File("r"),
    help="JSON list of {id, name} clients to match invoices against (with --local).",
)
def import_files(
    files: tuple[Path, ...],
    commit: bool,
    include_duplicates: bool,
    local: bool,
    clients_file: TextIO | None,
) -> None:
    """Analyze receipts and invoices, optionally storing them."""
    if clients_file is not None and not local:
        raise click.UsageError("--clients requires --local")
    analyzer = _local_classifier(clients_file) if local else ExtractionClient()

    try:
        mapping = SupplierMappingClient().load()
    except ServiceError as exc:
        click.echo(f"Supplier history unavailable: {exc}", err=True)
        mapping = {}

    session = ImportSession(supplier_mapping=mapping)
    for path in files:
        content_type = mimetypes.guess_type(path.name)[0] or "application/octet-stream"
        session.add_file(path.name, content_type, path.read_bytes())

    session.analyze(analyzer)
    session.check_duplicates(DuplicateCheckClient())
    if include_duplicates:
        for file in session.duplicates:
            file.selected = True

    for file in session.files:
        if file.status == "error":
            click.echo(f"{file.filename}: error: {file.error}")
            continue
        document = file.document
        if isinstance(document, ExpenseData):
            detail = (
                f"expense {document.date} {document.supplier} "
                f"{document.total} {document.currency} [{document.category}]"
            )
        else:
            detail = (
                f"invoice #{document.invoice_number} "
                f"{document.client_name} {document.total}"
            )
        flags = " DUPLICATE" if file.is_duplicate else ""
        mark = "x" if file.selected else " "
        click.echo(f"[{mark}] {file.filename}: {detail}{flags}")

    if not commit:
        return
    # Deselected duplicates still go to the importer so they count as skipped.
    for file in session.duplicates:
        file.selected = True
    if not session.selected_files:
        raise click.ClickException("Nothing selected to import")
    summary = session.import_selected(
        StoreImporter(PostgresRowStore.connect(), skip_duplicates=not include_duplicates)
    )
    click.echo(
        f"Imported {summary.succeeded}, failed {summary.failed}, skipped {summary.skipped}."
    )


def _local_classifier(clients_file: TextIO | None) -> DocumentClassifier:
    try:
        clients = _clients_adapter.validate_python(json.load(clients_file)) if clients_file else []
    except (ValueError, ValidationError) as exc:
        raise click.ClickException(f"Invalid clients file: {exc}") from exc
    try:
        get_anthropic_api_key()
    except ValueError as exc:
        raise click.ClickException(str(exc)) from exc
    return DocumentClassifier(clients)
