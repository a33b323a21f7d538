"""
CLI entry point for invoice backfill.

Usage:
    python -m ledger.backfill --store records.json --retailer R1 --draft draft.json
    python -m ledger.backfill --store records.json --retailer R1 --draft draft.json --tax 5 --save
    python -m ledger.backfill --store records.json --retailer R1 --manual
    python -m ledger.backfill --store records.json --retailer R1 --link-customers
"""

import argparse
import json
import logging
import sys
from pathlib import Path

from .adapters import JsonFileRecordStore
from .computer import format_currency
from .config import DEFAULT_CONFIG_PATH, load_config
from .coordinator import ReconciliationCoordinator
from .customer_link import link_customers
from .errors import BackfillError
from .extraction import draft_from_extraction, empty_draft
from .models import Identity


def format_summary(coordinator: ReconciliationCoordinator, symbol: str) -> str:
    """Plain-text summary of a draft and its totals."""
    draft = coordinator.draft
    totals = coordinator.totals
    lines = []

    customer = draft.customer
    lines.append(f"\nCUSTOMER: {customer.name or '(none)'}")
    lines.append(f"  Phone:   {customer.phone or '-'}")
    lines.append(f"  Email:   {customer.email or '-'}")
    lines.append(f"  Address: {customer.address or '-'}")

    lines.append("\n" + "=" * 70)
    lines.append(f"{'ITEM':<25} {'BRAND':<12} {'QTY':>6} {'PRICE':>10} {'DISC%':>6} {'SUBTOTAL':>10}")
    lines.append("-" * 70)
    for item, subtotal in zip(draft.line_items, coordinator.line_subtotals()):
        lines.append(
            f"{item.name[:25]:<25} {item.brand[:12]:<12} {str(item.quantity):>6} "
            f"{str(item.price):>10} {str(item.discount_percent):>6} {format_currency(subtotal, symbol):>10}"
        )

    lines.append("=" * 70)
    lines.append(f"  Subtotal:       {format_currency(totals.subtotal, symbol)}")
    lines.append(f"  GST ({draft.tax_percent}%):     {format_currency(totals.tax_amount, symbol)}")
    lines.append(f"  Total:          {format_currency(totals.total, symbol)}")
    lines.append("=" * 70)

    return "\n".join(lines)


def main():
    parser = argparse.ArgumentParser(
        prog="backfill",
        description="Invoice Backfill - enrich, total and save a legacy invoice",
    )

    parser.add_argument(
        "--store",
        required=True,
        metavar="FILE",
        help="Record store JSON file (customers, inventory, finalized invoices)",
    )

    parser.add_argument(
        "--retailer",
        help="Retailer id that scopes reads and writes",
    )

    source = parser.add_mutually_exclusive_group(required=True)
    source.add_argument(
        "--draft",
        metavar="FILE",
        help="Extraction result or draft JSON file",
    )
    source.add_argument(
        "--manual",
        action="store_true",
        help="Start from an empty manual-entry template",
    )
    source.add_argument(
        "--link-customers",
        action="store_true",
        help="Create/link customer records for saved invoices and exit",
    )

    parser.add_argument(
        "--tax",
        metavar="PERCENT",
        help="GST percent to apply",
    )

    parser.add_argument(
        "--enrich",
        action=argparse.BooleanOptionalAction,
        default=True,
        help="Match against existing customers and inventory (default: on; --no-enrich skips it)",
    )

    parser.add_argument(
        "--save",
        action="store_true",
        help="Persist the invoice after computing totals",
    )

    parser.add_argument(
        "--config",
        default=None,
        metavar="FILE",
        help="Backfill config file (default: module's backfill_config.json)",
    )

    parser.add_argument(
        "--quiet",
        "-q",
        action="store_true",
        help="Suppress the summary (only print the saved invoice id)",
    )

    args = parser.parse_args()

    logging.basicConfig(level=logging.WARNING if args.quiet else logging.INFO)

    config_path = Path(args.config) if args.config else DEFAULT_CONFIG_PATH
    if not config_path.exists():
        print(f"Error: Config file not found: {config_path}", file=sys.stderr)
        sys.exit(1)

    store_path = Path(args.store)
    if not store_path.exists():
        print(f"Error: Record store file not found: {store_path}", file=sys.stderr)
        sys.exit(1)

    try:
        config = load_config(config_path)
        store = JsonFileRecordStore(store_path)
        identity = Identity(args.retailer) if args.retailer else None

        if args.link_customers:
            summary = link_customers(store, identity, config)
            print(f"Created: {summary.created}  Linked: {summary.linked}  "
                  f"Skipped: {summary.skipped}  Failed: {summary.failed}")
            return

        if args.manual:
            draft = empty_draft(config)
        else:
            draft_path = Path(args.draft)
            if not draft_path.exists():
                print(f"Error: Draft file not found: {draft_path}", file=sys.stderr)
                sys.exit(1)
            with open(draft_path, "r", encoding="utf-8") as f:
                draft = draft_from_extraction(json.load(f), config)

        coordinator = ReconciliationCoordinator(draft, store, identity=identity, config=config)

        if args.enrich:
            report = coordinator.enrich()
            if report.failed_sources and not args.quiet:
                print(f"Warning: could not read {', '.join(report.failed_sources)}", file=sys.stderr)

        if args.tax is not None:
            coordinator.set_tax_percent(args.tax)
        else:
            coordinator.recompute()

        if not args.quiet:
            print(format_summary(coordinator, config.currency_symbol))

        if args.save:
            finalized = coordinator.save()
            print(f"\nSaved invoice: {finalized.invoice_id}")

    except BackfillError as e:
        print(f"Error: {e}", file=sys.stderr)
        sys.exit(1)
    except (FileNotFoundError, ValueError) as e:
        print(f"Error: {e}", file=sys.stderr)
        sys.exit(1)


if __name__ == "__main__":
    main()
