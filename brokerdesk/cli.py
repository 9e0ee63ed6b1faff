"""Commission split CLI.

Reads deals from CSV or Excel, validates them, computes the office/agent
commission split for each one, and exports the results to Excel/CSV.
"""
from __future__ import annotations

import argparse
from decimal import Decimal, InvalidOperation
from pathlib import Path
from typing import Optional, Sequence

import pandas as pd

from brokerdesk.core.commission import DEFAULT_COMMISSION_RATES
from brokerdesk.core.deals import (
    build_split_table,
    build_validation_report,
    export_outputs,
    load_deals,
    parse_deals,
)
from brokerdesk.core.formatting import format_money


def _rate(value: str) -> Decimal:
    try:
        rate = Decimal(value)
    except InvalidOperation as exc:
        raise argparse.ArgumentTypeError(f"Invalid rate: {value}") from exc
    if not rate.is_finite() or rate <= 0 or rate > 1:
        raise argparse.ArgumentTypeError("Rates must be greater than 0 and at most 1.")
    return rate


def parse_args(argv: Optional[Sequence[str]] = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="Compute commission splits for a file of deals.")
    parser.add_argument("--input", required=True, help="Path to deals CSV or Excel file.")
    parser.add_argument("--out", default="./dist", help="Output directory for generated files (default: ./dist).")
    parser.add_argument(
        "--sale-rate",
        type=_rate,
        default=DEFAULT_COMMISSION_RATES["SALE"],
        help="Commission rate applied to SALE rows without a commission amount (default: 0.03).",
    )
    parser.add_argument(
        "--rent-rate",
        type=_rate,
        default=DEFAULT_COMMISSION_RATES["RENT"],
        help="Commission rate applied to RENT rows without a commission amount (default: 0.5).",
    )
    parser.add_argument(
        "--preview",
        action="store_true",
        help="Print the split table to stdout before writing files.",
    )
    return parser.parse_args(argv)


def print_preview(split_df: pd.DataFrame) -> None:
    if split_df.empty:
        print("No deals could be split.")
        return
    print(split_df.to_string(index=False))


def main(argv: Optional[Sequence[str]] = None) -> None:
    """CLI entry point."""

    args = parse_args(argv)
    try:
        data_frame = load_deals(Path(args.input))
    except (FileNotFoundError, ValueError) as exc:
        raise SystemExit(str(exc)) from exc

    records = parse_deals(data_frame)
    rates = {"SALE": args.sale_rate, "RENT": args.rent_rate}
    split_df, totals = build_split_table(records, rates)
    validation_df = build_validation_report(records)

    if args.preview:
        print_preview(split_df)

    workbook = export_outputs("commission_splits", split_df, validation_df, Path(args.out))

    skipped = sum(1 for record in records if record.has_errors)
    for currency, bucket in sorted(totals.items()):
        print(
            f"{currency}: {bucket['deals']} deals, commission {format_money(bucket['commission'], currency)},"
            f" office {format_money(bucket['office'], currency)}, agents {format_money(bucket['agents'], currency)}"
        )
    print(f"Split {len(split_df)} deals, skipped {skipped}. Wrote {workbook}.")


if __name__ == "__main__":
    main()
