"""Spreadsheet deal loading and split tables shared by the CLI and exports."""
from __future__ import annotations

from dataclasses import dataclass, field
from decimal import Decimal, InvalidOperation
from pathlib import Path
from typing import Iterable, List, Mapping, Optional, Tuple

import pandas as pd

from brokerdesk.core.commission import (
    DEFAULT_COMMISSION_RATES,
    TRANSACTION_TYPES,
    CommissionError,
    CommissionSplit,
    calculate_split,
    commission_rate_for,
    compute_commission_amount,
    round_money,
)
from brokerdesk.core.currency import CURRENCY_ENUM

CANONICAL_COLUMNS = {
    "reference": "reference",
    "type": "type",
    "gross amount": "gross_amount",
    "commission amount": "commission_amount",
    "collaborating agent": "collaborating_agent",
    "currency": "currency",
}

REQUIRED_COLUMNS = ("reference", "type", "gross_amount")

SPLIT_COLUMNS = [
    "Row",
    "Reference",
    "Type",
    "Currency",
    "Gross Amount",
    "Commission Amount",
    "Collaborating Agent",
    "Office Share",
    "Primary Agent Share",
    "Collaborating Agent Share",
]


@dataclass
class ValidationMessage:
    """Represents a validation outcome captured while parsing a row."""

    level: str
    text: str


@dataclass
class DealRecord:
    """Normalized representation of one deal row."""

    row_number: int
    reference: str
    transaction_type: str
    gross_amount: Optional[Decimal]
    commission_amount: Optional[Decimal]
    collaborating_agent: str
    currency: str
    validation_messages: List[ValidationMessage] = field(default_factory=list)

    @property
    def has_errors(self) -> bool:
        return any(message.level == "error" for message in self.validation_messages)

    @property
    def has_collaborating_agent(self) -> bool:
        return bool(self.collaborating_agent)

    def add_message(self, level: str, text: str) -> None:
        self.validation_messages.append(ValidationMessage(level=level, text=text))


def load_deals(input_path: Path) -> pd.DataFrame:
    """Load deal rows from CSV or Excel into a DataFrame."""

    if not input_path.exists():
        raise FileNotFoundError(f"Input file not found: {input_path}")

    ext = input_path.suffix.lower()
    if ext == ".csv":
        df = pd.read_csv(input_path)
    elif ext in {".xls", ".xlsx"}:
        df = pd.read_excel(input_path)
    else:
        raise ValueError("Unsupported input file type. Provide .csv or .xlsx")

    return normalize_columns(df)


def normalize_columns(df: pd.DataFrame) -> pd.DataFrame:
    """Normalize column names to canonical snake_case identifiers."""

    rename_map = {}
    for column in df.columns:
        key = str(column).strip().lower().replace("_", " ")
        if key in CANONICAL_COLUMNS:
            rename_map[column] = CANONICAL_COLUMNS[key]
    df = df.rename(columns=rename_map)

    missing = [name for name in REQUIRED_COLUMNS if name not in df.columns]
    if missing:
        raise ValueError(f"Input missing required columns: {', '.join(missing)}")

    return df


def parse_decimal(value) -> Optional[Decimal]:
    """Attempt to coerce a cell into a Decimal, keeping the sign for validation."""

    if value is None or (not isinstance(value, str) and pd.isna(value)):
        return None
    text = str(value).strip().replace(",", "")
    if not text:
        return None
    try:
        parsed = Decimal(text)
    except InvalidOperation:
        return None
    return parsed if parsed.is_finite() else None


def _text(value) -> str:
    if value is None or (not isinstance(value, str) and pd.isna(value)):
        return ""
    return str(value).strip()


def parse_deals(df: pd.DataFrame) -> List[DealRecord]:
    """Convert the source DataFrame into DealRecord objects with validation."""

    records: List[DealRecord] = []
    for idx, row in df.iterrows():
        record = DealRecord(
            row_number=int(idx) + 2,  # header is row 1
            reference=_text(row.get("reference")),
            transaction_type=_text(row.get("type")).upper(),
            gross_amount=parse_decimal(row.get("gross_amount")),
            commission_amount=parse_decimal(row.get("commission_amount")),
            collaborating_agent=_text(row.get("collaborating_agent")),
            currency=(_text(row.get("currency")) or "EUR").upper(),
        )
        for message in validate_row(record):
            record.add_message(message.level, message.text)
        records.append(record)
    return records


def validate_row(record: DealRecord) -> List[ValidationMessage]:
    messages: List[ValidationMessage] = []

    if not record.reference:
        messages.append(ValidationMessage("warning", "Reference is blank."))

    if record.transaction_type not in TRANSACTION_TYPES:
        messages.append(
            ValidationMessage("error", f"Type '{record.transaction_type}' is invalid. Expected SALE or RENT.")
        )

    if record.gross_amount is None:
        messages.append(ValidationMessage("error", "Gross Amount is missing or invalid."))
    elif record.gross_amount <= 0:
        messages.append(ValidationMessage("error", "Gross Amount must be positive."))

    if record.commission_amount is not None and record.commission_amount < 0:
        messages.append(ValidationMessage("error", "Commission Amount cannot be negative."))

    if record.currency not in CURRENCY_ENUM:
        messages.append(ValidationMessage("error", f"Currency '{record.currency}' is not supported."))

    return messages


def split_record(
    record: DealRecord,
    rates: Optional[Mapping[str, Decimal]] = None,
) -> CommissionSplit:
    """Compute the split for a validated record."""

    # Amounts are rounded to the cent the same way the API stores them.
    if record.commission_amount is not None:
        amount = round_money(record.commission_amount, field_name="Commission amount")
    else:
        rate = commission_rate_for(record.transaction_type, rates or DEFAULT_COMMISSION_RATES)
        amount = compute_commission_amount(round_money(record.gross_amount, field_name="Gross amount"), rate)
    return calculate_split(amount, record.has_collaborating_agent)


def build_split_table(
    records: Iterable[DealRecord],
    rates: Optional[Mapping[str, Decimal]] = None,
) -> Tuple[pd.DataFrame, dict]:
    """Return one row per splittable deal plus totals per currency."""

    rows = []
    totals: dict = {}
    for record in records:
        if record.has_errors:
            continue
        try:
            split = split_record(record, rates)
        except CommissionError as exc:
            record.add_message("error", str(exc))
            continue
        rows.append(
            {
                "Row": record.row_number,
                "Reference": record.reference,
                "Type": record.transaction_type,
                "Currency": record.currency,
                "Gross Amount": float(record.gross_amount),
                "Commission Amount": float(split.commission_amount),
                "Collaborating Agent": record.collaborating_agent,
                "Office Share": float(split.office_share),
                "Primary Agent Share": float(split.primary_agent_share),
                "Collaborating Agent Share": float(split.collaborating_agent_share),
            }
        )
        bucket = totals.setdefault(
            record.currency,
            {"deals": 0, "commission": Decimal("0"), "office": Decimal("0"), "agents": Decimal("0")},
        )
        bucket["deals"] += 1
        bucket["commission"] += split.commission_amount
        bucket["office"] += split.office_share
        bucket["agents"] += split.primary_agent_share + split.collaborating_agent_share

    return pd.DataFrame(rows, columns=SPLIT_COLUMNS), totals


def build_validation_report(records: Iterable[DealRecord]) -> pd.DataFrame:
    rows = [
        {
            "Row": record.row_number,
            "Reference": record.reference,
            "Severity": message.level,
            "Issue": message.text,
        }
        for record in records
        for message in record.validation_messages
    ]
    return pd.DataFrame(rows, columns=["Row", "Reference", "Severity", "Issue"])


def export_outputs(
    base_filename: str,
    split_df: pd.DataFrame,
    validation_df: pd.DataFrame,
    output_dir: Path,
) -> Path:
    """Write the Excel workbook and companion CSV extracts; return the workbook path."""

    output_dir.mkdir(parents=True, exist_ok=True)

    excel_path = output_dir / f"{base_filename}.xlsx"
    with pd.ExcelWriter(excel_path, engine="openpyxl") as writer:
        split_df.to_excel(writer, sheet_name="Commission_Splits", index=False)
        validation_df.to_excel(writer, sheet_name="Validation", index=False)

    split_df.to_csv(output_dir / f"{base_filename}.csv", index=False)
    validation_df.to_csv(output_dir / f"{base_filename}_validation.csv", index=False)
    return excel_path
