from decimal import Decimal

import pandas as pd
import pytest

from brokerdesk.cli import main
from brokerdesk.core.deals import DealRecord, build_split_table, normalize_columns, parse_deals, split_record

DEALS_CSV = """Reference,Type,Gross Amount,Commission Amount,Collaborating Agent,Currency
A1,SALE,250000,,,EUR
B1,sale,250000,7500,Besa Kola,EUR
C1,RENT,500,,,ALL
D1,LEASE,100,,,EUR
E1,SALE,-5,,,EUR
"""


def test_cli_writes_split_workbook(tmp_path, capsys):
    source = tmp_path / "deals.csv"
    source.write_text(DEALS_CSV)
    out_dir = tmp_path / "out"

    main(["--input", str(source), "--out", str(out_dir)])

    output = capsys.readouterr().out
    assert "Split 3 deals, skipped 2." in output
    assert "EUR: 2 deals, commission €15,000.00, office €9,375.00, agents €5,625.00" in output
    assert "ALL: 1 deals, commission L250.00, office L187.50, agents L62.50" in output

    sheets = pd.read_excel(out_dir / "commission_splits.xlsx", sheet_name=None)
    splits = sheets["Commission_Splits"]
    assert list(splits["Reference"]) == ["A1", "B1", "C1"]
    assert list(splits["Office Share"]) == [5625, 3750, 187.5]
    assert list(splits["Collaborating Agent Share"]) == [0, 1875, 0]

    issues = sheets["Validation"]
    assert set(issues["Reference"]) == {"D1", "E1"}
    assert (out_dir / "commission_splits.csv").exists()
    assert (out_dir / "commission_splits_validation.csv").exists()


def test_cli_custom_rates_apply_to_rows_without_commission(tmp_path, capsys):
    source = tmp_path / "deals.csv"
    source.write_text("reference,type,gross_amount\nA1,SALE,100000\n")

    main(["--input", str(source), "--out", str(tmp_path), "--sale-rate", "0.04", "--preview"])

    output = capsys.readouterr().out
    assert "A1" in output
    assert "commission €4,000.00, office €3,000.00, agents €1,000.00" in output


def test_cli_rejects_missing_columns(tmp_path):
    source = tmp_path / "deals.csv"
    source.write_text("reference,amount\nA1,10\n")

    with pytest.raises(SystemExit, match="gross_amount"):
        main(["--input", str(source), "--out", str(tmp_path)])


def test_cli_rejects_out_of_range_rate(tmp_path):
    source = tmp_path / "deals.csv"
    source.write_text("reference,type,gross_amount\nA1,SALE,100000\n")

    with pytest.raises(SystemExit):
        main(["--input", str(source), "--sale-rate", "1.5"])


def test_parse_deals_flags_invalid_rows():
    df = normalize_columns(
        pd.DataFrame(
            {
                "Reference": ["", "X2"],
                "Type": ["RENT", "SALE"],
                "Gross Amount": ["1,200", "abc"],
                "Currency": ["usd", None],
            }
        )
    )

    first, second = parse_deals(df)

    assert first.gross_amount == Decimal("1200")
    assert [m.level for m in first.validation_messages] == ["warning", "error"]
    assert second.currency == "EUR"
    assert second.has_errors


def test_split_table_totals_by_currency():
    records = [
        DealRecord(2, "A", "SALE", Decimal("250000"), None, "", "EUR"),
        DealRecord(3, "B", "RENT", Decimal("500"), None, "Besa", "ALL"),
    ]

    table, totals = build_split_table(records)

    assert len(table) == 2
    assert totals["EUR"]["office"] == Decimal("5625.00")
    assert totals["ALL"]["agents"] == Decimal("125.00")


def test_sub_cent_amounts_are_rounded_before_splitting():
    explicit = DealRecord(2, "A", "SALE", Decimal("250000"), Decimal("100.005"), "", "EUR")
    derived = DealRecord(3, "B", "RENT", Decimal("100.005"), None, "", "EUR")

    first = split_record(explicit)
    second = split_record(derived)

    assert first.commission_amount == Decimal("100.01")
    assert first.primary_agent_share == Decimal("25.00")
    assert first.office_share == Decimal("75.01")
    assert second.commission_amount == Decimal("50.01")
