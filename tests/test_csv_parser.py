import textwrap

import finance_ingest.parsers.csv_parser as csv_parser_mod
from finance_ingest.parsers.csv_parser import parse_csv


def _dedent(s: str) -> str:
    return textwrap.dedent(s).lstrip("\n").rstrip()


def test_parse_chase_export():
    content = _dedent(
        """
        Transaction Date,Description,Amount
        01/15/2024,STARBUCKS STORE #1234,-5.50
        01/16/2024,AMAZON.COM,-49.99
        01/17/2024,PAYROLL DEPOSIT,"$1,500.00"
        """
    )

    result = parse_csv(content, "chase_activity.csv")

    assert result.detected_format == "chase"
    assert result.total_rows == 4
    assert result.success_count == 3
    assert result.error_count == 0

    first = result.transactions[0]
    assert first.date == "2024-01-15"
    assert first.amount_cents == 550
    assert first.transaction_type == "debit"
    assert first.merchant == "STARBUCKS STORE"
    assert first.description == "STARBUCKS STORE #1234"

    payroll = result.transactions[2]
    assert payroll.amount_cents == 150000
    assert payroll.transaction_type == "credit"


def test_parenthesized_amounts_are_debits():
    content = _dedent(
        """
        Date,Description,Amount
        2024-02-01,RENT,(1200.00)
        """
    )

    (tx,) = parse_csv(content).transactions
    assert tx.amount_cents == 120000
    assert tx.transaction_type == "debit"


def test_missing_columns_are_reported_once_each():
    result = parse_csv("Column1,Column2\nValue1,Value2")

    assert result.transactions == []
    assert result.total_rows == 2
    assert result.detected_format == "generic"
    assert [(e.row, e.column) for e in result.errors] == [
        (1, "date"),
        (1, "amount"),
        (1, "description"),
    ]
    assert result.errors[0].message.startswith("Date column not found. Expected one of: Date,")
    assert result.error_count == 3


def test_missing_amount_column_only():
    result = parse_csv("Date,Description\n01/15/2024,Coffee")

    assert result.success_count == 0
    (err,) = result.errors
    assert err.column == "amount"
    assert err.message == "Amount column not found. Expected one of: Amount, Transaction Amount"


def test_bad_rows_do_not_stop_good_ones():
    content = _dedent(
        """
        Date,Description,Amount
        01/15/2024,Test,Invalid Amount
        01/16/2024,Valid,50.00
        Invalid Date,Other,10.00
        """
    )

    result = parse_csv(content)

    assert result.success_count == 1
    assert result.error_count == 2
    amount_err, date_err = result.errors
    assert amount_err.row == 2
    assert amount_err.column == "Amount"
    assert amount_err.original_row == {
        "Date": "01/15/2024",
        "Description": "Test",
        "Amount": "Invalid Amount",
    }
    assert date_err.row == 4
    assert date_err.column == "Date"
    assert "date" in date_err.message.lower()
    assert result.success_count + result.error_count == result.total_rows - 1


def test_required_values():
    content = _dedent(
        """
        Date,Description,Amount
        01/15/2024,No amount,
        ,No date,1.00
        """
    )

    result = parse_csv(content)

    assert [(e.row, e.message) for e in result.errors] == [
        (2, "Amount is required"),
        (3, "Date is required"),
    ]


def test_empty_files():
    for content in ("", "   \n  \n", b""):
        result = parse_csv(content)
        assert result.transactions == []
        assert [(e.row, e.message) for e in result.errors] == [(0, "CSV file is empty")]


def test_header_only_file_has_no_rows_and_no_errors():
    result = parse_csv("Transaction Date,Description,Amount\n")

    assert result.detected_format == "chase"
    assert result.transactions == []
    assert result.errors == []
    assert result.total_rows == 1


def test_blank_lines_are_skipped_and_not_numbered():
    content = "Date,Description,Amount\n\n01/15/2024,A,1.00\n\nbad,B,2.00\n"

    result = parse_csv(content)

    assert result.total_rows == 3
    assert result.success_count == 1
    assert result.errors[0].row == 3


def test_bytes_with_bom_and_quoted_fields():
    content = (
        b"\xef\xbb\xbfDate,Description,Amount\r\n"
        b'01/15/2024,"ACME, INC","$1,234.56"\r\n'
    )

    result = parse_csv(content)

    (tx,) = result.transactions
    assert tx.description == "ACME, INC"
    assert tx.amount_cents == 123456
    assert result.errors == []


def test_undecodable_bytes():
    result = parse_csv(b"Date,Description,Amount\n01/15/2024,Caf\xe9,1.00\n")

    assert result.transactions == []
    assert result.errors[0].row == 0
    assert "UTF-8" in result.errors[0].message


def test_type_column_overrides_sign_when_present():
    content = _dedent(
        """
        Date,Description,Amount,Type
        01/15/2024,Refund,5.00,Debit
        01/16/2024,Paycheck,-5.00,Credit
        01/17/2024,ATM,20.00,Withdrawal
        01/18/2024,Fee,-3.00,
        """
    )

    result = parse_csv(content)

    assert [t.transaction_type for t in result.transactions] == [
        "debit",
        "credit",
        "debit",
        "debit",
    ]


def test_missing_description_value():
    (tx,) = parse_csv("Date,Description,Amount\n01/15/2024,,5.00").transactions
    assert tx.merchant == "Unknown"
    assert tx.description is None


def test_unexpected_row_failure_is_captured(monkeypatch):
    def _boom(_description):
        raise RuntimeError("merchant extraction exploded")

    monkeypatch.setattr(csv_parser_mod, "extract_merchant", _boom)

    result = parse_csv("Date,Description,Amount\n01/15/2024,X,1.00")

    assert result.success_count == 0
    (err,) = result.errors
    assert err.row == 2
    assert err.column is None
    assert err.message == "merchant extraction exploded"


def test_payload_uses_camel_case_keys():
    payload = parse_csv("Date,Description,Amount\n01/15/2024,Coffee,1.00").to_payload()

    assert set(payload) == {
        "transactions",
        "errors",
        "totalRows",
        "successCount",
        "errorCount",
        "detectedFormat",
    }
    assert payload["transactions"][0]["amount_cents"] == 100
