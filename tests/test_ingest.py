import pytest

from app.errors import ValidationError
from app.ingest import normalize_csv, parse_amount

HEADER = "account,glcode,budget_a,used_amt,remaining_amt"


def test_quoted_currency_row_normalizes():
    result = normalize_csv(f'{HEADER}\nParks,100,"$1,000",500,500\n')

    assert len(result.rows) == 1
    assert result.rows[0].model_dump() == {
        "account": "Parks",
        "glcode": "100",
        "account_budget_a": 1000,
        "used_amt": 500,
        "remaining_amt": 500,
    }
    assert result.warning_count == 0


def test_headers_are_case_insensitive_and_order_free():
    content = " Used_Amt ,GLCODE,Account,remaining_amt,BUDGET_A\n250,300,Fire,50,300\n"
    row = normalize_csv(content).rows[0]

    assert row.account == "Fire"
    assert row.glcode == "300"
    assert row.used_amt == 250
    assert row.account_budget_a == 300
    assert row.remaining_amt == 50


def test_byte_order_mark_and_crlf_are_tolerated():
    content = f"\ufeff{HEADER}\r\nParks,100,10,5,5\r\n"
    assert len(normalize_csv(content).rows) == 1


def test_missing_glcode_lists_exactly_that_column():
    with pytest.raises(ValidationError) as exc:
        normalize_csv("account,budget_a,used_amt,remaining_amt\nParks,1,1,0\n")

    assert exc.value.missing_columns == ["glcode"]
    assert exc.value.message == "Missing required columns: glcode"
    assert exc.value.status_code == 400


def test_output_counts_only_well_formed_rows_with_keys():
    content = "\n".join([
        HEADER,
        "Parks,100,10,5,5",
        "Parks,101,$1,000,5,5",      # unquoted thousands separator -> 6 fields
        "Parks,102,10,5",            # too few fields
        ",103,10,5,5",               # no account
        "Parks,,10,5,5",             # no glcode
        "",
        "Police,200,20,10,10",
    ])
    result = normalize_csv(content)

    assert [row.glcode for row in result.rows] == ["100", "200"]
    assert result.skipped_rows == 2
    assert result.rejected_rows == 2
    assert result.warning_count == 4


def test_unparseable_amounts_default_to_zero_and_are_counted():
    result = normalize_csv(f"{HEADER}\nParks,100,abc,,NaN\n")
    row = result.rows[0]

    assert (row.account_budget_a, row.used_amt, row.remaining_amt) == (0, 0, 0)
    assert result.defaulted_values == 2


def test_extra_columns_are_ignored():
    result = normalize_csv("ward,account,glcode,budget_a,used_amt,remaining_amt,notes\n"
                           "3,Parks,100,10,5,5,seasonal\n")
    assert result.rows[0].model_dump() == {
        "account": "Parks", "glcode": "100",
        "account_budget_a": 10, "used_amt": 5, "remaining_amt": 5,
    }


def test_no_valid_rows_is_rejected():
    with pytest.raises(ValidationError, match="No valid rows found in CSV"):
        normalize_csv(f"{HEADER}\n,,1,2,3\n")


def test_empty_file_reports_all_columns_missing():
    with pytest.raises(ValidationError) as exc:
        normalize_csv("")
    assert exc.value.missing_columns == ["account", "glcode", "budget_a", "used_amt", "remaining_amt"]


@pytest.mark.parametrize("raw, plain", [
    ("$1,000", "1000"),
    ("$12,345.67", "12345.67"),
    ("-$250", "-250"),
    ("1,000,000", "1000000"),
])
def test_currency_symbols_and_separators_do_not_change_value(raw, plain):
    assert parse_amount(raw) == parse_amount(plain) == (float(plain), True)


def test_stray_quote_costs_only_its_own_line():
    content = f'{HEADER}\n"Parks,100,1,1,1\nPolice,200,2,2,2\nFire,300,3,3,3\n'
    result = normalize_csv(content)

    assert [row.account for row in result.rows] == ["Police", "Fire"]
    assert result.skipped_rows == 1


def test_quoted_newline_does_not_join_lines():
    content = f'{HEADER}\nParks,"100\n",1,1,1\nPolice,200,2,2,2\n'
    result = normalize_csv(content)

    assert [row.account for row in result.rows] == ["Police"]
    assert result.skipped_rows == 2


def test_oversized_field_is_skipped_not_fatal():
    content = f"{HEADER}\nParks,100,1,1,{'9' * 200_000}\nPolice,200,2,2,2\n"
    result = normalize_csv(content)

    assert [row.account for row in result.rows] == ["Police"]
    assert result.skipped_rows == 1


def test_oversized_header_is_a_validation_error():
    with pytest.raises(ValidationError, match="Unreadable CSV header"):
        normalize_csv(f"{'x' * 200_000},{HEADER}\nParks,100,1,1,1\n")
