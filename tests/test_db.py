import pytest
from sqlalchemy import create_engine

from app.db import BudgetStore, amount_label
from app.errors import StorageError
from app.schemas import ImportedRow


def test_fetch_department_orders_by_used_amount(seeded_store):
    rows = seeded_store.fetch_department("Parks")

    assert [row.glcode for row in rows] == ["110", "100", "120"]
    assert all(row.account == "Parks" for row in rows)
    assert all(row.id is not None for row in rows)


def test_inserted_allocation_is_readable_as_number_and_label(seeded_store):
    row = next(r for r in seeded_store.fetch_department("Parks") if r.glcode == "100")

    assert row.budget_a == 1000
    assert row.account_budget_a == "1000"
    assert row.used_amt == 500
    assert row.remaining_amt == 500


def test_unknown_department_returns_empty_list(seeded_store):
    assert seeded_store.fetch_department("Library") == []


def test_list_departments(seeded_store):
    assert seeded_store.list_departments() == ["Parks", "Police"]


def test_department_summary(seeded_store):
    parks = seeded_store.department_summary()[0]

    assert parks.account == "Parks"
    assert parks.row_count == 3
    assert parks.total_allocated == 3300
    assert parks.total_used == 3000
    assert parks.total_remaining == 300


def test_insert_nothing_is_a_no_op(store):
    assert store.insert_rows([]) == 0
    assert store.list_departments() == []


def test_missing_table_surfaces_storage_error():
    store = BudgetStore(create_engine("sqlite://"))

    with pytest.raises(StorageError, match="Failed to fetch budget data"):
        store.fetch_department("Parks")
    with pytest.raises(StorageError, match="Failed to insert budget data"):
        store.insert_rows([ImportedRow(account="Parks", glcode="1")])


@pytest.mark.parametrize("amount, label", [(1000.0, "1000"), (12.5, "12.5"), (0, "0"), (99.999, "100")])
def test_amount_label(amount, label):
    assert amount_label(amount) == label
