# app/db.py
import logging
from typing import Iterable, List

from sqlalchemy import Column, Float, Integer, MetaData, String, Table, create_engine, text
from sqlalchemy.engine import Engine
from sqlalchemy.exc import SQLAlchemyError

from .errors import StorageError
from .schemas import BudgetRow, DepartmentSummary, ImportedRow

logger = logging.getLogger(__name__)

metadata = MetaData()

# Mirrors the hosted public.municipal_budget table
municipal_budget = Table(
    "municipal_budget",
    metadata,
    Column("id", Integer, primary_key=True, autoincrement=True),
    Column("account", String, nullable=False),
    Column("glcode", String, nullable=False),
    Column("account_budget_a", String),
    Column("budget_a", Float),
    Column("used_amt", Float),
    Column("remaining_amt", Float),
)


def create_db_engine(database_url: str) -> Engine:
    return create_engine(database_url, pool_pre_ping=True)


def amount_label(amount: float) -> str:
    """Render an amount for the text account_budget_a column (1000.0 -> "1000")."""
    return f"{amount:.2f}".rstrip("0").rstrip(".")


class BudgetStore:
    """Read/write access to municipal_budget. Holds no rows of its own."""

    def __init__(self, engine: Engine):
        self.engine = engine

    def create_schema(self):
        metadata.create_all(self.engine)

    def insert_rows(self, rows: Iterable[ImportedRow]) -> int:
        """
        Insert all rows in a single transaction.

        The allocated figure goes to budget_a as a number and to
        account_budget_a as its text label.
        """
        params = [
            {
                "account": row.account,
                "glcode": row.glcode,
                "account_budget_a": amount_label(row.account_budget_a),
                "budget_a": row.account_budget_a,
                "used_amt": row.used_amt,
                "remaining_amt": row.remaining_amt,
            }
            for row in rows
        ]
        if not params:
            return 0

        try:
            with self.engine.begin() as conn:
                conn.execute(text("""
                    INSERT INTO municipal_budget
                        (account, glcode, account_budget_a, budget_a, used_amt, remaining_amt)
                    VALUES
                        (:account, :glcode, :account_budget_a, :budget_a, :used_amt, :remaining_amt)
                """), params)
        except SQLAlchemyError as e:
            logger.error(f"Error inserting data: {e}")
            raise StorageError("Failed to insert budget data")

        return len(params)

    def fetch_department(self, department: str) -> List[BudgetRow]:
        """All line items for one department, biggest spend first."""
        try:
            with self.engine.begin() as conn:
                results = conn.execute(text("""
                    SELECT id, account, glcode, account_budget_a, budget_a, used_amt, remaining_amt
                    FROM municipal_budget
                    WHERE account = :department
                    ORDER BY used_amt DESC
                """), {"department": department}).mappings().all()
        except SQLAlchemyError as e:
            logger.error(f"Error fetching budget data: {e}")
            raise StorageError("Failed to fetch budget data")

        return [BudgetRow(**dict(row)) for row in results]

    def list_departments(self) -> List[str]:
        try:
            with self.engine.begin() as conn:
                results = conn.execute(text("""
                    SELECT DISTINCT account
                    FROM municipal_budget
                    WHERE account IS NOT NULL
                    ORDER BY account
                """)).mappings().all()
        except SQLAlchemyError as e:
            logger.error(f"Error fetching departments: {e}")
            raise StorageError("Failed to fetch departments")

        return [row["account"] for row in results]

    def department_summary(self) -> List[DepartmentSummary]:
        try:
            with self.engine.begin() as conn:
                results = conn.execute(text("""
                    SELECT
                        account,
                        COUNT(*) AS row_count,
                        COALESCE(SUM(budget_a), 0) AS total_allocated,
                        COALESCE(SUM(used_amt), 0) AS total_used,
                        COALESCE(SUM(remaining_amt), 0) AS total_remaining
                    FROM municipal_budget
                    GROUP BY account
                    ORDER BY account
                """)).mappings().all()
        except SQLAlchemyError as e:
            logger.error(f"Error summarizing budget data: {e}")
            raise StorageError("Failed to summarize budget data")

        return [DepartmentSummary(**dict(row)) for row in results]
