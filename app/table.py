# app/table.py
from html import escape
from typing import List, Sequence

from pydantic import BaseModel

from .db import amount_label
from .llm import to_number
from .schemas import BudgetRow

CAPTION = "Municipal budget allocation by category"


class TableLine(BaseModel):
    category: str
    amount: str
    percentage: str


class BudgetTable(BaseModel):
    title: str
    caption: str = CAPTION
    lines: List[TableLine]


def format_currency(amount: float) -> str:
    """USD with en-US grouping and at most two decimals: 1234 -> $1,234."""
    digits = f"{abs(amount):,.2f}".rstrip("0").rstrip(".")
    if digits == "0":
        return "$0"
    return f"-${digits}" if amount < 0 else f"${digits}"


def category_label(value) -> str:
    if value is None:
        return ""
    if isinstance(value, (int, float)):
        return amount_label(value)
    return str(value)


def build_table(rows: Sequence[BudgetRow], department: str) -> BudgetTable:
    """One line per row with its share of the department's total spend."""
    total_used = sum(to_number(row.used_amt) for row in rows)

    lines = []
    for row in rows:
        used = to_number(row.used_amt)
        percentage = f"{used / total_used * 100:.1f}" if total_used > 0 else "0"
        lines.append(TableLine(
            category=category_label(row.account_budget_a),
            amount=format_currency(used),
            percentage=f"{percentage}%",
        ))

    return BudgetTable(title=f"Budget Data - {department}", lines=lines)


def render_html(table: BudgetTable) -> str:
    body = "\n".join(
        "    <tr>"
        f"<td class=\"font-medium\">{escape(line.category)}</td>"
        f"<td class=\"text-right\">{escape(line.amount)}</td>"
        f"<td class=\"text-right\">{escape(line.percentage)}</td>"
        "</tr>"
        for line in table.lines
    )
    return f"""<section class="budget-table">
  <h2>{escape(table.title)}</h2>
  <table>
    <caption>{escape(table.caption)}</caption>
    <thead>
    <tr><th>Category</th><th class="text-right">Amount</th><th class="text-right">Percentage</th></tr>
    </thead>
    <tbody>
{body}
    </tbody>
  </table>
</section>
"""
