# app/schemas.py
from typing import Any, Dict, List, Optional, Union

from pydantic import BaseModel, ConfigDict, Field


class ImportedRow(BaseModel):
    """One normalized CSV line, ready for the bulk insert."""

    account: str
    glcode: str
    account_budget_a: float = 0
    used_amt: float = 0
    remaining_amt: float = 0


class BudgetRow(BaseModel):
    """A line item as stored in municipal_budget."""

    model_config = ConfigDict(from_attributes=True)

    id: Optional[Union[int, str]] = None
    account: str
    glcode: str
    account_budget_a: Optional[Union[str, float]] = None
    budget_a: Optional[float] = None
    used_amt: Optional[float] = None
    remaining_amt: Optional[float] = None


# --- Requests ---

class BudgetQuery(BaseModel):
    department: Optional[str] = None
    ward: Optional[str] = None


class InsightRequest(BaseModel):
    # Rows come straight from the browser, so they stay loosely typed here
    budgetData: Optional[List[Dict[str, Any]]] = None
    department: Optional[str] = None
    instructions: Optional[str] = None


# --- Responses ---

class BudgetResponse(BaseModel):
    budgetData: List[BudgetRow]


class ImportResponse(BaseModel):
    message: str
    recordsImported: int
    skippedRows: int = 0
    warnings: int = 0


class InsightResponse(BaseModel):
    insights: str


class DepartmentsResponse(BaseModel):
    departments: List[str] = Field(default_factory=list)


class DepartmentSummary(BaseModel):
    account: str
    row_count: int
    total_allocated: float
    total_used: float
    total_remaining: float
