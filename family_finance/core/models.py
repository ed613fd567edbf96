"""Pydantic models for the Family Finance Ledger.

This module defines the shared vocabulary of the application: transactions and
the candidate records produced by statement parsers, monthly budget items,
savings goals, and the read-only views computed by the aggregation engine.
"""

import datetime as dt
from enum import StrEnum

from pydantic import BaseModel, Field

from family_finance.core.utils import generate_id, utcnow_iso

SEED_CATEGORIES = [
    "Habitação",
    "Supermercado",
    "Restaurantes",
    "Transporte",
    "Saúde",
    "Lazer",
    "Educação",
    "Serviços (Água/Luz/Net)",
    "Investimentos",
    "Salário",
    "Outros",
]

FALLBACK_CATEGORY = "Outros"


class TransactionType(StrEnum):
    """Direction of a money movement. Amounts are always magnitudes."""

    INCOME = "Receita"
    EXPENSE = "Despesa"
    SAVINGS = "Poupança"
    INVESTMENT = "Investimento"


class FamilyMember(StrEnum):
    """Household participant a transaction belongs to."""

    ME = "Eu"
    PARTNER = "Esposa"
    JOINT = "Conjunto"


class GoalCategory(StrEnum):
    """Kind of savings goal."""

    EMERGENCY = "emergency"
    VACATION = "vacation"
    HOUSE = "house"
    EDUCATION = "education"
    RETIREMENT = "retirement"
    OTHER = "other"


class GoalPriority(StrEnum):
    """Priority of a savings goal."""

    HIGH = "high"
    MEDIUM = "medium"
    LOW = "low"


class CandidateTransaction(BaseModel):
    """A parser-produced transaction, not yet assigned an id or owning member."""

    date: dt.date
    description: str
    amount: float = Field(ge=0)
    type: TransactionType
    category: str = FALLBACK_CATEGORY


class Transaction(CandidateTransaction):
    """A single financial movement owned by a household member."""

    id: str = Field(default_factory=generate_id)
    member: FamilyMember = FamilyMember.JOINT


class ReceiptExtraction(BaseModel):
    """Fields read from a photographed receipt or invoice."""

    description: str
    amount: float = Field(ge=0)
    date: dt.date | None = None
    category: str = FALLBACK_CATEGORY
    type: TransactionType = TransactionType.EXPENSE


class BudgetItem(BaseModel):
    """A planned entry for one calendar month."""

    id: str = Field(default_factory=generate_id)
    month: str = Field(pattern=r"^\d{4}-\d{2}$")
    description: str
    amount: float = Field(ge=0)
    type: TransactionType
    category: str = FALLBACK_CATEGORY
    is_recurring: bool = False


class BudgetItemDraft(BaseModel):
    """Budget item as entered by the user, before monthly expansion."""

    month: str = Field(pattern=r"^\d{4}-\d{2}$")
    description: str
    amount: float = Field(ge=0)
    type: TransactionType = TransactionType.EXPENSE
    category: str = FALLBACK_CATEGORY
    is_recurring: bool = False
    repeat: int = Field(default=12, ge=1, le=120)


class Goal(BaseModel):
    """A savings target."""

    id: str = Field(default_factory=generate_id)
    name: str
    target_amount: float = Field(gt=0)
    current_amount: float = Field(default=0, ge=0)
    deadline: dt.date
    category: GoalCategory = GoalCategory.OTHER
    priority: GoalPriority = GoalPriority.MEDIUM
    created_at: str = Field(default_factory=utcnow_iso)


class MonthlyTotals(BaseModel):
    """Per-type sums for a month (or all time) and the derived balance."""

    month: str | None = None
    income: float = 0.0
    expense: float = 0.0
    savings: float = 0.0
    investment: float = 0.0
    balance: float = 0.0
    savings_rate: float = 0.0


class CategoryTotal(BaseModel):
    """Expense sum for one category, for chart consumption."""

    name: str
    value: float


class Subscription(BaseModel):
    """A group of expenses flagged as a likely recurring charge."""

    name: str
    count: int
    amount: float
    last_date: dt.date
    annual_cost: float


class Forecast(BaseModel):
    """Projected month-end position."""

    month: str
    avg_daily_spend: float
    projected_expense: float
    projected_balance: float
    status: str
    extrapolated: bool


class TrendPoint(BaseModel):
    """Signed movement used by the recent-activity chart."""

    date: dt.date
    description: str
    amount: float


class CategoryComparison(BaseModel):
    """Planned versus actual expense for one category in a month."""

    category: str
    planned: float
    actual: float
    remaining: float


class BudgetReport(BaseModel):
    """Budget-vs-actual view for one month."""

    month: str
    planned: MonthlyTotals
    actual: MonthlyTotals
    categories: list[CategoryComparison]


class GoalProgress(BaseModel):
    """Derived progress figures for one goal."""

    goal: Goal
    percent_complete: float
    months_remaining: int
    suggested_monthly_saving: float


class GoalsInsight(BaseModel):
    """Overall health message for the household's goals."""

    kind: str
    message: str
    recommended_monthly: float
    savings_capacity: float


class ChatTurn(BaseModel):
    """One message in the advisor conversation."""

    role: str = Field(pattern=r"^(user|model)$")
    text: str


class AdvisorRequest(BaseModel):
    """Advisor chat request: prior history plus the new user message."""

    history: list[ChatTurn] = Field(default_factory=list)
    message: str
