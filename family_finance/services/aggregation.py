"""Aggregation engine: read-only views derived from a household's transactions.

All functions are pure: they take a list of transactions (in whatever order the
caller holds them) and return pydantic view models. Month buckets are
``YYYY-MM`` strings.
"""

from collections.abc import Sequence
from datetime import date

import pandas as pd

from family_finance.core.models import (
    CategoryTotal,
    Forecast,
    MonthlyTotals,
    Subscription,
    Transaction,
    TransactionType,
    TrendPoint,
)
from family_finance.core.utils import days_in_month, month_key, parse_month

SUBSCRIPTION_KEYWORDS = (
    "netflix",
    "spotify",
    "vodafone",
    "meo",
    "nos",
    "ginásio",
    "fitness",
    "apple",
    "google",
    "edp",
    "epal",
)
MONTHS_PER_YEAR = 12
FRAME_COLUMNS = ["id", "date", "description", "amount", "type", "category", "member"]


def transactions_frame(transactions: Sequence[Transaction]) -> pd.DataFrame:
    """Build a DataFrame of transactions, keeping input order, with a ``month`` column."""
    frame = pd.DataFrame.from_records(
        [
            {
                "id": t.id,
                "date": t.date,
                "description": t.description,
                "amount": float(t.amount),
                "type": TransactionType(t.type).value,
                "category": t.category,
                "member": t.member,
            }
            for t in transactions
        ],
        columns=FRAME_COLUMNS,
    )
    frame["amount"] = frame["amount"].astype(float)
    frame["month"] = frame["date"].map(month_key).astype(object)
    return frame


def _totals(frame: pd.DataFrame, month: str | None) -> MonthlyTotals:
    sums = frame.groupby("type")["amount"].sum()
    income = float(sums.get(TransactionType.INCOME.value, 0.0))
    expense = float(sums.get(TransactionType.EXPENSE.value, 0.0))
    savings = float(sums.get(TransactionType.SAVINGS.value, 0.0))
    investment = float(sums.get(TransactionType.INVESTMENT.value, 0.0))
    return MonthlyTotals(
        month=month,
        income=income,
        expense=expense,
        savings=savings,
        investment=investment,
        balance=income - expense - savings - investment,
        savings_rate=(savings + investment) / income if income > 0 else 0.0,
    )


def monthly_totals(transactions: Sequence[Transaction], month: str) -> MonthlyTotals:
    """Sum amounts per type for one month and derive balance and savings rate."""
    parse_month(month)
    frame = transactions_frame(transactions)
    return _totals(frame[frame["month"] == month], month)


def overall_totals(transactions: Sequence[Transaction]) -> MonthlyTotals:
    """Sum amounts per type over all time."""
    return _totals(transactions_frame(transactions), None)


def category_breakdown(transactions: Sequence[Transaction], month: str | None = None) -> list[CategoryTotal]:
    """Sum expenses per category, largest first. ``month`` narrows to one bucket."""
    frame = transactions_frame(transactions)
    expenses = frame[frame["type"] == TransactionType.EXPENSE.value]
    if month is not None:
        expenses = expenses[expenses["month"] == month]
    sums = expenses.groupby("category", sort=False)["amount"].sum().sort_values(ascending=False, kind="stable")
    return [CategoryTotal(name=str(name), value=float(value)) for name, value in sums.items()]


def detect_subscriptions(transactions: Sequence[Transaction]) -> list[Subscription]:
    """Flag likely recurring charges among all expenses.

    Expenses are grouped by lower-cased, trimmed description. A group is
    recurring when it occurs more than once or its key contains a known service
    keyword. The reported amount is the one of the last occurrence in input
    order, which is only the most recent charge if the input is date-sorted.
    """
    frame = transactions_frame(transactions)
    expenses = frame[frame["type"] == TransactionType.EXPENSE.value].copy()
    if expenses.empty:
        return []
    expenses["key"] = expenses["description"].str.strip().str.lower()
    groups = expenses.groupby("key", sort=False).agg(
        count=("amount", "size"),
        amount=("amount", "last"),
        last_date=("date", "last"),
    )
    subscriptions = [
        Subscription(
            name=str(key),
            count=int(row["count"]),
            amount=float(row["amount"]),
            last_date=row["last_date"],
            annual_cost=float(row["amount"]) * MONTHS_PER_YEAR,
        )
        for key, row in groups.iterrows()
        if row["count"] > 1 or any(keyword in key for keyword in SUBSCRIPTION_KEYWORDS)
    ]
    return sorted(subscriptions, key=lambda s: s.amount, reverse=True)


def subscriptions_monthly_total(subscriptions: Sequence[Subscription]) -> float:
    """Total monthly cost of the detected recurring charges."""
    return float(sum(s.amount for s in subscriptions))


def forecast(transactions: Sequence[Transaction], month: str, today: date | None = None) -> Forecast:
    """Project the month-end balance.

    Only the current month is extrapolated from the month-to-date burn rate; any
    other month reports its actual balance.
    """
    today = today or date.today()
    totals = monthly_totals(transactions, month)
    if month != month_key(today):
        total_days = days_in_month(parse_month(month))
        return Forecast(
            month=month,
            avg_daily_spend=totals.expense / total_days,
            projected_expense=totals.expense,
            projected_balance=totals.balance,
            status="safe" if totals.balance > 0 else "danger",
            extrapolated=False,
        )
    avg_daily_spend = totals.expense / max(1, today.day)
    remaining_days = days_in_month(today) - today.day
    projected_expense = totals.expense + avg_daily_spend * remaining_days
    projected_balance = totals.income - projected_expense
    return Forecast(
        month=month,
        avg_daily_spend=avg_daily_spend,
        projected_expense=projected_expense,
        projected_balance=projected_balance,
        status="safe" if projected_balance > 0 else "danger",
        extrapolated=True,
    )


def recent_activity(transactions: Sequence[Transaction], limit: int = 7) -> list[TrendPoint]:
    """Return the latest ``limit`` movements in chronological order, income positive."""
    frame = transactions_frame(transactions)
    latest = frame.sort_values("date", ascending=False, kind="stable").head(limit).iloc[::-1]
    return [
        TrendPoint(
            date=row["date"],
            description=row["description"],
            amount=row["amount"] if row["type"] == TransactionType.INCOME.value else -row["amount"],
        )
        for _, row in latest.iterrows()
    ]
