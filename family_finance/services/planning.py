"""Monthly budget planning and savings goal helpers."""

import math
from collections.abc import Sequence
from datetime import date

from family_finance.core.models import (
    FALLBACK_CATEGORY,
    SEED_CATEGORIES,
    BudgetItem,
    BudgetItemDraft,
    BudgetReport,
    CategoryComparison,
    Goal,
    GoalProgress,
    GoalsInsight,
    MonthlyTotals,
    Transaction,
    TransactionType,
)
from family_finance.core.utils import add_months, month_key
from family_finance.services.aggregation import monthly_totals

DAYS_PER_MONTH_ESTIMATE = 30
SAVINGS_CAPACITY_SHARE = 0.2
GOAL_HORIZON_MONTHS = 12


def expand_budget_item(draft: BudgetItemDraft) -> list[BudgetItem]:
    """Create one budget item, or ``repeat`` consecutive monthly copies when recurring."""
    loops = draft.repeat if draft.is_recurring else 1
    return [
        BudgetItem(
            month=add_months(draft.month, offset),
            description=draft.description,
            amount=draft.amount,
            type=draft.type,
            category=draft.category,
            is_recurring=draft.is_recurring,
        )
        for offset in range(loops)
    ]


def diff_budget_items(previous: Sequence[BudgetItem], desired: Sequence[BudgetItem]) -> list[str]:
    """Return the ids present in ``previous`` but missing from ``desired``."""
    keep = {item.id for item in desired}
    return [item.id for item in previous if item.id not in keep]


def _planned_totals(items: Sequence[BudgetItem], month: str) -> MonthlyTotals:
    sums = dict.fromkeys(TransactionType, 0.0)
    for item in items:
        if item.month == month:
            sums[item.type] += item.amount
    income = sums[TransactionType.INCOME]
    expense = sums[TransactionType.EXPENSE]
    savings = sums[TransactionType.SAVINGS]
    investment = sums[TransactionType.INVESTMENT]
    return MonthlyTotals(
        month=month,
        income=income,
        expense=expense,
        savings=savings,
        investment=investment,
        balance=income - expense - savings - investment,
        savings_rate=(savings + investment) / income if income > 0 else 0.0,
    )


def available_categories(transactions: Sequence[Transaction], budget_items: Sequence[BudgetItem]) -> list[str]:
    """Seed categories plus every category in use, without the fallback, sorted."""
    used = {t.category for t in transactions} | {b.category for b in budget_items}
    return sorted((set(SEED_CATEGORIES) | used) - {FALLBACK_CATEGORY})


def budget_vs_actual(
    budget_items: Sequence[BudgetItem],
    transactions: Sequence[Transaction],
    month: str,
    categories: Sequence[str] | None = None,
) -> BudgetReport:
    """Compare planned and actual figures for a month, per type and per expense category."""
    if categories is None:
        categories = [*available_categories(transactions, budget_items), FALLBACK_CATEGORY]
    comparisons = []
    for category in categories:
        planned = sum(
            b.amount
            for b in budget_items
            if b.month == month and b.category == category and b.type is TransactionType.EXPENSE
        )
        actual = sum(
            t.amount
            for t in transactions
            if month_key(t.date) == month and t.category == category and t.type is TransactionType.EXPENSE
        )
        if planned == 0 and actual == 0:
            continue
        comparisons.append(CategoryComparison(category=category, planned=planned, actual=actual, remaining=planned - actual))
    return BudgetReport(
        month=month,
        planned=_planned_totals(budget_items, month),
        actual=monthly_totals(transactions, month),
        categories=comparisons,
    )


def goal_progress_percent(goal: Goal) -> float:
    """Percent of the target reached, capped at 100."""
    return min(goal.current_amount / goal.target_amount * 100, 100.0)


def months_remaining(deadline: date, today: date | None = None) -> int:
    """Whole months (30-day blocks, rounded up) until the deadline, never negative."""
    today = today or date.today()
    return max(0, math.ceil((deadline - today).days / DAYS_PER_MONTH_ESTIMATE))


def suggested_monthly_saving(goal: Goal, today: date | None = None) -> float:
    """Monthly amount needed to reach the goal by its deadline; 0 once the deadline is reached."""
    months_left = months_remaining(goal.deadline, today)
    if months_left == 0:
        return 0.0
    return (goal.target_amount - goal.current_amount) / months_left


def goal_progress(goal: Goal, today: date | None = None) -> GoalProgress:
    """Derived progress view for one goal."""
    return GoalProgress(
        goal=goal,
        percent_complete=goal_progress_percent(goal),
        months_remaining=months_remaining(goal.deadline, today),
        suggested_monthly_saving=suggested_monthly_saving(goal, today),
    )


def goals_insight(goals: Sequence[Goal], monthly_income: float) -> GoalsInsight | None:
    """Check whether a year of saving 20% of income covers every outstanding goal."""
    if not goals:
        return None
    outstanding = sum(g.target_amount - g.current_amount for g in goals)
    recommended = outstanding / GOAL_HORIZON_MONTHS
    capacity = monthly_income * SAVINGS_CAPACITY_SHARE
    if recommended > capacity:
        return GoalsInsight(
            kind="warning",
            message=(
                f"Para atingir todas as metas, precisas poupar {recommended:.2f}€/mês. "
                f"Considera {capacity:.2f}€ (20% do rendimento)."
            ),
            recommended_monthly=recommended,
            savings_capacity=capacity,
        )
    return GoalsInsight(
        kind="success",
        message=f"Estás no caminho certo! Poupando {capacity:.2f}€/mês, atinges as tuas metas.",
        recommended_monthly=recommended,
        savings_capacity=capacity,
    )
