"""AdvisorAgent: conversational financial advice grounded on the household's data."""

from collections.abc import Sequence
from datetime import date

from family_finance.agents.base import BaseAgent
from family_finance.agents.prompts import ADVISOR_SYSTEM_TEMPLATE, NO_GOALS_CONTEXT
from family_finance.core.errors import AdvisorUnavailableError
from family_finance.core.models import ChatTurn, Goal, Transaction
from family_finance.core.utils import get_logger, month_key
from family_finance.services.aggregation import monthly_totals
from family_finance.services.planning import goal_progress_percent

RECENT_TRANSACTIONS = 50

logger = get_logger("family-finance.agent.advisor")


class AdvisorAgent(BaseAgent):
    """Agent answering budgeting and saving questions for a household."""

    name = "advisor"

    def describe(self) -> str:
        """Return a one-line description of what the agent does."""
        return "Gives personal finance advice based on the household's transactions and goals."

    def build_system_prompt(
        self, transactions: Sequence[Transaction], goals: Sequence[Goal], today: date | None = None
    ) -> str:
        """Summarize the current month, recent transactions and goals for the LLM."""
        month = month_key(today or date.today())
        totals = monthly_totals(transactions, month)
        recent = "\n".join(
            f"{t.date.isoformat()}: {t.description} ({t.amount:.2f}€) - {t.type.value} - {t.category} [{t.member.value}]"
            for t in list(transactions)[:RECENT_TRANSACTIONS]
        )
        if goals:
            goals_context = "METAS FINANCEIRAS:\n" + "\n".join(
                f"- {g.name}: {g.current_amount:.2f}€ / {g.target_amount:.2f}€ "
                f"({goal_progress_percent(g):.0f}%) - Prazo: {g.deadline.isoformat()}"
                for g in goals
            )
        else:
            goals_context = NO_GOALS_CONTEXT
        return ADVISOR_SYSTEM_TEMPLATE.format(
            month=month,
            income=totals.income,
            expense=totals.expense,
            savings=totals.savings,
            investment=totals.investment,
            balance=totals.balance,
            savings_rate=totals.savings_rate * 100,
            goals=goals_context,
            recent_count=min(len(transactions), RECENT_TRANSACTIONS),
            recent=recent or "(sem transações)",
        )

    def advise(
        self,
        history: Sequence[ChatTurn],
        transactions: Sequence[Transaction],
        goals: Sequence[Goal],
        message: str,
    ) -> str:
        """Answer ``message`` given the previous conversation and the household's data."""
        messages = [{"role": "system", "content": self.build_system_prompt(transactions, goals)}]
        messages.extend(
            {"role": "assistant" if turn.role == "model" else "user", "content": turn.text} for turn in history
        )
        messages.append({"role": "user", "content": message})
        try:
            return self.complete(messages, self.settings.advisor_model)
        except Exception as exc:
            msg = f"Advisor LLM call failed: {exc}"
            logger.exception(msg)
            raise AdvisorUnavailableError(msg) from exc
