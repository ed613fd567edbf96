"""Deduplication and merge of freshly extracted transactions against existing ones."""

from collections.abc import Sequence
from enum import StrEnum

from pydantic import BaseModel, Field

from family_finance.core.models import CandidateTransaction, FamilyMember, Transaction
from family_finance.core.utils import generate_id, get_logger

DEFAULT_EPSILON = 0.01

logger = get_logger("family-finance.dedup")


class MergeOutcome(StrEnum):
    """User-facing result variants of an import merge."""

    ALL_NEW = "all_new"
    NEW_WITH_DUPLICATES = "new_with_duplicates"
    FULLY_DUPLICATE = "fully_duplicate"
    NOTHING_EXTRACTED = "nothing_extracted"


class MergeResult(BaseModel):
    """Accepted transactions plus the number of candidates already on record."""

    accepted: list[Transaction] = Field(default_factory=list)
    duplicate_count: int = 0

    @property
    def outcome(self) -> MergeOutcome:
        """Classify the merge into one of the four outcome variants."""
        if not self.accepted:
            return MergeOutcome.FULLY_DUPLICATE if self.duplicate_count else MergeOutcome.NOTHING_EXTRACTED
        return MergeOutcome.NEW_WITH_DUPLICATES if self.duplicate_count else MergeOutcome.ALL_NEW

    @property
    def message(self) -> str:
        """Message shown to the user for this outcome."""
        outcome = self.outcome
        if outcome is MergeOutcome.FULLY_DUPLICATE:
            return f"Todas as {self.duplicate_count} transações detetadas já existem no sistema."
        if outcome is MergeOutcome.NOTHING_EXTRACTED:
            return "Não foram encontradas transações válidas no texto."
        if outcome is MergeOutcome.NEW_WITH_DUPLICATES:
            return (
                f"{len(self.accepted)} transações importadas com sucesso "
                f"({self.duplicate_count} duplicadas ignoradas)."
            )
        return f"{len(self.accepted)} transações importadas com sucesso."


def is_duplicate(candidate: CandidateTransaction, existing: CandidateTransaction, epsilon: float = DEFAULT_EPSILON) -> bool:
    """Same date, same type and amounts closer than ``epsilon``; description is ignored."""
    return (
        candidate.date == existing.date
        and candidate.type == existing.type
        and abs(candidate.amount - existing.amount) < epsilon
    )


def merge_candidates(
    candidates: Sequence[CandidateTransaction],
    existing: Sequence[Transaction],
    member: FamilyMember,
    epsilon: float = DEFAULT_EPSILON,
) -> MergeResult:
    """Partition candidates into new and duplicate and give the new ones an id and owner.

    Only ``existing`` is consulted: two identical candidates in the same batch
    are both accepted.
    """
    by_key: dict[tuple, list[Transaction]] = {}
    for txn in existing:
        by_key.setdefault((txn.date, txn.type), []).append(txn)

    accepted: list[Transaction] = []
    duplicate_count = 0
    for candidate in candidates:
        matches = by_key.get((candidate.date, candidate.type), [])
        if any(is_duplicate(candidate, txn, epsilon) for txn in matches):
            duplicate_count += 1
            continue
        fields = candidate.model_dump(include=set(CandidateTransaction.model_fields))
        accepted.append(Transaction(**fields, id=generate_id(), member=member))
    logger.info(f"Merged {len(candidates)} candidates: {len(accepted)} new, {duplicate_count} duplicates")
    return MergeResult(accepted=accepted, duplicate_count=duplicate_count)
