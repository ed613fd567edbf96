"""Statement import pipeline.

normalize → structured parser → (LLM agent when the layout is not recognized)
→ merge against the household's transactions → persist the accepted batch.
"""

from pydantic import BaseModel, Field

from family_finance.agents.statement_agent import StatementAgent
from family_finance.core.db import LedgerRepository
from family_finance.core.errors import EmptyStatementError, PersistenceError, SyncError
from family_finance.core.models import CandidateTransaction, FamilyMember, Transaction
from family_finance.core.utils import get_logger
from family_finance.parsing.normalizer import normalize_statement
from family_finance.parsing.structured import Matched, StructuredStatementParser
from family_finance.services.dedup import DEFAULT_EPSILON, MergeOutcome, merge_candidates

PARSER_STRUCTURED = "structured"
PARSER_AI = "ai"

logger = get_logger("family-finance.importer")


class ImportReport(BaseModel):
    """Result of one statement import, consumed by the UI layer."""

    parser: str
    outcome: MergeOutcome
    message: str
    accepted: list[Transaction] = Field(default_factory=list)
    duplicate_count: int = 0


class ImportService:
    """Runs statement imports for a household."""

    def __init__(
        self,
        repository: LedgerRepository,
        statement_agent: StatementAgent,
        parser: StructuredStatementParser | None = None,
        epsilon: float = DEFAULT_EPSILON,
    ) -> None:
        """Initialize the service with its collaborators."""
        self.repository = repository
        self.statement_agent = statement_agent
        self.parser = parser or StructuredStatementParser()
        self.epsilon = epsilon

    def extract(self, text: str) -> tuple[str, list[CandidateTransaction]]:
        """Return the parser used and its candidates.

        The LLM is only consulted when the layout is not recognized; a recognized
        document with no rows stays empty.
        """
        result = self.parser.parse(text)
        if isinstance(result, Matched):
            return PARSER_STRUCTURED, result.transactions
        logger.info(f"Falling back to the LLM agent: {result.reason}")
        return PARSER_AI, self.statement_agent.extract_transactions(text)

    def run(
        self,
        household_id: str,
        source: str | bytes,
        member: FamilyMember,
        filename: str | None = None,
    ) -> ImportReport:
        """Import a statement and persist the transactions that are not already on record."""
        if not source or (isinstance(source, str) and not source.strip()):
            msg = "Por favor, cole o texto do extrato ou carregue um ficheiro."
            raise EmptyStatementError(msg)
        text = normalize_statement(source, filename)
        if not text.strip():
            msg = "O ficheiro não contém texto legível."
            raise EmptyStatementError(msg)
        logger.info(f"Importing statement for household={household_id} ({len(text)} characters)")

        parser_name, candidates = self.extract(text)
        existing = self.repository.list_transactions(household_id)
        merge = merge_candidates(candidates, existing, member, self.epsilon)
        if merge.accepted:
            self._persist(household_id, merge.accepted)
        report = ImportReport(
            parser=parser_name,
            outcome=merge.outcome,
            message=merge.message,
            accepted=merge.accepted,
            duplicate_count=merge.duplicate_count,
        )
        logger.info(f"Import finished: parser={parser_name} outcome={report.outcome.value}")
        return report

    def _persist(self, household_id: str, accepted: list[Transaction]) -> None:
        """Write the batch; on failure reload authoritative state instead of retrying."""
        try:
            self.repository.insert_batch(household_id, accepted)
        except PersistenceError as exc:
            logger.exception(f"Failed to store {len(accepted)} imported transactions, reloading household state")
            authoritative = self.repository.list_transactions(household_id)
            msg = "Erro ao guardar importação no servidor."
            raise SyncError(msg, authoritative) from exc
