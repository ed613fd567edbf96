"""Tests for the statement import pipeline."""

import json

import pytest

from family_finance.agents import StatementAgent
from family_finance.core.db import LedgerRepository
from family_finance.core.errors import EmptyStatementError, ExtractionFailedError, PersistenceError, SyncError
from family_finance.core.models import FamilyMember, Transaction
from family_finance.core.settings import Settings
from family_finance.services.dedup import MergeOutcome
from family_finance.services.importer import PARSER_AI, PARSER_STRUCTURED, ImportService
from tests.conftest import REVOLUT_STATEMENT, FakeLLMClient

HOUSEHOLD = "household-1"
AI_REPLY = json.dumps(
    [
        {"date": "2024-06-03", "description": "Mercado", "amount": -12.5, "type": "Despesa", "category": "Supermercado"},
        {"date": "2024-06-04", "description": "Salário", "amount": 1500, "type": "Receita", "category": "Salário"},
    ]
)


class FailingRepository(LedgerRepository):
    """Repository whose batch inserts always fail."""

    def insert_batch(self, household_id: str, transactions: list[Transaction]) -> None:
        """Simulate a store outage."""
        msg = "store unavailable"
        raise PersistenceError(msg)


def _service(repository: LedgerRepository, settings: Settings, client: FakeLLMClient) -> ImportService:
    return ImportService(repository, StatementAgent(client, settings))


def test_structured_import_is_idempotent(repository: LedgerRepository, settings: Settings) -> None:
    """Test importing the same statement twice stores nothing the second time."""
    client = FakeLLMClient()
    service = _service(repository, settings, client)
    first = service.run(HOUSEHOLD, REVOLUT_STATEMENT, FamilyMember.ME)
    second = service.run(HOUSEHOLD, REVOLUT_STATEMENT, FamilyMember.ME)
    if first.parser != PARSER_STRUCTURED or first.outcome is not MergeOutcome.ALL_NEW or len(first.accepted) != 2:
        msg = f"Unexpected first import: {first}"
        raise AssertionError(msg)
    if second.outcome is not MergeOutcome.FULLY_DUPLICATE or second.duplicate_count != 2:
        msg = f"Unexpected second import: {second}"
        raise AssertionError(msg)
    if len(repository.list_transactions(HOUSEHOLD)) != 2:
        msg = "Second import must not add transactions"
        raise AssertionError(msg)
    if client.calls:
        msg = "A recognized statement must not call the LLM"
        raise AssertionError(msg)


def test_unrecognized_text_falls_back_to_llm(repository: LedgerRepository, settings: Settings) -> None:
    """Test unknown layouts are sent to the agent and signed amounts become magnitudes."""
    client = FakeLLMClient(reply=AI_REPLY)
    report = _service(repository, settings, client).run(HOUSEHOLD, "Banco X\n03/06 Mercado -12,50", FamilyMember.PARTNER)
    if report.parser != PARSER_AI or len(client.calls) != 1:
        msg = f"Expected one LLM call, got {len(client.calls)} ({report.parser})"
        raise AssertionError(msg)
    amounts = sorted(t.amount for t in repository.list_transactions(HOUSEHOLD))
    if amounts != [12.5, 1500.0]:
        msg = f"Unexpected stored amounts {amounts}"
        raise AssertionError(msg)


def test_recognized_statement_without_rows_skips_llm(repository: LedgerRepository, settings: Settings) -> None:
    """Test a recognized document with no rows reports nothing extracted without calling the LLM."""
    client = FakeLLMClient(reply=AI_REPLY)
    text = "Data Descrição Dinheiro retirado Dinheiro recebido Saldo\n"
    report = _service(repository, settings, client).run(HOUSEHOLD, text, FamilyMember.JOINT)
    if report.outcome is not MergeOutcome.NOTHING_EXTRACTED or client.calls:
        msg = f"Expected nothing extracted without LLM call, got {report}"
        raise AssertionError(msg)


def test_empty_input_is_rejected(repository: LedgerRepository, settings: Settings) -> None:
    """Test blank text and empty uploads raise EmptyStatementError."""
    service = _service(repository, settings, FakeLLMClient())
    for source in ("", "   \n", b""):
        with pytest.raises(EmptyStatementError):
            service.run(HOUSEHOLD, source, FamilyMember.JOINT)


def test_llm_failure_stores_nothing(repository: LedgerRepository, settings: Settings) -> None:
    """Test an extraction failure propagates and leaves the ledger unchanged."""
    client = FakeLLMClient(reply="Desculpe, não consegui.")
    with pytest.raises(ExtractionFailedError):
        _service(repository, settings, client).run(HOUSEHOLD, "texto qualquer", FamilyMember.JOINT)
    if repository.list_transactions(HOUSEHOLD):
        msg = "Nothing must be stored after a failed extraction"
        raise AssertionError(msg)


def test_uploaded_bytes_are_decoded(repository: LedgerRepository, settings: Settings) -> None:
    """Test a UTF-8 text upload with CRLF line endings parses like pasted text."""
    data = REVOLUT_STATEMENT.replace("\n", "\r\n").encode("utf-8-sig")
    report = _service(repository, settings, FakeLLMClient()).run(HOUSEHOLD, data, FamilyMember.JOINT, "extrato.txt")
    if len(report.accepted) != 2:
        msg = f"Expected 2 rows from the upload, got {report}"
        raise AssertionError(msg)


def test_persistence_failure_reloads_state(repository: LedgerRepository, settings: Settings) -> None:
    """Test a failed write raises SyncError carrying the reloaded transactions."""
    failing = FailingRepository(repository.session)
    service = _service(failing, settings, FakeLLMClient())
    with pytest.raises(SyncError) as excinfo:
        service.run(HOUSEHOLD, REVOLUT_STATEMENT, FamilyMember.JOINT)
    if excinfo.value.authoritative != []:
        msg = f"Expected the reloaded (empty) ledger, got {excinfo.value.authoritative}"
        raise AssertionError(msg)
