"""Shared fixtures for the Family Finance Ledger tests."""

from collections.abc import Iterator
from types import SimpleNamespace

import pytest

from family_finance.core.db import LedgerRepository, build_session_factory, get_engine, init_db
from family_finance.core.settings import Settings

REVOLUT_STATEMENT = """Extrato de EUR
Gerado em 05/07/2024
Revolut Bank UAB
Saldo de 01/06/2024 a 30/06/2024
Transações da conta de 01/06/2024 a 30/06/2024
Data Descrição Dinheiro retirado Dinheiro recebido Saldo
01/06/2024 Pingo Doce €45.30 €1000.00
02/06/2024 Transferência de utilizador Revolut €50.00 €1050.00
"""


class FakeLLMClient:
    """Stands in for the Groq client: records calls and returns a canned reply."""

    def __init__(self, reply: str = "[]", error: Exception | None = None) -> None:
        """Initialize the fake with the reply text or the error to raise."""
        self.reply = reply
        self.error = error
        self.calls: list[dict] = []
        self.chat = SimpleNamespace(completions=SimpleNamespace(create=self._create))

    def _create(self, **kwargs: object) -> SimpleNamespace:
        self.calls.append(kwargs)
        if self.error is not None:
            raise self.error
        message = SimpleNamespace(content=self.reply)
        return SimpleNamespace(choices=[SimpleNamespace(message=message)])


@pytest.fixture
def settings() -> Settings:
    """Settings for an isolated in-memory ledger without a log file."""
    return Settings(groq_api_key="test-key", database_url="sqlite://", log_file=None, category_rules_file=None)


@pytest.fixture
def repository(settings: Settings) -> Iterator[LedgerRepository]:
    """A repository over a fresh in-memory database."""
    engine = get_engine(settings.database_url)
    init_db(engine)
    repo = LedgerRepository(build_session_factory(engine)())
    yield repo
    repo.close()
    engine.dispose()
