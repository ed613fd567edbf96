"""FastAPI dependencies for DI (settings, repository, LLM client, agents, import service).

The application composition root owns every collaborator: the Groq client and the
database session are built here per request and injected into agents and
services, which never reach for global state themselves.
"""

from collections.abc import Iterator
from functools import lru_cache

from fastapi import Depends, Header, HTTPException, Request
from groq import Groq

from family_finance.agents import AdvisorAgent, AgentRegistry, StatementAgent
from family_finance.core.db import LedgerRepository
from family_finance.core.settings import Settings
from family_finance.core.utils import get_logger
from family_finance.parsing.rules import RuleTable, load_rule_table
from family_finance.parsing.structured import StructuredStatementParser
from family_finance.services.importer import ImportService

logger = get_logger("family-finance.api")


def get_app_settings(request: Request) -> Settings:
    """Provide the settings the application was created with."""
    return request.app.state.settings


def get_household_id(x_household_id: str = Header(..., min_length=1)) -> str:
    """Read the household partition key from the ``X-Household-Id`` header."""
    household_id = x_household_id.strip()
    if not household_id:
        raise HTTPException(400, "Cabeçalho X-Household-Id em falta")
    return household_id


def get_repository(request: Request) -> Iterator[LedgerRepository]:
    """Provide a request-scoped repository and close its session afterwards."""
    repository = LedgerRepository(request.app.state.session_factory())
    try:
        yield repository
    finally:
        repository.close()


def get_llm_client(settings: Settings = Depends(get_app_settings)) -> Groq:
    """Provide a Groq client configured from settings."""
    if not settings.groq_api_key:
        logger.warning("GROQ_API_KEY is not set; LLM calls will fail")
    return Groq(api_key=settings.groq_api_key, timeout=settings.llm_timeout_seconds)


def get_statement_agent(
    client: Groq = Depends(get_llm_client), settings: Settings = Depends(get_app_settings)
) -> StatementAgent:
    """Provide a StatementAgent instance for dependency injection."""
    return AgentRegistry.get(StatementAgent.name)(client, settings)


def get_advisor_agent(
    client: Groq = Depends(get_llm_client), settings: Settings = Depends(get_app_settings)
) -> AdvisorAgent:
    """Provide an AdvisorAgent instance for dependency injection."""
    return AgentRegistry.get(AdvisorAgent.name)(client, settings)


@lru_cache
def _rule_table(path: str | None) -> RuleTable:
    return load_rule_table(path)


def get_import_service(
    repository: LedgerRepository = Depends(get_repository),
    agent: StatementAgent = Depends(get_statement_agent),
    settings: Settings = Depends(get_app_settings),
) -> ImportService:
    """Provide an ImportService wired with the configured category rules."""
    parser = StructuredStatementParser(rules=_rule_table(settings.category_rules_file))
    return ImportService(repository, agent, parser, settings.duplicate_epsilon)
