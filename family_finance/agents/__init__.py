"""Agents package: provides the agent registry, base class, and the LLM-backed agents."""

from .advisor_agent import AdvisorAgent
from .base import BaseAgent  # noqa: F401
from .registry import AgentRegistry
from .statement_agent import StatementAgent

AgentRegistry.register(StatementAgent.name, StatementAgent)
AgentRegistry.register(AdvisorAgent.name, AdvisorAgent)
