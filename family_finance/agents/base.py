"""Base agent abstraction for the LLM-backed agents.

This module defines the abstract base class shared by the statement extraction
and advisor agents. The LLM client is created by the application composition
root and injected, so agents never own global client state.
"""

import re
from abc import ABC, abstractmethod

from family_finance.core.settings import Settings
from family_finance.core.utils import get_logger

FENCE_RE = re.compile(r"^```(?:json)?\s*|\s*```$")

logger = get_logger("family-finance.agent")


def strip_code_fences(text: str) -> str:
    """Remove a surrounding markdown code block from an LLM reply."""
    return FENCE_RE.sub("", (text or "").strip())


class BaseAgent(ABC):
    """Abstract base class for all agents."""

    name: str = "base"

    def __init__(self, llm_client: object, settings: Settings) -> None:
        """Initialize the agent with an LLM client and settings."""
        self.llm_client = llm_client
        self.settings = settings

    @abstractmethod
    def describe(self) -> str:
        """Return a one-line description of what the agent does."""

    def complete(self, messages: list[dict], model: str, **options: object) -> str:
        """Send a chat completion request and return the reply text.

        Transport errors propagate to the caller, which maps them to its own error type.
        """
        logger.info(f"[{self.name}] Calling LLM model={model} messages={len(messages)}")
        completion = self.llm_client.chat.completions.create(
            model=model,
            messages=messages,
            temperature=self.settings.llm_temperature,
            max_completion_tokens=self.settings.llm_max_completion_tokens,
            timeout=self.settings.llm_timeout_seconds,
            **options,
        )
        content = completion.choices[0].message.content or ""
        logger.info(f"[{self.name}] LLM replied with {len(content)} characters")
        return content
