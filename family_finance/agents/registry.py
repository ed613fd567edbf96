"""Agent registry for managing agent types.

This module provides a registry for agent classes, allowing registration and
retrieval of agent implementations by name, so the composition root can build
agents without importing their modules directly.
"""

from typing import ClassVar

from family_finance.agents.base import BaseAgent


class AgentRegistry:
    """Registry for agent classes."""

    _registry: ClassVar[dict[str, type[BaseAgent]]] = {}

    @classmethod
    def register(cls, name: str, agent_cls: type[BaseAgent]) -> None:
        """Register an agent class with a given name."""
        cls._registry[name] = agent_cls

    @classmethod
    def get(cls, name: str) -> type[BaseAgent]:
        """Retrieve an agent class by name."""
        try:
            return cls._registry[name]
        except KeyError as exc:
            msg = f"Unknown agent '{name}'. Available: {', '.join(cls.available())}"
            raise KeyError(msg) from exc

    @classmethod
    def available(cls) -> list[str]:
        """List all available agent names."""
        return list(cls._registry.keys())
