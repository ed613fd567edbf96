"""Keyword rule tables used to classify and categorize statement rows.

A rule table is an ordered list of ``(predicate, category)`` pairs evaluated
first-match-wins. Keywords match on word boundaries, case-insensitively, so a
short brand such as ``NOS`` does not fire inside ``nossa``. The default table can
be replaced by a JSON file of the form::

    [{"category": "Supermercado", "keywords": ["pingo doce", "continente"]}]
"""

import json
import re
from collections.abc import Callable, Iterable
from dataclasses import dataclass
from pathlib import Path

from family_finance.core.models import FALLBACK_CATEGORY
from family_finance.core.utils import get_logger

logger = get_logger("family-finance.rules")

Predicate = Callable[[str], bool]


def keyword_predicate(keywords: Iterable[str]) -> Predicate:
    """Build a predicate matching any of ``keywords`` as whole words."""
    alternatives = "|".join(re.escape(k.strip()) for k in keywords if k.strip())
    if not alternatives:
        return lambda _text: False
    pattern = re.compile(rf"(?<!\w)(?:{alternatives})(?!\w)", re.IGNORECASE)
    return lambda text: pattern.search(text) is not None


@dataclass(frozen=True)
class CategoryRule:
    """A single ``(predicate, category)`` entry."""

    predicate: Predicate
    category: str

    @classmethod
    def from_keywords(cls, category: str, keywords: Iterable[str]) -> "CategoryRule":
        """Create a rule from a list of keywords."""
        return cls(keyword_predicate(keywords), category)


class RuleTable:
    """Ordered rule list; the first matching rule decides the category."""

    def __init__(self, rules: Iterable[CategoryRule], fallback: str = FALLBACK_CATEGORY) -> None:
        """Initialize the table with its rules and fallback category."""
        self.rules = list(rules)
        self.fallback = fallback

    def categorize(self, description: str) -> str:
        """Return the category of the first rule matching ``description``."""
        for rule in self.rules:
            if rule.predicate(description):
                return rule.category
        return self.fallback

    @classmethod
    def from_mapping(cls, entries: Iterable[tuple[str, Iterable[str]]], fallback: str = FALLBACK_CATEGORY) -> "RuleTable":
        """Build a table from ``(category, keywords)`` pairs, keeping their order."""
        return cls([CategoryRule.from_keywords(category, keywords) for category, keywords in entries], fallback)

    @classmethod
    def from_json(cls, path: str | Path, fallback: str = FALLBACK_CATEGORY) -> "RuleTable":
        """Load a table from a JSON file of ``{"category", "keywords"}`` objects."""
        with Path(path).open(encoding="utf-8") as fh:
            raw = json.load(fh)
        if not isinstance(raw, list):
            msg = f"Category rules file {path} must contain a JSON list"
            raise ValueError(msg)
        entries = []
        for item in raw:
            try:
                entries.append((str(item["category"]), [str(k) for k in item["keywords"]]))
            except (KeyError, TypeError) as exc:
                msg = f"Invalid category rule in {path}: {item!r}"
                raise ValueError(msg) from exc
        logger.info(f"Loaded {len(entries)} category rules from {path}")
        return cls.from_mapping(entries, fallback)


# Order matters: food delivery before ride-hailing, specific brands before generic words.
DEFAULT_EXPENSE_RULES: list[tuple[str, list[str]]] = [
    ("Transferência", ["transferência para", "transferencia para", "transfer to", "para o utilizador"]),
    ("Restaurantes", ["uber eats", "bolt food", "glovo", "restaurante", "mcdonald's", "mcdonalds", "burger king",
                      "telepizza", "pizza hut", "kfc", "starbucks", "pastelaria", "café", "cafe", "snack bar", "tasca"]),
    ("Supermercado", ["pingo doce", "continente", "lidl", "aldi", "auchan", "mercadona", "intermarché",
                      "intermarche", "minipreço", "minipreco", "el corte inglés", "spar", "froiz", "supermercado"]),
    ("Transporte", ["galp", "repsol", "bp", "prio", "cepsa", "uber", "bolt", "free now", "cp", "metro", "carris",
                    "via verde", "brisa", "fertagus", "ryanair", "tap", "easyjet", "estacionamento", "parking"]),
    ("Saúde", ["farmácia", "farmacia", "wells", "hospital", "clínica", "clinica", "cuf", "lusíadas", "dentista",
               "médico", "medico", "óptica", "optica"]),
    ("Serviços (Água/Luz/Net)", ["edp", "epal", "endesa", "goldenergy", "iberdrola", "vodafone", "meo", "nos",
                                 "nowo", "digi", "águas", "aguas", "gás", "gas"]),
    ("Lazer", ["netflix", "spotify", "hbo", "disney", "prime video", "youtube", "cinema", "cinemas", "steam",
               "playstation", "ginásio", "ginasio", "fitness", "holmes place", "livraria", "fnac", "worten"]),
    ("Habitação", ["renda", "condomínio", "condominio", "ikea", "leroy merlin", "aki", "imi", "seguro casa"]),
    ("Educação", ["escola", "colégio", "colegio", "propinas", "universidade", "udemy", "coursera"]),
    ("Compras", ["amazon", "aliexpress", "zara", "primark", "decathlon", "h&m", "shein", "temu"]),
]

INVESTMENT_KEYWORDS = [
    "flexible cash funds", "fundos monetários flexíveis", "fundo monetário", "fundo de investimento",
    "fundos", "fundo", "investimento", "ações", "acções", "etf", "cripto", "crypto", "trading", "corretora",
]

SAVINGS_KEYWORDS = [
    "para o cofre", "para cofre", "to pocket", "to vault", "para o pocket", "para poupança", "ronda para cima",
]

INBOUND_KEYWORDS = [
    "transferência de", "transferencia de", "transfer from", "payment from", "recebido de",
    "carregamento", "top-up", "reembolso", "refund", "devolução", "devolucao", "salário", "salario",
    "vencimento", "ordenado", "depósito de", "deposito de", "juros",
]

SALARY_KEYWORDS = ["salário", "salario", "vencimento", "ordenado", "payroll"]


def default_rule_table() -> RuleTable:
    """Return the built-in expense category table."""
    return RuleTable.from_mapping(DEFAULT_EXPENSE_RULES)


def load_rule_table(path: str | Path | None) -> RuleTable:
    """Load the configured rule table, falling back to the built-in one when no file is set."""
    if not path:
        return default_rule_table()
    if not Path(path).exists():
        logger.warning(f"Category rules file {path} not found, using built-in rules")
        return default_rule_table()
    return RuleTable.from_json(path)
