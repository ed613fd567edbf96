"""Parsing package: statement normalization, keyword rule tables and the structured ledger parser."""

from .normalizer import normalize_statement  # noqa: F401
from .rules import RuleTable, load_rule_table  # noqa: F401
from .structured import Matched, NotRecognized, StructuredStatementParser, parse_structured  # noqa: F401
