"""Structured parser for the Revolut multi-column ledger statement.

The parser recognizes one well-known layout (date, description, money withdrawn,
money received and running balance columns, with separate sections for pockets,
vaults and deposits) and extracts main-account rows without calling any external
service. Documents it does not recognize yield ``NotRecognized`` so the caller can
fall back to the LLM agent.
"""

import re
from dataclasses import dataclass, field
from datetime import date

from family_finance.core.models import CandidateTransaction, TransactionType
from family_finance.core.utils import get_logger
from family_finance.parsing.rules import (
    INBOUND_KEYWORDS,
    INVESTMENT_KEYWORDS,
    SALARY_KEYWORDS,
    SAVINGS_KEYWORDS,
    RuleTable,
    default_rule_table,
    keyword_predicate,
)

MAX_DESCRIPTION_LEN = 100
MIN_DESCRIPTION_LEN = 2
ROW_WINDOW_CHARS = 240
MAX_ROW_AMOUNTS = 3
CAPTION_LOOKBEHIND_CHARS = 30

DATE_RE = re.compile(r"(?<![\d/])(\d{2})/(\d{2})/(\d{4})(?![\d/])")
AMOUNT_RE = re.compile(r"[€$£]\s?(\d{1,3}(?:[.,\u00a0 ]\d{3})+|\d+)(?:[.,](\d{1,2}))?(?!\d)")
CAPTION_BEFORE_RE = re.compile(
    r"(?:gerado em|generated on|emitido em|issued on|per[ií]odo|period|saldo em|balance on"
    r"|\bde|\bfrom|\bentre|\bbetween|\ba|\bto|\bat[ée]|[-–])\s*$",
    re.IGNORECASE,
)
CAPTION_AFTER_RE = re.compile(r"^\s*(?:a|at[ée]|to|[-–])\s*\d{2}/\d{2}/\d{4}", re.IGNORECASE)
ANNOTATION_RE = re.compile(r"\b(?:taxa|comiss[ãa]o|fee|c[âa]mbio|cota[çc][ãa]o|rate)\b[^€$£]*$|=\s*$", re.IGNORECASE)

logger = get_logger("family-finance.structured")


@dataclass(frozen=True)
class StatementLayout:
    """Literal markers describing one known statement layout."""

    name: str
    required_markers: tuple[tuple[str, ...], ...]
    main_section_markers: tuple[str, ...]
    excluded_section_markers: tuple[str, ...]


REVOLUT_LAYOUT = StatementLayout(
    name="revolut",
    required_markers=(
        ("dinheiro retirado", "dinheiro recebido"),
        ("money out", "money in"),
    ),
    main_section_markers=(
        "transações da conta",
        "transações de conta corrente",
        "account transactions",
    ),
    excluded_section_markers=(
        "transações do cofre",
        "transações dos cofres",
        "transações do pocket",
        "transações dos pockets",
        "transações do depósito",
        "transações de depósitos",
        "transações da conta poupança",
        "pocket transactions",
        "vault transactions",
        "deposit transactions",
        "savings account transactions",
    ),
)

DEFAULT_LAYOUT = REVOLUT_LAYOUT


@dataclass(frozen=True)
class Matched:
    """The layout was recognized; ``transactions`` may be empty."""

    transactions: list[CandidateTransaction] = field(default_factory=list)
    layout: str = DEFAULT_LAYOUT.name


@dataclass(frozen=True)
class NotRecognized:
    """The layout markers were not found; the caller should use the LLM agent."""

    reason: str = "layout markers not found"


ParseResult = Matched | NotRecognized


def parse_amount(integer_part: str, fraction: str | None) -> float:
    """Parse the digit groups of a currency token into a magnitude."""
    digits = re.sub(r"\D", "", integer_part) or "0"
    return round(float(f"{digits}.{fraction or '0'}"), 2)


def parse_row_date(day: str, month: str, year: str) -> date | None:
    """Convert day/month/year parts to a date, or None when it is not a calendar date."""
    try:
        return date(int(year), int(month), int(day))
    except ValueError:
        return None


class StructuredStatementParser:
    """Deterministic extractor for the known ledger layout."""

    def __init__(self, layout: StatementLayout = DEFAULT_LAYOUT, rules: RuleTable | None = None) -> None:
        """Initialize the parser with a layout and an expense category table."""
        self.layout = layout
        self.rules = rules or default_rule_table()
        self._is_investment = keyword_predicate(INVESTMENT_KEYWORDS)
        self._is_savings = keyword_predicate(SAVINGS_KEYWORDS)
        self._is_inbound = keyword_predicate(INBOUND_KEYWORDS)
        self._is_salary = keyword_predicate(SALARY_KEYWORDS)
        section_markers = sorted([*layout.main_section_markers, *layout.excluded_section_markers], key=len, reverse=True)
        self._section_re = re.compile("|".join(re.escape(m) for m in section_markers), re.IGNORECASE)
        self._main_markers = {m.lower() for m in layout.main_section_markers}

    def detect(self, text: str) -> bool:
        """Return True if every marker of one required marker set is present."""
        lowered = text.lower()
        return any(all(marker in lowered for marker in marker_set) for marker_set in self.layout.required_markers)

    def parse(self, text: str) -> ParseResult:
        """Extract main-account transactions, or report that the layout is unknown."""
        if not self.detect(text):
            logger.info(f"Statement does not match the {self.layout.name} layout")
            return NotRecognized()
        sections = self._sections(text)
        anchors = list(DATE_RE.finditer(text))
        transactions: list[CandidateTransaction] = []
        skipped_sections = 0
        for index, anchor in enumerate(anchors):
            if not self._in_main_section(sections, anchor.start()):
                skipped_sections += 1
                continue
            if self._is_caption(text, anchor):
                continue
            row_date = parse_row_date(*anchor.groups())
            if row_date is None:
                continue
            window = text[anchor.end() : self._window_end(text, anchors, index, sections)]
            txn = self._parse_row(row_date, window)
            if txn is not None:
                transactions.append(txn)
        logger.info(
            f"Structured parser extracted {len(transactions)} rows "
            f"({skipped_sections} anchors outside the main account)"
        )
        return Matched(transactions=transactions, layout=self.layout.name)

    def _sections(self, text: str) -> list[tuple[int, bool]]:
        """Return ``(offset, is_main)`` boundaries; text before any marker is main."""
        sections = [(0, True)]
        for match in self._section_re.finditer(text):
            sections.append((match.start(), match.group(0).lower() in self._main_markers))
        return sections

    @staticmethod
    def _in_main_section(sections: list[tuple[int, bool]], offset: int) -> bool:
        current = True
        for start, is_main in sections:
            if start > offset:
                break
            current = is_main
        return current

    @staticmethod
    def _is_caption(text: str, anchor: re.Match) -> bool:
        before = text[max(0, anchor.start() - CAPTION_LOOKBEHIND_CHARS) : anchor.start()]
        after = text[anchor.end() : anchor.end() + 20]
        return CAPTION_BEFORE_RE.search(before) is not None or CAPTION_AFTER_RE.match(after) is not None

    @staticmethod
    def _window_end(text: str, anchors: list[re.Match], index: int, sections: list[tuple[int, bool]]) -> int:
        start = anchors[index].end()
        end = min(len(text), start + ROW_WINDOW_CHARS)
        if index + 1 < len(anchors):
            end = min(end, anchors[index + 1].start())
        for boundary, _ in sections:
            if start < boundary < end:
                end = boundary
        return end

    def _parse_row(self, row_date: date, window: str) -> CandidateTransaction | None:
        tokens = list(AMOUNT_RE.finditer(window))
        if not tokens:
            return None
        description = " ".join(window[: tokens[0].start()].split()).strip(" -|;:")
        if len(description) < MIN_DESCRIPTION_LEN:
            return None

        amounts = []
        previous_end = tokens[0].start()
        for token in tokens:
            if ANNOTATION_RE.search(window[previous_end : token.start()]) is None:
                amounts.append(parse_amount(*token.groups()))
            previous_end = token.end()
        amounts = amounts[:MAX_ROW_AMOUNTS]
        if not amounts:
            return None

        inbound = self._is_inbound(description)
        movement = amounts[0]
        if len(amounts) == MAX_ROW_AMOUNTS:
            alternate = amounts[1]
            if (inbound and alternate > 0) or movement == 0:
                inbound = inbound or movement == 0
                movement = alternate
        if movement <= 0:
            return None

        txn_type = self.classify(description, inbound)
        return CandidateTransaction(
            date=row_date,
            description=description[:MAX_DESCRIPTION_LEN],
            amount=movement,
            type=txn_type,
            category=self.categorize(description, txn_type),
        )

    def classify(self, description: str, inbound: bool | None = None) -> TransactionType:
        """Classify a row; investment wording beats transfer wording, which beats the default."""
        if self._is_investment(description):
            return TransactionType.INVESTMENT
        if self._is_savings(description):
            return TransactionType.SAVINGS
        if inbound is None:
            inbound = self._is_inbound(description)
        if inbound:
            return TransactionType.INCOME
        return TransactionType.EXPENSE

    def categorize(self, description: str, txn_type: TransactionType) -> str:
        """Infer the category; the keyword table only applies to expenses."""
        if txn_type is TransactionType.EXPENSE:
            return self.rules.categorize(description)
        if txn_type is TransactionType.INCOME:
            return "Salário" if self._is_salary(description) else "Transferência"
        if txn_type is TransactionType.INVESTMENT:
            return "Investimentos"
        return "Poupança"


def parse_structured(text: str, layout: StatementLayout = DEFAULT_LAYOUT, rules: RuleTable | None = None) -> ParseResult:
    """Run the structured parser over normalized statement text."""
    return StructuredStatementParser(layout, rules).parse(text)
