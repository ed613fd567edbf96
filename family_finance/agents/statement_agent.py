"""StatementAgent: LLM fallback for statements the structured parser does not recognize.

The agent sends the normalized statement text with a fixed instruction set to the
LLM, then validates the returned JSON array against the candidate transaction
schema. Any transport failure, non-JSON reply or schema violation surfaces as
``ExtractionFailedError``: partial results are never returned.
"""

import base64
import json
from datetime import date

from pydantic import TypeAdapter, ValidationError

from family_finance.agents.base import BaseAgent, strip_code_fences
from family_finance.agents.prompts import RECEIPT_PROMPT_TEMPLATE, STATEMENT_PROMPT_TEMPLATE, STATEMENT_SYSTEM_PROMPT
from family_finance.core.errors import ExtractionFailedError
from family_finance.core.models import SEED_CATEGORIES, CandidateTransaction, ReceiptExtraction, TransactionType
from family_finance.core.utils import get_logger

MAX_REPLY_LOG_LEN = 300

logger = get_logger("family-finance.agent.statement")

_candidate_list = TypeAdapter(list[CandidateTransaction])


def _magnitudes(items: list) -> list:
    """Turn signed amounts into magnitudes and drop zero-amount rows."""
    cleaned = []
    for item in items:
        if isinstance(item, dict) and isinstance(item.get("amount"), int | float):
            if item["amount"] == 0:
                continue
            item = {**item, "amount": abs(item["amount"])}
        cleaned.append(item)
    return cleaned


class StatementAgent(BaseAgent):
    """Agent responsible for LLM-based extraction of statements and receipts."""

    name = "statement"

    def describe(self) -> str:
        """Return a one-line description of what the agent does."""
        return "Extracts transactions from unrecognized bank statements and receipt images."

    def extract_transactions(self, text: str) -> list[CandidateTransaction]:
        """Extract candidate transactions from normalized statement text."""
        prompt = STATEMENT_PROMPT_TEMPLATE.format(
            today=date.today().isoformat(),
            categories=", ".join(SEED_CATEGORIES),
            text=text,
        )
        messages = [
            {"role": "system", "content": STATEMENT_SYSTEM_PROMPT},
            {"role": "user", "content": prompt},
        ]
        try:
            raw_output = self.complete(messages, self.settings.statement_model)
        except Exception as exc:
            msg = f"LLM statement extraction call failed: {exc}"
            logger.exception(msg)
            raise ExtractionFailedError(msg) from exc
        return self.parse_transactions_reply(raw_output)

    def parse_transactions_reply(self, raw_output: str) -> list[CandidateTransaction]:
        """Parse and validate the JSON array returned by the LLM."""
        preview = raw_output[:MAX_REPLY_LOG_LEN]
        try:
            data = json.loads(strip_code_fences(raw_output) or "[]")
        except json.JSONDecodeError as exc:
            msg = f"LLM reply is not valid JSON: {preview!r}"
            logger.warning(msg)
            raise ExtractionFailedError(msg) from exc
        if isinstance(data, dict) and isinstance(data.get("transactions"), list):
            data = data["transactions"]
        if not isinstance(data, list):
            msg = f"Expected a JSON array of transactions, got {type(data).__name__}"
            logger.warning(msg)
            raise ExtractionFailedError(msg)
        try:
            candidates = _candidate_list.validate_python(_magnitudes(data))
        except ValidationError as exc:
            msg = f"LLM reply does not match the transaction schema: {exc.error_count()} errors"
            logger.warning(f"{msg}: {preview!r}")
            raise ExtractionFailedError(msg) from exc
        logger.info(f"LLM extracted {len(candidates)} candidate transactions")
        return candidates

    def extract_receipt(self, image: bytes, mime_type: str) -> ReceiptExtraction:
        """Read description, total, date, category and type from a receipt image."""
        prompt = RECEIPT_PROMPT_TEMPLATE.format(year=date.today().year, categories=", ".join(SEED_CATEGORIES))
        encoded = base64.b64encode(image).decode("ascii")
        messages = [
            {
                "role": "user",
                "content": [
                    {"type": "text", "text": prompt},
                    {"type": "image_url", "image_url": {"url": f"data:{mime_type};base64,{encoded}"}},
                ],
            }
        ]
        try:
            raw_output = self.complete(
                messages, self.settings.vision_model, response_format={"type": "json_object"}
            )
        except Exception as exc:
            msg = f"LLM receipt extraction call failed: {exc}"
            logger.exception(msg)
            raise ExtractionFailedError(msg) from exc
        return self.parse_receipt_reply(raw_output)

    def parse_receipt_reply(self, raw_output: str) -> ReceiptExtraction:
        """Parse and validate the single JSON object returned for a receipt."""
        try:
            data = json.loads(strip_code_fences(raw_output) or "{}")
        except json.JSONDecodeError as exc:
            msg = f"Receipt reply is not valid JSON: {raw_output[:MAX_REPLY_LOG_LEN]!r}"
            logger.warning(msg)
            raise ExtractionFailedError(msg) from exc
        if not isinstance(data, dict):
            msg = f"Expected a JSON object for the receipt, got {type(data).__name__}"
            raise ExtractionFailedError(msg)
        if isinstance(data.get("amount"), int | float):
            data["amount"] = abs(data["amount"])
        if not data.get("date"):
            data.pop("date", None)
        try:
            receipt = ReceiptExtraction.model_validate(data)
        except ValidationError as exc:
            msg = f"Receipt reply does not match the schema: {exc.error_count()} errors"
            logger.warning(msg)
            raise ExtractionFailedError(msg) from exc
        if receipt.type not in (TransactionType.EXPENSE, TransactionType.INCOME):
            msg = f"Receipt type must be Despesa or Receita, got {receipt.type.value}"
            raise ExtractionFailedError(msg)
        return receipt
