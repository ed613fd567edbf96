"""Statement normalizer: turns pasted text or uploaded files into one text blob."""

import io

import pdfplumber
from pdfminer.pdfparser import PDFSyntaxError
from pdfminer.psparser import PSException
from pdfplumber.utils.exceptions import PdfminerException

from family_finance.core.errors import UnreadableStatementError
from family_finance.core.utils import get_logger

PDF_SIGNATURE = b"%PDF"

logger = get_logger("family-finance.normalizer")


def is_pdf(data: bytes, filename: str | None = None) -> bool:
    """Return True when the payload looks like a PDF document."""
    if filename and filename.lower().endswith(".pdf"):
        return True
    return data[:1024].lstrip().startswith(PDF_SIGNATURE)


def extract_pdf_text(data: bytes) -> str:
    """Extract text page by page and join the pages with newlines."""
    pages = []
    try:
        with pdfplumber.open(io.BytesIO(data)) as pdf:
            for page in pdf.pages:
                pages.append(page.extract_text() or "")
    except (PdfminerException, PDFSyntaxError, PSException) as exc:
        logger.warning(f"Could not decode PDF statement: {exc}")
        msg = "Não foi possível ler o ficheiro PDF. Confirma que o extrato não está danificado."
        raise UnreadableStatementError(msg) from exc
    logger.info(f"Extracted text from {len(pages)} PDF pages")
    return "\n".join(pages)


def normalize_statement(source: str | bytes, filename: str | None = None) -> str:
    """Normalize a statement into line-oriented text ready for parsing.

    Strings are taken as pasted text. Bytes are decoded as PDF when they carry
    the PDF signature (or a ``.pdf`` filename) and as UTF-8 text otherwise. Page
    breaks and carriage returns collapse to newlines. A PDF that cannot be
    decoded raises ``UnreadableStatementError``; any other content, empty or
    garbage, is passed through for the parsers to judge.
    """
    if isinstance(source, bytes):
        text = extract_pdf_text(source) if is_pdf(source, filename) else source.decode("utf-8-sig", errors="replace")
    else:
        text = source
    return text.replace("\r\n", "\n").replace("\r", "\n").replace("\f", "\n")
