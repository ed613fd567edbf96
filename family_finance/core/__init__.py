"""Core package: provides models, errors, database helpers, settings, and shared utilities."""

from .db import LedgerRepository  # noqa: F401
from .errors import LedgerError  # noqa: F401
from .models import CandidateTransaction, Transaction, TransactionType  # noqa: F401
from .settings import Settings, get_settings  # noqa: F401
from .utils import get_logger  # noqa: F401
