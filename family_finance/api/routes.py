"""FastAPI endpoints for the Family Finance Ledger API.

This module defines the statement and receipt import routes, the household
transaction, budget and goal routes, the aggregated dashboard views and the
advisor chat. Every household route is scoped by the ``X-Household-Id`` header.
"""

from datetime import date

from fastapi import APIRouter, Depends, File, Form, HTTPException, Query, Response, UploadFile
from fastapi.responses import JSONResponse

from family_finance.agents import AdvisorAgent, StatementAgent
from family_finance.api.dependencies import (
    get_advisor_agent,
    get_household_id,
    get_import_service,
    get_repository,
    get_statement_agent,
)
from family_finance.core.db import LedgerRepository
from family_finance.core.errors import (
    AdvisorUnavailableError,
    EmptyStatementError,
    ExtractionFailedError,
    NotFoundError,
    PersistenceError,
    SyncError,
    UnreadableStatementError,
)
from family_finance.core.models import (
    AdvisorRequest,
    BudgetItem,
    BudgetItemDraft,
    BudgetReport,
    CategoryTotal,
    FamilyMember,
    Forecast,
    Goal,
    GoalProgress,
    GoalsInsight,
    MonthlyTotals,
    ReceiptExtraction,
    Transaction,
    TrendPoint,
)
from family_finance.core.utils import get_logger, month_key, parse_month
from family_finance.services import aggregation, planning
from family_finance.services.importer import ImportReport, ImportService

router = APIRouter()
logger = get_logger("family-finance.api")

STATEMENT_FAILED_MSG = (
    "Erro ao processar o extrato. A IA não conseguiu identificar os dados. Tente colar um formato mais limpo."
)
RECEIPT_FAILED_MSG = "Não foi possível ler o recibo. Tenta uma imagem mais nítida."
STORE_FAILED_MSG = "Erro ao comunicar com o servidor. Os dados foram recarregados."


def _month(month: str) -> str:
    """Validate a ``YYYY-MM`` path parameter."""
    try:
        parse_month(month)
    except ValueError as exc:
        raise HTTPException(422, str(exc)) from exc
    return month


# --- Imports ---


@router.post(
    "/imports/statement",
    response_model=ImportReport,
    summary="Import a bank statement",
    description=(
        "Import a bank statement from pasted text (form field `text`) or an uploaded "
        "`.txt`, `.csv` or `.pdf` file (form field `file`). Known Revolut statements are "
        "parsed deterministically; other layouts are sent to the LLM. Transactions that "
        "already exist (same date, type and amount) are skipped.\n\n"
        "**Response:**\n"
        "- 200 OK: import report; `outcome` is one of `all_new`, `new_with_duplicates`, "
        "`fully_duplicate`, `nothing_extracted`.\n"
        "- 400 Bad Request: no text and no file, or an unreadable file.\n"
        "- 502 Bad Gateway: the LLM could not interpret the statement.\n"
        "- 503 Service Unavailable: the transactions could not be stored."
    ),
    responses={
        400: {"description": "Empty statement."},
        502: {"description": "Statement extraction failed."},
        503: {"description": "Persistence failure; household state was reloaded."},
    },
)
def import_statement(
    text: str | None = Form(None),
    member: FamilyMember = Form(FamilyMember.JOINT),
    file: UploadFile | None = File(None),
    household_id: str = Depends(get_household_id),
    service: ImportService = Depends(get_import_service),
) -> ImportReport:
    """Parse a statement, drop duplicates and store the new transactions."""
    filename = None
    source: str | bytes = text or ""
    if file is not None:
        filename = file.filename
        source = file.file.read()
        logger.info(f"Received statement upload: filename={filename} bytes={len(source)}")
    try:
        return service.run(household_id, source, member, filename)
    except (EmptyStatementError, UnreadableStatementError) as exc:
        raise HTTPException(400, str(exc)) from exc
    except ExtractionFailedError as exc:
        logger.exception("Statement extraction failed")
        raise HTTPException(502, STATEMENT_FAILED_MSG) from exc
    except SyncError as exc:
        return JSONResponse(
            status_code=503,
            content={"detail": str(exc), "transactions": len(exc.authoritative)},
        )


@router.post(
    "/imports/receipt",
    response_model=ReceiptExtraction,
    summary="Read a receipt image",
    description="Extract description, total, date, category and type from a photographed receipt.",
    responses={502: {"description": "The receipt could not be read."}},
)
def import_receipt(
    file: UploadFile = File(...),
    agent: StatementAgent = Depends(get_statement_agent),
) -> ReceiptExtraction:
    """Extract a single transaction draft from a receipt image."""
    data = file.file.read()
    if not data:
        raise HTTPException(400, "Ficheiro vazio")
    try:
        return agent.extract_receipt(data, file.content_type or "image/jpeg")
    except ExtractionFailedError as exc:
        raise HTTPException(502, RECEIPT_FAILED_MSG) from exc


# --- Transactions ---


@router.get("/transactions", response_model=list[Transaction], summary="List household transactions")
def list_transactions(
    household_id: str = Depends(get_household_id),
    repository: LedgerRepository = Depends(get_repository),
) -> list[Transaction]:
    """List the household's transactions, newest first."""
    return repository.list_transactions(household_id)


@router.post("/transactions", response_model=Transaction, status_code=201, summary="Add a transaction")
def add_transaction(
    transaction: Transaction,
    household_id: str = Depends(get_household_id),
    repository: LedgerRepository = Depends(get_repository),
) -> Transaction:
    """Store a manually entered transaction."""
    try:
        repository.insert(household_id, transaction)
    except PersistenceError as exc:
        raise HTTPException(503, STORE_FAILED_MSG) from exc
    return transaction


@router.put("/transactions/{transaction_id}", response_model=Transaction, summary="Update a transaction")
def update_transaction(
    transaction_id: str,
    transaction: Transaction,
    household_id: str = Depends(get_household_id),
    repository: LedgerRepository = Depends(get_repository),
) -> Transaction:
    """Replace an existing transaction."""
    updated = transaction.model_copy(update={"id": transaction_id})
    try:
        repository.update(household_id, updated)
    except NotFoundError as exc:
        raise HTTPException(404, "Transação não encontrada") from exc
    except PersistenceError as exc:
        raise HTTPException(503, STORE_FAILED_MSG) from exc
    return updated


@router.delete("/transactions/{transaction_id}", status_code=204, summary="Delete a transaction")
def delete_transaction(
    transaction_id: str,
    household_id: str = Depends(get_household_id),
    repository: LedgerRepository = Depends(get_repository),
) -> Response:
    """Delete a transaction."""
    try:
        repository.delete(household_id, transaction_id)
    except NotFoundError as exc:
        raise HTTPException(404, "Transação não encontrada") from exc
    except PersistenceError as exc:
        raise HTTPException(503, STORE_FAILED_MSG) from exc
    return Response(status_code=204)


# --- Budget ---


@router.get("/budget-items", response_model=list[BudgetItem], summary="List budget items")
def list_budget_items(
    month: str | None = None,
    household_id: str = Depends(get_household_id),
    repository: LedgerRepository = Depends(get_repository),
) -> list[BudgetItem]:
    """List budget items, optionally for a single month."""
    items = repository.list_budget_items(household_id)
    if month is not None:
        month = _month(month)
        items = [item for item in items if item.month == month]
    return items


@router.post("/budget-items", response_model=list[BudgetItem], status_code=201, summary="Add a budget item")
def add_budget_item(
    draft: BudgetItemDraft,
    household_id: str = Depends(get_household_id),
    repository: LedgerRepository = Depends(get_repository),
) -> list[BudgetItem]:
    """Add a budget item; recurring items are copied into the following months."""
    _month(draft.month)
    items = planning.expand_budget_item(draft)
    try:
        repository.upsert_budget_items(household_id, items)
    except PersistenceError as exc:
        raise HTTPException(503, STORE_FAILED_MSG) from exc
    return items


@router.put("/budget-items", summary="Replace the household budget")
def replace_budget_items(
    items: list[BudgetItem],
    household_id: str = Depends(get_household_id),
    repository: LedgerRepository = Depends(get_repository),
) -> dict:
    """Delete the items missing from ``items`` and upsert the rest."""
    previous = repository.list_budget_items(household_id)
    deleted = planning.diff_budget_items(previous, items)
    try:
        repository.upsert_budget_items(household_id, items)
        for item_id in deleted:
            repository.delete_budget_item(household_id, item_id)
    except NotFoundError as exc:
        raise HTTPException(404, "Item de orçamento não encontrado") from exc
    except PersistenceError:
        logger.exception("Budget replace failed, returning authoritative state")
        current = repository.list_budget_items(household_id)
        return JSONResponse(
            status_code=503,
            content={"detail": STORE_FAILED_MSG, "items": [i.model_dump(mode="json") for i in current]},
        )
    return {"deleted": deleted, "saved": len(items)}


@router.delete("/budget-items/{item_id}", status_code=204, summary="Delete a budget item")
def delete_budget_item(
    item_id: str,
    household_id: str = Depends(get_household_id),
    repository: LedgerRepository = Depends(get_repository),
) -> Response:
    """Delete a single budget item."""
    try:
        repository.delete_budget_item(household_id, item_id)
    except NotFoundError as exc:
        raise HTTPException(404, "Item de orçamento não encontrado") from exc
    except PersistenceError as exc:
        raise HTTPException(503, STORE_FAILED_MSG) from exc
    return Response(status_code=204)


# --- Goals ---


@router.get("/goals", response_model=list[GoalProgress], summary="List goals with progress")
def list_goals(
    household_id: str = Depends(get_household_id),
    repository: LedgerRepository = Depends(get_repository),
) -> list[GoalProgress]:
    """List the household's goals with their progress figures."""
    return [planning.goal_progress(goal) for goal in repository.list_goals(household_id)]


@router.post("/goals", response_model=Goal, status_code=201, summary="Create a goal")
def add_goal(
    goal: Goal,
    household_id: str = Depends(get_household_id),
    repository: LedgerRepository = Depends(get_repository),
) -> Goal:
    """Create a savings goal."""
    try:
        repository.insert_goal(household_id, goal)
    except PersistenceError as exc:
        raise HTTPException(503, STORE_FAILED_MSG) from exc
    return goal


@router.delete("/goals/{goal_id}", status_code=204, summary="Delete a goal")
def delete_goal(
    goal_id: str,
    household_id: str = Depends(get_household_id),
    repository: LedgerRepository = Depends(get_repository),
) -> Response:
    """Delete a savings goal."""
    try:
        repository.delete_goal(household_id, goal_id)
    except NotFoundError as exc:
        raise HTTPException(404, "Meta não encontrada") from exc
    except PersistenceError as exc:
        raise HTTPException(503, STORE_FAILED_MSG) from exc
    return Response(status_code=204)


@router.get("/goals/insight", response_model=GoalsInsight | None, summary="Goals health check")
def goals_insight(
    household_id: str = Depends(get_household_id),
    repository: LedgerRepository = Depends(get_repository),
) -> GoalsInsight | None:
    """Compare the yearly need of all goals with 20% of this month's income."""
    transactions = repository.list_transactions(household_id)
    income = aggregation.monthly_totals(transactions, month_key(date.today())).income
    return planning.goals_insight(repository.list_goals(household_id), income)


# --- Dashboard views ---


@router.get("/summary", response_model=MonthlyTotals, summary="All-time totals")
def overall_summary(
    household_id: str = Depends(get_household_id),
    repository: LedgerRepository = Depends(get_repository),
) -> MonthlyTotals:
    """Totals per type over every transaction."""
    return aggregation.overall_totals(repository.list_transactions(household_id))


@router.get("/summary/{month}", response_model=MonthlyTotals, summary="Monthly totals")
def monthly_summary(
    month: str,
    household_id: str = Depends(get_household_id),
    repository: LedgerRepository = Depends(get_repository),
) -> MonthlyTotals:
    """Totals per type, balance and savings rate for a month."""
    return aggregation.monthly_totals(repository.list_transactions(household_id), _month(month))


@router.get("/summary/{month}/categories", response_model=list[CategoryTotal], summary="Expenses by category")
def monthly_categories(
    month: str,
    household_id: str = Depends(get_household_id),
    repository: LedgerRepository = Depends(get_repository),
) -> list[CategoryTotal]:
    """Expense totals per category for a month, largest first."""
    return aggregation.category_breakdown(repository.list_transactions(household_id), _month(month))


@router.get("/summary/{month}/forecast", response_model=Forecast, summary="Month-end forecast")
def monthly_forecast(
    month: str,
    household_id: str = Depends(get_household_id),
    repository: LedgerRepository = Depends(get_repository),
) -> Forecast:
    """Projected month-end balance (extrapolated only for the current month)."""
    return aggregation.forecast(repository.list_transactions(household_id), _month(month))


@router.get("/summary/{month}/budget", response_model=BudgetReport, summary="Budget vs actual")
def monthly_budget(
    month: str,
    household_id: str = Depends(get_household_id),
    repository: LedgerRepository = Depends(get_repository),
) -> BudgetReport:
    """Planned versus actual figures for a month."""
    return planning.budget_vs_actual(
        repository.list_budget_items(household_id),
        repository.list_transactions(household_id),
        _month(month),
    )


@router.get("/subscriptions", summary="Detected recurring charges")
def subscriptions(
    household_id: str = Depends(get_household_id),
    repository: LedgerRepository = Depends(get_repository),
) -> dict:
    """Recurring charges detected across all expenses and their monthly total."""
    items = aggregation.detect_subscriptions(repository.list_transactions(household_id))
    return {
        "items": [item.model_dump(mode="json") for item in items],
        "monthly_total": aggregation.subscriptions_monthly_total(items),
    }


@router.get("/activity", response_model=list[TrendPoint], summary="Recent activity")
def activity(
    limit: int = Query(7, ge=1, le=100),
    household_id: str = Depends(get_household_id),
    repository: LedgerRepository = Depends(get_repository),
) -> list[TrendPoint]:
    """Latest movements with signed amounts, oldest first."""
    return aggregation.recent_activity(repository.list_transactions(household_id), limit)


@router.get("/categories", response_model=list[str], summary="Available categories")
def categories(
    household_id: str = Depends(get_household_id),
    repository: LedgerRepository = Depends(get_repository),
) -> list[str]:
    """Seed categories plus every category the household uses."""
    return planning.available_categories(
        repository.list_transactions(household_id), repository.list_budget_items(household_id)
    )


# --- Advisor ---


@router.post("/advisor/chat", summary="Ask the financial advisor")
def advisor_chat(
    request: AdvisorRequest,
    household_id: str = Depends(get_household_id),
    repository: LedgerRepository = Depends(get_repository),
    agent: AdvisorAgent = Depends(get_advisor_agent),
) -> dict:
    """Answer a question using the household's transactions and goals as context."""
    try:
        reply = agent.advise(
            request.history,
            repository.list_transactions(household_id),
            repository.list_goals(household_id),
            request.message,
        )
    except AdvisorUnavailableError as exc:
        raise HTTPException(502, "O consultor não está disponível de momento.") from exc
    return {"reply": reply}


@router.get(
    "/health",
    summary="Health check",
    description="Simple health check endpoint. Returns status ok.",
    response_description="Status ok.",
    responses={200: {"description": "API is healthy.", "content": {"application/json": {"example": {"status": "ok"}}}}},
)
async def health() -> dict:
    """Health check endpoint."""
    return {"status": "ok"}
