"""API integration tests for the Family Finance Ledger."""

import asyncio
from collections.abc import Iterator

import pytest
from fastapi import FastAPI
from fastapi.testclient import TestClient

from family_finance.agents import AdvisorAgent, StatementAgent
from family_finance.api.dependencies import get_advisor_agent, get_statement_agent
from family_finance.core.settings import Settings
from main import create_app
from tests.conftest import REVOLUT_STATEMENT, FakeLLMClient

HTTP_200_OK = 200
HTTP_201_CREATED = 201
HTTP_204_NO_CONTENT = 204
HTTP_400_BAD_REQUEST = 400
HTTP_404_NOT_FOUND = 404
HTTP_422_UNPROCESSABLE = 422
HTTP_502_BAD_GATEWAY = 502
HOUSEHOLD = {"X-Household-Id": "familia-silva"}
OTHER_HOUSEHOLD = {"X-Household-Id": "familia-costa"}


@pytest.fixture
def llm() -> FakeLLMClient:
    """Fake LLM client shared by the overridden agents."""
    return FakeLLMClient(reply="[]")


@pytest.fixture
def app(settings: Settings, llm: FakeLLMClient) -> FastAPI:
    """Application over an in-memory database with agents backed by the fake client."""
    application = create_app(settings)
    application.dependency_overrides[get_statement_agent] = lambda: StatementAgent(llm, settings)
    application.dependency_overrides[get_advisor_agent] = lambda: AdvisorAgent(llm, settings)
    return application


@pytest.fixture
def client(app: FastAPI) -> Iterator[TestClient]:
    """Test client running the application lifespan."""
    with TestClient(app) as test_client:
        yield test_client


def _expect_status(response: object, expected: int) -> None:
    if response.status_code != expected:
        msg = f"Expected status {expected}, got {response.status_code}: {response.text}"
        raise AssertionError(msg)


def test_health(client: TestClient) -> None:
    """Test the /health endpoint returns status ok."""
    response = client.get("/health")
    _expect_status(response, HTTP_200_OK)
    if response.json() != {"status": "ok"}:
        msg = f"Expected response {{'status': 'ok'}}, got {response.json()}"
        raise AssertionError(msg)


def test_scalar_docs(client: TestClient) -> None:
    """Test the /scalar endpoint returns OpenAPI or Swagger docs."""
    response = client.get("/scalar")
    _expect_status(response, HTTP_200_OK)
    if not ("openapi" in response.text or "swagger" in response.text):
        msg = "Expected 'openapi' or 'swagger' in response text"
        raise AssertionError(msg)


def test_import_statement_twice(client: TestClient) -> None:
    """Test a pasted statement is imported once and reported as duplicate the second time."""
    form = {"text": REVOLUT_STATEMENT, "member": "Eu"}
    first = client.post("/imports/statement", data=form, headers=HOUSEHOLD)
    _expect_status(first, HTTP_200_OK)
    body = first.json()
    if body["outcome"] != "all_new" or body["parser"] != "structured" or len(body["accepted"]) != 2:
        msg = f"Unexpected first import {body}"
        raise AssertionError(msg)
    second = client.post("/imports/statement", data=form, headers=HOUSEHOLD)
    _expect_status(second, HTTP_200_OK)
    if second.json()["outcome"] != "fully_duplicate":
        msg = f"Unexpected second import {second.json()}"
        raise AssertionError(msg)
    stored = client.get("/transactions", headers=HOUSEHOLD).json()
    if [t["member"] for t in stored] != ["Eu", "Eu"]:
        msg = f"Unexpected stored transactions {stored}"
        raise AssertionError(msg)


def test_import_statement_file_upload(client: TestClient) -> None:
    """Test an uploaded text file is imported into the selected household only."""
    files = {"file": ("extrato.txt", REVOLUT_STATEMENT.encode("utf-8"), "text/plain")}
    response = client.post("/imports/statement", files=files, data={"member": "Conjunto"}, headers=HOUSEHOLD)
    _expect_status(response, HTTP_200_OK)
    if client.get("/transactions", headers=OTHER_HOUSEHOLD).json() != []:
        msg = "Another household must not see the imported transactions"
        raise AssertionError(msg)


def test_import_statement_errors(client: TestClient, llm: FakeLLMClient) -> None:
    """Test empty input, a missing household header and an unreadable LLM reply."""
    _expect_status(client.post("/imports/statement", data={"text": "  "}, headers=HOUSEHOLD), HTTP_400_BAD_REQUEST)
    _expect_status(client.post("/imports/statement", data={"text": "x"}), HTTP_422_UNPROCESSABLE)
    llm.reply = "Não sei."
    response = client.post("/imports/statement", data={"text": "Banco X movimentos"}, headers=HOUSEHOLD)
    _expect_status(response, HTTP_502_BAD_GATEWAY)
    if "Erro ao processar o extrato" not in response.json()["detail"]:
        msg = f"Unexpected error detail {response.json()}"
        raise AssertionError(msg)


def test_transaction_crud(client: TestClient) -> None:
    """Test creating, updating and deleting a manual transaction."""
    payload = {"date": "2024-06-03", "description": "Farmácia", "amount": 12.4, "type": "Despesa", "category": "Saúde"}
    created = client.post("/transactions", json=payload, headers=HOUSEHOLD)
    _expect_status(created, HTTP_201_CREATED)
    txn_id = created.json()["id"]
    updated = client.put(f"/transactions/{txn_id}", json={**payload, "amount": 15}, headers=HOUSEHOLD)
    _expect_status(updated, HTTP_200_OK)
    if client.get("/transactions", headers=HOUSEHOLD).json()[0]["amount"] != 15:
        msg = "Update must be persisted"
        raise AssertionError(msg)
    _expect_status(client.put(f"/transactions/{txn_id}", json=payload, headers=OTHER_HOUSEHOLD), HTTP_404_NOT_FOUND)
    _expect_status(client.delete(f"/transactions/{txn_id}", headers=HOUSEHOLD), HTTP_204_NO_CONTENT)
    _expect_status(client.delete(f"/transactions/{txn_id}", headers=HOUSEHOLD), HTTP_404_NOT_FOUND)


def test_summary_views(client: TestClient) -> None:
    """Test the monthly summary, category and forecast views after an import."""
    client.post("/imports/statement", data={"text": REVOLUT_STATEMENT}, headers=HOUSEHOLD)
    summary = client.get("/summary/2024-06", headers=HOUSEHOLD).json()
    if (summary["income"], summary["expense"]) != (50.0, 45.3):
        msg = f"Unexpected summary {summary}"
        raise AssertionError(msg)
    categories = client.get("/summary/2024-06/categories", headers=HOUSEHOLD).json()
    if categories != [{"name": "Supermercado", "value": 45.3}]:
        msg = f"Unexpected categories {categories}"
        raise AssertionError(msg)
    forecast = client.get("/summary/2024-06/forecast", headers=HOUSEHOLD).json()
    if forecast["extrapolated"]:
        msg = "A past month must not be extrapolated"
        raise AssertionError(msg)
    _expect_status(client.get("/summary/2024-13", headers=HOUSEHOLD), HTTP_422_UNPROCESSABLE)


def test_budget_items(client: TestClient) -> None:
    """Test recurring budget items are expanded and can be replaced as a whole."""
    draft = {"month": "2024-06", "description": "Renda", "amount": 800, "category": "Habitação", "is_recurring": True, "repeat": 3}
    created = client.post("/budget-items", json=draft, headers=HOUSEHOLD)
    _expect_status(created, HTTP_201_CREATED)
    if len(created.json()) != 3:
        msg = f"Expected 3 monthly items, got {created.json()}"
        raise AssertionError(msg)
    june = client.get("/budget-items", params={"month": "2024-06"}, headers=HOUSEHOLD).json()
    replaced = client.put("/budget-items", json=june, headers=HOUSEHOLD)
    _expect_status(replaced, HTTP_200_OK)
    if len(replaced.json()["deleted"]) != 2 or len(client.get("/budget-items", headers=HOUSEHOLD).json()) != 1:
        msg = f"Unexpected replace result {replaced.json()}"
        raise AssertionError(msg)
    report = client.get("/summary/2024-06/budget", headers=HOUSEHOLD).json()
    if report["categories"][0]["planned"] != 800:
        msg = f"Unexpected budget report {report}"
        raise AssertionError(msg)


def test_goals(client: TestClient) -> None:
    """Test goals are stored with progress and feed the insight."""
    goal = {"name": "Fundo de emergência", "target_amount": 6000, "current_amount": 3000, "deadline": "2099-01-01", "category": "emergency"}
    _expect_status(client.post("/goals", json=goal, headers=HOUSEHOLD), HTTP_201_CREATED)
    goals = client.get("/goals", headers=HOUSEHOLD).json()
    if goals[0]["percent_complete"] != 50:
        msg = f"Unexpected goals {goals}"
        raise AssertionError(msg)
    insight = client.get("/goals/insight", headers=HOUSEHOLD).json()
    if insight["kind"] != "warning":
        msg = f"Without income the insight must warn, got {insight}"
        raise AssertionError(msg)
    _expect_status(client.delete(f"/goals/{goals[0]['goal']['id']}", headers=HOUSEHOLD), HTTP_204_NO_CONTENT)


def test_receipt_and_advisor(client: TestClient, llm: FakeLLMClient) -> None:
    """Test the receipt reader and the advisor chat through the fake LLM."""
    llm.reply = '{"description": "Café", "amount": 2.1, "date": "2024-06-01", "category": "Restaurantes", "type": "Despesa"}'
    files = {"file": ("recibo.jpg", b"\xff\xd8\xff", "image/jpeg")}
    receipt = client.post("/imports/receipt", files=files)
    _expect_status(receipt, HTTP_200_OK)
    if receipt.json()["amount"] != 2.1:
        msg = f"Unexpected receipt {receipt.json()}"
        raise AssertionError(msg)
    llm.reply = "Corta nos restaurantes."
    chat = client.post("/advisor/chat", json={"history": [], "message": "Dicas?"}, headers=HOUSEHOLD)
    _expect_status(chat, HTTP_200_OK)
    if chat.json() != {"reply": "Corta nos restaurantes."}:
        msg = f"Unexpected advisor reply {chat.json()}"
        raise AssertionError(msg)


def _loop_running() -> bool:
    try:
        asyncio.get_running_loop()
    except RuntimeError:
        return False
    return True


class LoopAwareLLMClient(FakeLLMClient):
    """Fake client that records whether each call ran on the event loop thread."""

    def __init__(self, reply: str = "[]") -> None:
        """Initialize the fake with an empty call log."""
        super().__init__(reply=reply)
        self.on_loop: list[bool] = []

    def _create(self, **kwargs: object) -> object:
        self.on_loop.append(_loop_running())
        return super()._create(**kwargs)


def test_budget_items_are_scoped_to_household(client: TestClient) -> None:
    """Test a household cannot overwrite another household's budget item by id."""
    draft = {"month": "2024-06", "description": "Renda", "amount": 800, "category": "Habitação"}
    owned = client.post("/budget-items", json=draft, headers=OTHER_HOUSEHOLD).json()[0]
    response = client.put("/budget-items", json=[{**owned, "description": "alterado"}], headers=HOUSEHOLD)
    _expect_status(response, HTTP_404_NOT_FOUND)
    if client.get("/budget-items", headers=HOUSEHOLD).json() != []:
        msg = "The item must not move to the requesting household"
        raise AssertionError(msg)
    remaining = client.get("/budget-items", headers=OTHER_HOUSEHOLD).json()
    if [item["description"] for item in remaining] != ["Renda"]:
        msg = f"The owning household's item must be unchanged, got {remaining}"
        raise AssertionError(msg)


def test_corrupt_pdf_upload_is_rejected(client: TestClient) -> None:
    """Test an undecodable PDF upload returns 400 instead of a server error."""
    files = {"file": ("extrato.pdf", b"not really a pdf", "application/pdf")}
    response = client.post("/imports/statement", files=files, headers=HOUSEHOLD)
    _expect_status(response, HTTP_400_BAD_REQUEST)
    if "PDF" not in response.json()["detail"]:
        msg = f"Unexpected error detail {response.json()}"
        raise AssertionError(msg)


def test_llm_calls_run_off_the_event_loop(app: FastAPI, client: TestClient, settings: Settings) -> None:
    """Test statement import and advisor chat call the LLM from a worker thread."""
    llm = LoopAwareLLMClient()
    app.dependency_overrides[get_statement_agent] = lambda: StatementAgent(llm, settings)
    app.dependency_overrides[get_advisor_agent] = lambda: AdvisorAgent(llm, settings)
    _expect_status(client.post("/imports/statement", data={"text": "Banco X"}, headers=HOUSEHOLD), HTTP_200_OK)
    _expect_status(client.post("/advisor/chat", json={"message": "Olá"}, headers=HOUSEHOLD), HTTP_200_OK)
    if llm.on_loop != [False, False]:
        msg = f"LLM calls must not block the event loop, got {llm.on_loop}"
        raise AssertionError(msg)


def test_activity_limit_is_bounded(client: TestClient) -> None:
    """Test non-positive and oversized activity limits are rejected."""
    for limit in (-1, 0, 1000):
        response = client.get("/activity", params={"limit": limit}, headers=HOUSEHOLD)
        _expect_status(response, HTTP_422_UNPROCESSABLE)
    _expect_status(client.get("/activity", params={"limit": 3}, headers=HOUSEHOLD), HTTP_200_OK)
