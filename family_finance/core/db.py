"""DB connection and household-scoped repository for the Family Finance Ledger."""

from collections.abc import Iterable

from sqlalchemy import Boolean, Column, Date, Float, String, create_engine, delete, select
from sqlalchemy.engine import Engine
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session, declarative_base, sessionmaker
from sqlalchemy.pool import StaticPool

from family_finance.core.errors import NotFoundError, PersistenceError
from family_finance.core.models import BudgetItem, FamilyMember, Goal, Transaction, TransactionType
from family_finance.core.utils import get_logger

Base = declarative_base()

logger = get_logger("family-finance.db")


class TransactionRecord(Base):
    """A persisted transaction row, partitioned by household."""

    __tablename__ = "transactions"
    id = Column(String, primary_key=True)
    household_id = Column(String, nullable=False, index=True)
    date = Column(Date, nullable=False, index=True)
    description = Column(String, nullable=False)
    amount = Column(Float, nullable=False)
    type = Column(String, nullable=False)
    category = Column(String, nullable=False)
    member = Column(String, nullable=False)


class BudgetItemRecord(Base):
    """A persisted budget line, partitioned by household."""

    __tablename__ = "budget_items"
    id = Column(String, primary_key=True)
    household_id = Column(String, nullable=False, index=True)
    month = Column(String(7), nullable=False, index=True)
    description = Column(String, nullable=False)
    amount = Column(Float, nullable=False)
    type = Column(String, nullable=False)
    category = Column(String, nullable=False)
    is_recurring = Column(Boolean, nullable=False, default=False)


class GoalRecord(Base):
    """A persisted savings goal, partitioned by household."""

    __tablename__ = "goals"
    id = Column(String, primary_key=True)
    household_id = Column(String, nullable=False, index=True)
    name = Column(String, nullable=False)
    target_amount = Column(Float, nullable=False)
    current_amount = Column(Float, nullable=False, default=0)
    deadline = Column(Date, nullable=False)
    category = Column(String, nullable=False)
    priority = Column(String, nullable=False)
    created_at = Column(String, nullable=False)


def get_engine(database_url: str) -> Engine:
    """Create a SQLAlchemy engine for the configured database URL."""
    if database_url in ("sqlite://", "sqlite:///:memory:"):
        return create_engine(database_url, connect_args={"check_same_thread": False}, poolclass=StaticPool)
    if database_url.startswith("sqlite"):
        return create_engine(database_url, connect_args={"check_same_thread": False})
    return create_engine(database_url)


def build_session_factory(engine: Engine) -> sessionmaker:
    """Create the session factory used by request-scoped repositories."""
    return sessionmaker(autocommit=False, autoflush=False, bind=engine)


def init_db(engine: Engine) -> None:
    """Create all ledger tables if they do not exist."""
    Base.metadata.create_all(engine)


def _to_transaction(row: TransactionRecord) -> Transaction:
    return Transaction(
        id=row.id,
        date=row.date,
        description=row.description,
        amount=row.amount,
        type=TransactionType(row.type),
        category=row.category,
        member=FamilyMember(row.member),
    )


def _to_budget_item(row: BudgetItemRecord) -> BudgetItem:
    return BudgetItem(
        id=row.id,
        month=row.month,
        description=row.description,
        amount=row.amount,
        type=TransactionType(row.type),
        category=row.category,
        is_recurring=bool(row.is_recurring),
    )


def _to_goal(row: GoalRecord) -> Goal:
    return Goal(
        id=row.id,
        name=row.name,
        target_amount=row.target_amount,
        current_amount=row.current_amount,
        deadline=row.deadline,
        category=row.category,
        priority=row.priority,
        created_at=row.created_at,
    )


class LedgerRepository:
    """Household-scoped persistence for transactions, budget items and goals.

    Every write commits immediately; a failed write is rolled back and surfaces
    as ``PersistenceError`` so the caller can reload authoritative state.
    """

    def __init__(self, session: Session) -> None:
        """Initialize the repository with a SQLAlchemy session."""
        self.session = session

    def _commit(self, action: str) -> None:
        try:
            self.session.commit()
        except SQLAlchemyError as exc:
            self.session.rollback()
            msg = f"Failed to {action}: {exc}"
            logger.exception(msg)
            raise PersistenceError(msg) from exc

    # --- Transactions ---

    def list_transactions(self, household_id: str) -> list[Transaction]:
        """Return the household's transactions, newest first."""
        stmt = (
            select(TransactionRecord)
            .where(TransactionRecord.household_id == household_id)
            .order_by(TransactionRecord.date.desc())
        )
        return [_to_transaction(row) for row in self.session.scalars(stmt)]

    def insert(self, household_id: str, transaction: Transaction) -> None:
        """Insert a single transaction."""
        self.insert_batch(household_id, [transaction])

    def insert_batch(self, household_id: str, transactions: Iterable[Transaction]) -> None:
        """Insert several transactions in one commit."""
        for txn in transactions:
            self.session.add(
                TransactionRecord(
                    id=txn.id,
                    household_id=household_id,
                    date=txn.date,
                    description=txn.description,
                    amount=txn.amount,
                    type=txn.type.value,
                    category=txn.category,
                    member=txn.member.value,
                )
            )
        self._commit("insert transactions")

    def update(self, household_id: str, transaction: Transaction) -> None:
        """Replace the stored fields of an existing transaction."""
        row = self.session.get(TransactionRecord, transaction.id)
        if row is None or row.household_id != household_id:
            msg = f"Transaction {transaction.id} not found"
            raise NotFoundError(msg)
        row.date = transaction.date
        row.description = transaction.description
        row.amount = transaction.amount
        row.type = transaction.type.value
        row.category = transaction.category
        row.member = transaction.member.value
        self._commit("update transaction")

    def delete(self, household_id: str, transaction_id: str) -> None:
        """Delete a transaction by id."""
        stmt = delete(TransactionRecord).where(
            TransactionRecord.household_id == household_id, TransactionRecord.id == transaction_id
        )
        result = self.session.execute(stmt)
        if result.rowcount == 0:
            self.session.rollback()
            msg = f"Transaction {transaction_id} not found"
            raise NotFoundError(msg)
        self._commit("delete transaction")

    # --- Budget items ---

    def list_budget_items(self, household_id: str) -> list[BudgetItem]:
        """Return the household's budget items ordered by month."""
        stmt = (
            select(BudgetItemRecord)
            .where(BudgetItemRecord.household_id == household_id)
            .order_by(BudgetItemRecord.month)
        )
        return [_to_budget_item(row) for row in self.session.scalars(stmt)]

    def upsert_budget_items(self, household_id: str, items: Iterable[BudgetItem]) -> None:
        """Insert or overwrite budget items by id.

        An id that belongs to another household is reported as missing and
        nothing is written.
        """
        items = list(items)
        for item in items:
            row = self.session.get(BudgetItemRecord, item.id)
            if row is not None and row.household_id != household_id:
                msg = f"Budget item {item.id} not found"
                raise NotFoundError(msg)
        for item in items:
            self.session.merge(
                BudgetItemRecord(
                    id=item.id,
                    household_id=household_id,
                    month=item.month,
                    description=item.description,
                    amount=item.amount,
                    type=item.type.value,
                    category=item.category,
                    is_recurring=item.is_recurring,
                )
            )
        self._commit("save budget items")

    def delete_budget_item(self, household_id: str, item_id: str) -> None:
        """Delete a budget item by id."""
        stmt = delete(BudgetItemRecord).where(
            BudgetItemRecord.household_id == household_id, BudgetItemRecord.id == item_id
        )
        result = self.session.execute(stmt)
        if result.rowcount == 0:
            self.session.rollback()
            msg = f"Budget item {item_id} not found"
            raise NotFoundError(msg)
        self._commit("delete budget item")

    # --- Goals ---

    def list_goals(self, household_id: str) -> list[Goal]:
        """Return the household's goals ordered by deadline."""
        stmt = select(GoalRecord).where(GoalRecord.household_id == household_id).order_by(GoalRecord.deadline)
        return [_to_goal(row) for row in self.session.scalars(stmt)]

    def insert_goal(self, household_id: str, goal: Goal) -> None:
        """Insert a new goal."""
        self.session.add(
            GoalRecord(
                id=goal.id,
                household_id=household_id,
                name=goal.name,
                target_amount=goal.target_amount,
                current_amount=goal.current_amount,
                deadline=goal.deadline,
                category=goal.category.value,
                priority=goal.priority.value,
                created_at=goal.created_at,
            )
        )
        self._commit("insert goal")

    def delete_goal(self, household_id: str, goal_id: str) -> None:
        """Delete a goal by id."""
        stmt = delete(GoalRecord).where(GoalRecord.household_id == household_id, GoalRecord.id == goal_id)
        result = self.session.execute(stmt)
        if result.rowcount == 0:
            self.session.rollback()
            msg = f"Goal {goal_id} not found"
            raise NotFoundError(msg)
        self._commit("delete goal")

    def close(self) -> None:
        """Close the SQLAlchemy session."""
        self.session.close()
