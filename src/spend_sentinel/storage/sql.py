"""SQLAlchemy-backed transaction store."""

from collections.abc import Iterator
from contextlib import contextmanager
import datetime as dt
from decimal import Decimal
from typing import Optional

from sqlalchemy import Boolean, Date, DateTime, Index, Integer, String, Text, create_engine, event, select
from sqlalchemy.engine import Engine
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import DeclarativeBase, Mapped, Session, mapped_column, sessionmaker
from sqlalchemy.pool import StaticPool

from spend_sentinel.models.transaction import AnomalyState, PersistedTransaction, PolicyStatus
from spend_sentinel.storage.base import StoreError, TransactionStore
from spend_sentinel.utils.decimal_utils import round_half_up
from spend_sentinel.utils.logging_config import get_logger

logger = get_logger(__name__)


class Base(DeclarativeBase):
    pass


class TransactionRow(Base):
    __tablename__ = "transactions"

    id: Mapped[str] = mapped_column(String(36), primary_key=True)
    user_id: Mapped[str] = mapped_column(String(64), nullable=False, index=True)
    date: Mapped[dt.date] = mapped_column(Date, nullable=False)
    merchant: Mapped[str] = mapped_column(String(255), nullable=False)
    description: Mapped[str] = mapped_column(Text, nullable=False, default="")
    amount_cents: Mapped[int] = mapped_column(Integer, nullable=False)
    category: Mapped[str] = mapped_column(String(64), nullable=False, default="other")
    is_deleted: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    anomaly_state: Mapped[str] = mapped_column(String(16), nullable=False, default=AnomalyState.UNANALYZED.value)
    anomaly_reason: Mapped[Optional[str]] = mapped_column(Text)
    anomaly_comparison: Mapped[Optional[str]] = mapped_column(Text)
    policy_status: Mapped[str] = mapped_column(String(16), nullable=False, default=PolicyStatus.COMPLIANT.value)
    policy_rule: Mapped[Optional[str]] = mapped_column(String(255))
    source: Mapped[str] = mapped_column(String(32), nullable=False, default="statement_upload")
    created_at: Mapped[dt.datetime] = mapped_column(DateTime, nullable=False, default=dt.datetime.now)

    __table_args__ = (
        Index("ix_transactions_dedup", "user_id", "merchant", "amount_cents"),
        Index("ix_transactions_user_date", "user_id", "date"),
    )


def to_cents(amount: Decimal) -> int:
    return int(round_half_up(amount) * 100)


def from_cents(cents: int) -> Decimal:
    return (Decimal(cents) / 100).quantize(Decimal("0.01"))


def _to_model(row: TransactionRow) -> PersistedTransaction:
    return PersistedTransaction(
        id=row.id,
        user_id=row.user_id,
        date=row.date,
        merchant=row.merchant,
        description=row.description,
        amount=from_cents(row.amount_cents),
        category=row.category,
        is_deleted=row.is_deleted,
        anomaly_state=AnomalyState(row.anomaly_state),
        anomaly_reason=row.anomaly_reason,
        anomaly_comparison=row.anomaly_comparison,
        policy_status=PolicyStatus(row.policy_status),
        policy_rule=row.policy_rule,
        source=row.source,
    )


def _enable_sqlite_pragmas(dbapi_conn, _record):
    cursor = dbapi_conn.cursor()
    cursor.execute("PRAGMA journal_mode=WAL;")
    cursor.close()


def create_store_engine(url: str, echo: bool = False) -> Engine:
    """Create an engine suitable for use from several threads.

    Args:
        url: SQLAlchemy database URL.
        echo: Whether to log emitted SQL.

    Returns:
        Configured Engine.
    """
    kwargs: dict[str, object] = {"echo": echo}
    if url.startswith("sqlite"):
        kwargs["connect_args"] = {"check_same_thread": False}
        if url in ("sqlite://", "sqlite:///:memory:"):
            # One shared connection, otherwise each connection sees its own database
            kwargs["poolclass"] = StaticPool

    eng = create_engine(url, **kwargs)
    if url.startswith("sqlite"):
        event.listen(eng, "connect", _enable_sqlite_pragmas)
    return eng


class SqlTransactionStore(TransactionStore):
    """Keeps records in a relational database through SQLAlchemy.

    Amounts are stored as integer cents.
    """

    def __init__(self, url: Optional[str] = None, engine: Optional[Engine] = None, echo: bool = False):
        """Initialize store and create tables if missing.

        Args:
            url: Database URL, used when no engine is given.
            engine: Existing engine to use.
            echo: Whether to log emitted SQL.
        """
        super().__init__()
        if engine is None:
            if url is None:
                raise StoreError("Either a database URL or an engine is required")
            engine = create_store_engine(url, echo=echo)
        self.engine = engine
        self._sessions = sessionmaker(bind=engine, autoflush=False, expire_on_commit=False)

        try:
            Base.metadata.create_all(engine)
        except SQLAlchemyError as e:
            raise StoreError(f"Could not initialize database: {e}") from e
        logger.debug(f"Transaction store ready on {engine.url.render_as_string(hide_password=True)}")

    @contextmanager
    def session_scope(self) -> Iterator[Session]:
        session: Session = self._sessions()
        try:
            yield session
            session.commit()
        except SQLAlchemyError as e:
            session.rollback()
            raise StoreError(f"Database error: {e}") from e
        except Exception:
            session.rollback()
            raise
        finally:
            session.close()

    def insert(self, record: PersistedTransaction) -> PersistedTransaction:
        with self.session_scope() as session:
            session.add(
                TransactionRow(
                    id=record.id,
                    user_id=record.user_id,
                    date=record.date,
                    merchant=record.merchant,
                    description=record.description,
                    amount_cents=to_cents(record.amount),
                    category=record.category,
                    is_deleted=record.is_deleted,
                    anomaly_state=record.anomaly_state.value,
                    anomaly_reason=record.anomaly_reason,
                    anomaly_comparison=record.anomaly_comparison,
                    policy_status=record.policy_status.value,
                    policy_rule=record.policy_rule,
                    source=record.source,
                )
            )
        return record

    def get(self, txn_id: str) -> Optional[PersistedTransaction]:
        with self.session_scope() as session:
            row = session.get(TransactionRow, txn_id)
            return _to_model(row) if row else None

    def find(
        self,
        user_id: str,
        start: Optional[dt.date] = None,
        end: Optional[dt.date] = None,
        category: Optional[str] = None,
        merchant: Optional[str] = None,
        amount: Optional[Decimal] = None,
        include_deleted: bool = False,
    ) -> list[PersistedTransaction]:
        stmt = select(TransactionRow).where(TransactionRow.user_id == user_id)
        if not include_deleted:
            stmt = stmt.where(TransactionRow.is_deleted.is_(False))
        if start is not None:
            stmt = stmt.where(TransactionRow.date >= start)
        if end is not None:
            stmt = stmt.where(TransactionRow.date <= end)
        if category is not None:
            stmt = stmt.where(TransactionRow.category == category)
        if merchant is not None:
            stmt = stmt.where(TransactionRow.merchant == merchant)
        if amount is not None:
            stmt = stmt.where(TransactionRow.amount_cents == to_cents(amount))
        stmt = stmt.order_by(TransactionRow.date, TransactionRow.created_at)

        with self.session_scope() as session:
            return [_to_model(row) for row in session.scalars(stmt)]

    def save_anomaly_state(
        self,
        txn_id: str,
        state: AnomalyState,
        reason: Optional[str] = None,
        comparison: Optional[str] = None,
        force: bool = False,
    ) -> bool:
        with self.session_scope() as session:
            row = self._require(session, txn_id, lock=True)
            record = _to_model(row)
            if not record.apply_anomaly(state, reason, comparison, force):
                return False
            row.anomaly_state = record.anomaly_state.value
            row.anomaly_reason = record.anomaly_reason
            row.anomaly_comparison = record.anomaly_comparison
            return True

    def save_policy_status(self, txn_id: str, status: PolicyStatus, rule: Optional[str] = None) -> None:
        with self.session_scope() as session:
            row = self._require(session, txn_id)
            row.policy_status = status.value
            row.policy_rule = rule

    def soft_delete(self, txn_id: str) -> None:
        with self.session_scope() as session:
            self._require(session, txn_id).is_deleted = True

    def _require(self, session: Session, txn_id: str, lock: bool = False) -> TransactionRow:
        row = session.get(TransactionRow, txn_id, with_for_update=lock)
        if row is None:
            raise StoreError(f"Transaction {txn_id} not found")
        return row
