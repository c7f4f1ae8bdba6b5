"""
SQLite Storage Implementation

DESIGN DECISION: A single SQLite file is the storage backend because:
1. The ledger is small (a few rows per counterparty)
2. No database server to run next to the bot
3. SQLite serializes writers, so two appends can never interleave
4. The file layout stays readable by the older bot's tooling

LAYOUT: table transactions(id, phone_number, amount, details, date,
created_at). `date` is occurred_at and `created_at` is recorded_at, both
stored as fixed-width UTC ISO-8601 strings (2025-08-12T10:00:00.000Z) so
that string order is time order and range filters can use the index.
`amount` holds the decimal text exactly as validated.

The implementation follows the abstract interface, so the ledger never
sees SQLAlchemy objects.
"""

import json
from datetime import MINYEAR, datetime, timedelta, timezone
from decimal import Decimal
from typing import Optional
from uuid import UUID

import structlog
from sqlalchemy import (
    Boolean,
    Index,
    Integer,
    String,
    Text,
    create_engine,
    event,
    func,
    select,
)
from sqlalchemy.engine import Engine
from sqlalchemy.exc import OperationalError, SQLAlchemyError
from sqlalchemy.orm import DeclarativeBase, Mapped, Session, mapped_column, sessionmaker
from sqlalchemy.types import TypeDecorator
from tenacity import retry, retry_if_exception, stop_after_attempt, wait_exponential

from ledgerbot.config import get_settings
from ledgerbot.models.audit import AuditEvent, AuditEventType, AuditSeverity
from ledgerbot.models.transaction import Transaction
from ledgerbot.services.storage.interface import (
    AuditStorageInterface,
    ConnectionError,
    StorageError,
    TransactionStorageInterface,
)


logger = structlog.get_logger(__name__)

ONE_MILLISECOND = timedelta(milliseconds=1)
EARLIEST_INSTANT = datetime.min.replace(tzinfo=timezone.utc)
LATEST_INSTANT = datetime.max.replace(microsecond=999000, tzinfo=timezone.utc)


# =============================================================================
# Column types
# =============================================================================

def truncate_to_millis(value: datetime) -> datetime:
    return value.replace(microsecond=value.microsecond // 1000 * 1000)


def format_instant(value: datetime) -> str:
    """Aware datetime -> 2025-08-12T10:00:00.000Z"""
    if value.tzinfo is None:
        raise ValueError("Refusing to store a naive datetime")
    try:
        utc = value.astimezone(timezone.utc)
    except OverflowError:
        # Local bounds at the edge of the calendar clamp to its UTC edge
        utc = EARLIEST_INSTANT if value.year == MINYEAR else LATEST_INSTANT
    return f"{utc.year:04d}-{utc:%m-%dT%H:%M:%S}.{utc.microsecond // 1000:03d}Z"


def parse_instant(value: str) -> datetime:
    """
    Stored string -> aware UTC datetime.

    Also reads the "YYYY-MM-DD HH:MM:SS" rows SQLite's CURRENT_TIMESTAMP
    default wrote in older files.
    """
    parsed = datetime.fromisoformat(value.replace("Z", "+00:00"))
    if parsed.tzinfo is None:
        return parsed.replace(tzinfo=timezone.utc)
    return parsed.astimezone(timezone.utc)


class UTCInstant(TypeDecorator):
    """Timezone-aware datetime stored as a sortable UTC string."""

    impl = String(24)
    cache_ok = True

    def process_bind_param(self, value, dialect):
        if value is None:
            return None
        return format_instant(value)

    def process_result_value(self, value, dialect):
        if value is None:
            return None
        return parse_instant(value)


class DecimalAmount(TypeDecorator):
    """
    Decimal stored as its exact text, so what is read back equals what
    was appended. REAL values in older files are read through str().
    """

    impl = Text
    cache_ok = True

    def process_bind_param(self, value, dialect):
        if value is None:
            return None
        return str(Decimal(value))

    def process_result_value(self, value, dialect):
        if value is None:
            return None
        return Decimal(str(value))


# =============================================================================
# Tables
# =============================================================================

class Base(DeclarativeBase):
    pass


class TransactionRecord(Base):
    __tablename__ = "transactions"

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    phone_number: Mapped[str] = mapped_column(Text, nullable=False)
    amount: Mapped[Decimal] = mapped_column(DecimalAmount, nullable=False)
    details: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    occurred_at: Mapped[datetime] = mapped_column("date", UTCInstant, nullable=False)
    recorded_at: Mapped[datetime] = mapped_column("created_at", UTCInstant, nullable=False)

    def to_transaction(self) -> Transaction:
        return Transaction(
            id=self.id,
            counterparty=self.phone_number,
            amount=self.amount,
            details=self.details,
            occurred_at=self.occurred_at,
            recorded_at=self.recorded_at,
        )


Index("idx_phone_number", TransactionRecord.phone_number)
Index("idx_date", TransactionRecord.occurred_at)
Index("idx_phone_date", TransactionRecord.phone_number, TransactionRecord.occurred_at)
Index("idx_created_at", TransactionRecord.recorded_at)


class AuditRecord(Base):
    __tablename__ = "audit_log"

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    event_id: Mapped[str] = mapped_column(String(36), nullable=False, unique=True)
    timestamp: Mapped[datetime] = mapped_column(UTCInstant, nullable=False)
    event_type: Mapped[str] = mapped_column(String(50), nullable=False)
    severity: Mapped[str] = mapped_column(String(20), nullable=False)
    entity_type: Mapped[Optional[str]] = mapped_column(String(50), nullable=True)
    entity_id: Mapped[Optional[str]] = mapped_column(String(100), nullable=True)
    correlation_id: Mapped[Optional[str]] = mapped_column(String(36), nullable=True, index=True)
    description: Mapped[str] = mapped_column(Text, nullable=False)
    details_json: Mapped[str] = mapped_column(Text, nullable=False, default="{}")
    error_message: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    is_user_action: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)


# =============================================================================
# Client
# =============================================================================

def _is_transient(exc: BaseException) -> bool:
    """A locked or busy database is worth another try; anything else is not."""
    if not isinstance(exc, OperationalError):
        return False
    message = str(exc).lower()
    return "locked" in message or "busy" in message


def _install_sqlite_hooks(engine: Engine) -> None:
    @event.listens_for(engine, "connect")
    def _on_connect(dbapi_connection, connection_record):
        # SQLAlchemy, not pysqlite, decides when a transaction begins
        dbapi_connection.isolation_level = None
        cursor = dbapi_connection.cursor()
        cursor.execute("PRAGMA journal_mode=WAL")
        cursor.close()

    @event.listens_for(engine, "begin")
    def _on_begin(conn):
        conn.exec_driver_sql("BEGIN")


class SqliteClient:
    """
    Low-level SQLite client wrapper.

    Owns the engine and the session factory, creates the schema on
    first connect, and retries the connect when the file is locked.
    """

    def __init__(
        self,
        database_path: Optional[str] = None,
        echo: Optional[bool] = None,
    ):
        settings = get_settings().ledger
        self._database_path = database_path or settings.database_path
        self._echo = settings.echo_sql if echo is None else echo
        self._engine: Optional[Engine] = None
        self._session_factory: Optional[sessionmaker[Session]] = None

    @property
    def database_path(self) -> str:
        return self._database_path

    @property
    def is_connected(self) -> bool:
        return self._engine is not None

    @retry(
        retry=retry_if_exception(_is_transient),
        stop=stop_after_attempt(3),
        wait=wait_exponential(multiplier=0.2, min=0.2, max=2),
        reraise=True,
    )
    def connect(self) -> Engine:
        """
        Open the database file, creating it and its tables if missing.
        """
        if self._engine is None:
            engine = create_engine(f"sqlite:///{self._database_path}", echo=self._echo)
            _install_sqlite_hooks(engine)
            try:
                Base.metadata.create_all(engine)
            except SQLAlchemyError:
                engine.dispose()
                raise
            self._engine = engine
            self._session_factory = sessionmaker(
                bind=engine,
                expire_on_commit=False,
                class_=Session,
            )
        return self._engine

    def get_session(self) -> Session:
        """Return a new session bound to the open database."""
        if self._session_factory is None:
            raise StorageError("Ledger database is not open")
        return self._session_factory()

    def close(self) -> None:
        if self._engine is not None:
            self._engine.dispose()
        self._engine = None
        self._session_factory = None


# =============================================================================
# Transactions
# =============================================================================

class SqliteTransactionStorage(TransactionStorageInterface):
    """
    SQLite implementation of transaction storage.

    Every method opens its own session, so every query reads what is
    committed in the file right now. There is no cache.
    """

    def __init__(self, client: Optional[SqliteClient] = None):
        self._client = client or SqliteClient()

    @property
    def client(self) -> SqliteClient:
        return self._client

    def open(self) -> None:
        try:
            self._client.connect()
        except SQLAlchemyError as e:
            raise ConnectionError(
                f"Could not open ledger database at {self._client.database_path}: {e}"
            ) from e
        logger.debug("ledger_storage_opened", path=self._client.database_path)

    def close(self) -> None:
        self._client.close()

    def insert_transaction(
        self,
        counterparty: str,
        amount: Decimal,
        details: Optional[str],
        now: datetime,
    ) -> Transaction:
        """Insert one row and return it with the timestamps actually stored."""
        try:
            with self._client.get_session() as session, session.begin():
                stamp = truncate_to_millis(now.astimezone(timezone.utc))
                last = session.scalar(select(func.max(TransactionRecord.recorded_at)))
                if last is not None and stamp <= last:
                    stamp = last + ONE_MILLISECOND

                record = TransactionRecord(
                    phone_number=counterparty,
                    amount=amount,
                    details=details,
                    occurred_at=stamp,
                    recorded_at=stamp,
                )
                session.add(record)
                session.flush()
                session.refresh(record)
                return record.to_transaction()
        except SQLAlchemyError as e:
            raise StorageError(f"Failed to save transaction: {e}") from e

    def list_amounts(self, counterparty: str) -> list[Decimal]:
        try:
            with self._client.get_session() as session:
                return list(session.scalars(
                    select(TransactionRecord.amount)
                    .where(TransactionRecord.phone_number == counterparty)
                ))
        except SQLAlchemyError as e:
            raise StorageError(f"Failed to read amounts: {e}") from e

    def get_latest(self, counterparty: str) -> Optional[Transaction]:
        try:
            with self._client.get_session() as session:
                record = session.scalars(
                    select(TransactionRecord)
                    .where(TransactionRecord.phone_number == counterparty)
                    .order_by(TransactionRecord.recorded_at.desc(), TransactionRecord.id.desc())
                    .limit(1)
                ).first()
                return record.to_transaction() if record else None
        except SQLAlchemyError as e:
            raise StorageError(f"Failed to get last transaction: {e}") from e

    def list_transactions(
        self,
        counterparty: str,
        occurred_from: Optional[datetime] = None,
        occurred_to: Optional[datetime] = None,
    ) -> list[Transaction]:
        statement = select(TransactionRecord).where(
            TransactionRecord.phone_number == counterparty
        )
        if occurred_from is not None:
            statement = statement.where(TransactionRecord.occurred_at >= occurred_from)
        if occurred_to is not None:
            statement = statement.where(TransactionRecord.occurred_at <= occurred_to)
        statement = statement.order_by(
            TransactionRecord.recorded_at.desc(),
            TransactionRecord.id.desc(),
        )

        try:
            with self._client.get_session() as session:
                return [record.to_transaction() for record in session.scalars(statement)]
        except SQLAlchemyError as e:
            raise StorageError(f"Failed to list transactions: {e}") from e


# =============================================================================
# Audit log
# =============================================================================

class SqliteAuditStorage(AuditStorageInterface):
    """
    SQLite implementation of audit log storage.

    Audit events are append-only and live in the same file as the ledger.
    """

    def __init__(self, client: Optional[SqliteClient] = None):
        self._client = client or SqliteClient()

    def _event_to_record(self, event: AuditEvent) -> AuditRecord:
        return AuditRecord(
            event_id=str(event.event_id),
            timestamp=event.timestamp,
            event_type=event.event_type.value,
            severity=event.severity.value,
            entity_type=event.entity_type,
            entity_id=event.entity_id,
            correlation_id=str(event.correlation_id) if event.correlation_id else None,
            description=event.description,
            details_json=json.dumps(event.details, default=str),
            error_message=event.error_message,
            is_user_action=event.is_user_action,
        )

    def _record_to_event(self, record: AuditRecord) -> AuditEvent:
        return AuditEvent(
            event_id=UUID(record.event_id),
            timestamp=record.timestamp,
            event_type=AuditEventType(record.event_type),
            severity=AuditSeverity(record.severity),
            entity_type=record.entity_type,
            entity_id=record.entity_id,
            correlation_id=UUID(record.correlation_id) if record.correlation_id else None,
            description=record.description,
            details=json.loads(record.details_json) if record.details_json else {},
            error_message=record.error_message,
            is_user_action=record.is_user_action,
        )

    async def append_event(self, event: AuditEvent) -> bool:
        """Append an audit event."""
        try:
            with self._client.get_session() as session, session.begin():
                session.add(self._event_to_record(event))
            return True
        except (SQLAlchemyError, StorageError) as e:
            # Audit logging must not break the command flow
            logger.warning(
                "audit_event_not_persisted",
                error=str(e),
                event_id=str(event.event_id),
            )
            return False

    async def get_events_by_correlation_id(
        self,
        correlation_id: UUID,
    ) -> list[AuditEvent]:
        """Get events by correlation ID, oldest first."""
        try:
            with self._client.get_session() as session:
                records = session.scalars(
                    select(AuditRecord)
                    .where(AuditRecord.correlation_id == str(correlation_id))
                    .order_by(AuditRecord.id)
                )
                return [self._record_to_event(record) for record in records]
        except SQLAlchemyError as e:
            raise StorageError(f"Failed to get audit events: {e}") from e

    async def get_recent_events(
        self,
        limit: int = 100,
    ) -> list[AuditEvent]:
        """Get recent events, newest first."""
        try:
            with self._client.get_session() as session:
                records = session.scalars(
                    select(AuditRecord).order_by(AuditRecord.id.desc()).limit(limit)
                )
                return [self._record_to_event(record) for record in records]
        except SQLAlchemyError as e:
            raise StorageError(f"Failed to get audit events: {e}") from e
