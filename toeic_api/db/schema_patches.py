"""
Idempotent schema repair patches.

Each patch is an ordered list of guarded steps ("add column if missing",
"fill NULLs and set NOT NULL", "create unique index if missing"). Every step
checks the live schema through the SQLAlchemy inspector first, runs in its
own transaction, and a failing step is logged without stopping the rest.
Runs are recorded in the schema_patches ledger table.

Alembic owns the ordered migrations; these patches repair databases whose
schema drifted from them (columns added by hand, half-applied upgrades).
"""
import logging
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Dict, List, Optional, Sequence

import sqlalchemy as sa
from sqlalchemy import inspect, text
from sqlalchemy.engine import Connection, Engine
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from toeic_api.db.models.schema_patch import SchemaPatchRecord

logger = logging.getLogger(__name__)

APPLIED = "applied"
SKIPPED = "skipped"
FAILED = "failed"


def _render_default(value: Any, dialect_name: str) -> str:
    if isinstance(value, bool):
        if dialect_name == "postgresql":
            return "TRUE" if value else "FALSE"
        return "1" if value else "0"
    if isinstance(value, (int, float)):
        return str(value)
    return "'" + str(value).replace("'", "''") + "'"


def _table_exists(conn: Connection, table: str) -> bool:
    return inspect(conn).has_table(table)


def _column_names(conn: Connection, table: str) -> List[str]:
    return [col["name"] for col in inspect(conn).get_columns(table)]


@dataclass(frozen=True)
class AddColumn:
    table: str
    column: str
    type_: Any
    nullable: bool = True
    default: Any = None

    def describe(self) -> str:
        return f"add column {self.table}.{self.column}"

    def run(self, conn: Connection) -> str:
        if not _table_exists(conn, self.table):
            return SKIPPED
        if self.column in _column_names(conn, self.table):
            return SKIPPED

        dialect = conn.dialect
        quote = dialect.identifier_preparer.quote
        ddl = (
            f"ALTER TABLE {quote(self.table)} ADD COLUMN {quote(self.column)} "
            f"{self.type_.compile(dialect=dialect)}"
        )
        if self.default is not None:
            ddl += f" DEFAULT {_render_default(self.default, dialect.name)}"
        if not self.nullable:
            ddl += " NOT NULL"
        conn.execute(text(ddl))
        return APPLIED


@dataclass(frozen=True)
class SetNotNull:
    """Fill NULLs with a default, then add NOT NULL. PostgreSQL only."""
    table: str
    column: str
    default: Any

    def describe(self) -> str:
        return f"set not null {self.table}.{self.column}"

    def run(self, conn: Connection) -> str:
        if conn.dialect.name != "postgresql":
            return SKIPPED
        if not _table_exists(conn, self.table):
            return SKIPPED
        columns = {col["name"]: col for col in inspect(conn).get_columns(self.table)}
        col = columns.get(self.column)
        if col is None or not col["nullable"]:
            return SKIPPED

        quote = conn.dialect.identifier_preparer.quote
        table, column = quote(self.table), quote(self.column)
        default = _render_default(self.default, conn.dialect.name)
        conn.execute(text(f"UPDATE {table} SET {column} = {default} WHERE {column} IS NULL"))
        conn.execute(text(f"ALTER TABLE {table} ALTER COLUMN {column} SET DEFAULT {default}"))
        conn.execute(text(f"ALTER TABLE {table} ALTER COLUMN {column} SET NOT NULL"))
        return APPLIED


@dataclass(frozen=True)
class AddUniqueIndex:
    table: str
    name: str
    columns: Sequence[str]

    def describe(self) -> str:
        return f"add unique index {self.name} on {self.table}({', '.join(self.columns)})"

    def run(self, conn: Connection) -> str:
        if not _table_exists(conn, self.table):
            return SKIPPED
        inspector = inspect(conn)
        wanted = list(self.columns)
        for index in inspector.get_indexes(self.table):
            if index["name"] == self.name or (index.get("unique") and list(index["column_names"]) == wanted):
                return SKIPPED
        for constraint in inspector.get_unique_constraints(self.table):
            if constraint["name"] == self.name or list(constraint["column_names"]) == wanted:
                return SKIPPED

        quote = conn.dialect.identifier_preparer.quote
        cols = ", ".join(quote(c) for c in self.columns)
        conn.execute(text(f"CREATE UNIQUE INDEX {quote(self.name)} ON {quote(self.table)} ({cols})"))
        return APPLIED


@dataclass
class SchemaPatch:
    name: str
    description: str
    steps: List[Any]


@dataclass
class StepResult:
    step: str
    status: str
    error: Optional[str] = None


@dataclass
class PatchReport:
    name: str
    results: List[StepResult] = field(default_factory=list)

    def count(self, status: str) -> int:
        return sum(1 for r in self.results if r.status == status)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "name": self.name,
            "applied": self.count(APPLIED),
            "skipped": self.count(SKIPPED),
            "failed": self.count(FAILED),
            "steps": [
                {"step": r.step, "status": r.status, **({"error": r.error} if r.error else {})}
                for r in self.results
            ],
        }


PATCHES: List[SchemaPatch] = [
    SchemaPatch(
        name="2024_01_vocabulary_columns",
        description="Columns added to vocabulary_items after the first release",
        steps=[
            AddColumn("vocabulary_items", "context", sa.Text()),
            AddColumn("vocabulary_items", "meanings", sa.JSON()),
            AddColumn("vocabulary_items", "audio_url", sa.String()),
            AddColumn("vocabulary_items", "language", sa.String(8), nullable=False, default="en"),
            AddColumn("vocabulary_items", "reading", sa.String()),
            AddColumn("vocabulary_items", "tags", sa.JSON(), nullable=False, default="[]"),
            AddColumn("vocabulary_items", "mastered", sa.Boolean(), nullable=False, default=False),
            AddColumn("vocabulary_items", "notes", sa.Text()),
            AddColumn("vocabulary_items", "definition_loading", sa.Boolean(), nullable=False, default=False),
            AddColumn("vocabulary_items", "definition_error", sa.Boolean(), nullable=False, default=False),
            AddColumn("vocabulary_items", "updated_at", sa.DateTime()),
        ],
    ),
    SchemaPatch(
        name="2024_02_practice_question_sources",
        description="Per-source question counters on practice_records",
        steps=[
            AddColumn("practice_records", "real_questions", sa.Integer(), nullable=False, default=0),
            AddColumn("practice_records", "ai_pool_questions", sa.Integer(), nullable=False, default=0),
            AddColumn("practice_records", "realtime_questions", sa.Integer(), nullable=False, default=0),
            SetNotNull("practice_records", "real_questions", 0),
            SetNotNull("practice_records", "ai_pool_questions", 0),
            SetNotNull("practice_records", "realtime_questions", 0),
        ],
    ),
    SchemaPatch(
        name="2024_03_user_trial_and_status",
        description="Trial bookkeeping and account status columns on users",
        steps=[
            AddColumn("users", "role", sa.String(), nullable=False, default="user"),
            AddColumn("users", "email_verified", sa.Boolean(), nullable=False, default=False),
            AddColumn("users", "is_active", sa.Boolean(), nullable=False, default=True),
            AddColumn("users", "last_login_at", sa.DateTime()),
            AddColumn("users", "trial_started_at", sa.DateTime()),
            AddColumn("users", "trial_expires_at", sa.DateTime()),
            AddColumn("users", "has_used_trial", sa.Boolean(), nullable=False, default=False),
            AddColumn("users", "trial_email", sa.String()),
            AddColumn("users", "trial_ip_address", sa.String()),
        ],
    ),
    SchemaPatch(
        name="2024_04_subscription_lifecycle",
        description="Cancellation and payment tracking on user_subscriptions",
        steps=[
            AddColumn("user_subscriptions", "cancel_at_period_end", sa.Boolean(), nullable=False, default=False),
            AddColumn("user_subscriptions", "canceled_at", sa.DateTime()),
            AddColumn("user_subscriptions", "last_payment_at", sa.DateTime()),
            AddColumn("user_subscriptions", "stripe_session_id", sa.String()),
        ],
    ),
    SchemaPatch(
        name="2024_05_usage_quota_unique_period",
        description="At most one usage_quotas row per user, resource and period",
        steps=[
            AddUniqueIndex("usage_quotas", "uq_usage_quota_period", ["user_id", "resource_type", "period_start"]),
        ],
    ),
]


def apply_patch(engine: Engine, patch: SchemaPatch) -> PatchReport:
    """Run every step of a patch. Failures are logged and the next step runs."""
    report = PatchReport(name=patch.name)
    for step in patch.steps:
        description = step.describe()
        try:
            with engine.begin() as conn:
                status = step.run(conn)
            report.results.append(StepResult(step=description, status=status))
            if status == APPLIED:
                logger.info(f"Schema patch step applied: patch={patch.name}, step={description}")
            else:
                logger.debug(f"Schema patch step skipped: patch={patch.name}, step={description}")
        except SQLAlchemyError as e:
            report.results.append(StepResult(step=description, status=FAILED, error=str(e.__cause__ or e)))
            logger.warning(f"Schema patch step failed, continuing: patch={patch.name}, step={description}, error={e}")
    return report


def _record(engine: Engine, report: PatchReport) -> None:
    SchemaPatchRecord.__table__.create(bind=engine, checkfirst=True)
    with Session(bind=engine) as session:
        record = session.query(SchemaPatchRecord).filter(SchemaPatchRecord.name == report.name).first()
        if record is None:
            record = SchemaPatchRecord(name=report.name)
            session.add(record)
        record.applied_at = datetime.utcnow()
        record.steps_applied = report.count(APPLIED)
        record.steps_skipped = report.count(SKIPPED)
        record.steps_failed = report.count(FAILED)
        session.commit()


def apply_all(engine: Engine, patches: Sequence[SchemaPatch] = None) -> List[PatchReport]:
    """Apply patches in order and record each run in the ledger."""
    reports = []
    for patch in patches if patches is not None else PATCHES:
        report = apply_patch(engine, patch)
        try:
            _record(engine, report)
        except SQLAlchemyError as e:
            logger.warning(f"Could not record schema patch run: patch={patch.name}, error={e}")
        logger.info(
            f"Schema patch finished: patch={patch.name}, applied={report.count(APPLIED)}, "
            f"skipped={report.count(SKIPPED)}, failed={report.count(FAILED)}"
        )
        reports.append(report)
    return reports


def missing_columns(engine: Engine, patches: Sequence[SchemaPatch] = None) -> Dict[str, List[str]]:
    """Columns that the patches would add to existing tables."""
    missing: Dict[str, List[str]] = {}
    with engine.connect() as conn:
        inspector = inspect(conn)
        for patch in patches if patches is not None else PATCHES:
            for step in patch.steps:
                if not isinstance(step, AddColumn) or not inspector.has_table(step.table):
                    continue
                existing = [col["name"] for col in inspector.get_columns(step.table)]
                if step.column not in existing:
                    missing.setdefault(step.table, []).append(step.column)
    return missing


def ledger(engine: Engine) -> List[Dict[str, Any]]:
    if not inspect(engine).has_table(SchemaPatchRecord.__tablename__):
        return []
    with Session(bind=engine) as session:
        rows = session.query(SchemaPatchRecord).order_by(SchemaPatchRecord.id).all()
        return [
            {
                "name": row.name,
                "appliedAt": row.applied_at.isoformat() if row.applied_at else None,
                "applied": row.steps_applied,
                "skipped": row.steps_skipped,
                "failed": row.steps_failed,
            }
            for row in rows
        ]


def run_schema_patches_safely(engine: Engine) -> None:
    """Boot-time entry point; never raises."""
    logger.info("RUN_SCHEMA_PATCHES=1 -> applying schema patches")
    try:
        apply_all(engine)
    except Exception:
        logger.exception("Schema patches aborted; continuing startup")
