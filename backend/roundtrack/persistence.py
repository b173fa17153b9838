from __future__ import annotations

import json
from datetime import datetime
from pathlib import Path
from threading import Lock
from typing import Optional

from sqlalchemy import (
    Column,
    DateTime,
    MetaData,
    String,
    Table,
    Text,
    create_engine,
    select,
)
from sqlalchemy.engine import Engine
from sqlalchemy.exc import SQLAlchemyError

from backend.roundtrack.models import ArchivedApplicationRecord


def _normalize_database_url(database_url: str) -> str:
    value = database_url.strip()
    if value.startswith("sqlite:///"):
        sqlite_path = value[len("sqlite:///") :].split("?", 1)[0]
        if sqlite_path and sqlite_path != ":memory:":
            path = Path(sqlite_path)
            if path.parent:
                path.parent.mkdir(parents=True, exist_ok=True)
        return value
    if "://" in value:
        return value
    path = Path(value)
    if path.parent:
        path.parent.mkdir(parents=True, exist_ok=True)
    return f"sqlite:///{str(path).replace(chr(92), '/')}"


class SqlitePersistence:
    """
    Document snapshot storage on SQLAlchemy Core. Works with SQLite and PostgreSQL URLs.

    Live collections are kept as one JSON snapshot row. Archived applications
    leave the live snapshot and get their own table.
    """

    SNAPSHOT_ID = "default"

    def __init__(self, database_url: str) -> None:
        self.database_url = _normalize_database_url(database_url)
        self._lock = Lock()
        self.engine: Engine = create_engine(
            self.database_url,
            future=True,
            pool_pre_ping=True,
        )
        self.metadata = MetaData()
        self.state_snapshots = Table(
            "state_snapshots",
            self.metadata,
            Column("id", String(50), primary_key=True),
            Column("payload_json", Text, nullable=False),
            Column("updated_at_utc", DateTime, nullable=False),
        )
        self.archived_applications = Table(
            "archived_applications",
            self.metadata,
            Column("id", String(120), primary_key=True),
            Column("process_id", String(120), nullable=False),
            Column("candidate_id", String(120), nullable=False),
            Column("status", String(50), nullable=False),
            Column("archived_by", String(120), nullable=False),
            Column("archived_reason", String(120), nullable=False),
            Column("payload_json", Text, nullable=False),
            Column("archived_at_utc", DateTime, nullable=False),
        )
        self._ensure_schema()

    def _ensure_schema(self) -> None:
        self.metadata.create_all(self.engine)

    def ping(self) -> bool:
        try:
            with self.engine.connect() as conn:
                conn.execute(select(1))
            return True
        except SQLAlchemyError:
            return False

    def save_snapshot(self, payload: dict) -> None:
        with self._lock:
            serialized = json.dumps(payload)
            now = datetime.utcnow()
            with self.engine.begin() as conn:
                existing = conn.execute(
                    select(self.state_snapshots.c.id).where(
                        self.state_snapshots.c.id == self.SNAPSHOT_ID
                    )
                ).first()
                if existing:
                    conn.execute(
                        self.state_snapshots.update()
                        .where(self.state_snapshots.c.id == self.SNAPSHOT_ID)
                        .values(payload_json=serialized, updated_at_utc=now)
                    )
                else:
                    conn.execute(
                        self.state_snapshots.insert().values(
                            id=self.SNAPSHOT_ID,
                            payload_json=serialized,
                            updated_at_utc=now,
                        )
                    )

    def load_snapshot(self) -> Optional[dict]:
        with self._lock:
            with self.engine.connect() as conn:
                row = conn.execute(
                    select(self.state_snapshots.c.payload_json).where(
                        self.state_snapshots.c.id == self.SNAPSHOT_ID
                    )
                ).first()
            if not row:
                return None
            return json.loads(row[0])

    def insert_archived_application(self, record: ArchivedApplicationRecord) -> None:
        with self._lock:
            with self.engine.begin() as conn:
                conn.execute(
                    self.archived_applications.insert().values(
                        id=record.id,
                        process_id=record.process_id,
                        candidate_id=record.candidate_id,
                        status=record.status.value,
                        archived_by=record.archived_by,
                        archived_reason=record.archived_reason,
                        payload_json=json.dumps(record.model_dump(mode="json")),
                        archived_at_utc=record.archived_at_utc,
                    )
                )

    def list_archived_applications(self, limit: int = 100) -> list[ArchivedApplicationRecord]:
        safe_limit = max(1, min(limit, 500))
        with self._lock:
            with self.engine.connect() as conn:
                rows = conn.execute(
                    select(self.archived_applications.c.payload_json)
                    .order_by(self.archived_applications.c.archived_at_utc.desc())
                    .limit(safe_limit)
                ).all()
        return [
            ArchivedApplicationRecord.model_validate(json.loads(row.payload_json))
            for row in rows
        ]
