"""DuckDB persistence for cursor states and normalized records.

Cursor states are stored per (connector, stream). Records are upserted by
(connector, kind, reference) so re-delivered records collapse onto one row.
Consumed batches can additionally be written to Parquet for auditing.
"""

import logging
from collections.abc import Iterable, Sequence
from datetime import UTC, datetime
from pathlib import Path
from typing import Any
from uuid import uuid4

import duckdb
import polars as pl

from .models import AccountRecord, BalanceRecord, PaymentRecord

logger = logging.getLogger(__name__)

AnyRecord = AccountRecord | BalanceRecord | PaymentRecord

SCHEMA_STATEMENTS = (
    """
    CREATE TABLE IF NOT EXISTS cursor_states (
        connector VARCHAR NOT NULL,
        stream VARCHAR NOT NULL,
        state BLOB NOT NULL,
        updated_at TIMESTAMPTZ NOT NULL,
        PRIMARY KEY (connector, stream)
    )
    """,
    """
    CREATE TABLE IF NOT EXISTS records (
        connector VARCHAR NOT NULL,
        kind VARCHAR NOT NULL,
        reference VARCHAR NOT NULL,
        created_at TIMESTAMPTZ NOT NULL,
        asset VARCHAR,
        amount VARCHAR,
        payload VARCHAR NOT NULL,
        synced_at TIMESTAMPTZ NOT NULL,
        PRIMARY KEY (connector, kind, reference)
    )
    """,
)


def _record_row(record: AnyRecord) -> dict[str, Any]:
    """Flatten a record into the columns shared by the store and raw batches."""
    amount = getattr(record, "amount", None)
    asset = getattr(record, "asset", None) or getattr(record, "default_asset", None)
    return {
        "kind": record.kind,
        "reference": record.reference,
        "created_at": record.created_at,
        "asset": asset,
        # Amounts can exceed 64 bits; keep the exact integer as text
        "amount": str(amount) if amount is not None else None,
        "payload": record.model_dump_json(),
    }


class SyncStore:
    """DuckDB-backed store for sync state and records.

    Each method opens its own short-lived connection, so one store can be
    shared by the CLI and the engine without holding the database open.
    """

    def __init__(self, database_path: Path):
        self.database_path = database_path
        self.database_path.parent.mkdir(parents=True, exist_ok=True)
        with self._connect() as conn:
            for statement in SCHEMA_STATEMENTS:
                conn.execute(statement)

    def _connect(self) -> duckdb.DuckDBPyConnection:
        return duckdb.connect(str(self.database_path))  # type: ignore[misc]

    def load_state(self, connector: str, stream: str) -> bytes | None:
        """Return the persisted cursor state of a stream (None if never synced)."""
        with self._connect() as conn:
            row = conn.execute(
                "SELECT state FROM cursor_states WHERE connector = ? AND stream = ?",
                [connector, stream],
            ).fetchone()
        return bytes(row[0]) if row else None

    def save_state(self, connector: str, stream: str, state: bytes) -> None:
        """Replace the cursor state of a stream."""
        with self._connect() as conn:
            conn.execute(
                "INSERT OR REPLACE INTO cursor_states VALUES (?, ?, ?, ?)",
                [connector, stream, state, datetime.now(UTC)],
            )
        logger.debug(f"Saved state for {connector}/{stream}")

    def reset_state(self, connector: str, stream: str) -> bool:
        """Forget the cursor state of a stream.

        Returns:
            bool: True if a state existed
        """
        with self._connect() as conn:
            existed = conn.execute(
                "SELECT COUNT(*) FROM cursor_states WHERE connector = ? AND stream = ?",
                [connector, stream],
            ).fetchone()
            conn.execute(
                "DELETE FROM cursor_states WHERE connector = ? AND stream = ?",
                [connector, stream],
            )
        return bool(existed and existed[0])

    def upsert_records(self, connector: str, records: Sequence[AnyRecord]) -> int:
        """Insert or replace records keyed by (connector, kind, reference).

        Returns:
            int: Number of records written
        """
        if not records:
            return 0

        synced_at = datetime.now(UTC)
        rows = [
            [
                connector,
                row["kind"],
                row["reference"],
                row["created_at"],
                row["asset"],
                row["amount"],
                row["payload"],
                synced_at,
            ]
            for row in map(_record_row, records)
        ]
        with self._connect() as conn:
            conn.executemany(
                "INSERT OR REPLACE INTO records VALUES (?, ?, ?, ?, ?, ?, ?, ?)",
                rows,
            )
        return len(rows)

    def delete_records(
        self, connector: str, references: Iterable[str], kind: str = "payment"
    ) -> int:
        """Delete records the provider reported as removed.

        Returns:
            int: Number of references processed
        """
        params = [[connector, kind, reference] for reference in references]
        if not params:
            return 0
        with self._connect() as conn:
            conn.executemany(
                "DELETE FROM records WHERE connector = ? AND kind = ? AND reference = ?",
                params,
            )
        return len(params)

    def count_records(self, connector: str | None = None, kind: str | None = None) -> int:
        """Count stored records, optionally filtered by connector and kind."""
        clauses: list[str] = []
        params: list[str] = []
        if connector is not None:
            clauses.append("connector = ?")
            params.append(connector)
        if kind is not None:
            clauses.append("kind = ?")
            params.append(kind)
        where = f" WHERE {' AND '.join(clauses)}" if clauses else ""

        with self._connect() as conn:
            result = conn.execute(f"SELECT COUNT(*) FROM records{where}", params).fetchone()  # noqa: S608  # clauses are fixed strings
        return int(result[0]) if result else 0

    def references(self, connector: str, kind: str) -> list[str]:
        """Stored references of one kind, ordered by creation time."""
        with self._connect() as conn:
            rows = conn.execute(
                "SELECT reference FROM records WHERE connector = ? AND kind = ? "
                "ORDER BY created_at, reference",
                [connector, kind],
            ).fetchall()
        return [row[0] for row in rows]


class RawBatchWriter:
    """Write each consumed batch to its own Parquet file with polars."""

    def __init__(self, raw_data_path: Path):
        self.raw_data_path = raw_data_path

    def write(
        self, connector: str, stream: str, records: Sequence[AnyRecord]
    ) -> Path | None:
        """Write a batch and return its path (None for empty batches)."""
        if not records:
            return None

        directory = self.raw_data_path / connector / stream
        directory.mkdir(parents=True, exist_ok=True)
        output_path = (
            directory
            / f"batch_{datetime.now(UTC).strftime('%Y%m%d_%H%M%S')}_{uuid4().hex[:8]}.parquet"
        )

        df = pl.DataFrame([_record_row(r) for r in records])
        df.write_parquet(output_path)
        logger.debug(f"Saved {len(records)} {stream} records to {output_path}")
        return output_path
