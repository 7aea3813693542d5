"""
Consumed-proof stores.

A proof is single-use: the same ``(ledger, payer, nonce)`` must not be
settled twice. The ledger enforces this for pre-signed transactions
(account nonces) but not for delegated transfers, where the facilitator
chooses the on-chain nonce. A store closes that gap.

The executor claims a key before touching the ledger and releases it
only when nothing reached the ledger. A settlement with an unknown
outcome keeps its claim.

Stores are opt-in. Without one, replay protection is whatever the
ledger provides.

Concrete implementations:
    - InMemoryConsumedProofStore (single process)
    - SqliteConsumedProofStore (survives restarts)
"""

from __future__ import annotations

import sqlite3
from collections.abc import Iterator
from contextlib import contextmanager
from dataclasses import dataclass
from datetime import datetime, timezone
from pathlib import Path
from typing import Protocol, runtime_checkable

from x402_facilitator.models import PaymentPayload, is_hex_identity


@dataclass(frozen=True)
class ProofKey:
    """Identity of a payment authorization for replay purposes."""

    ledger: str
    payer: str
    nonce: str

    @classmethod
    def of(cls, ledger: str, payload: PaymentPayload) -> ProofKey:
        payer = payload.payer.lower() if is_hex_identity(payload.payer) else payload.payer
        return cls(ledger=ledger, payer=payer, nonce=str(payload.nonce))


@runtime_checkable
class ConsumedProofStore(Protocol):
    """Atomic claim/release of proof keys."""

    def claim(self, key: ProofKey) -> bool:
        """Mark ``key`` consumed. False if it already was."""
        ...

    def release(self, key: ProofKey) -> None:
        """Undo a claim whose settlement never reached the ledger."""
        ...

    def is_consumed(self, key: ProofKey) -> bool:
        ...


class InMemoryConsumedProofStore:
    """Process-local store. Safe under one event loop (no awaits inside)."""

    def __init__(self) -> None:
        self._consumed: set[ProofKey] = set()

    def claim(self, key: ProofKey) -> bool:
        if key in self._consumed:
            return False
        self._consumed.add(key)
        return True

    def release(self, key: ProofKey) -> None:
        self._consumed.discard(key)

    def is_consumed(self, key: ProofKey) -> bool:
        return key in self._consumed


_SCHEMA = """\
CREATE TABLE IF NOT EXISTS consumed_proofs (
    ledger TEXT NOT NULL,
    payer TEXT NOT NULL,
    nonce TEXT NOT NULL,
    claimed_at TEXT NOT NULL,
    PRIMARY KEY (ledger, payer, nonce)
);
"""


class SqliteConsumedProofStore:
    """SQLite-backed store. The primary key makes ``claim`` atomic.

    Args:
        db_path: Path to SQLite database file, or ":memory:".
    """

    def __init__(self, db_path: str | Path = ":memory:") -> None:
        self._db_path = str(db_path)
        if self._db_path == ":memory:":
            self._persistent_conn: sqlite3.Connection | None = sqlite3.connect(
                ":memory:", check_same_thread=False
            )
        else:
            self._persistent_conn = None
        with self._transaction() as conn:
            conn.executescript(_SCHEMA)

    def _get_conn(self) -> sqlite3.Connection:
        if self._persistent_conn is not None:
            return self._persistent_conn
        conn = sqlite3.connect(self._db_path)
        conn.execute("PRAGMA journal_mode = WAL")
        return conn

    @contextmanager
    def _transaction(self) -> Iterator[sqlite3.Connection]:
        conn = self._get_conn()
        try:
            yield conn
            conn.commit()
        except Exception:
            conn.rollback()
            raise
        finally:
            if self._persistent_conn is None:
                conn.close()

    def claim(self, key: ProofKey) -> bool:
        claimed_at = datetime.now(timezone.utc).strftime("%Y-%m-%dT%H:%M:%S+00:00")
        with self._transaction() as conn:
            cursor = conn.execute(
                """
                INSERT OR IGNORE INTO consumed_proofs (ledger, payer, nonce, claimed_at)
                VALUES (?, ?, ?, ?)
                """,
                (key.ledger, key.payer, key.nonce, claimed_at),
            )
            return cursor.rowcount == 1

    def release(self, key: ProofKey) -> None:
        with self._transaction() as conn:
            conn.execute(
                "DELETE FROM consumed_proofs WHERE ledger = ? AND payer = ? AND nonce = ?",
                (key.ledger, key.payer, key.nonce),
            )

    def is_consumed(self, key: ProofKey) -> bool:
        with self._transaction() as conn:
            row = conn.execute(
                "SELECT 1 FROM consumed_proofs WHERE ledger = ? AND payer = ? AND nonce = ?",
                (key.ledger, key.payer, key.nonce),
            ).fetchone()
        return row is not None
