from __future__ import annotations

import threading
import uuid
from dataclasses import replace
from typing import Iterable

from logic.modelos import LedgerTransaction


class InMemoryLedger:
    """Libro en memoria: sirve como lector y escritor para la sesion de conciliacion."""

    def __init__(self, transactions: Iterable[LedgerTransaction] = ()):
        self._lock = threading.Lock()
        self._transactions: dict[str, LedgerTransaction] = {t.id: t for t in transactions}

    def list_candidates(self) -> list[LedgerTransaction]:
        with self._lock:
            return list(self._transactions.values())

    def save(self, transaction: LedgerTransaction) -> str:
        # El id provisorio se reemplaza por uno propio del libro
        durable_id = f"lan-{uuid.uuid4().hex[:12]}"
        with self._lock:
            self._transactions[durable_id] = replace(transaction, id=durable_id)
        return durable_id

    def get(self, transaction_id: str) -> LedgerTransaction | None:
        with self._lock:
            return self._transactions.get(transaction_id)

    def __len__(self) -> int:
        return len(self._transactions)
