"""
Sesion de conciliacion: un extracto activo, sus resultados y la maquina de
estados de cada movimiento.

PENDING -> RECONCILED | IGNORED, una sola vez. Las transiciones se serializan
por movimiento; la creacion de una transaccion solo concilia despues de que
el libro confirmo la escritura.
"""
from __future__ import annotations

import threading
import uuid
from dataclasses import replace
from typing import Protocol

from logic.modelos import (
    BankMovement,
    BankStatement,
    Direction,
    LedgerTransaction,
    MatchResult,
    MovementStatus,
    KIND_FOR_DIRECTION,
)
from logic.conciliacion import Parametros, is_compatible, match_all, rematch_one, score_candidate
from logic.errores import (
    CollaboratorError,
    IncompatibleTransaction,
    InvalidTransition,
    NotFound,
)
from infra.config import LedgerConfig, load_config
from infra.loader_bancos import parse
from infra.logger import get_logger


logger = get_logger("conciliador.seguimiento")

_LEDGER_CFG = load_config().ledger

_DERIVABLE = {"description", "cost_center", "due_date", "status", "currency", "created_by"}


class LedgerReader(Protocol):
    def list_candidates(self) -> list[LedgerTransaction]: ...


class LedgerWriter(Protocol):
    def save(self, transaction: LedgerTransaction) -> str: ...


def derive_transaction(
    movement: BankMovement,
    currency: str | None = None,
    ledger_cfg: LedgerConfig = _LEDGER_CFG,
    **derived_fields,
) -> LedgerTransaction:
    """Transaccion del libro a partir de un movimiento del extracto (aun no persistida)."""
    unknown = set(derived_fields) - _DERIVABLE
    if unknown:
        raise TypeError(f"Campos no derivables: {sorted(unknown)}")

    kind = KIND_FOR_DIRECTION[movement.direction]
    cost_center = ledger_cfg.centro_costo_credito if movement.direction is Direction.CREDIT else None
    base = LedgerTransaction(
        id=f"new-{uuid.uuid4().hex}",
        kind=kind,
        description=movement.description,
        amount=abs(movement.amount),
        currency=currency or ledger_cfg.moneda_default,
        issue_date=movement.date,
        due_date=movement.date,
        status=ledger_cfg.estado_creacion,
        cost_center=cost_center,
        created_by=ledger_cfg.creado_por,
    )
    return replace(base, **derived_fields) if derived_fields else base


class ReconciliationSession:
    def __init__(
        self,
        reader: LedgerReader,
        writer: LedgerWriter,
        params: Parametros | None = None,
        ledger_cfg: LedgerConfig = _LEDGER_CFG,
    ):
        self._reader = reader
        self._writer = writer
        self._params = params or Parametros()
        self._ledger_cfg = ledger_cfg

        self._guard = threading.RLock()
        self._statement: BankStatement | None = None
        self._movements: dict[str, BankMovement] = {}
        self._locks: dict[str, threading.Lock] = {}
        self._results: dict[str, MatchResult] = {}
        self._pool: dict[str, LedgerTransaction] = {}
        self._created: dict[str, LedgerTransaction] = {}

    # ------------------------------------------------------------------
    # Extracto activo
    # ------------------------------------------------------------------
    def import_file(self, data: bytes, filename: str | None = None) -> list[MatchResult]:
        """Lee el archivo y lo activa; si falla, el extracto anterior sigue activo."""
        statement = parse(data, filename=filename)
        return self.load_statement(statement)

    def load_statement(self, statement: BankStatement) -> list[MatchResult]:
        pool = self._read_pool()
        with self._guard:
            self._statement = statement
            self._movements = {m.id: m for m in statement.movements}
            self._locks = {m.id: threading.Lock() for m in statement.movements}
            self._created = {}
            self._pool = {t.id: t for t in pool}
            results = match_all(statement.movements, self._available(), self._params)
            self._results = {r.movement.id: r for r in results}

        logger.info(
            "Extracto activo: %s %s, %d movimientos, %d sugerencias",
            statement.bank_name, statement.account_number, len(results),
            sum(1 for r in results if r.suggestion is not None),
        )
        return results

    @property
    def statement(self) -> BankStatement | None:
        return self._statement

    @property
    def results(self) -> list[MatchResult]:
        with self._guard:
            return [self._results[mid] for mid in self._movements]

    @property
    def pending(self) -> list[MatchResult]:
        return [r for r in self.results if r.movement.is_pending]

    def movement(self, movement_id: str) -> BankMovement:
        with self._guard:
            try:
                return self._movements[movement_id]
            except KeyError:
                raise NotFound("Movimiento", movement_id) from None

    def result(self, movement_id: str) -> MatchResult:
        with self._guard:
            self.movement(movement_id)
            return self._results[movement_id]

    def summary(self) -> dict[str, int]:
        with self._guard:
            estados = [m.status for m in self._movements.values()]
        return {
            "total": len(estados),
            "pendientes": estados.count(MovementStatus.PENDING),
            "conciliados": estados.count(MovementStatus.RECONCILED),
            "ignorados": estados.count(MovementStatus.IGNORED),
        }

    def refresh(self) -> list[MatchResult]:
        """Relee el libro y recalcula las sugerencias de los movimientos pendientes."""
        pool = self._read_pool()
        with self._guard:
            self._pool = {t.id: t for t in pool}
            for tx_id, tx in self._created.items():
                self._pool.setdefault(tx_id, tx)
            self._rematch_pending()
        return self.pending

    # ------------------------------------------------------------------
    # Acciones del operador
    # ------------------------------------------------------------------
    def reconcile(self, movement_id: str, ledger_transaction_id: str) -> MatchResult:
        with self._lock_for(movement_id), self._guard:
            movement = self._pending_movement(movement_id)
            tx = self._available_by_id().get(ledger_transaction_id)
            if tx is None:
                raise NotFound("Transaccion del libro", ledger_transaction_id)
            if not is_compatible(movement, tx):
                raise IncompatibleTransaction(
                    movement_id, movement.status.value,
                    f"Transaccion {tx.id} ({tx.kind.value}) incompatible con movimiento {movement.direction.value}",
                )

            current = self._results.get(movement_id)
            if current is not None and current.suggestion is not None and current.suggestion.id == tx.id:
                score = current.score
            else:
                score = score_candidate(movement, tx, self._params).score
            return self._link(movement, tx, score)

    def create_and_reconcile(self, movement_id: str, **derived_fields) -> MatchResult:
        """Crea la transaccion en el libro y concilia. El resultado trae la transaccion persistida."""
        with self._lock_for(movement_id):
            with self._guard:
                movement = self._pending_movement(movement_id)
                currency = self._statement.currency if self._statement else None
            draft = derive_transaction(movement, currency, self._ledger_cfg, **derived_fields)

            try:
                durable_id = self._writer.save(draft)
            except CollaboratorError:
                logger.error("Fallo la escritura en el libro para %s", movement_id)
                raise
            except Exception as e:
                logger.error("Fallo la escritura en el libro para %s: %s", movement_id, e)
                raise CollaboratorError(f"No se pudo crear la transaccion: {e}") from e
            if not durable_id:
                raise CollaboratorError("El libro no devolvio identificador para la transaccion creada")

            tx = replace(draft, id=str(durable_id))
            with self._guard:
                try:
                    movement = self._pending_movement(movement_id)
                except NotFound as e:
                    # Otro extracto se activo durante la escritura
                    logger.error("Transaccion %s creada pero el movimiento %s ya no esta activo", tx.id, movement_id)
                    raise CollaboratorError(
                        f"Transaccion {tx.id} creada en el libro sin vincular: el movimiento {movement_id} ya no esta activo",
                        transaction=tx,
                    ) from e
                self._created[tx.id] = tx
                self._pool[tx.id] = tx
                logger.info("Transaccion %s creada desde movimiento %s", tx.id, movement_id)
                return self._link(movement, tx, 100)

    def ignore(self, movement_id: str) -> MatchResult:
        with self._lock_for(movement_id), self._guard:
            movement = self._pending_movement(movement_id)
            updated = replace(movement, status=MovementStatus.IGNORED)
            self._movements[movement_id] = updated
            result = MatchResult(movement=updated, suggestion=None, score=0)
            self._results[movement_id] = result
            logger.info("Movimiento %s ignorado", movement_id)
            return result

    # ------------------------------------------------------------------
    def _lock_for(self, movement_id: str) -> threading.Lock:
        with self._guard:
            lock = self._locks.get(movement_id)
        if lock is None:
            raise NotFound("Movimiento", movement_id)
        return lock

    def _pending_movement(self, movement_id: str) -> BankMovement:
        movement = self.movement(movement_id)
        if not movement.is_pending:
            raise InvalidTransition(movement_id, movement.status.value)
        return movement

    def _link(self, movement: BankMovement, tx: LedgerTransaction, score: int) -> MatchResult:
        updated = replace(movement, status=MovementStatus.RECONCILED, linked_transaction_id=tx.id)
        self._movements[movement.id] = updated
        result = MatchResult(movement=updated, suggestion=tx, score=score)
        self._results[movement.id] = result
        logger.info("Movimiento %s conciliado con %s (puntaje %d)", movement.id, tx.id, score)
        # La transaccion ya no esta disponible para otros pendientes
        self._rematch_pending()
        return result

    def _linked_ids(self) -> set[str]:
        return {m.linked_transaction_id for m in self._movements.values() if m.linked_transaction_id}

    def _available(self) -> list[LedgerTransaction]:
        linked = self._linked_ids()
        return [t for t in self._pool.values() if t.id not in linked]

    def _available_by_id(self) -> dict[str, LedgerTransaction]:
        return {t.id: t for t in self._available()}

    def _rematch_pending(self) -> None:
        pool = self._available()
        for mid, movement in self._movements.items():
            if movement.is_pending:
                self._results[mid] = rematch_one(movement, pool, self._params)

    def _read_pool(self) -> list[LedgerTransaction]:
        try:
            return list(self._reader.list_candidates())
        except CollaboratorError:
            logger.error("Fallo la lectura del libro")
            raise
        except Exception as e:
            logger.error("Fallo la lectura del libro: %s", e)
            raise CollaboratorError(f"No se pudo leer el libro: {e}") from e
