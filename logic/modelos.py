from __future__ import annotations
from dataclasses import dataclass
from datetime import date
from decimal import Decimal
from enum import Enum


class Direction(str, Enum):
    CREDIT = "CREDIT"
    DEBIT = "DEBIT"


class MovementStatus(str, Enum):
    PENDING = "PENDING"
    RECONCILED = "RECONCILED"
    IGNORED = "IGNORED"


class TransactionKind(str, Enum):
    INCOME = "INCOME"
    EXPENSE = "EXPENSE"


# Único cruce valido entre extracto y libro
KIND_FOR_DIRECTION = {
    Direction.CREDIT: TransactionKind.INCOME,
    Direction.DEBIT: TransactionKind.EXPENSE,
}


@dataclass(frozen=True)
class BankMovement:
    id: str                  # id de sesion, nunca el FITID del archivo
    date: date
    description: str
    amount: Decimal          # con signo: + credito, - debito
    direction: Direction
    status: MovementStatus = MovementStatus.PENDING
    linked_transaction_id: str | None = None
    source_id: str = ""      # identificador original (FITID), solo informativo
    transaction_type: str = ""

    @property
    def is_pending(self) -> bool:
        return self.status is MovementStatus.PENDING


@dataclass(frozen=True)
class BankStatement:
    bank_name: str
    branch_code: str
    account_number: str
    closing_balance: Decimal
    movements: tuple[BankMovement, ...]
    currency: str | None = None
    period_start: date | None = None
    period_end: date | None = None
    source_format: str = "ofx"

    def movement(self, movement_id: str) -> BankMovement | None:
        for m in self.movements:
            if m.id == movement_id:
                return m
        return None


@dataclass(frozen=True)
class LedgerTransaction:
    id: str
    kind: TransactionKind
    description: str
    amount: Decimal          # sin signo; el tipo define el sentido
    currency: str
    issue_date: date
    due_date: date
    status: str = ""
    cost_center: str | None = None
    created_by: str | None = None

    @property
    def signed_amount(self) -> Decimal:
        if self.kind is TransactionKind.EXPENSE:
            return -abs(self.amount)
        return abs(self.amount)


@dataclass(frozen=True)
class MatchResult:
    movement: BankMovement
    suggestion: LedgerTransaction | None
    score: int               # 0-100
