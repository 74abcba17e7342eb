from __future__ import annotations
from dataclasses import dataclass
from datetime import date
from decimal import Decimal
from typing import Callable, Iterable
import re
import unicodedata

from logic.modelos import BankMovement, LedgerTransaction
from infra.config import load_config


# Stopwords configurables desde config.yaml
_CFG = load_config()
STOPWORDS = frozenset(map(str.lower, (_CFG.conciliacion.stopwords or [])))

Similarity = Callable[[frozenset, frozenset], float]


@dataclass(frozen=True)
class ComparisonKey:
    tokens: frozenset[str]
    amount: Decimal          # con signo
    dates: tuple[date, ...]  # movimiento: una fecha; libro: emision y vencimiento


def strip_accents(text: str) -> str:
    normalized = unicodedata.normalize("NFKD", str(text))
    return "".join(ch for ch in normalized if not unicodedata.combining(ch))


def normalize_description(text: str | None) -> str:
    """Minusculas, sin tildes ni puntuacion, espacios colapsados."""
    s = strip_accents((text or "").casefold())
    s = re.sub(r"[^0-9a-z]+", " ", s)
    return re.sub(r"\s+", " ", s).strip()


def tokens(text: str | None, stopwords: Iterable[str] = STOPWORDS) -> frozenset[str]:
    """Tokens significativos: sin stopwords ni tokens de un caracter."""
    stop = stopwords if isinstance(stopwords, (set, frozenset)) else set(stopwords)
    out = set()
    for t in normalize_description(text).split(" "):
        if len(t) <= 1:
            continue
        if t in stop:
            continue
        out.add(t)
    return frozenset(out)


def token_overlap(a: frozenset, b: frozenset) -> float:
    """Coeficiente de Dice: fraccion de tokens compartidos entre ambos lados."""
    if not a or not b:
        return 0.0
    return 2 * len(a & b) / (len(a) + len(b))


def movement_key(m: BankMovement) -> ComparisonKey:
    return ComparisonKey(tokens=tokens(m.description), amount=m.amount, dates=(m.date,))


def transaction_key(t: LedgerTransaction) -> ComparisonKey:
    dates = (t.issue_date,) if t.due_date == t.issue_date else (t.issue_date, t.due_date)
    return ComparisonKey(tokens=tokens(t.description), amount=t.signed_amount, dates=dates)
