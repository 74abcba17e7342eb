from __future__ import annotations
from dataclasses import dataclass
from typing import Iterable

from logic.modelos import BankMovement, LedgerTransaction, MatchResult, KIND_FOR_DIRECTION
from logic.normalizacion import (
    ComparisonKey,
    Similarity,
    movement_key,
    token_overlap,
    transaction_key,
)
from infra.config import load_config
from infra.logger import get_logger


logger = get_logger("conciliador.conciliacion")

_CFG = load_config().conciliacion


@dataclass(frozen=True)
class Parametros:
    peso_importe: int = _CFG.peso_importe
    peso_fecha: int = _CFG.peso_fecha
    peso_descripcion: int = _CFG.peso_descripcion
    umbral_aceptacion: int = _CFG.umbral_aceptacion
    ventana_dias: int = _CFG.ventana_dias
    similitud: Similarity = token_overlap


@dataclass(frozen=True)
class Puntaje:
    """Detalle de un candidato puntuado; `gap` es la distancia en dias a la fecha mas cercana."""
    candidate: LedgerTransaction
    score: int
    gap: int


def is_compatible(movement: BankMovement, candidate: LedgerTransaction) -> bool:
    return KIND_FOR_DIRECTION[movement.direction] is candidate.kind


def _date_gap(mk: ComparisonKey, ck: ComparisonKey) -> int:
    return min(abs((d - mk.dates[0]).days) for d in ck.dates)


def _date_credit(gap: int, ventana: int) -> float:
    # Decae linealmente: mismo dia = 1, fuera de la ventana = 0
    if gap > ventana:
        return 0.0
    return 1.0 - gap / (ventana + 1)


def score_candidate(
    movement: BankMovement,
    candidate: LedgerTransaction,
    params: Parametros = Parametros(),
    _mk: ComparisonKey | None = None,
) -> Puntaje:
    mk = _mk or movement_key(movement)
    ck = transaction_key(candidate)

    # Importes financieros: coincidencia exacta o nada
    amount_ok = abs(mk.amount) == abs(ck.amount)
    gap = _date_gap(mk, ck)
    desc = params.similitud(mk.tokens, ck.tokens)

    total = (
        params.peso_importe * (1.0 if amount_ok else 0.0)
        + params.peso_fecha * _date_credit(gap, params.ventana_dias)
        + params.peso_descripcion * desc
    )
    score = max(0, min(100, int(round(total))))
    return Puntaje(candidate=candidate, score=score, gap=gap)


def rank_candidates(
    movement: BankMovement,
    candidates: Iterable[LedgerTransaction],
    params: Parametros = Parametros(),
) -> list[Puntaje]:
    """Candidatos compatibles ordenados: puntaje desc, fecha mas cercana, id menor."""
    mk = movement_key(movement)
    scored = [
        score_candidate(movement, c, params, _mk=mk)
        for c in candidates
        if is_compatible(movement, c)
    ]
    scored.sort(key=lambda p: (-p.score, p.gap, p.candidate.id))
    return scored


def rematch_one(
    movement: BankMovement,
    candidates: Iterable[LedgerTransaction],
    params: Parametros = Parametros(),
) -> MatchResult:
    ranking = rank_candidates(movement, candidates, params)
    if not ranking:
        return MatchResult(movement=movement, suggestion=None, score=0)

    best = ranking[0]
    if best.score < params.umbral_aceptacion:
        # Sin sugerencia forzada, pero se conserva el mejor puntaje
        return MatchResult(movement=movement, suggestion=None, score=best.score)
    return MatchResult(movement=movement, suggestion=best.candidate, score=best.score)


def match_all(
    movements: Iterable[BankMovement],
    candidates: Iterable[LedgerTransaction],
    params: Parametros = Parametros(),
) -> list[MatchResult]:
    pool = list(candidates)
    results = [rematch_one(m, pool, params) for m in movements]
    logger.debug(
        "Matching: %d movimientos, %d candidatos, %d sugerencias",
        len(results), len(pool), sum(1 for r in results if r.suggestion is not None),
    )
    return results
