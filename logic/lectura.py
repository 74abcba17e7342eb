from __future__ import annotations

import itertools
import uuid
from datetime import date
from decimal import Decimal, InvalidOperation
from typing import Iterator
import re

from logic.modelos import BankMovement, Direction
from logic.normalizacion import normalize_description
from logic.errores import MalformedAmountError, SignMismatchError
from infra.config import load_config


_CFG = load_config().lectura

SIN_DESCRICAO = "Sem descrição"


def decodificar(data: bytes, encodings: list[str] | None = None) -> str:
    """Decodifica probando los encodings configurados; latin1 nunca falla."""
    for enc in (encodings or _CFG.encodings):
        try:
            return data.decode(enc)
        except (UnicodeDecodeError, LookupError):
            continue
    return data.decode("latin1")


def id_movimientos(prefijo: str | None = None) -> Iterator[str]:
    """Ids de sesion: prefijo aleatorio por importacion + secuencia en orden de archivo."""
    prefijo = prefijo or f"mov-{uuid.uuid4().hex[:8]}"
    for n in itertools.count(1):
        yield f"{prefijo}-{n:05d}"


def detectar_separador(line: str, candidatos: list[str] | None = None) -> str:
    cand_seps = candidatos or _CFG.csv_separadores
    return max(cand_seps, key=lambda s: line.count(s))


def split_header(line: str, sep: str) -> list[str]:
    line = line.lstrip("\ufeff").strip()
    if not line:
        return []
    return [p.strip().strip('"').strip("'") for p in line.split(sep)]


def detectar_columnas(cols: list[str]) -> dict[str, str | None]:
    """Mapea columnas de un extracto delimitado a los roles conocidos.

    Devuelve un dict con claves fecha, descripcion, valor, debito, credito,
    saldo y tipo (None cuando la columna no existe).
    """
    claves = [normalize_description(c) for c in cols]

    def pick(keywords):
        for kw in keywords:
            for original, key in zip(cols, claves):
                if key.startswith(kw):
                    return original
        return None

    return {
        "fecha": pick(["data", "dt lancamento", "fecha"]),
        "descripcion": pick(["historico", "descricao", "lancamento", "memo", "detalhe"]),
        "valor": pick(["valor", "montante", "importe"]),
        "debito": pick(["debito", "saida"]),
        "credito": pick(["credito", "entrada"]),
        "saldo": pick(["saldo"]),
        "tipo": pick(["tipo", "natureza"]),
    }


def detectar_encabezado(lines: list[str], tope: int = 15) -> int | None:
    """Indice de la primera linea (dentro de `tope`) que parece cabecera del extracto."""
    for i, line in enumerate(lines[:tope]):
        if not line.strip():
            continue
        cols = split_header(line, detectar_separador(line))
        roles = detectar_columnas(cols)
        tiene_importe = roles["valor"] or (roles["debito"] and roles["credito"])
        if roles["fecha"] and tiene_importe:
            return i
    return None


def parse_amount(texto: str | None, field: str = "valor") -> Decimal:
    """Importe exacto desde texto: acepta `1.234,56`, `-1234.56`, `R$ 10,00`, `10,00 D`."""
    raw = (texto or "").strip()
    s = raw.upper().replace("R$", "").replace(" ", "")
    negativo = False
    if s.endswith("D") or s.endswith("-"):
        negativo, s = True, s[:-1]
    elif s.endswith("C"):
        s = s[:-1]
    if s.startswith("(") and s.endswith(")"):
        negativo, s = True, s[1:-1]

    if re.search(r",\d{1,2}$", s):
        s = s.replace(".", "").replace(",", ".")
    else:
        s = s.replace(",", "")
    if not re.fullmatch(r"[+-]?\d+(\.\d+)?", s):
        raise MalformedAmountError(f"Importe invalido: {raw!r}", field=field)
    try:
        value = Decimal(s)
    except InvalidOperation as exc:
        raise MalformedAmountError(f"Importe invalido: {raw!r}", field=field) from exc
    return -value if negativo else value


def resolver_sentido(amount: Decimal, informado: Direction | None, contexto: str = "") -> Direction:
    """Sentido del movimiento: el informado por la fuente manda, pero debe coincidir con el signo."""
    if amount == 0:
        raise SignMismatchError(f"Importe cero: no se puede establecer el sentido {contexto}".strip(), field="amount")
    por_signo = Direction.CREDIT if amount > 0 else Direction.DEBIT
    if informado is not None and informado is not por_signo:
        raise SignMismatchError(
            f"Sentido {informado.value} no coincide con importe {amount} {contexto}".strip(),
            field="amount",
        )
    return por_signo


def build_movement(
    movement_id: str,
    fecha: date,
    descripcion: str | None,
    amount: Decimal,
    informado: Direction | None = None,
    source_id: str = "",
    transaction_type: str = "",
) -> BankMovement:
    direction = resolver_sentido(amount, informado, contexto=source_id)
    return BankMovement(
        id=movement_id,
        date=fecha,
        description=(descripcion or "").strip() or SIN_DESCRICAO,
        amount=amount,
        direction=direction,
        source_id=source_id,
        transaction_type=transaction_type,
    )
