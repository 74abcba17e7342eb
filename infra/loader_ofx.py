"""
Lector de extractos OFX (SGML 1.x y XML 2.x) sobre ofxparse.

El archivo se normaliza antes de entregarlo a la libreria:
- texto decodificado con los encodings configurados y re-codificado en ASCII
  con referencias de caracter, para que la cabecera ENCODING/CHARSET no
  vuelva a romper los acentos;
- fechas recortadas a AAAAMMDD: la fecha calendario del banco, sin el
  corrimiento por zona horaria que aplica ofxparse.
"""
from __future__ import annotations

import decimal
import io
import re

from ofxparse import OfxParser as LibOfxParser
from ofxparse.ofxparse import OfxParserException

from logic.modelos import BankStatement, Direction
from logic.lectura import build_movement, decodificar, id_movimientos
from logic.errores import (
    MalformedAmountError,
    MalformedDateError,
    MissingFieldError,
    ParseError,
    TruncatedBlockError,
    UnrecognizedFormatError,
)
from infra.logger import get_logger


logger = get_logger("conciliador.loader_ofx")

_DATE_TAGS = re.compile(
    r"(<(?:DTPOSTED|DTUSER|DTSTART|DTEND|DTASOF|DTSERVER)>\s*)(\d{8})[^<\r\n]*",
    flags=re.IGNORECASE,
)
_OPEN_TRN = re.compile(r"<STMTTRN>", flags=re.IGNORECASE)
_CLOSE_TRN = re.compile(r"</STMTTRN>", flags=re.IGNORECASE)

_DIRECTIONS = {"credit": Direction.CREDIT, "debit": Direction.DEBIT}


def looks_like_ofx(text: str) -> bool:
    head = text[:4096].lstrip("\ufeff \t\r\n").upper()
    return head.startswith("OFXHEADER") or "<OFX>" in head


def _preparar(text: str) -> bytes:
    # Cabeceras de encoding: el cuerpo ya es ASCII puro
    text = re.sub(r"^(\s*ENCODING\s*:).*$", r"\1USASCII", text, count=1, flags=re.IGNORECASE | re.MULTILINE)
    text = re.sub(r"^(\s*CHARSET\s*:).*$", r"\g<1>1252", text, count=1, flags=re.IGNORECASE | re.MULTILINE)
    text = re.sub(r'encoding=["\'].*?["\']', 'encoding="US-ASCII"', text, count=1, flags=re.IGNORECASE)
    text = _DATE_TAGS.sub(r"\1\2", text)
    return text.encode("ascii", errors="xmlcharrefreplace")


def _traducir_error(exc: Exception, filename: str | None) -> ParseError:
    msg = str(exc) or exc.__class__.__name__
    lowered = msg.lower()
    if "missing" in lowered or "empty" in lowered:
        return MissingFieldError(f"Campo requerido ausente en OFX: {msg}", filename=filename)
    if "date" in lowered:
        return MalformedDateError(f"Fecha invalida en OFX: {msg}", filename=filename)
    if "amount" in lowered or isinstance(exc, decimal.InvalidOperation):
        return MalformedAmountError(f"Importe invalido en OFX: {msg}", filename=filename)
    return ParseError(f"OFX invalido: {msg}", filename=filename)


def _check_blocks(text: str, filename: str | None) -> int:
    abiertos = len(_OPEN_TRN.findall(text))
    cerrados = len(_CLOSE_TRN.findall(text))
    if cerrados and abiertos != cerrados:
        raise TruncatedBlockError(
            f"Bloques STMTTRN incompletos ({abiertos} abiertos, {cerrados} cerrados)",
            field="STMTTRN", filename=filename,
        )
    if "</OFX>" not in text.upper():
        raise TruncatedBlockError("Archivo OFX truncado: falta </OFX>", field="OFX", filename=filename)
    return abiertos


def _date_or_none(value):
    return value.date() if value is not None else None


def parse_ofx(data: bytes, filename: str | None = None) -> BankStatement:
    text = decodificar(data)
    if not looks_like_ofx(text):
        raise UnrecognizedFormatError("El contenido no es un OFX", filename=filename)
    bloques = _check_blocks(text, filename)

    try:
        ofx = LibOfxParser.parse(io.BytesIO(_preparar(text)), fail_fast=True)
    except (OfxParserException, ValueError, TypeError, IndexError, AttributeError, decimal.InvalidOperation) as exc:
        raise _traducir_error(exc, filename) from exc

    accounts = getattr(ofx, "accounts", None) or []
    if not accounts:
        raise MissingFieldError("OFX sin extracto bancario", field="STMTRS", filename=filename)
    account = accounts[0]
    statement = account.statement
    if statement is None:
        raise MissingFieldError("OFX sin extracto bancario", field="STMTRS", filename=filename)

    account_number = (getattr(account, "account_id", "") or getattr(account, "number", "") or "").strip()
    bank_id = (getattr(account, "routing_number", "") or "").strip()
    if not account_number:
        raise MissingFieldError("Cuenta no informada", field="ACCTID", filename=filename)
    if not bank_id:
        raise MissingFieldError("Banco no informado", field="BANKID", filename=filename)

    balance = getattr(statement, "balance", None)
    if balance is None:
        raise MissingFieldError("Saldo final no informado", field="LEDGERBAL", filename=filename)

    institution = getattr(account, "institution", None)
    bank_name = (getattr(institution, "organization", "") or "").strip() or bank_id

    transactions = list(statement.transactions)
    if len(transactions) != bloques:
        raise TruncatedBlockError(
            f"Se leyeron {len(transactions)} de {bloques} movimientos",
            field="STMTTRN", filename=filename,
        )

    ids = id_movimientos()
    movements = []
    for t in transactions:
        if t.date is None:
            raise MalformedDateError("Movimiento sin fecha valida", field="DTPOSTED", filename=filename)
        tipo = (t.type or "").strip().lower()
        movements.append(build_movement(
            next(ids),
            t.date.date(),
            t.memo or getattr(t, "payee", ""),
            decimal.Decimal(t.amount),
            informado=_DIRECTIONS.get(tipo),
            source_id=(t.id or "").strip(),
            transaction_type=tipo.upper(),
        ))

    currency = getattr(statement, "currency", None)
    result = BankStatement(
        bank_name=bank_name,
        branch_code=(getattr(account, "branch_id", "") or "").strip(),
        account_number=account_number,
        closing_balance=decimal.Decimal(balance),
        movements=tuple(movements),
        currency=currency.upper() if currency else None,
        period_start=_date_or_none(getattr(statement, "start_date", None)),
        period_end=_date_or_none(getattr(statement, "end_date", None)),
        source_format="ofx",
    )
    logger.info("OFX leido: banco=%s cuenta=%s movimientos=%d", bank_name, account_number, len(movements))
    return result
