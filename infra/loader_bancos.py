from __future__ import annotations

import io
from pathlib import Path
from typing import BinaryIO, Callable, Union

import pandas as pd

from logic.modelos import BankStatement, Direction
from logic.lectura import (
    build_movement,
    decodificar,
    detectar_columnas,
    detectar_encabezado,
    detectar_separador,
    id_movimientos,
    parse_amount,
)
from logic.normalizacion import normalize_description
from logic.errores import (
    MalformedAmountError,
    MalformedDateError,
    MissingFieldError,
    ParseError,
    TruncatedBlockError,
    UnrecognizedFormatError,
)
from infra.config import load_config
from infra.loader_ofx import looks_like_ofx, parse_ofx
from infra.logger import get_logger


logger = get_logger("conciliador.loader_bancos")

_CONFIG = load_config()

_TIPOS = {
    "c": Direction.CREDIT, "credito": Direction.CREDIT, "entrada": Direction.CREDIT,
    "d": Direction.DEBIT, "debito": Direction.DEBIT, "saida": Direction.DEBIT,
}


# ==============================
# Extractos delimitados (CSV)
# ==============================
def looks_like_csv(text: str) -> bool:
    return detectar_encabezado(text.splitlines()) is not None


def _parse_fechas(serie: pd.Series, col: str, filename: str | None) -> list:
    """Prueba los formatos configurados; el primero que lee todas las filas gana."""
    limpia = serie.astype(str).str.strip()
    primero = None
    for fmt in _CONFIG.lectura.csv_formatos_fecha:
        parsed = pd.to_datetime(limpia, format=fmt, errors="coerce")
        if primero is None:
            primero = parsed
        if not parsed.isna().any():
            return [ts.date() for ts in parsed]

    malo = limpia[primero.isna()].iloc[0]
    raise MalformedDateError(f"Fecha invalida: {malo!r}", field=col, filename=filename)


def _sentido_informado(valor: str) -> Direction | None:
    key = normalize_description(valor)
    return _TIPOS.get(key) or _TIPOS.get(key.split(" ")[0] if key else "")


def _importe_fila(row: pd.Series, cols: dict, filename: str | None):
    if cols["valor"]:
        return parse_amount(row[cols["valor"]], field=cols["valor"])
    deb = row[cols["debito"]].strip()
    cred = row[cols["credito"]].strip()
    if not deb and not cred:
        raise MissingFieldError("Fila sin debito ni credito", field=cols["debito"], filename=filename)
    debito = abs(parse_amount(deb, field=cols["debito"])) if deb else 0
    credito = abs(parse_amount(cred, field=cols["credito"])) if cred else 0
    return credito - debito


def _es_fila_de_saldo(row: pd.Series, cols: dict) -> bool:
    """Lineas SALDO ANTERIOR / SALDO DO DIA: informan saldo, no son movimientos."""
    if not cols["descripcion"]:
        return False
    if not normalize_description(row[cols["descripcion"]]).startswith("saldo"):
        return False
    importes = [row[c].strip() for c in (cols["valor"], cols["debito"], cols["credito"]) if c]
    try:
        return all(not v or parse_amount(v) == 0 for v in importes)
    except MalformedAmountError:
        return False


def parse_csv(data: bytes, filename: str | None = None) -> BankStatement:
    """Convierte un extracto delimitado en BankStatement.

    Se aceptan lineas de preambulo antes de la cabecera. La columna de saldo
    es obligatoria: el ultimo saldo informado es el saldo final.
    """
    text = decodificar(data, _CONFIG.lectura.encodings)
    lines = text.splitlines()
    idx = detectar_encabezado(lines)
    if idx is None:
        raise UnrecognizedFormatError("No se encontro cabecera de extracto", filename=filename)
    sep = detectar_separador(lines[idx])

    try:
        df = pd.read_csv(
            io.StringIO("\n".join(lines[idx:])),
            sep=sep,
            engine="python",
            quotechar='"',
            dtype=str,
            keep_default_na=False,
            skip_blank_lines=True,
            index_col=False,
        )
    except (pd.errors.ParserError, ValueError) as e:
        raise TruncatedBlockError(f"Error leyendo CSV: {e}", filename=filename) from e

    df.columns = [str(c).strip().lstrip("\ufeff") for c in df.columns]
    df = df[(df.apply(lambda s: s.astype(str).str.strip()) != "").any(axis=1)]
    cols = detectar_columnas(list(df.columns))
    if not cols["saldo"]:
        raise MissingFieldError("Saldo final no informado", field="saldo", filename=filename)
    if df.empty:
        raise MissingFieldError("Extracto sin movimientos ni saldo", field="saldo", filename=filename)

    saldos = [s for s in df[cols["saldo"]].astype(str).str.strip() if s]
    if not saldos:
        raise MissingFieldError("Saldo final no informado", field=cols["saldo"], filename=filename)
    closing = parse_amount(saldos[-1], field=cols["saldo"])

    # Las lineas de saldo solo aportan al saldo final
    df = df[[not _es_fila_de_saldo(row, cols) for _, row in df.iterrows()]]
    fechas = _parse_fechas(df[cols["fecha"]], cols["fecha"], filename)

    ids = id_movimientos()
    movements = []
    for fecha, (_, row) in zip(fechas, df.iterrows()):
        informado = _sentido_informado(row[cols["tipo"]]) if cols["tipo"] else None
        movements.append(build_movement(
            next(ids),
            fecha,
            row[cols["descripcion"]] if cols["descripcion"] else "",
            _importe_fila(row, cols, filename),
            informado=informado,
        ))

    logger.info("CSV leido: movimientos=%d separador=%r", len(movements), sep)
    return BankStatement(
        bank_name="",
        branch_code="",
        account_number="",
        closing_balance=closing,
        movements=tuple(movements),
        source_format="csv",
    )


# ==============================
# Deteccion y despacho
# ==============================
DECODERS: dict[str, Callable[..., BankStatement]] = {
    "ofx": parse_ofx,
    "csv": parse_csv,
}


def detect_format(data: bytes, filename: str | None = None) -> str | None:
    """Nombre del decodificador para el contenido, o None si no es un extracto reconocido.

    Si se informa el nombre de archivo, la extension debe estar habilitada y
    coincidir con la firma del contenido.
    """
    if filename:
        ext = Path(filename).suffix.lower()
        if ext not in _CONFIG.lectura.extensiones:
            return None

    text = decodificar(data, _CONFIG.lectura.encodings)
    if looks_like_ofx(text):
        fmt = "ofx"
    elif looks_like_csv(text):
        fmt = "csv"
    else:
        return None

    if filename and Path(filename).suffix.lower() != f".{fmt}":
        return None
    return fmt


def is_recognized_statement(data: bytes, filename: str | None = None) -> bool:
    return detect_format(data, filename) is not None


def parse(data: bytes, filename: str | None = None) -> BankStatement:
    """Lee un extracto completo o falla: nunca devuelve un extracto parcial."""
    fmt = detect_format(data, filename)
    if fmt is None:
        logger.warning("Archivo rechazado: formato no reconocido (%s)", filename or "sin nombre")
        raise UnrecognizedFormatError("Formato de archivo no soportado. Use .ofx o .csv", filename=filename)
    try:
        return DECODERS[fmt](data, filename=filename)
    except ParseError as e:
        logger.warning("Extracto rechazado: %s", e)
        raise


def cargar_extracto(path_or_file: Union[str, Path, BinaryIO, bytes]) -> BankStatement:
    """Carga un extracto desde ruta, bytes o archivo binario en memoria."""
    if isinstance(path_or_file, bytes):
        return parse(path_or_file)
    if isinstance(path_or_file, (str, Path)):
        path = Path(path_or_file)
        return parse(path.read_bytes(), filename=path.name)
    if hasattr(path_or_file, "read"):
        try:
            path_or_file.seek(0)
        except (AttributeError, OSError):
            pass
        data = path_or_file.read()
        if isinstance(data, str):
            data = data.encode("utf-8")
        return parse(data, filename=getattr(path_or_file, "name", None))
    raise TypeError("Objeto de archivo no soportado para lectura de extracto")
