from __future__ import annotations
import io
from typing import Iterable

import pandas as pd

from logic.modelos import MatchResult


COLUMNAS = [
    "Fecha", "Descripción", "Valor", "Sentido", "Estado",
    "Sugerencia", "Descripción sugerida", "Puntaje", "Transacción vinculada",
]


def resultados_a_dataframe(results: Iterable[MatchResult]) -> pd.DataFrame:
    """Una fila por movimiento, en el orden del extracto."""
    filas = []
    for r in results:
        m, s = r.movement, r.suggestion
        filas.append({
            "Fecha": pd.Timestamp(m.date),
            "Descripción": m.description,
            "Valor": float(m.amount),
            "Sentido": m.direction.value,
            "Estado": m.status.value,
            "Sugerencia": s.id if s else "",
            "Descripción sugerida": s.description if s else "",
            "Puntaje": r.score,
            "Transacción vinculada": m.linked_transaction_id or "",
        })
    return pd.DataFrame(filas, columns=COLUMNAS)


def dataframe_a_excel_bytes(
    df: pd.DataFrame,
    sheet_name: str = "Conciliacao",
    formato_columnas_fecha: dict[str, str] | None = None
) -> bytes:
    """
    Exporta un DataFrame a Excel conservando los tipos fecha (no texto).
    `formato_columnas_fecha` mapea {nombre_columna: "DD/MM/YYYY"} a number_format.
    """
    if formato_columnas_fecha is None:
        formato_columnas_fecha = {"Fecha": "DD/MM/YYYY"}
    buff = io.BytesIO()
    with pd.ExcelWriter(buff, engine="openpyxl") as writer:
        df.to_excel(writer, index=False, sheet_name=sheet_name)
        ws = writer.sheets[sheet_name]
        headers = [c.value for c in ws[1]]
        for col_name, fmt in formato_columnas_fecha.items():
            if col_name not in headers:
                continue
            col_idx = headers.index(col_name) + 1
            for (cell,) in ws.iter_rows(min_row=2, min_col=col_idx, max_col=col_idx):
                cell.number_format = fmt
    return buff.getvalue()


def exportar_resultados(results: Iterable[MatchResult]) -> bytes:
    return dataframe_a_excel_bytes(resultados_a_dataframe(results))
