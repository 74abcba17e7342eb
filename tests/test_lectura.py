from datetime import date
from decimal import Decimal

import pytest

from logic.errores import MalformedAmountError, SignMismatchError
from logic.lectura import (
    SIN_DESCRICAO,
    build_movement,
    decodificar,
    detectar_columnas,
    detectar_encabezado,
    id_movimientos,
    parse_amount,
    resolver_sentido,
)
from logic.modelos import Direction


@pytest.mark.parametrize("texto, esperado", [
    ("1.234,56", Decimal("1234.56")),
    ("-350.50", Decimal("-350.50")),
    ("-350,50", Decimal("-350.50")),
    ("R$ 10,00", Decimal("10.00")),
    ("10,00 D", Decimal("-10.00")),
    ("10,00 C", Decimal("10.00")),
    ("(42,10)", Decimal("-42.10")),
    ("1,234.56", Decimal("1234.56")),
])
def test_parse_amount(texto, esperado):
    assert parse_amount(texto) == esperado


def test_parse_amount_invalido():
    with pytest.raises(MalformedAmountError) as exc:
        parse_amount("35O,5X", field="TRNAMT")
    assert exc.value.field == "TRNAMT"
    with pytest.raises(MalformedAmountError):
        parse_amount("")


def test_detectar_columnas_con_tildes():
    roles = detectar_columnas(["Data", "Histórico", "Débito", "Crédito", "Saldo"])
    assert roles["fecha"] == "Data"
    assert roles["descripcion"] == "Histórico"
    assert roles["debito"] == "Débito"
    assert roles["credito"] == "Crédito"
    assert roles["valor"] is None
    assert roles["tipo"] is None


def test_detectar_encabezado_salta_preambulo():
    lineas = ["Banco X", "Conta: 123", "", "Data;Historico;Valor;Saldo", "21/11/2023;A;1,00;1,00"]
    assert detectar_encabezado(lineas) == 3
    assert detectar_encabezado(["sin cabecera", "nada"]) is None


def test_decodificar_cp1252():
    assert decodificar("ÁGUA".encode("cp1252")) == "ÁGUA"
    assert decodificar("ÁGUA".encode("utf-8")) == "ÁGUA"


def test_ids_secuenciales_por_importacion():
    ids = id_movimientos("mov-abc")
    assert [next(ids) for _ in range(2)] == ["mov-abc-00001", "mov-abc-00002"]
    assert next(id_movimientos()) != next(id_movimientos())


def test_resolver_sentido():
    assert resolver_sentido(Decimal("1"), None) is Direction.CREDIT
    assert resolver_sentido(Decimal("-1"), Direction.DEBIT) is Direction.DEBIT
    with pytest.raises(SignMismatchError):
        resolver_sentido(Decimal("1"), Direction.DEBIT)
    with pytest.raises(SignMismatchError):
        resolver_sentido(Decimal("0"), None)


def test_build_movement_descripcion_vacia():
    m = build_movement("m-1", date(2023, 11, 21), "   ", Decimal("-5"))
    assert m.description == SIN_DESCRICAO
    assert m.direction is Direction.DEBIT
    assert m.is_pending
