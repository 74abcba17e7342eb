from datetime import date
from decimal import Decimal

from conftest import movimiento, transaccion
from logic.modelos import TransactionKind
from logic.normalizacion import (
    movement_key,
    normalize_description,
    token_overlap,
    tokens,
    transaction_key,
)


def test_normaliza_mayusculas_tildes_y_puntuacion():
    assert normalize_description("Posto Ipiranga - Abastecimento") == "posto ipiranga abastecimento"
    assert normalize_description("  PIX  RECEBIDO:  JOÃO   SILVA. ") == "pix recebido joao silva"
    assert normalize_description(None) == ""


def test_tokens_descarta_stopwords_y_letras_sueltas():
    assert tokens("Venda de Passagem - João Silva") == {"venda", "passagem", "joao", "silva"}
    assert tokens("A B C") == frozenset()


def test_solapamiento():
    a = tokens("POSTO IPIRANGA ABASTECIMENTO")
    b = tokens("Posto Ipiranga - Abastecimento")
    assert token_overlap(a, b) == 1.0
    assert token_overlap(a, tokens("Supermercado Extra")) == 0.0
    assert token_overlap(frozenset(), b) == 0.0
    # 2 compartidos sobre 3 + 3 tokens
    assert token_overlap(a, tokens("Posto Ipiranga Lavagem")) == 2 * 2 / 6


def test_claves_de_comparacion():
    m = movimiento("m", "-350.50", date(2023, 11, 21), "POSTO IPIRANGA")
    mk = movement_key(m)
    assert mk.amount == Decimal("-350.50")
    assert mk.dates == (date(2023, 11, 21),)

    t = transaccion("t", TransactionKind.EXPENSE, "350.50", date(2023, 11, 20), "Posto", due=date(2023, 11, 25))
    tk = transaction_key(t)
    assert tk.amount == Decimal("-350.50")
    assert tk.dates == (date(2023, 11, 20), date(2023, 11, 25))

    ingreso = transaccion("i", TransactionKind.INCOME, "10", date(2023, 11, 20), "Venda")
    assert transaction_key(ingreso).amount == Decimal("10")
    assert transaction_key(ingreso).dates == (date(2023, 11, 20),)
