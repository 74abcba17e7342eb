from datetime import date
from decimal import Decimal

import pytest

from logic.modelos import (
    BankMovement,
    BankStatement,
    Direction,
    LedgerTransaction,
    TransactionKind,
)


HEADER = """OFXHEADER:100
DATA:OFXSGML
VERSION:102
SECURITY:NONE
ENCODING:USASCII
CHARSET:1252
COMPRESSION:NONE
OLDFILEUID:NONE
NEWFILEUID:NONE

"""

SIGNON = """<OFX>
<SIGNONMSGSRSV1>
<SONRS>
<STATUS>
<CODE>0
<SEVERITY>INFO
</STATUS>
<DTSERVER>20231130120000[-3:BRT]
<LANGUAGE>POR
<FI>
<ORG>Banco do Brasil
<FID>001
</FI>
</SONRS>
</SIGNONMSGSRSV1>
"""

ACCOUNT = """<BANKACCTFROM>
<BANKID>001
<BRANCHID>1234-5
<ACCTID>98765-4
<ACCTTYPE>CHECKING
</BANKACCTFROM>
"""

LEDGERBAL = """<LEDGERBAL>
<BALAMT>1500.00
<DTASOF>20231130
</LEDGERBAL>
"""

TRANSACTIONS = [
    ("DEBIT", "20231121230000[-3:BRT]", "-350.50", "202311210001", "POSTO IPIRANGA ABASTECIMENTO"),
    ("CREDIT", "20231120", "150.00", "202311200001", "PIX RECEBIDO JOAO SILVA"),
    ("OTHER", "20231122100000", "-42.10", "202311220001", "TARIFA PACOTE SERVICOS"),
]


def stmttrn(trntype, posted, amount, fitid, memo):
    lines = ["<STMTTRN>", f"<TRNTYPE>{trntype}", f"<DTPOSTED>{posted}", f"<TRNAMT>{amount}", f"<FITID>{fitid}"]
    if memo is not None:
        lines.append(f"<MEMO>{memo}")
    lines.append("</STMTTRN>")
    return "\n".join(lines) + "\n"


def build_ofx(transactions=None, account=ACCOUNT, ledgerbal=LEDGERBAL, closing="</OFX>\n"):
    transactions = TRANSACTIONS if transactions is None else transactions
    body = "".join(stmttrn(*t) for t in transactions)
    return (
        HEADER + SIGNON
        + "<BANKMSGSRSV1>\n<STMTTRNRS>\n<TRNUID>1\n<STATUS>\n<CODE>0\n<SEVERITY>INFO\n</STATUS>\n"
        + "<STMTRS>\n<CURDEF>BRL\n" + account
        + "<BANKTRANLIST>\n<DTSTART>20231101\n<DTEND>20231130\n" + body + "</BANKTRANLIST>\n"
        + ledgerbal
        + "</STMTRS>\n</STMTTRNRS>\n</BANKMSGSRSV1>\n" + closing
    )


@pytest.fixture
def ofx_text():
    return build_ofx


@pytest.fixture
def ofx_bytes():
    def _make(*args, encoding="cp1252", **kwargs):
        return build_ofx(*args, **kwargs).encode(encoding)
    return _make


def movimiento(mid, amount, when, description, direction=None):
    amount = Decimal(amount)
    if direction is None:
        direction = Direction.CREDIT if amount > 0 else Direction.DEBIT
    return BankMovement(id=mid, date=when, description=description, amount=amount, direction=direction)


def transaccion(tid, kind, amount, when, description, due=None):
    return LedgerTransaction(
        id=tid,
        kind=kind,
        description=description,
        amount=Decimal(amount),
        currency="BRL",
        issue_date=when,
        due_date=due or when,
        status="PAGA",
    )


@pytest.fixture
def ledger_pool():
    return [
        transaccion("sis-1", TransactionKind.INCOME, "150.00", date(2023, 11, 20), "Venda de Passagem - João Silva"),
        transaccion("sis-2", TransactionKind.EXPENSE, "350.50", date(2023, 11, 21), "Posto Ipiranga - Abastecimento"),
    ]


@pytest.fixture
def extracto():
    movements = (
        movimiento("m-1", "-350.50", date(2023, 11, 21), "POSTO IPIRANGA ABASTECIMENTO"),
        movimiento("m-2", "150.00", date(2023, 11, 20), "PIX RECEBIDO JOAO SILVA"),
        movimiento("m-3", "-42.10", date(2023, 11, 22), "TARIFA PACOTE SERVICOS"),
    )
    return BankStatement(
        bank_name="Banco do Brasil",
        branch_code="1234-5",
        account_number="98765-4",
        closing_balance=Decimal("1500.00"),
        movements=movements,
        currency="BRL",
    )
