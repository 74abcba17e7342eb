"""
Errores tipados del conciliador.

Los errores de formato invalidan el archivo completo (no hay extractos
parciales). Los de transicion no alteran el estado del movimiento.
"""
from __future__ import annotations


class ParseError(ValueError):
    """El archivo no pudo convertirse en un extracto."""

    def __init__(self, message: str, field: str | None = None, filename: str | None = None):
        self.field = field
        self.filename = filename

        details = []
        if field:
            details.append(f"Campo: {field}")
        if filename:
            details.append(f"Archivo: {filename}")

        full_message = f"{message} ({', '.join(details)})" if details else message
        super().__init__(full_message)


class UnrecognizedFormatError(ParseError):
    """Firma o extension de archivo no soportada."""


class MissingFieldError(ParseError):
    pass


class MalformedAmountError(ParseError):
    pass


class MalformedDateError(ParseError):
    pass


class TruncatedBlockError(ParseError):
    pass


class SignMismatchError(ParseError):
    """El signo del importe no coincide con el sentido informado."""


class TransitionError(Exception):
    pass


class InvalidTransition(TransitionError):
    def __init__(self, movement_id: str, status: str, message: str | None = None):
        self.movement_id = movement_id
        self.status = status
        super().__init__(message or f"Movimiento {movement_id} ya no esta pendiente (estado: {status})")


class IncompatibleTransaction(InvalidTransition):
    """La transaccion del libro no corresponde al sentido del movimiento."""


class NotFound(TransitionError, LookupError):
    def __init__(self, what: str, identifier: str):
        self.what = what
        self.identifier = identifier
        super().__init__(f"{what} no encontrado: {identifier}")


class CollaboratorError(Exception):
    """Falla de lectura o escritura del libro. La sesion no cambia de estado.

    `transaction` viene informada cuando el libro ya persistio una transaccion
    que la sesion no pudo vincular.
    """

    def __init__(self, message: str, transaction=None):
        self.transaction = transaction
        super().__init__(message)
