# ==============================================================================
# ERRORES DEL DOMINIO
# ==============================================================================
# Taxonomía:
#   ValidationError        → datos de entrada inválidos (corregibles por el llamador)
#   UniquenessError        → violación de índice único (QR, nombre, código...)
#   BusinessRuleViolation  → regla de negocio (anular ticket usado, etc.)
#   NotFoundError          → registro inexistente
#   SchemaError            → esquema inutilizable tras migrar (fatal al arrancar)
# ==============================================================================

from typing import Optional


class TaquillaError(Exception):
    """Base de todos los errores del dominio."""


class ValidationError(TaquillaError):
    """Datos de entrada inválidos; se rechazan antes de tocar la base."""


class UniquenessError(TaquillaError):
    """Un índice único rechazó la escritura."""

    def __init__(self, message: str, field: Optional[str] = None):
        super().__init__(message)
        self.field = field


class BusinessRuleViolation(TaquillaError):
    """La operación viola una regla del ciclo de vida."""


class NotFoundError(TaquillaError):
    """El registro solicitado no existe."""


class SchemaError(TaquillaError):
    """El esquema resultante de las migraciones no es utilizable."""


_UNIQUE_MARKER = 'UNIQUE constraint failed:'


def unique_violation_target(exc: Exception) -> Optional[str]:
    """
    Extrae la columna o índice que provocó una violación UNIQUE de SQLite.

    SQLite reporta 'UNIQUE constraint failed: tickets.codigo_qr' para
    columnas e "UNIQUE constraint failed: index 'nombre'" para índices
    sobre expresiones.

    Args:
        exc: IntegrityError de SQLAlchemy (o el error del driver)

    Returns:
        Nombre de columna (sin tabla) o de índice; None si no es UNIQUE
    """
    message = str(getattr(exc, 'orig', None) or exc)
    if _UNIQUE_MARKER not in message:
        return None
    target = message.split(_UNIQUE_MARKER, 1)[1].strip()
    if target.startswith('index '):
        return target[len('index '):].strip().strip("'\"")
    first = target.split(',')[0].strip()
    return first.split('.')[-1]
