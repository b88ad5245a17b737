# ==============================================================================
# VALIDACIONES COMUNES
# ==============================================================================
# Reglas de entrada compartidas por los servicios. Todas lanzan
# ValidationError antes de tocar la base.
# ==============================================================================

import math
import re
from typing import Any, Optional

from taquilla.errors import ValidationError

_IP_PATTERN = re.compile(r'^(\d{1,3})\.(\d{1,3})\.(\d{1,3})\.(\d{1,3})$')


def is_valid_ip(value: str) -> bool:
    """IPv4 en notación de cuatro octetos (0-255)."""
    match = _IP_PATTERN.match(value or '')
    return bool(match) and all(int(part) <= 255 for part in match.groups())


def require_ip(value: Any, label: str = 'IP') -> str:
    text = str(value or '').strip()
    if not is_valid_ip(text):
        raise ValidationError(f"{label} inválida: {value!r}")
    return text


def require_text(value: Any, label: str, min_length: int = 1) -> str:
    text = str(value or '').strip()
    if len(text) < min_length:
        if min_length <= 1:
            raise ValidationError(f"{label} es obligatorio")
        raise ValidationError(f"{label} debe tener al menos {min_length} caracteres")
    return text


def require_int(value: Any, label: str, minimum: Optional[int] = None,
                maximum: Optional[int] = None) -> int:
    """
    Convierte a entero y verifica el rango (inclusivo).

    Raises:
        ValidationError: si no es entero o está fuera de rango
    """
    if isinstance(value, bool):
        raise ValidationError(f"{label} debe ser un número entero")
    try:
        number = int(value)
    except (TypeError, ValueError):
        raise ValidationError(f"{label} debe ser un número entero")
    if isinstance(value, float) and value != number:
        raise ValidationError(f"{label} debe ser un número entero")
    if minimum is not None and maximum is not None and not minimum <= number <= maximum:
        raise ValidationError(f"{label} debe estar entre {minimum} y {maximum}")
    if minimum is not None and number < minimum:
        raise ValidationError(f"{label} debe ser mayor o igual a {minimum}")
    if maximum is not None and number > maximum:
        raise ValidationError(f"{label} debe ser menor o igual a {maximum}")
    return number


def require_id(value: Any, label: str = 'ID') -> int:
    return require_int(value, label, minimum=1)


def require_amount(value: Any, label: str, maximum: Optional[float] = None) -> float:
    """
    Monto finito mayor que cero, con a lo sumo dos decimales (y
    opcionalmente acotado). Se devuelve sin redondear.
    """
    if isinstance(value, bool):
        raise ValidationError(f"{label} debe ser numérico")
    try:
        amount = float(value)
    except (TypeError, ValueError):
        raise ValidationError(f"{label} debe ser numérico")
    if not math.isfinite(amount):
        raise ValidationError(f"{label} debe ser un número finito")
    if amount <= 0:
        raise ValidationError(f"{label} debe ser mayor que 0")
    if maximum is not None and amount > maximum:
        raise ValidationError(f"{label} no puede superar {maximum:.0f}")
    if round(amount, 2) != amount:
        raise ValidationError(f"{label} no puede tener más de dos decimales")
    return amount


def optional_text(value: Any) -> Optional[str]:
    """Texto recortado o None si viene vacío."""
    if value is None:
        return None
    text = str(value).strip()
    return text or None
