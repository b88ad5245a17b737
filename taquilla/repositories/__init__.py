# ==============================================================================
# CAPA DE REPOSITORIOS - Acceso a datos
# ==============================================================================
# Encapsula todo el SQL. Los repositorios son objetos sin estado que
# reciben la sesión de la transacción en curso; los servicios deciden
# dónde empieza y termina cada transacción.
#
# ESTRUCTURA:
# ├── base.py                   → BaseRepository (operaciones por ID)
# ├── user_repository.py        → usuarios
# ├── door_repository.py        → puertas
# ├── ticket_type_repository.py → tipos_ticket
# ├── sales_repository.py       → ventas + tickets
# ├── closure_repository.py     → cierres_caja
# ├── relay_repository.py       → config_relay (fila única)
# ├── button_repository.py      → botones_tickets
# └── audit_repository.py       → config_logs
# ==============================================================================

from .base import BaseRepository
from .user_repository import UserRepository
from .door_repository import DoorRepository
from .ticket_type_repository import TicketTypeRepository
from .sales_repository import SalesRepository
from .closure_repository import ClosureRepository
from .relay_repository import RelayRepository, DEFAULT_RELAY, RELAY_ID
from .button_repository import ButtonRepository
from .audit_repository import AuditRepository

__all__ = [
    'BaseRepository',
    'UserRepository',
    'DoorRepository',
    'TicketTypeRepository',
    'SalesRepository',
    'ClosureRepository',
    'RelayRepository',
    'DEFAULT_RELAY',
    'RELAY_ID',
    'ButtonRepository',
    'AuditRepository',
]
