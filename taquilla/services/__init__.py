# ==============================================================================
# CAPA DE SERVICIOS - Lógica de negocio
# ==============================================================================
# Cada servicio es dueño de sus transacciones y de sus reglas. Las rutas
# (main.py) solo traducen request → servicio → respuesta.
#
# ESTRUCTURA:
# ├── sales_service.py       → Creación de ventas y consultas
# ├── ticket_service.py      → Impresión, uso y anulación de tickets
# ├── closure_service.py     → Cierres de caja diarios
# ├── audit_service.py       → Auditoría de configuración
# ├── door_service.py        → Puertas
# ├── ticket_type_service.py → Tipos de ticket
# ├── relay_service.py       → Configuración del relay
# ├── button_service.py      → Botones físicos
# ├── user_service.py        → Usuarios y autenticación
# ├── backup_service.py      → Backups ZIP de la base
# └── validators.py          → Validaciones compartidas
# ==============================================================================

from .audit_service import AuditService
from .sales_service import SalesService
from .ticket_service import TicketService
from .closure_service import ClosureService
from .door_service import DoorService
from .ticket_type_service import TicketTypeService
from .relay_service import RelayService
from .button_service import ButtonService
from .user_service import UserService
from .backup_service import BackupService

__all__ = [
    'AuditService',
    'SalesService',
    'TicketService',
    'ClosureService',
    'DoorService',
    'TicketTypeService',
    'RelayService',
    'ButtonService',
    'UserService',
    'BackupService',
]
