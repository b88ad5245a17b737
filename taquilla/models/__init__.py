# ==============================================================================
# CAPA DE MODELOS - Tablas ORM y entidades del dominio
# ==============================================================================
# tables.py   → Esquema relacional (SQLAlchemy declarativo)
# entities.py → Dataclasses y enumeraciones que cruzan la frontera de servicios
# ==============================================================================

from .tables import (
    Base,
    Usuario,
    Puerta,
    TipoTicket,
    Venta,
    Ticket,
    CierreCaja,
    ConfigRelay,
    BotonTicket,
    ConfigLog,
    SchemaVersion,
    CIERRE_UNICO_INDEX,
)
from .entities import (
    Rol,
    AccionLog,
    TablaLog,
    ModoRele,
    SaleReceipt,
    ClosureTotals,
    ClosureResult,
    DeleteResult,
    ConfigLogEntry,
)

__all__ = [
    # Tablas
    'Base',
    'Usuario',
    'Puerta',
    'TipoTicket',
    'Venta',
    'Ticket',
    'CierreCaja',
    'ConfigRelay',
    'BotonTicket',
    'ConfigLog',
    'SchemaVersion',
    'CIERRE_UNICO_INDEX',

    # Enumeraciones
    'Rol',
    'AccionLog',
    'TablaLog',
    'ModoRele',

    # Entidades
    'SaleReceipt',
    'ClosureTotals',
    'ClosureResult',
    'DeleteResult',
    'ConfigLogEntry',
]
