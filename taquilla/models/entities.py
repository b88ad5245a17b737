# ==============================================================================
# ENTIDADES DEL DOMINIO - Dataclasses de frontera
# ==============================================================================
# Lo que los servicios devuelven a sus llamadores. Las filas ORM no salen
# de las transacciones; se convierten a estas estructuras o a dicts.
# ==============================================================================

import json
from dataclasses import dataclass, field, asdict
from datetime import datetime
from enum import Enum
from typing import Any, Dict, List, Optional


# ==============================================================================
# ENUMERACIONES - Valores válidos almacenados
# ==============================================================================

class Rol(str, Enum):
    """Roles de usuario."""
    VENDEDOR = "vendedor"
    ADMIN = "admin"


class AccionLog(str, Enum):
    """Acciones registradas en la auditoría de configuración."""
    CREAR = "crear"
    MODIFICAR = "modificar"
    ELIMINAR = "eliminar"


class TablaLog(str, Enum):
    """Tablas auditadas (conjunto cerrado)."""
    PUERTAS = "puertas"
    CONFIG_RELAY = "config_relay"
    TIPOS_TICKET = "tipos_ticket"
    BOTONES_TICKETS = "botones_tickets"


class ModoRele(str, Enum):
    """Modo de cada canal del relay."""
    NA = "NA"  # Normalmente abierto
    NC = "NC"  # Normalmente cerrado


# ==============================================================================
# VENTAS Y CIERRES
# ==============================================================================

@dataclass
class SaleReceipt:
    """
    Comprobante devuelto al crear una venta.

    Attributes:
        sale_id: ID de la venta creada
        qr_code: Código QR del ticket emitido
        ticket_type_id: Tipo de ticket vendido
        price: Precio cobrado
        created_at: Fecha y hora de la venta
        door_code: Código de puerta impreso en el ticket (opcional)
    """
    sale_id: int
    qr_code: str
    ticket_type_id: int
    price: float
    created_at: datetime
    door_code: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        data = asdict(self)
        data['created_at'] = self.created_at.strftime('%Y-%m-%d %H:%M:%S')
        return data


@dataclass
class ClosureTotals:
    """Totales de un día para un vendedor."""
    total_ventas: float = 0.0
    cantidad_tickets: int = 0
    detalle_tipos: List[Dict[str, Any]] = field(default_factory=list)

    @property
    def detalle_texto(self) -> str:
        """Desglose legible: 'General: 3 tickets, $15.00 | VIP: 1 tickets, $20.00'."""
        if not self.detalle_tipos:
            return 'Sin ventas'
        return ' | '.join(
            f"{d['tipo']}: {d['cantidad']} tickets, ${d['subtotal']:.2f}"
            for d in self.detalle_tipos
        )

    def to_dict(self) -> Dict[str, Any]:
        return {
            'total_ventas': self.total_ventas,
            'cantidad_tickets': self.cantidad_tickets,
            'detalle_tipos': list(self.detalle_tipos),
            'detalle_texto': self.detalle_texto,
        }


@dataclass
class ClosureResult:
    """Resultado del upsert de cierre: action es 'created' o 'updated'."""
    action: str
    id: int

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)


@dataclass
class DeleteResult:
    """
    Resultado de un borrado con regla de baja lógica.

    deleted=True  → la fila se eliminó físicamente
    deactivated=True → tenía dependientes y solo se desactivó
    """
    deleted: bool
    deactivated: bool = False

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)


# ==============================================================================
# AUDITORÍA
# ==============================================================================

def _load_snapshot(raw: Optional[str]) -> Optional[Dict[str, Any]]:
    if raw is None or raw == '':
        return None
    try:
        value = json.loads(raw)
    except (TypeError, ValueError):
        # Entradas antiguas con texto no JSON
        return {'raw': raw}
    return value if isinstance(value, dict) else {'value': value}


@dataclass
class ConfigLogEntry:
    """
    Entrada de auditoría con snapshots ya deserializados.

    Attributes:
        id: ID de la entrada
        accion: crear / modificar / eliminar
        tabla_afectada: Tabla de configuración afectada
        registro_id: ID del registro modificado
        descripcion: Texto legible del cambio
        before: Estado previo (None en 'crear')
        after: Estado posterior (None en 'eliminar')
        fecha_hora: Momento del registro
        ip_address: IP de origen (opcional)
        usuario_id: ID del usuario que hizo el cambio (opcional)
        usuario_nombre: Nombre del usuario al momento del cambio (opcional)
    """
    id: int
    accion: str
    tabla_afectada: str
    registro_id: Optional[int]
    descripcion: str
    before: Optional[Dict[str, Any]]
    after: Optional[Dict[str, Any]]
    fecha_hora: Optional[datetime]
    ip_address: Optional[str] = None
    usuario_id: Optional[int] = None
    usuario_nombre: Optional[str] = None

    @classmethod
    def from_row(cls, row) -> 'ConfigLogEntry':
        """Crea la entrada desde una fila ConfigLog."""
        return cls(
            id=row.id,
            accion=row.accion,
            tabla_afectada=row.tabla_afectada,
            registro_id=row.registro_id,
            descripcion=row.descripcion,
            before=_load_snapshot(row.datos_anteriores),
            after=_load_snapshot(row.datos_nuevos),
            fecha_hora=row.fecha_hora,
            ip_address=row.ip_address,
            usuario_id=row.usuario_id,
            usuario_nombre=row.usuario_nombre,
        )

    def changes(self) -> Dict[str, Dict[str, Any]]:
        """
        Campos cuyo valor difiere entre before y after.

        Returns:
            {campo: {'antes': valor, 'despues': valor}}
        """
        before = self.before or {}
        after = self.after or {}
        diff = {}
        for key in sorted(set(before) | set(after)):
            if before.get(key) != after.get(key):
                diff[key] = {'antes': before.get(key), 'despues': after.get(key)}
        return diff

    def to_dict(self) -> Dict[str, Any]:
        return {
            'id': self.id,
            'accion': self.accion,
            'tabla_afectada': self.tabla_afectada,
            'registro_id': self.registro_id,
            'descripcion': self.descripcion,
            'datos_anteriores': self.before,
            'datos_nuevos': self.after,
            'fecha_hora': self.fecha_hora.strftime('%Y-%m-%d %H:%M:%S') if self.fecha_hora else None,
            'ip_address': self.ip_address,
            'usuario_id': self.usuario_id,
            'usuario_nombre': self.usuario_nombre,
        }
