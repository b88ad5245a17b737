# ==============================================================================
# TABLAS ORM - Esquema relacional actual
# ==============================================================================
# Cada clase es una tabla SQLite. Los nombres de tablas y columnas son los
# del esquema histórico del sistema para que las migraciones puedan
# reconocer bases antiguas.
#
# Los valores por defecto se declaran con server_default para que también
# apliquen a filas copiadas por SQL crudo y a columnas agregadas con
# ALTER TABLE.
# ==============================================================================

from datetime import date, datetime
from typing import Any, Dict, Mapping

from sqlalchemy import (
    Boolean, Column, Float, ForeignKey, Index, Integer, String, Text, func, text,
)
from sqlalchemy.dialects.sqlite import DATETIME
from sqlalchemy.orm import declarative_base, relationship

# 'YYYY-MM-DD HH:MM:SS', el mismo formato que CURRENT_TIMESTAMP
FechaHora = DATETIME(
    storage_format="%(year)04d-%(month)02d-%(day)02d %(hour)02d:%(minute)02d:%(second)02d"
)

Base = declarative_base()


def plain_value(value: Any) -> Any:
    """Valor apto para JSON: fechas como texto, booleanos como 0/1."""
    if isinstance(value, datetime):
        return value.strftime('%Y-%m-%d %H:%M:%S')
    if isinstance(value, date):
        return value.isoformat()
    if isinstance(value, bool):
        return int(value)
    return value


def plain_dict(mapping: Mapping[str, Any]) -> Dict[str, Any]:
    return {key: plain_value(value) for key, value in mapping.items()}


class SnapshotMixin:
    """Serialización plana de una fila (para auditoría y respuestas JSON)."""

    def to_dict(self) -> Dict[str, Any]:
        return {
            column.name: plain_value(getattr(self, column.key))
            for column in self.__table__.columns
        }


class Usuario(SnapshotMixin, Base):
    __tablename__ = 'usuarios'

    id = Column(Integer, primary_key=True)
    nombre = Column(String(100), nullable=False)
    usuario = Column(String(50), unique=True, nullable=False)
    password = Column(String(255), nullable=False)
    rol = Column(String(20), nullable=False, server_default='vendedor')  # 'vendedor' | 'admin'
    activo = Column(Boolean, nullable=False, server_default=text('1'))
    fecha_creacion = Column(FechaHora, nullable=False, server_default=func.current_timestamp())

    def to_dict(self) -> Dict[str, Any]:
        data = super().to_dict()
        data.pop('password', None)
        return data


class Puerta(SnapshotMixin, Base):
    __tablename__ = 'puertas'
    __table_args__ = (
        # Un canal de relay solo puede pertenecer a una puerta activa
        Index(
            'ux_puertas_relay_activo', 'relay_number', unique=True,
            sqlite_where=text('activo = 1 AND relay_number IS NOT NULL'),
        ),
    )

    id = Column(Integer, primary_key=True)
    nombre = Column(String(100), unique=True, nullable=False)
    codigo = Column(String(50), unique=True, nullable=False)
    descripcion = Column(Text)
    lector_ip = Column(String(45))
    lector_port = Column(Integer, server_default=text('5000'))
    relay_number = Column(Integer)
    tiempo_apertura_segundos = Column(Integer, nullable=False, server_default=text('5'))
    activo = Column(Boolean, nullable=False, server_default=text('1'))
    fecha_creacion = Column(FechaHora, nullable=False, server_default=func.current_timestamp())


class TipoTicket(SnapshotMixin, Base):
    __tablename__ = 'tipos_ticket'

    id = Column(Integer, primary_key=True)
    nombre = Column(String(100), unique=True, nullable=False)
    precio = Column(Float, nullable=False)
    puerta_id = Column(Integer, ForeignKey('puertas.id'))
    activo = Column(Boolean, nullable=False, server_default=text('1'))
    fecha_creacion = Column(FechaHora, nullable=False, server_default=func.current_timestamp())

    puerta = relationship('Puerta')


class Venta(SnapshotMixin, Base):
    __tablename__ = 'ventas'

    id = Column(Integer, primary_key=True)
    usuario_id = Column(Integer, ForeignKey('usuarios.id'), nullable=False, index=True)
    total = Column(Float, nullable=False)
    fecha_venta = Column(FechaHora, nullable=False, server_default=func.current_timestamp())
    anulada = Column(Boolean, nullable=False, server_default=text('0'))

    usuario = relationship('Usuario')
    tickets = relationship('Ticket', back_populates='venta', order_by='Ticket.id')


class Ticket(SnapshotMixin, Base):
    __tablename__ = 'tickets'

    id = Column(Integer, primary_key=True)
    venta_id = Column(Integer, ForeignKey('ventas.id'), nullable=False, index=True)
    tipo_ticket_id = Column(Integer, ForeignKey('tipos_ticket.id'), nullable=False)
    codigo_qr = Column(String(255), unique=True, nullable=False)
    puerta_codigo = Column(String(50))
    precio = Column(Float, nullable=False)
    fecha_creacion = Column(FechaHora, nullable=False, server_default=func.current_timestamp())
    anulado = Column(Boolean, nullable=False, server_default=text('0'))
    usado = Column(Boolean, nullable=False, server_default=text('0'))
    fecha_uso = Column(FechaHora)
    impreso = Column(Boolean, nullable=False, server_default=text('0'))
    fecha_impresion = Column(FechaHora)

    venta = relationship('Venta', back_populates='tickets')
    tipo_ticket = relationship('TipoTicket')


class CierreCaja(SnapshotMixin, Base):
    __tablename__ = 'cierres_caja'

    id = Column(Integer, primary_key=True)
    usuario_id = Column(Integer, ForeignKey('usuarios.id'), nullable=False)
    fecha_inicio = Column(FechaHora, nullable=False)
    fecha_cierre = Column(FechaHora)
    total_ventas = Column(Float, nullable=False, server_default=text('0'))
    cantidad_tickets = Column(Integer, nullable=False, server_default=text('0'))
    detalle_tipos = Column(Text)

    usuario = relationship('Usuario')


CIERRE_UNICO_INDEX = 'ux_cierres_caja_usuario_fecha'

# Un cierre por (usuario, día calendario de fecha_inicio)
Index(CIERRE_UNICO_INDEX, CierreCaja.usuario_id, func.date(CierreCaja.fecha_inicio), unique=True)


class ConfigRelay(SnapshotMixin, Base):
    __tablename__ = 'config_relay'

    # Fila única fijada en id = 1
    id = Column(Integer, primary_key=True)
    ip = Column(String(45), nullable=False)
    port = Column(Integer, nullable=False, server_default=text('80'))
    timeout = Column(Integer, nullable=False, server_default=text('3000'))
    reintentos = Column(Integer, nullable=False, server_default=text('3'))
    modo_rele1 = Column(String(2), nullable=False, server_default='NA')
    modo_rele2 = Column(String(2), nullable=False, server_default='NA')
    modo_rele3 = Column(String(2), nullable=False, server_default='NA')
    modo_rele4 = Column(String(2), nullable=False, server_default='NA')
    fecha_actualizacion = Column(FechaHora)


class BotonTicket(SnapshotMixin, Base):
    __tablename__ = 'botones_tickets'

    id = Column(Integer, primary_key=True)
    input_numero = Column(Integer, unique=True, nullable=False)
    tipo_ticket_id = Column(Integer, ForeignKey('tipos_ticket.id'))
    cantidad = Column(Integer, nullable=False, server_default=text('1'))
    descripcion = Column(Text)
    activo = Column(Boolean, nullable=False, server_default=text('1'))
    fecha_actualizacion = Column(FechaHora)

    tipo_ticket = relationship('TipoTicket')


class ConfigLog(Base):
    __tablename__ = 'config_logs'
    __table_args__ = (
        Index('ix_config_logs_tabla_registro', 'tabla_afectada', 'registro_id'),
    )

    id = Column(Integer, primary_key=True)
    accion = Column(String(20), nullable=False)
    tabla_afectada = Column(String(50), nullable=False)
    registro_id = Column(Integer)
    descripcion = Column(Text, nullable=False)
    datos_anteriores = Column(Text)
    datos_nuevos = Column(Text)
    fecha_hora = Column(FechaHora, nullable=False, server_default=func.current_timestamp(), index=True)
    ip_address = Column(String(45))
    # Sin FK: la entrada sobrevive a la baja del usuario
    usuario_id = Column(Integer)
    usuario_nombre = Column(String(100))


class SchemaVersion(Base):
    __tablename__ = 'schema_version'

    version = Column(Integer, primary_key=True, autoincrement=False)
    nombre = Column(String(100), nullable=False)
    aplicada_en = Column(FechaHora, nullable=False, server_default=func.current_timestamp())
