# ==============================================================================
# REPOSITORIO DE AUDITORÍA DE CONFIGURACIÓN
# ==============================================================================
# Encapsula todo el acceso a config_logs (tabla de solo inserción).
# Los snapshots se guardan como texto JSON en datos_anteriores/datos_nuevos.
#
# FILTROS (list / count):
#   tabla, accion      → igualdad
#   fecha_desde/hasta  → comparan DATE(fecha_hora), ambos inclusivos
# ==============================================================================

from datetime import date, datetime
from typing import Any, Dict, List, Optional

from sqlalchemy import delete, func, select
from sqlalchemy.orm import Session

from taquilla.models.tables import ConfigLog
from .base import BaseRepository


class AuditRepository(BaseRepository):
    """Acceso a config_logs."""

    model = ConfigLog

    def log(
        self,
        session: Session,
        accion: str,
        tabla: str,
        registro_id: Optional[int],
        descripcion: str,
        datos_anteriores: Optional[str],
        datos_nuevos: Optional[str],
        fecha_hora: datetime,
        ip_address: Optional[str] = None,
        usuario_id: Optional[int] = None,
        usuario_nombre: Optional[str] = None,
    ) -> ConfigLog:
        """Inserta una entrada de auditoría."""
        return self.add(
            session,
            accion=accion,
            tabla_afectada=tabla,
            registro_id=registro_id,
            descripcion=descripcion,
            datos_anteriores=datos_anteriores,
            datos_nuevos=datos_nuevos,
            fecha_hora=fecha_hora,
            ip_address=ip_address,
            usuario_id=usuario_id,
            usuario_nombre=usuario_nombre,
        )

    def _filters(
        self,
        tabla: Optional[str] = None,
        accion: Optional[str] = None,
        fecha_desde: Optional[date] = None,
        fecha_hasta: Optional[date] = None,
    ) -> list:
        criteria = []
        if tabla:
            criteria.append(ConfigLog.tabla_afectada == tabla)
        if accion:
            criteria.append(ConfigLog.accion == accion)
        if fecha_desde:
            criteria.append(func.date(ConfigLog.fecha_hora) >= fecha_desde.isoformat())
        if fecha_hasta:
            criteria.append(func.date(ConfigLog.fecha_hora) <= fecha_hasta.isoformat())
        return criteria

    def search(self, session: Session, limit: int = 100, offset: int = 0, **filters) -> List[ConfigLog]:
        """
        Entradas filtradas, más recientes primero.

        Args:
            session: Sesión activa
            limit: Máximo de filas
            offset: Filas a saltar (paginación)
            **filters: tabla, accion, fecha_desde, fecha_hasta

        Returns:
            Lista de filas ConfigLog
        """
        stmt = (
            select(ConfigLog)
            .where(*self._filters(**filters))
            .order_by(ConfigLog.fecha_hora.desc(), ConfigLog.id.desc())
            .limit(limit)
            .offset(offset)
        )
        return list(session.scalars(stmt))

    def count_filtered(self, session: Session, **filters) -> int:
        return self.count(session, *self._filters(**filters))

    def stats(self, session: Session) -> List[Dict[str, Any]]:
        """Cantidad de entradas y última fecha por (tabla, acción)."""
        stmt = (
            select(
                ConfigLog.tabla_afectada,
                ConfigLog.accion,
                func.count(ConfigLog.id).label('total'),
                func.max(ConfigLog.fecha_hora).label('ultima_modificacion'),
            )
            .group_by(ConfigLog.tabla_afectada, ConfigLog.accion)
            .order_by(ConfigLog.tabla_afectada, ConfigLog.accion)
        )
        return [
            {
                'tabla_afectada': row.tabla_afectada,
                'accion': row.accion,
                'total': int(row.total),
                'ultima_modificacion': row.ultima_modificacion,
            }
            for row in session.execute(stmt)
        ]

    def history(self, session: Session, tabla: str, registro_id: int) -> List[ConfigLog]:
        """Rastro completo de un registro, en orden cronológico."""
        stmt = (
            select(ConfigLog)
            .where(ConfigLog.tabla_afectada == tabla, ConfigLog.registro_id == registro_id)
            .order_by(ConfigLog.fecha_hora, ConfigLog.id)
        )
        return list(session.scalars(stmt))

    def delete_before(self, session: Session, cutoff: date) -> int:
        """Elimina entradas con fecha estrictamente anterior al corte."""
        stmt = (
            delete(ConfigLog)
            .where(func.date(ConfigLog.fecha_hora) < cutoff.isoformat())
            .execution_options(synchronize_session=False)
        )
        return session.execute(stmt).rowcount
