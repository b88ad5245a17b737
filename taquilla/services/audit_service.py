# ==============================================================================
# SERVICIO DE AUDITORÍA DE CONFIGURACIÓN
# ==============================================================================
# Registra cada cambio administrativo (puertas, relay, tipos de ticket,
# botones) con el estado anterior y posterior del registro.
#
# FORMA DE LOS SNAPSHOTS:
#   crear     → solo datos_nuevos
#   eliminar  → solo datos_anteriores
#   modificar → ambos
#
# ESCRITURA BEST-EFFORT:
#   Los servicios CRUD llaman a record_safe() DESPUÉS de confirmar su propia
#   transacción. Un fallo al auditar se registra en el log y se descarta;
#   nunca deshace ni bloquea el cambio principal.
# ==============================================================================

import json
import logging
from datetime import date, timedelta
from typing import Any, Dict, List, Mapping, Optional, Union

from taquilla.database import Database, now_local, to_day
from taquilla.errors import ValidationError
from taquilla.models.entities import AccionLog, ConfigLogEntry, TablaLog
from taquilla.repositories.audit_repository import AuditRepository
from taquilla.services.validators import require_int

logger = logging.getLogger(__name__)

Snapshot = Optional[Dict[str, Any]]
DateLike = Union[date, str, None]
# Usuario que hace el cambio: {'id': ..., 'nombre': ...}
Actor = Optional[Mapping[str, Any]]

VALID_ACTIONS = frozenset(a.value for a in AccionLog)
VALID_TABLES = frozenset(t.value for t in TablaLog)


def _dump(snapshot: Snapshot) -> Optional[str]:
    if snapshot is None:
        return None
    return json.dumps(snapshot, ensure_ascii=False, default=str, sort_keys=True)


class AuditService:
    """
    Registro y consulta de la auditoría de configuración.

    Centraliza:
    - Validación de acción, tabla y forma de los snapshots
    - Búsqueda filtrada y paginada
    - Estadísticas por tabla/acción e historial de un registro
    - Retención (purga de entradas antiguas)
    """

    DEFAULT_LIMIT = 100
    DEFAULT_RETENTION_DAYS = 90

    def __init__(self, database: Database, audit_repo: AuditRepository,
                 retention_days: int = DEFAULT_RETENTION_DAYS):
        """
        Args:
            database: Base de datos (transacciones propias, separadas del CRUD)
            audit_repo: Repositorio de config_logs
            retention_days: Días por defecto para purge_older_than()
        """
        self.database = database
        self.audit_repo = audit_repo
        self.retention_days = retention_days

    # =========================================================================
    # REGISTRO
    # =========================================================================

    def _validate(self, accion: str, tabla: str, before: Snapshot, after: Snapshot) -> None:
        if accion not in VALID_ACTIONS:
            raise ValidationError(f"Acción de auditoría inválida: {accion!r}")
        if tabla not in VALID_TABLES:
            raise ValidationError(f"Tabla de auditoría inválida: {tabla!r}")
        if accion == AccionLog.CREAR.value and (after is None or before is not None):
            raise ValidationError("Una entrada 'crear' lleva solo datos nuevos")
        if accion == AccionLog.ELIMINAR.value and (before is None or after is not None):
            raise ValidationError("Una entrada 'eliminar' lleva solo datos anteriores")
        if accion == AccionLog.MODIFICAR.value and (before is None or after is None):
            raise ValidationError("Una entrada 'modificar' lleva datos anteriores y nuevos")

    def record(
        self,
        accion: str,
        tabla: str,
        registro_id: Optional[int],
        descripcion: str,
        before: Snapshot = None,
        after: Snapshot = None,
        ip_address: Optional[str] = None,
        usuario: Actor = None,
    ) -> int:
        """
        Registra un cambio de configuración.

        Args:
            accion: 'crear', 'modificar' o 'eliminar'
            tabla: Tabla afectada (puertas, config_relay, tipos_ticket, botones_tickets)
            registro_id: ID del registro afectado
            descripcion: Texto legible del cambio
            before: Estado previo del registro
            after: Estado posterior del registro
            ip_address: IP de origen (opcional)
            usuario: Usuario que hizo el cambio, con 'id' y 'nombre' (opcional)

        Returns:
            ID de la entrada creada

        Raises:
            ValidationError: acción, tabla o forma de snapshots inválidas
        """
        accion = getattr(accion, 'value', accion)
        tabla = getattr(tabla, 'value', tabla)
        self._validate(accion, tabla, before, after)
        usuario = usuario or {}

        with self.database.transaction() as session:
            row = self.audit_repo.log(
                session,
                accion=accion,
                tabla=tabla,
                registro_id=registro_id,
                descripcion=descripcion,
                datos_anteriores=_dump(before),
                datos_nuevos=_dump(after),
                fecha_hora=now_local(),
                ip_address=ip_address,
                usuario_id=usuario.get('id'),
                usuario_nombre=usuario.get('nombre'),
            )
            return row.id

    def record_safe(self, *args, **kwargs) -> Optional[int]:
        """
        Igual que record() pero nunca lanza: los fallos quedan en el log.

        Returns:
            ID de la entrada o None si no se pudo registrar
        """
        try:
            return self.record(*args, **kwargs)
        except Exception:
            logger.exception("No se pudo registrar la auditoría de configuración")
            return None

    # =========================================================================
    # CONSULTAS
    # =========================================================================

    @staticmethod
    def _filters(tabla=None, accion=None, fecha_desde: DateLike = None,
                 fecha_hasta: DateLike = None) -> Dict[str, Any]:
        return {
            'tabla': getattr(tabla, 'value', tabla),
            'accion': getattr(accion, 'value', accion),
            'fecha_desde': to_day(fecha_desde) if fecha_desde else None,
            'fecha_hasta': to_day(fecha_hasta) if fecha_hasta else None,
        }

    def list_logs(
        self,
        tabla: Optional[str] = None,
        accion: Optional[str] = None,
        fecha_desde: DateLike = None,
        fecha_hasta: DateLike = None,
        limit: int = DEFAULT_LIMIT,
        offset: int = 0,
    ) -> List[ConfigLogEntry]:
        """
        Entradas filtradas, más recientes primero.

        Args:
            tabla: Filtrar por tabla afectada
            accion: Filtrar por acción
            fecha_desde: Fecha mínima (inclusiva)
            fecha_hasta: Fecha máxima (inclusiva)
            limit: Máximo de entradas (por defecto 100)
            offset: Entradas a saltar

        Returns:
            Lista de ConfigLogEntry
        """
        filters = self._filters(tabla, accion, fecha_desde, fecha_hasta)
        with self.database.transaction() as session:
            rows = self.audit_repo.search(session, limit=max(0, int(limit)),
                                          offset=max(0, int(offset)), **filters)
            return [ConfigLogEntry.from_row(row) for row in rows]

    def count_logs(self, tabla=None, accion=None, fecha_desde: DateLike = None,
                   fecha_hasta: DateLike = None) -> int:
        """Total de entradas con los mismos filtros que list_logs()."""
        filters = self._filters(tabla, accion, fecha_desde, fecha_hasta)
        with self.database.transaction() as session:
            return self.audit_repo.count_filtered(session, **filters)

    def stats_by_table_and_action(self) -> List[Dict[str, Any]]:
        """Cantidad de cambios y fecha del último por (tabla, acción)."""
        with self.database.transaction() as session:
            return self.audit_repo.stats(session)

    def history_of(self, tabla: str, registro_id: int) -> List[ConfigLogEntry]:
        """Historial cronológico (más antiguo primero) de un registro."""
        tabla = getattr(tabla, 'value', tabla)
        with self.database.transaction() as session:
            rows = self.audit_repo.history(session, tabla, registro_id)
            return [ConfigLogEntry.from_row(row) for row in rows]

    # =========================================================================
    # RETENCIÓN
    # =========================================================================

    def purge_older_than(self, days: Optional[int] = None) -> int:
        """
        Elimina entradas con fecha anterior a (hoy - days).

        Args:
            days: Días a conservar (por defecto retention_days)

        Returns:
            Cantidad de entradas eliminadas
        """
        days = self.retention_days if days is None else require_int(days, 'Los días de retención', minimum=0)
        cutoff = date.today() - timedelta(days=days)
        with self.database.transaction() as session:
            removed = self.audit_repo.delete_before(session, cutoff)
        if removed:
            logger.info(f"Auditoría: {removed} entradas anteriores a {cutoff} eliminadas")
        return removed
