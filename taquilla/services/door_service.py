# ==============================================================================
# SERVICIO DE PUERTAS
# ==============================================================================
# CRUD de puertas de acceso con auditoría.
#
# REGLAS:
#   - nombre ≥ 3 caracteres, único
#   - código alfanumérico, se guarda en mayúsculas, único
#   - relay 1-4, sin repetir entre puertas activas
#   - eliminar una puerta con tipos de ticket asociados la desactiva
# ==============================================================================

import logging
import re
from typing import Any, Dict, List, Optional

from sqlalchemy.exc import IntegrityError

from taquilla.database import Database
from taquilla.errors import NotFoundError, UniquenessError, ValidationError, unique_violation_target
from taquilla.models.entities import AccionLog, DeleteResult, TablaLog
from taquilla.repositories.door_repository import DoorRepository
from taquilla.services.audit_service import Actor, AuditService
from taquilla.services.validators import optional_text, require_int, require_ip, require_text

logger = logging.getLogger(__name__)

_CODE_PATTERN = re.compile(r'^[A-Z0-9]+$')

_UNIQUE_MESSAGES = {
    'nombre': 'Ya existe una puerta con ese nombre',
    'codigo': 'Ya existe una puerta con ese código',
    'relay_number': 'Ese relay ya está asignado a otra puerta activa',
    'ux_puertas_relay_activo': 'Ese relay ya está asignado a otra puerta activa',
}

FIELDS = ('nombre', 'codigo', 'descripcion', 'lector_ip', 'lector_port',
          'relay_number', 'tiempo_apertura_segundos')


def validate_door(data: Dict[str, Any]) -> Dict[str, Any]:
    """
    Normaliza y valida los datos de una puerta.

    Returns:
        Dict con los campos listos para guardar

    Raises:
        ValidationError: si algún campo es inválido
    """
    codigo = require_text(data.get('codigo'), 'El código').upper()
    if not _CODE_PATTERN.match(codigo):
        raise ValidationError('El código solo puede contener letras y números')

    lector_ip = data.get('lector_ip')
    lector_ip = require_ip(lector_ip, 'La IP del lector') if lector_ip not in (None, '') else None

    relay = data.get('relay_number')
    relay = require_int(relay, 'El número de relay', 1, 4) if relay not in (None, '') else None

    port = data.get('lector_port')
    tiempo = data.get('tiempo_apertura_segundos')

    return {
        'nombre': require_text(data.get('nombre'), 'El nombre', min_length=3),
        'codigo': codigo,
        'descripcion': optional_text(data.get('descripcion')),
        'lector_ip': lector_ip,
        'lector_port': require_int(5000 if port in (None, '') else port, 'El puerto del lector', 1, 65535),
        'relay_number': relay,
        'tiempo_apertura_segundos': require_int(5 if tiempo in (None, '') else tiempo,
                                                'El tiempo de apertura', 1, 60),
    }


class DoorService:
    """CRUD de puertas con auditoría best-effort."""

    TABLE = TablaLog.PUERTAS.value

    def __init__(self, database: Database, door_repo: DoorRepository, audit_service: AuditService):
        self.database = database
        self.door_repo = door_repo
        self.audit_service = audit_service

    # =========================================================================
    # CONSULTAS
    # =========================================================================

    def list(self) -> List[Dict[str, Any]]:
        with self.database.transaction() as session:
            return [p.to_dict() for p in self.door_repo.list_all(session)]

    def list_active(self) -> List[Dict[str, Any]]:
        with self.database.transaction() as session:
            return [p.to_dict() for p in self.door_repo.list_active(session)]

    def get(self, door_id: int) -> Dict[str, Any]:
        with self.database.transaction() as session:
            puerta = self.door_repo.get(session, door_id)
            if puerta is None:
                raise NotFoundError(f"Puerta {door_id} no encontrada")
            return puerta.to_dict()

    # =========================================================================
    # MUTACIONES
    # =========================================================================

    def _check_relay(self, session, relay: Optional[int], exclude_id: Optional[int] = None) -> None:
        if relay is None:
            return
        other = self.door_repo.find_active_by_relay(session, relay, exclude_id)
        if other is not None:
            raise UniquenessError(
                f"El relay {relay} ya está asignado a la puerta '{other.nombre}'",
                field='relay_number',
            )

    @staticmethod
    def _raise_if_unique(e: IntegrityError) -> None:
        target = unique_violation_target(e)
        if target in _UNIQUE_MESSAGES:
            field = 'relay_number' if target.startswith('ux_') else target
            raise UniquenessError(_UNIQUE_MESSAGES[target], field=field) from e

    def create(self, data: Dict[str, Any], ip_address: Optional[str] = None,
               usuario: Actor = None) -> Dict[str, Any]:
        """
        Crea una puerta.

        Args:
            data: nombre, codigo, descripcion, lector_ip, lector_port,
                  relay_number, tiempo_apertura_segundos
            ip_address: IP de origen para la auditoría
            usuario: Usuario que hace el cambio (id, nombre)

        Returns:
            Puerta creada (dict)
        """
        values = validate_door(data)
        try:
            with self.database.transaction() as session:
                self._check_relay(session, values['relay_number'])
                puerta = self.door_repo.add(session, **values)
                after = puerta.to_dict()
        except IntegrityError as e:
            self._raise_if_unique(e)
            raise

        logger.info(f"Puerta creada: {after['nombre']} ({after['codigo']})")
        self.audit_service.record_safe(
            AccionLog.CREAR, self.TABLE, after['id'],
            f"Puerta '{after['nombre']}' creada", after=after, ip_address=ip_address, usuario=usuario,
        )
        return after

    def update(self, door_id: int, data: Dict[str, Any], ip_address: Optional[str] = None,
               usuario: Actor = None) -> Dict[str, Any]:
        """
        Modifica una puerta. Los campos ausentes en data conservan su valor.

        Raises:
            NotFoundError: puerta inexistente
        """
        try:
            with self.database.transaction() as session:
                puerta = self.door_repo.get(session, door_id)
                if puerta is None:
                    raise NotFoundError(f"Puerta {door_id} no encontrada")
                before = puerta.to_dict()
                merged = {k: data.get(k, before[k]) for k in FIELDS}
                values = validate_door(merged)
                if puerta.activo:
                    self._check_relay(session, values['relay_number'], exclude_id=door_id)
                for key, value in values.items():
                    setattr(puerta, key, value)
                session.flush()
                after = puerta.to_dict()
        except IntegrityError as e:
            self._raise_if_unique(e)
            raise

        logger.info(f"Puerta {door_id} modificada")
        self.audit_service.record_safe(
            AccionLog.MODIFICAR, self.TABLE, door_id,
            f"Puerta '{after['nombre']}' modificada", before=before, after=after,
            ip_address=ip_address, usuario=usuario,
        )
        return after

    def set_active(self, door_id: int, activo: bool, ip_address: Optional[str] = None,
                   usuario: Actor = None) -> Dict[str, Any]:
        """Activa o desactiva una puerta."""
        try:
            with self.database.transaction() as session:
                puerta = self.door_repo.get(session, door_id)
                if puerta is None:
                    raise NotFoundError(f"Puerta {door_id} no encontrada")
                before = puerta.to_dict()
                if activo:
                    self._check_relay(session, puerta.relay_number, exclude_id=door_id)
                puerta.activo = bool(activo)
                session.flush()
                after = puerta.to_dict()
        except IntegrityError as e:
            self._raise_if_unique(e)
            raise

        estado = 'activada' if activo else 'desactivada'
        self.audit_service.record_safe(
            AccionLog.MODIFICAR, self.TABLE, door_id,
            f"Puerta '{after['nombre']}' {estado}", before=before, after=after,
            ip_address=ip_address, usuario=usuario,
        )
        return after

    def delete(self, door_id: int, ip_address: Optional[str] = None,
               usuario: Actor = None) -> DeleteResult:
        """
        Elimina una puerta; si tiene tipos de ticket asociados solo la desactiva.

        Returns:
            DeleteResult(deleted, deactivated)
        """
        with self.database.transaction() as session:
            puerta = self.door_repo.get(session, door_id)
            if puerta is None:
                raise NotFoundError(f"Puerta {door_id} no encontrada")
            before = puerta.to_dict()
            dependents = self.door_repo.count_ticket_types(session, door_id)
            if dependents:
                puerta.activo = False
                session.flush()
                after = puerta.to_dict()
            else:
                self.door_repo.delete(session, door_id)
                after = None

        if after is not None:
            logger.info(f"Puerta {door_id} desactivada ({dependents} tipos de ticket asociados)")
            self.audit_service.record_safe(
                AccionLog.MODIFICAR, self.TABLE, door_id,
                f"Puerta '{before['nombre']}' desactivada (tiene {dependents} tipos de ticket asociados)",
                before=before, after=after, ip_address=ip_address, usuario=usuario,
            )
            return DeleteResult(deleted=False, deactivated=True)

        logger.info(f"Puerta {door_id} eliminada")
        self.audit_service.record_safe(
            AccionLog.ELIMINAR, self.TABLE, door_id,
            f"Puerta '{before['nombre']}' eliminada", before=before, ip_address=ip_address, usuario=usuario,
        )
        return DeleteResult(deleted=True)
