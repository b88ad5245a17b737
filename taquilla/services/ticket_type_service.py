# ==============================================================================
# SERVICIO DE TIPOS DE TICKET
# ==============================================================================
# CRUD de tipos de ticket con auditoría. Un tipo con tickets vendidos o
# botones asignados no se borra: se desactiva.
# ==============================================================================

import logging
from typing import Any, Dict, List, Optional

from sqlalchemy.exc import IntegrityError

from taquilla.database import Database
from taquilla.errors import NotFoundError, UniquenessError, unique_violation_target
from taquilla.models.entities import AccionLog, DeleteResult, TablaLog
from taquilla.repositories.door_repository import DoorRepository
from taquilla.repositories.ticket_type_repository import TicketTypeRepository
from taquilla.services.audit_service import Actor, AuditService
from taquilla.services.validators import require_amount, require_id, require_text

logger = logging.getLogger(__name__)

MAX_PRICE = 999999


class TicketTypeService:
    """CRUD de tipos de ticket."""

    TABLE = TablaLog.TIPOS_TICKET.value

    def __init__(self, database: Database, ticket_type_repo: TicketTypeRepository,
                 door_repo: DoorRepository, audit_service: AuditService):
        self.database = database
        self.ticket_type_repo = ticket_type_repo
        self.door_repo = door_repo
        self.audit_service = audit_service

    @staticmethod
    def _validate(data: Dict[str, Any]) -> Dict[str, Any]:
        puerta_id = data.get('puerta_id')
        return {
            'nombre': require_text(data.get('nombre'), 'El nombre', min_length=3),
            'precio': require_amount(data.get('precio'), 'El precio', maximum=MAX_PRICE),
            'puerta_id': require_id(puerta_id, 'La puerta') if puerta_id not in (None, '') else None,
        }

    def _check_door(self, session, puerta_id: Optional[int]) -> None:
        if puerta_id is not None and self.door_repo.get(session, puerta_id) is None:
            raise NotFoundError(f"Puerta {puerta_id} no encontrada")

    @staticmethod
    def _raise_if_unique(e: IntegrityError) -> None:
        if unique_violation_target(e) == 'nombre':
            raise UniquenessError('Ya existe un tipo de ticket con ese nombre', field='nombre') from e

    # =========================================================================
    # CONSULTAS
    # =========================================================================

    def list(self) -> List[Dict[str, Any]]:
        with self.database.transaction() as session:
            return [t.to_dict() for t in self.ticket_type_repo.list_all(session)]

    def list_active(self) -> List[Dict[str, Any]]:
        with self.database.transaction() as session:
            return [t.to_dict() for t in self.ticket_type_repo.list_active(session)]

    def get(self, type_id: int) -> Dict[str, Any]:
        with self.database.transaction() as session:
            tipo = self.ticket_type_repo.get(session, type_id)
            if tipo is None:
                raise NotFoundError(f"Tipo de ticket {type_id} no encontrado")
            return tipo.to_dict()

    # =========================================================================
    # MUTACIONES
    # =========================================================================

    def create(self, data: Dict[str, Any], ip_address: Optional[str] = None,
               usuario: Actor = None) -> Dict[str, Any]:
        """
        Crea un tipo de ticket.

        Args:
            data: nombre, precio, puerta_id (opcional)
            ip_address: IP de origen para la auditoría
            usuario: Usuario que hace el cambio (id, nombre)
        """
        values = self._validate(data)
        try:
            with self.database.transaction() as session:
                self._check_door(session, values['puerta_id'])
                after = self.ticket_type_repo.add(session, **values).to_dict()
        except IntegrityError as e:
            self._raise_if_unique(e)
            raise

        logger.info(f"Tipo de ticket creado: {after['nombre']} ({after['precio']:.2f})")
        self.audit_service.record_safe(
            AccionLog.CREAR, self.TABLE, after['id'],
            f"Tipo de ticket '{after['nombre']}' creado", after=after, ip_address=ip_address, usuario=usuario,
        )
        return after

    def update(self, type_id: int, data: Dict[str, Any], ip_address: Optional[str] = None,
               usuario: Actor = None) -> Dict[str, Any]:
        """Modifica un tipo de ticket (los campos ausentes se conservan)."""
        try:
            with self.database.transaction() as session:
                tipo = self.ticket_type_repo.get(session, type_id)
                if tipo is None:
                    raise NotFoundError(f"Tipo de ticket {type_id} no encontrado")
                before = tipo.to_dict()
                values = self._validate({k: data.get(k, before[k]) for k in ('nombre', 'precio', 'puerta_id')})
                self._check_door(session, values['puerta_id'])
                for key, value in values.items():
                    setattr(tipo, key, value)
                session.flush()
                after = tipo.to_dict()
        except IntegrityError as e:
            self._raise_if_unique(e)
            raise

        self.audit_service.record_safe(
            AccionLog.MODIFICAR, self.TABLE, type_id,
            f"Tipo de ticket '{after['nombre']}' modificado", before=before, after=after,
            ip_address=ip_address, usuario=usuario,
        )
        return after

    def set_active(self, type_id: int, activo: bool, ip_address: Optional[str] = None,
                   usuario: Actor = None) -> Dict[str, Any]:
        with self.database.transaction() as session:
            tipo = self.ticket_type_repo.get(session, type_id)
            if tipo is None:
                raise NotFoundError(f"Tipo de ticket {type_id} no encontrado")
            before = tipo.to_dict()
            tipo.activo = bool(activo)
            session.flush()
            after = tipo.to_dict()

        estado = 'activado' if activo else 'desactivado'
        self.audit_service.record_safe(
            AccionLog.MODIFICAR, self.TABLE, type_id,
            f"Tipo de ticket '{after['nombre']}' {estado}", before=before, after=after,
            ip_address=ip_address, usuario=usuario,
        )
        return after

    def delete(self, type_id: int, ip_address: Optional[str] = None,
               usuario: Actor = None) -> DeleteResult:
        """
        Elimina el tipo; si tiene tickets vendidos o botones asignados lo desactiva.
        """
        with self.database.transaction() as session:
            tipo = self.ticket_type_repo.get(session, type_id)
            if tipo is None:
                raise NotFoundError(f"Tipo de ticket {type_id} no encontrado")
            before = tipo.to_dict()
            dependents = self.ticket_type_repo.count_dependents(session, type_id)
            after = None
            if dependents:
                tipo.activo = False
                session.flush()
                after = tipo.to_dict()
            else:
                self.ticket_type_repo.delete(session, type_id)

        if after is not None:
            self.audit_service.record_safe(
                AccionLog.MODIFICAR, self.TABLE, type_id,
                f"Tipo de ticket '{before['nombre']}' desactivado (tiene registros asociados)",
                before=before, after=after, ip_address=ip_address, usuario=usuario,
            )
            return DeleteResult(deleted=False, deactivated=True)

        logger.info(f"Tipo de ticket {type_id} eliminado")
        self.audit_service.record_safe(
            AccionLog.ELIMINAR, self.TABLE, type_id,
            f"Tipo de ticket '{before['nombre']}' eliminado", before=before,
            ip_address=ip_address, usuario=usuario,
        )
        return DeleteResult(deleted=True)
