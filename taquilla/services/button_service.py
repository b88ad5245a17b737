# ==============================================================================
# SERVICIO DE BOTONES FÍSICOS
# ==============================================================================
# Cada entrada física (1-4) dispara la impresión automática de un tipo de
# ticket. configure() crea o reemplaza la asignación de una entrada.
# ==============================================================================

import logging
from typing import Any, Dict, List, Optional

from taquilla.database import Database, now_local
from taquilla.errors import NotFoundError
from taquilla.models.entities import AccionLog, TablaLog
from taquilla.repositories.button_repository import ButtonRepository
from taquilla.repositories.ticket_type_repository import TicketTypeRepository
from taquilla.services.audit_service import Actor, AuditService
from taquilla.services.validators import optional_text, require_id, require_int

logger = logging.getLogger(__name__)


def _button_dict(boton) -> Dict[str, Any]:
    data = boton.to_dict()
    data['tipo_ticket_nombre'] = boton.tipo_ticket.nombre if boton.tipo_ticket else None
    data['precio'] = boton.tipo_ticket.precio if boton.tipo_ticket else None
    return data


class ButtonService:
    """Asignación de entradas físicas a tipos de ticket."""

    TABLE = TablaLog.BOTONES_TICKETS.value

    def __init__(self, database: Database, button_repo: ButtonRepository,
                 ticket_type_repo: TicketTypeRepository, audit_service: AuditService):
        self.database = database
        self.button_repo = button_repo
        self.ticket_type_repo = ticket_type_repo
        self.audit_service = audit_service

    def list(self) -> List[Dict[str, Any]]:
        with self.database.transaction() as session:
            return [_button_dict(b) for b in self.button_repo.list_with_types(session)]

    def get_by_input(self, input_numero: int) -> Optional[Dict[str, Any]]:
        """Asignación de una entrada (1-4) o None."""
        input_numero = require_int(input_numero, 'La entrada', 1, 4)
        with self.database.transaction() as session:
            boton = self.button_repo.get_by_input(session, input_numero)
            return _button_dict(boton) if boton else None

    def configure(
        self,
        input_numero: int,
        tipo_ticket_id: int,
        cantidad: int = 1,
        descripcion: Optional[str] = None,
        activo: bool = True,
        ip_address: Optional[str] = None,
        usuario: Actor = None,
    ) -> Dict[str, Any]:
        """
        Crea o actualiza la asignación de una entrada.

        Args:
            input_numero: Entrada física (1-4)
            tipo_ticket_id: Tipo de ticket a imprimir
            cantidad: Tickets por pulsación (≥ 1)
            descripcion: Texto libre
            activo: Si la entrada queda habilitada
            ip_address: IP de origen para la auditoría
            usuario: Usuario que hace el cambio (id, nombre)

        Returns:
            Asignación resultante
        """
        input_numero = require_int(input_numero, 'La entrada', 1, 4)
        tipo_ticket_id = require_id(tipo_ticket_id, 'El tipo de ticket')
        cantidad = require_int(cantidad, 'La cantidad', minimum=1)
        values = {
            'tipo_ticket_id': tipo_ticket_id,
            'cantidad': cantidad,
            'descripcion': optional_text(descripcion),
            'activo': bool(activo),
            'fecha_actualizacion': now_local(),
        }

        with self.database.transaction() as session:
            if self.ticket_type_repo.get(session, tipo_ticket_id) is None:
                raise NotFoundError(f"Tipo de ticket {tipo_ticket_id} no encontrado")
            boton = self.button_repo.get_by_input(session, input_numero)
            before = boton.to_dict() if boton else None
            if boton is None:
                boton = self.button_repo.add(session, input_numero=input_numero, **values)
            else:
                for key, value in values.items():
                    setattr(boton, key, value)
                session.flush()
            session.refresh(boton)
            after = _button_dict(boton)

        snapshot = {k: v for k, v in after.items() if k not in ('tipo_ticket_nombre', 'precio')}
        if before is None:
            self.audit_service.record_safe(
                AccionLog.CREAR, self.TABLE, after['id'],
                f"Entrada {input_numero} asignada a '{after['tipo_ticket_nombre']}'",
                after=snapshot, ip_address=ip_address, usuario=usuario,
            )
        else:
            self.audit_service.record_safe(
                AccionLog.MODIFICAR, self.TABLE, after['id'],
                f"Entrada {input_numero} reasignada a '{after['tipo_ticket_nombre']}'",
                before=before, after=snapshot, ip_address=ip_address, usuario=usuario,
            )
        return after

    def deactivate(self, input_numero: int, ip_address: Optional[str] = None,
                   usuario: Actor = None) -> Dict[str, Any]:
        """Deshabilita una entrada sin perder su asignación."""
        input_numero = require_int(input_numero, 'La entrada', 1, 4)
        with self.database.transaction() as session:
            boton = self.button_repo.get_by_input(session, input_numero)
            if boton is None:
                raise NotFoundError(f"La entrada {input_numero} no está configurada")
            before = boton.to_dict()
            boton.activo = False
            boton.fecha_actualizacion = now_local()
            session.flush()
            after = boton.to_dict()

        self.audit_service.record_safe(
            AccionLog.MODIFICAR, self.TABLE, after['id'],
            f"Entrada {input_numero} desactivada", before=before, after=after,
            ip_address=ip_address, usuario=usuario,
        )
        return after

    def delete(self, input_numero: int, ip_address: Optional[str] = None,
               usuario: Actor = None) -> bool:
        """Elimina la asignación de una entrada."""
        input_numero = require_int(input_numero, 'La entrada', 1, 4)
        with self.database.transaction() as session:
            boton = self.button_repo.get_by_input(session, input_numero)
            if boton is None:
                raise NotFoundError(f"La entrada {input_numero} no está configurada")
            before = boton.to_dict()
            self.button_repo.delete(session, boton.id)

        logger.info(f"Entrada {input_numero} eliminada")
        self.audit_service.record_safe(
            AccionLog.ELIMINAR, self.TABLE, before['id'],
            f"Entrada {input_numero} eliminada", before=before, ip_address=ip_address, usuario=usuario,
        )
        return True
