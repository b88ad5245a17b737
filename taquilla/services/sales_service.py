# ==============================================================================
# SERVICIO DE VENTAS
# ==============================================================================
# Crea la venta y su ticket en una sola transacción. El código QR lo
# genera quien llama; aquí solo se valida su forma y se confía en el índice
# único de tickets.codigo_qr para rechazar duplicados.
# ==============================================================================

import logging
from datetime import date
from typing import Any, Dict, List, Optional, Union

from sqlalchemy.exc import IntegrityError

from taquilla.database import Database, now_local, to_day
from taquilla.errors import NotFoundError, UniquenessError, ValidationError, unique_violation_target
from taquilla.models.entities import SaleReceipt
from taquilla.repositories.sales_repository import SalesRepository
from taquilla.repositories.ticket_type_repository import TicketTypeRepository
from taquilla.repositories.user_repository import UserRepository
from taquilla.services.validators import require_amount, require_id, require_text

logger = logging.getLogger(__name__)

QR_PARTS = 4
DUPLICATE_QR_MESSAGE = 'Este código QR ya existe. Por favor genere uno nuevo.'


def validate_qr_code(qr_code: Any) -> str:
    """
    Verifica el formato del código QR: cuatro partes separadas por '-'
    (ej. 'ticket-general-ab12-xy34'). Una parte puede quedar vacía cuando el
    nombre del tipo no tiene letras ni dígitos ('ticket--ab12-xy34').
    """
    qr = require_text(qr_code, 'El código QR')
    if len(qr.split('-')) != QR_PARTS:
        raise ValidationError(f"Formato de código QR inválido: {qr!r}")
    return qr


class SalesService:
    """
    Servicio de ventas.

    Responsabilidades:
    - Crear venta + ticket de forma atómica
    - Consultas de ventas del día y vista de administración
    - Búsqueda de tickets por QR (control de acceso)
    """

    def __init__(self, database: Database, sales_repo: SalesRepository,
                 ticket_type_repo: TicketTypeRepository, user_repo: UserRepository):
        self.database = database
        self.sales_repo = sales_repo
        self.ticket_type_repo = ticket_type_repo
        self.user_repo = user_repo

    # =========================================================================
    # CREACIÓN
    # =========================================================================

    def create_sale(
        self,
        user_id: int,
        ticket_type_id: int,
        total_amount: float,
        qr_code: str,
        door_code: Optional[str] = None,
    ) -> SaleReceipt:
        """
        Registra una venta con su ticket.

        Args:
            user_id: Vendedor
            ticket_type_id: Tipo de ticket vendido
            total_amount: Monto cobrado (es también el precio del ticket)
            qr_code: Código QR único generado por el llamador
            door_code: Código de puerta a imprimir (opcional)

        Returns:
            SaleReceipt

        Raises:
            ValidationError: datos inválidos o tipo de ticket inactivo
            NotFoundError: usuario o tipo de ticket inexistente
            UniquenessError: el código QR ya fue usado
        """
        user_id = require_id(user_id, 'El usuario')
        ticket_type_id = require_id(ticket_type_id, 'El tipo de ticket')
        price = require_amount(total_amount, 'El total')
        qr = validate_qr_code(qr_code)
        door = None
        if door_code is not None:
            door = str(door_code).strip() or None

        try:
            with self.database.transaction() as session:
                if self.user_repo.get(session, user_id) is None:
                    raise NotFoundError(f"Usuario {user_id} no encontrado")
                tipo = self.ticket_type_repo.get(session, ticket_type_id)
                if tipo is None:
                    raise NotFoundError(f"Tipo de ticket {ticket_type_id} no encontrado")
                if not tipo.activo:
                    raise ValidationError(f"El tipo de ticket '{tipo.nombre}' está inactivo")

                at = now_local()
                venta = self.sales_repo.add_sale(session, user_id, price, at)
                self.sales_repo.add_ticket(session, venta.id, ticket_type_id, qr, price, door, at)
                sale_id = venta.id
        except IntegrityError as e:
            if unique_violation_target(e) == 'codigo_qr':
                raise UniquenessError(DUPLICATE_QR_MESSAGE, field='codigo_qr') from e
            raise

        logger.info(f"Venta {sale_id} registrada: usuario={user_id}, tipo={ticket_type_id}, total={price:.2f}")
        return SaleReceipt(
            sale_id=sale_id,
            qr_code=qr,
            ticket_type_id=ticket_type_id,
            price=price,
            created_at=at,
            door_code=door,
        )

    # =========================================================================
    # CONSULTAS
    # =========================================================================

    def list_daily_sales(self, user_id: int, day: Union[date, str, None] = None) -> List[Dict[str, Any]]:
        """Ventas no anuladas del vendedor en el día (hoy por defecto)."""
        with self.database.transaction() as session:
            return self.sales_repo.daily_sales(session, user_id, to_day(day))

    def list_all_sales(self) -> List[Dict[str, Any]]:
        """Todas las ventas no anuladas con el estado de sus tickets."""
        with self.database.transaction() as session:
            return self.sales_repo.all_sales(session)

    def get_sale(self, sale_id: int) -> Dict[str, Any]:
        """
        Venta con sus tickets.

        Raises:
            NotFoundError: si la venta no existe
        """
        with self.database.transaction() as session:
            venta = self.sales_repo.get(session, sale_id)
            if venta is None:
                raise NotFoundError(f"Venta {sale_id} no encontrada")
            data = venta.to_dict()
            data['tickets'] = [t.to_dict() for t in self.sales_repo.tickets_of_sale(session, sale_id)]
            return data

    def get_ticket_by_qr(self, qr_code: str) -> Optional[Dict[str, Any]]:
        """Ticket por código QR, o None si no existe."""
        with self.database.transaction() as session:
            ticket = self.sales_repo.get_ticket_by_qr(session, str(qr_code or '').strip())
            return ticket.to_dict() if ticket else None
