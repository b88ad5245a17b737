# ==============================================================================
# SERVICIO DE CICLO DE VIDA DE TICKETS
# ==============================================================================
# Estados de un ticket:
#
#   Creado ──► Impreso ──► Usado
#     │           │
#     └───────────┴──► Anulado      (nunca desde Usado)
#
# annul_ticket() NO toca venta.anulada: una venta puede quedar con tickets
# anulados y la cabecera vigente. annul_sale() anula cabecera y todos sus
# tickets en la misma transacción.
# ==============================================================================

import logging
from typing import Any, Dict, List

from taquilla.database import Database, now_local
from taquilla.errors import BusinessRuleViolation, NotFoundError
from taquilla.repositories.sales_repository import SalesRepository

logger = logging.getLogger(__name__)


class TicketService:
    """Transiciones de estado de tickets y ventas."""

    def __init__(self, database: Database, sales_repo: SalesRepository):
        self.database = database
        self.sales_repo = sales_repo

    def mark_printed(self, sale_id: int) -> int:
        """
        Marca impresos los tickets de la venta que aún no lo están.

        Idempotente: una segunda llamada no cambia nada y retorna 0.

        Returns:
            Cantidad de tickets actualizados
        """
        with self.database.transaction() as session:
            updated = self.sales_repo.mark_printed(session, sale_id, now_local())
        if updated:
            logger.info(f"Venta {sale_id}: {updated} ticket(s) marcados como impresos")
        return updated

    def mark_used(self, ticket_id: int) -> Dict[str, Any]:
        """
        Registra el uso de un ticket en el acceso.

        Raises:
            NotFoundError: ticket inexistente
            BusinessRuleViolation: ticket anulado o ya usado
        """
        with self.database.transaction() as session:
            ticket = self.sales_repo.get_ticket(session, ticket_id)
            if ticket is None:
                raise NotFoundError(f"Ticket {ticket_id} no encontrado")
            if ticket.anulado:
                raise BusinessRuleViolation("El ticket está anulado")
            if ticket.usado:
                raise BusinessRuleViolation("El ticket ya fue usado")
            ticket.usado = True
            ticket.fecha_uso = now_local()
            session.flush()
            data = ticket.to_dict()
        logger.info(f"Ticket {ticket_id} usado")
        return data

    def annul_ticket(self, ticket_id: int) -> Dict[str, Any]:
        """
        Anula un ticket individual.

        Raises:
            NotFoundError: ticket inexistente
            BusinessRuleViolation: ticket ya usado o ya anulado
        """
        with self.database.transaction() as session:
            ticket = self.sales_repo.get_ticket(session, ticket_id)
            if ticket is None:
                raise NotFoundError(f"Ticket {ticket_id} no encontrado")
            if ticket.usado:
                raise BusinessRuleViolation("No se puede anular un ticket que ya fue usado")
            if ticket.anulado:
                raise BusinessRuleViolation("El ticket ya está anulado")
            ticket.anulado = True
            session.flush()
            data = ticket.to_dict()
        logger.info(f"Ticket {ticket_id} anulado")
        return data

    def annul_sale(self, sale_id: int) -> int:
        """
        Anula la venta y todos sus tickets.

        Se revisan todos los tickets antes de modificar nada: si alguno fue
        usado, la venta queda intacta.

        Returns:
            Cantidad de tickets anulados en esta llamada

        Raises:
            NotFoundError: venta inexistente
            BusinessRuleViolation: la venta tiene tickets usados
        """
        with self.database.transaction() as session:
            venta = self.sales_repo.get(session, sale_id)
            if venta is None:
                raise NotFoundError(f"Venta {sale_id} no encontrada")
            tickets = self.sales_repo.tickets_of_sale(session, sale_id)
            used = [t.id for t in tickets if t.usado]
            if used:
                raise BusinessRuleViolation(
                    f"No se puede anular la venta: tiene tickets usados ({', '.join(map(str, used))})"
                )
            venta.anulada = True
            session.flush()
            annulled = self.sales_repo.annul_sale_tickets(session, sale_id)
        logger.info(f"Venta {sale_id} anulada ({annulled} ticket(s))")
        return annulled

    def tickets_of_sale(self, sale_id: int) -> List[Dict[str, Any]]:
        with self.database.transaction() as session:
            return [t.to_dict() for t in self.sales_repo.tickets_of_sale(session, sale_id)]
