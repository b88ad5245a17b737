# ==============================================================================
# REPOSITORIO DE TIPOS DE TICKET
# ==============================================================================

from typing import List

from sqlalchemy import func, select
from sqlalchemy.orm import Session

from taquilla.models.tables import BotonTicket, Ticket, TipoTicket
from .base import BaseRepository


class TicketTypeRepository(BaseRepository):
    """Acceso a la tabla tipos_ticket."""

    model = TipoTicket

    def list_active(self, session: Session) -> List[TipoTicket]:
        stmt = select(TipoTicket).where(TipoTicket.activo.is_(True)).order_by(TipoTicket.nombre)
        return list(session.scalars(stmt))

    def count_dependents(self, session: Session, type_id: int) -> int:
        """Tickets vendidos y botones que referencian el tipo."""
        tickets = session.scalar(select(func.count(Ticket.id)).where(Ticket.tipo_ticket_id == type_id))
        botones = session.scalar(select(func.count(BotonTicket.id)).where(BotonTicket.tipo_ticket_id == type_id))
        return (tickets or 0) + (botones or 0)
