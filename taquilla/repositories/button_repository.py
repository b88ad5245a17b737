# ==============================================================================
# REPOSITORIO DE BOTONES FÍSICOS
# ==============================================================================

from typing import List, Optional

from sqlalchemy import select
from sqlalchemy.orm import Session, joinedload

from taquilla.models.tables import BotonTicket
from .base import BaseRepository


class ButtonRepository(BaseRepository):
    """Acceso a botones_tickets (una fila por entrada 1-4)."""

    model = BotonTicket

    def list_with_types(self, session: Session) -> List[BotonTicket]:
        stmt = (
            select(BotonTicket)
            .options(joinedload(BotonTicket.tipo_ticket))
            .order_by(BotonTicket.input_numero)
        )
        return list(session.scalars(stmt))

    def get_by_input(self, session: Session, input_numero: int) -> Optional[BotonTicket]:
        stmt = (
            select(BotonTicket)
            .options(joinedload(BotonTicket.tipo_ticket))
            .where(BotonTicket.input_numero == input_numero)
        )
        return session.scalars(stmt).first()
