# ==============================================================================
# REPOSITORIO DE PUERTAS
# ==============================================================================

from typing import List, Optional

from sqlalchemy import func, select
from sqlalchemy.orm import Session

from taquilla.models.tables import Puerta, TipoTicket
from .base import BaseRepository


class DoorRepository(BaseRepository):
    """Acceso a la tabla puertas."""

    model = Puerta

    def list_active(self, session: Session) -> List[Puerta]:
        stmt = select(Puerta).where(Puerta.activo.is_(True)).order_by(Puerta.nombre)
        return list(session.scalars(stmt))

    def find_active_by_relay(self, session: Session, relay_number: int,
                             exclude_id: Optional[int] = None) -> Optional[Puerta]:
        """Puerta activa que ya usa el canal de relay (excluyendo una)."""
        criteria = [Puerta.relay_number == relay_number, Puerta.activo.is_(True)]
        if exclude_id is not None:
            criteria.append(Puerta.id != exclude_id)
        return self.find_one(session, *criteria)

    def count_ticket_types(self, session: Session, door_id: int) -> int:
        """Tipos de ticket (activos o no) que apuntan a la puerta."""
        stmt = select(func.count(TipoTicket.id)).where(TipoTicket.puerta_id == door_id)
        return session.scalar(stmt) or 0
