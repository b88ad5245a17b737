# ==============================================================================
# REPOSITORIO DE USUARIOS
# ==============================================================================

from typing import Optional

from sqlalchemy import func, select
from sqlalchemy.orm import Session

from taquilla.models.tables import CierreCaja, Usuario, Venta
from .base import BaseRepository


class UserRepository(BaseRepository):
    """Acceso a la tabla usuarios."""

    model = Usuario

    def get_by_login(self, session: Session, login: str) -> Optional[Usuario]:
        return self.find_one(session, Usuario.usuario == login)

    def count_owned_records(self, session: Session, user_id: int) -> int:
        """Ventas y cierres que referencian al usuario."""
        ventas = session.scalar(select(func.count(Venta.id)).where(Venta.usuario_id == user_id))
        cierres = session.scalar(select(func.count(CierreCaja.id)).where(CierreCaja.usuario_id == user_id))
        return (ventas or 0) + (cierres or 0)
