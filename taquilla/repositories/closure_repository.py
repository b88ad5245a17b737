# ==============================================================================
# REPOSITORIO DE CIERRES DE CAJA
# ==============================================================================
# Un cierre por (usuario, día de fecha_inicio); lo garantiza el índice
# único ux_cierres_caja_usuario_fecha.
# ==============================================================================

from datetime import date
from typing import Any, Dict, List, Optional

from sqlalchemy import func, select, update
from sqlalchemy.orm import Session

from taquilla.models.tables import CierreCaja, Usuario
from .base import BaseRepository


class ClosureRepository(BaseRepository):
    """Acceso a cierres_caja."""

    model = CierreCaja

    def _same_day(self, user_id: int, day: date):
        return (
            CierreCaja.usuario_id == user_id,
            func.date(CierreCaja.fecha_inicio) == day.isoformat(),
        )

    def get_by_user_day(self, session: Session, user_id: int, day: date) -> Optional[CierreCaja]:
        return self.find_one(session, *self._same_day(user_id, day))

    def update_by_user_day(self, session: Session, user_id: int, day: date,
                           values: Dict[str, Any]) -> int:
        stmt = (
            update(CierreCaja)
            .where(*self._same_day(user_id, day))
            .values(**values)
            .execution_options(synchronize_session=False)
        )
        return session.execute(stmt).rowcount

    def list_with_users(self, session: Session, day: Optional[date] = None) -> List[Dict[str, Any]]:
        """Cierres (del día o todos) con el nombre del vendedor, más recientes primero."""
        stmt = (
            select(CierreCaja, Usuario.nombre.label('vendedor'))
            .join(Usuario, Usuario.id == CierreCaja.usuario_id)
            .order_by(CierreCaja.fecha_cierre.desc(), CierreCaja.id.desc())
        )
        if day is not None:
            stmt = stmt.where(func.date(CierreCaja.fecha_inicio) == day.isoformat())
        result = []
        for cierre, vendedor in session.execute(stmt):
            data = cierre.to_dict()
            data['vendedor'] = vendedor
            result.append(data)
        return result
