# ==============================================================================
# SERVICIO DE CIERRE DE CAJA
# ==============================================================================
# Un cierre por vendedor y día. El upsert es atómico:
#
#   1. INSERT dentro de un SAVEPOINT
#   2. si el índice único (usuario, DATE(fecha_inicio)) lo rechaza,
#      se revierte el SAVEPOINT y se actualiza la fila existente
#
# Todo ocurre en la misma transacción; dos cierres simultáneos del mismo
# día terminan en una sola fila.
# ==============================================================================

import logging
from datetime import date, datetime
from typing import Any, Dict, List, Optional, Union

from sqlalchemy.exc import IntegrityError

from taquilla.database import Database, now_local, start_of_day, to_day
from taquilla.errors import NotFoundError, unique_violation_target
from taquilla.models.entities import ClosureResult, ClosureTotals
from taquilla.models.tables import CierreCaja
from taquilla.repositories.closure_repository import ClosureRepository
from taquilla.repositories.sales_repository import SalesRepository
from taquilla.repositories.user_repository import UserRepository
from taquilla.services.validators import require_id

logger = logging.getLogger(__name__)

DateLike = Union[date, datetime, str, None]


class ClosureService:
    """
    Servicio de cierres de caja.

    Responsabilidades:
    - Calcular los totales del día de un vendedor
    - Registrar/actualizar el cierre (upsert atómico)
    - Consultas por vendedor, por fecha y consolidado de administración
    """

    def __init__(self, database: Database, closure_repo: ClosureRepository,
                 sales_repo: SalesRepository, user_repo: UserRepository):
        self.database = database
        self.closure_repo = closure_repo
        self.sales_repo = sales_repo
        self.user_repo = user_repo

    # =========================================================================
    # CÁLCULO
    # =========================================================================

    def compute_daily_summary(self, user_id: int, day: DateLike = None) -> ClosureTotals:
        """
        Totales de tickets impresos y no anulados del vendedor en el día.

        Args:
            user_id: Vendedor
            day: Día a calcular (hoy por defecto)

        Returns:
            ClosureTotals con el desglose por tipo de ticket
        """
        with self.database.transaction() as session:
            detalle = self.sales_repo.summary_by_type(session, user_id, to_day(day))
        return ClosureTotals(
            total_ventas=round(sum(d['subtotal'] for d in detalle), 2),
            cantidad_tickets=sum(d['cantidad'] for d in detalle),
            detalle_tipos=detalle,
        )

    # =========================================================================
    # UPSERT
    # =========================================================================

    def upsert_cash_closure(self, user_id: int, period_start: DateLike,
                            totals: ClosureTotals) -> ClosureResult:
        """
        Crea o actualiza el cierre del vendedor para el día de period_start.

        Args:
            user_id: Vendedor
            period_start: Inicio del período (fecha o fecha/hora)
            totals: Totales a guardar

        Returns:
            ClosureResult(action='created'|'updated', id)
        """
        user_id = require_id(user_id, 'El usuario')
        day = to_day(period_start)
        inicio = period_start if isinstance(period_start, datetime) else start_of_day(day)
        closed_at = now_local()
        values = {
            'fecha_cierre': closed_at,
            'total_ventas': totals.total_ventas,
            'cantidad_tickets': totals.cantidad_tickets,
            'detalle_tipos': totals.detalle_texto,
        }

        with self.database.transaction() as session:
            if self.user_repo.get(session, user_id) is None:
                raise NotFoundError(f"Usuario {user_id} no encontrado")
            try:
                with session.begin_nested():
                    cierre = CierreCaja(usuario_id=user_id, fecha_inicio=inicio, **values)
                    session.add(cierre)
                    session.flush()
                result = ClosureResult(action='created', id=cierre.id)
            except IntegrityError as e:
                if unique_violation_target(e) is None:
                    raise
                self.closure_repo.update_by_user_day(session, user_id, day, values)
                existing = self.closure_repo.get_by_user_day(session, user_id, day)
                result = ClosureResult(action='updated', id=existing.id)

        logger.info(
            f"Cierre de caja {result.action}: usuario={user_id}, fecha={day}, "
            f"total={totals.total_ventas:.2f}, tickets={totals.cantidad_tickets}"
        )
        return result

    def close_day(self, user_id: int, day: DateLike = None) -> Dict[str, Any]:
        """
        Calcula los totales del día y registra el cierre.

        Returns:
            Dict con action, id y los totales guardados
        """
        day = to_day(day)
        totals = self.compute_daily_summary(user_id, day)
        result = self.upsert_cash_closure(user_id, day, totals)
        data = result.to_dict()
        data.update(totals.to_dict())
        return data

    # =========================================================================
    # CONSULTAS
    # =========================================================================

    def get_closure(self, user_id: int, day: DateLike = None) -> Optional[Dict[str, Any]]:
        with self.database.transaction() as session:
            cierre = self.closure_repo.get_by_user_day(session, user_id, to_day(day))
            return cierre.to_dict() if cierre else None

    def list_closures(self) -> List[Dict[str, Any]]:
        """Todos los cierres, el más reciente primero, con nombre del vendedor."""
        with self.database.transaction() as session:
            return self.closure_repo.list_with_users(session)

    def get_all_by_date(self, day: DateLike = None) -> Dict[str, Any]:
        """
        Vista de administración: cierres de todos los vendedores en un día.

        Returns:
            {'fecha', 'cierres': [...], 'consolidado': {total_ventas,
             total_tickets, total_usuarios}}
        """
        day = to_day(day)
        with self.database.transaction() as session:
            cierres = self.closure_repo.list_with_users(session, day)
        return {
            'fecha': day.isoformat(),
            'cierres': cierres,
            'consolidado': {
                'total_ventas': round(sum(c['total_ventas'] or 0 for c in cierres), 2),
                'total_tickets': sum(c['cantidad_tickets'] or 0 for c in cierres),
                'total_usuarios': len({c['usuario_id'] for c in cierres}),
            },
        }
