# ==============================================================================
# REPOSITORIO DE VENTAS Y TICKETS
# ==============================================================================
# Ventas (cabecera) y tickets (una fila por entrada emitida). Una venta
# puede tener varios tickets aunque el flujo actual emite uno por venta.
# ==============================================================================

from datetime import date, datetime
from typing import Any, Dict, List, Optional

from sqlalchemy import func, select, update
from sqlalchemy.orm import Session

from taquilla.models.tables import Ticket, TipoTicket, Usuario, Venta, plain_dict
from .base import BaseRepository


class SalesRepository(BaseRepository):
    """Acceso a ventas y tickets."""

    model = Venta

    # =========================================================================
    # ESCRITURA
    # =========================================================================

    def add_sale(self, session: Session, user_id: int, total: float, at: datetime) -> Venta:
        return self.add(session, usuario_id=user_id, total=total, fecha_venta=at)

    def add_ticket(self, session: Session, sale_id: int, ticket_type_id: int, qr_code: str,
                   price: float, door_code: Optional[str], at: datetime) -> Ticket:
        ticket = Ticket(
            venta_id=sale_id,
            tipo_ticket_id=ticket_type_id,
            codigo_qr=qr_code,
            puerta_codigo=door_code,
            precio=price,
            fecha_creacion=at,
        )
        session.add(ticket)
        session.flush()
        return ticket

    def mark_printed(self, session: Session, sale_id: int, at: datetime) -> int:
        """Marca impresos los tickets aún no impresos de la venta."""
        stmt = (
            update(Ticket)
            .where(Ticket.venta_id == sale_id, Ticket.impreso.is_(False))
            .values(impreso=True, fecha_impresion=at)
            .execution_options(synchronize_session=False)
        )
        return session.execute(stmt).rowcount

    def annul_sale_tickets(self, session: Session, sale_id: int) -> int:
        stmt = (
            update(Ticket)
            .where(Ticket.venta_id == sale_id, Ticket.anulado.is_(False))
            .values(anulado=True)
            .execution_options(synchronize_session=False)
        )
        return session.execute(stmt).rowcount

    # =========================================================================
    # LECTURA
    # =========================================================================

    def get_ticket(self, session: Session, ticket_id: int) -> Optional[Ticket]:
        return session.get(Ticket, ticket_id)

    def get_ticket_by_qr(self, session: Session, qr_code: str) -> Optional[Ticket]:
        return session.scalars(select(Ticket).where(Ticket.codigo_qr == qr_code)).first()

    def tickets_of_sale(self, session: Session, sale_id: int) -> List[Ticket]:
        stmt = select(Ticket).where(Ticket.venta_id == sale_id).order_by(Ticket.id)
        return list(session.scalars(stmt))

    def daily_sales(self, session: Session, user_id: int, day: date) -> List[Dict[str, Any]]:
        """Ventas no anuladas del usuario en el día, con datos del ticket."""
        stmt = (
            select(
                Venta.id, Venta.total, Venta.fecha_venta,
                Ticket.id.label('ticket_id'), Ticket.codigo_qr, Ticket.precio,
                Ticket.impreso, Ticket.anulado,
                TipoTicket.nombre.label('tipo_ticket'),
            )
            .join(Ticket, Ticket.venta_id == Venta.id)
            .join(TipoTicket, TipoTicket.id == Ticket.tipo_ticket_id)
            .where(
                Venta.usuario_id == user_id,
                Venta.anulada.is_(False),
                func.date(Venta.fecha_venta) == day.isoformat(),
            )
            .order_by(Venta.fecha_venta.desc(), Venta.id.desc(), Ticket.id)
        )
        return [plain_dict(row._mapping) for row in session.execute(stmt)]

    def all_sales(self, session: Session) -> List[Dict[str, Any]]:
        """Vista de administración: ventas no anuladas con estado de tickets."""
        stmt = (
            select(
                Venta.id, Venta.total, Venta.fecha_venta,
                Usuario.nombre.label('vendedor'),
                Ticket.id.label('ticket_id'), Ticket.codigo_qr, Ticket.puerta_codigo,
                Ticket.impreso, Ticket.usado, Ticket.fecha_uso, Ticket.anulado,
                TipoTicket.nombre.label('tipo_ticket'),
            )
            .join(Usuario, Usuario.id == Venta.usuario_id)
            .join(Ticket, Ticket.venta_id == Venta.id)
            .join(TipoTicket, TipoTicket.id == Ticket.tipo_ticket_id)
            .where(Venta.anulada.is_(False))
            .order_by(Venta.fecha_venta.desc(), Venta.id.desc(), Ticket.id)
        )
        return [plain_dict(row._mapping) for row in session.execute(stmt)]

    def summary_by_type(self, session: Session, user_id: int, day: date) -> List[Dict[str, Any]]:
        """
        Tickets impresos y no anulados del usuario en el día, por tipo.

        Returns:
            [{'tipo': str, 'cantidad': int, 'subtotal': float}, ...]
        """
        stmt = (
            select(
                TipoTicket.nombre.label('tipo'),
                func.count(Ticket.id).label('cantidad'),
                func.coalesce(func.sum(Ticket.precio), 0).label('subtotal'),
            )
            .join(Venta, Venta.id == Ticket.venta_id)
            .join(TipoTicket, TipoTicket.id == Ticket.tipo_ticket_id)
            .where(
                Venta.usuario_id == user_id,
                Venta.anulada.is_(False),
                Ticket.anulado.is_(False),
                Ticket.impreso.is_(True),
                func.date(Venta.fecha_venta) == day.isoformat(),
            )
            .group_by(TipoTicket.nombre)
            .order_by(TipoTicket.nombre)
        )
        return [
            {'tipo': row.tipo, 'cantidad': int(row.cantidad), 'subtotal': float(row.subtotal)}
            for row in session.execute(stmt)
        ]
