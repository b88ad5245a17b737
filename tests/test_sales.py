# -*- coding: utf-8 -*-
"""
Tests de creación de ventas: atomicidad, unicidad del QR y validaciones.
"""
from datetime import datetime

import pytest

from conftest import count_rows, sell
from taquilla.errors import NotFoundError, UniquenessError, ValidationError
from taquilla.models.tables import TipoTicket, Usuario


@pytest.fixture
def scenario_ids(container):
    """Usuario 3 y tipo de ticket 5 con precio 0.44."""
    with container.database.transaction() as session:
        session.add(Usuario(id=3, nombre='Caja Tres', usuario='caja3', password='x', rol='vendedor'))
        session.add(TipoTicket(id=5, nombre='General Promo', precio=0.44))
    return 3, 5


def test_create_sale_returns_receipt(container, scenario_ids):
    user_id, type_id = scenario_ids
    receipt = container.sales_service.create_sale(
        user_id=user_id, ticket_type_id=type_id, total_amount=0.44, qr_code='ticket-general-ab12-xy34',
    )

    assert receipt.sale_id > 0
    assert receipt.qr_code == 'ticket-general-ab12-xy34'
    assert receipt.ticket_type_id == 5
    assert receipt.price == 0.44
    assert isinstance(receipt.created_at, datetime)

    ticket = container.sales_service.get_ticket_by_qr('ticket-general-ab12-xy34')
    assert ticket['venta_id'] == receipt.sale_id
    assert ticket['precio'] == 0.44
    assert ticket['impreso'] == 0 and ticket['usado'] == 0 and ticket['anulado'] == 0


def test_duplicate_qr_is_rejected_without_new_rows(container, scenario_ids):
    user_id, type_id = scenario_ids
    container.sales_service.create_sale(user_id, type_id, 0.44, 'ticket-general-ab12-xy34')
    ventas, tickets = count_rows(container, 'ventas'), count_rows(container, 'tickets')

    with pytest.raises(UniquenessError) as exc:
        container.sales_service.create_sale(user_id, type_id, 0.44, 'ticket-general-ab12-xy34')

    assert exc.value.field == 'codigo_qr'
    assert 'ya existe' in str(exc.value)
    assert count_rows(container, 'ventas') == ventas
    assert count_rows(container, 'tickets') == tickets


@pytest.mark.parametrize('total, qr', [
    (0, 'ticket-general-ab12-xy34'),
    (-3, 'ticket-general-ab12-xy34'),
    ('abc', 'ticket-general-ab12-xy34'),
    (float('inf'), 'ticket-general-ab12-xy34'),
    (float('nan'), 'ticket-general-ab12-xy34'),
    (0.444, 'ticket-general-ab12-xy34'),
    (5, ''),
    (5, 'ticket-general-ab12'),
    (5, 'ticket-general-extra-ab12-xy34'),
])
def test_invalid_input_is_rejected_before_writing(container, seller, ticket_type, total, qr):
    with pytest.raises(ValidationError):
        container.sales_service.create_sale(seller['id'], ticket_type['id'], total, qr)
    assert count_rows(container, 'ventas') == 0


def test_qr_with_empty_type_part_is_accepted(container, seller):
    # el nombre '***' no deja letras ni dígitos en el código generado
    tipo = container.ticket_type_service.create({'nombre': '***', 'precio': 3.0})

    receipt = container.sales_service.create_sale(seller['id'], tipo['id'], 3.0, 'ticket--ab12cd34-xy34ab')

    assert receipt.qr_code == 'ticket--ab12cd34-xy34ab'
    assert count_rows(container, 'tickets') == 1


def test_amount_is_stored_as_charged(container, seller, ticket_type):
    receipt = container.sales_service.create_sale(seller['id'], ticket_type['id'], '7.5', 'ticket-general-0001-xy34')
    assert receipt.price == 7.5
    assert container.sales_service.get_sale(receipt.sale_id)['total'] == 7.5


def test_unknown_or_inactive_ticket_type(container, seller, ticket_type):
    with pytest.raises(NotFoundError):
        container.sales_service.create_sale(seller['id'], 999, 5, 'ticket-x-ab12-xy34')

    container.ticket_type_service.set_active(ticket_type['id'], False)
    with pytest.raises(ValidationError):
        container.sales_service.create_sale(seller['id'], ticket_type['id'], 5, 'ticket-x-ab12-xy34')
    assert count_rows(container, 'ventas') == 0


def test_unknown_user(container, ticket_type):
    with pytest.raises(NotFoundError):
        container.sales_service.create_sale(999, ticket_type['id'], 5, 'ticket-x-ab12-xy34')


def test_door_code_is_stored_on_ticket(container, seller, ticket_type):
    receipt = container.sales_service.create_sale(
        seller['id'], ticket_type['id'], 5, 'ticket-norte-ab12-xy34', door_code='NORTE',
    )
    assert receipt.door_code == 'NORTE'
    assert container.sales_service.get_ticket_by_qr('ticket-norte-ab12-xy34')['puerta_codigo'] == 'NORTE'


def test_daily_and_admin_listings(container, seller, ticket_type):
    first = sell(container, seller['id'], ticket_type['id'], 'ticket-a-0001-xy34')
    second = sell(container, seller['id'], ticket_type['id'], 'ticket-b-0002-xy34')
    container.ticket_service.annul_sale(first.sale_id)

    daily = container.sales_service.list_daily_sales(seller['id'])
    assert [row['id'] for row in daily] == [second.sale_id]
    assert daily[0]['tipo_ticket'] == 'General'
    assert daily[0]['codigo_qr'] == 'ticket-b-0002-xy34'
    assert isinstance(daily[0]['fecha_venta'], str)

    admin_view = container.sales_service.list_all_sales()
    assert [row['id'] for row in admin_view] == [second.sale_id]
    assert admin_view[0]['vendedor'] == 'Vendedor Uno'
    assert admin_view[0]['impreso'] == 1


def test_get_sale_includes_tickets(container, seller, ticket_type):
    receipt = sell(container, seller['id'], ticket_type['id'], 'ticket-a-0001-xy34', printed=False)
    venta = container.sales_service.get_sale(receipt.sale_id)
    assert venta['total'] == 5.0
    assert [t['codigo_qr'] for t in venta['tickets']] == ['ticket-a-0001-xy34']

    with pytest.raises(NotFoundError):
        container.sales_service.get_sale(12345)


def test_get_ticket_by_unknown_qr(container):
    assert container.sales_service.get_ticket_by_qr('no-existe-ab12-xy34') is None
