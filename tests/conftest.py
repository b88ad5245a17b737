# -*- coding: utf-8 -*-
"""
Fixtures comunes: cada test trabaja sobre una base SQLite nueva en tmp_path.
"""
import pytest
from sqlalchemy import text

from taquilla.app_container import AppContainer
from taquilla.config import Settings


@pytest.fixture
def settings(tmp_path):
    return Settings(
        db_path=str(tmp_path / 'taquilla.db'),
        secret_key='test-secret',
        backup_dir=str(tmp_path / 'backups'),
        max_backups=3,
        admin_password='admin123',
    )


@pytest.fixture
def container(settings):
    app_container = AppContainer(settings)
    app_container.bootstrap()
    yield app_container
    app_container.close()


@pytest.fixture
def seller(container):
    return container.user_service.create('Vendedor Uno', 'vendedor1', 'clave123')


@pytest.fixture
def door(container):
    return container.door_service.create({'nombre': 'Entrada Norte', 'codigo': 'norte', 'relay_number': 1})


@pytest.fixture
def ticket_type(container, door):
    return container.ticket_type_service.create({'nombre': 'General', 'precio': 5.0, 'puerta_id': door['id']})


def count_rows(app_container, table):
    with app_container.database.connection() as conn:
        return conn.execute(text(f"SELECT COUNT(*) FROM {table}")).scalar()


def sell(app_container, user_id, type_id, qr, total=5.0, printed=True):
    """Vende un ticket y opcionalmente lo marca impreso."""
    receipt = app_container.sales_service.create_sale(user_id, type_id, total, qr)
    if printed:
        app_container.ticket_service.mark_printed(receipt.sale_id)
    return receipt
