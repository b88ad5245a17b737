# -*- coding: utf-8 -*-
"""
Tests de la API JSON: sesión, permisos y traducción de errores a HTTP.
"""
import pytest

from taquilla.main import create_app


@pytest.fixture
def client(container):
    app = create_app(container)
    app.config['TESTING'] = True
    return app.test_client()


def login(client, usuario, password):
    return client.post('/api/login', json={'usuario': usuario, 'password': password})


@pytest.fixture
def admin_client(client):
    assert login(client, 'admin', 'admin123').status_code == 200
    return client


def test_login_and_logout(client, seller):
    assert login(client, 'vendedor1', 'mala').status_code == 401

    response = login(client, 'vendedor1', 'clave123')
    assert response.status_code == 200
    assert response.get_json()['usuario']['usuario'] == 'vendedor1'
    assert client.get('/api/ventas/hoy').status_code == 200

    client.post('/api/logout')
    assert client.get('/api/ventas/hoy').status_code == 401


def test_routes_require_session_and_role(client, seller):
    assert client.post('/api/ventas', json={}).get_json() == {'ok': False, 'error': 'Debes iniciar sesión.'}
    assert client.get('/api/usuarios').status_code == 401

    login(client, 'vendedor1', 'clave123')
    assert client.get('/api/usuarios').status_code == 403
    assert client.get('/api/config-logs').status_code == 403


def test_sale_flow_over_http(client, seller, ticket_type):
    login(client, 'vendedor1', 'clave123')
    payload = {'tipo_ticket_id': ticket_type['id'], 'total': 5, 'codigo_qr': 'ticket-general-ab12-xy34'}

    created = client.post('/api/ventas', json=payload)
    assert created.status_code == 201
    venta = created.get_json()['venta']
    assert venta['qr_code'] == 'ticket-general-ab12-xy34'

    duplicate = client.post('/api/ventas', json=payload)
    assert duplicate.status_code == 409
    assert duplicate.get_json()['campo'] == 'codigo_qr'

    printed = client.post(f"/api/ventas/{venta['sale_id']}/impreso")
    assert printed.get_json()['actualizados'] == 1

    summary = client.get('/api/cierres/resumen').get_json()['resumen']
    assert summary['total_ventas'] == 5.0

    cierre = client.post('/api/cierres', json={}).get_json()['cierre']
    assert cierre['action'] == 'created'


def test_error_status_codes(client, seller, ticket_type):
    login(client, 'vendedor1', 'clave123')

    invalid = client.post('/api/ventas', json={'tipo_ticket_id': ticket_type['id'], 'total': 5, 'codigo_qr': 'malo'})
    assert invalid.status_code == 400
    assert invalid.get_json()['ok'] is False

    assert client.get('/api/ventas/9999').status_code == 404
    assert client.get('/api/tickets/qr/no-existe-ab12-xy34').status_code == 404

    client.post('/api/ventas', json={'tipo_ticket_id': ticket_type['id'], 'total': 5, 'codigo_qr': 'ticket-a-0001-xy34'})
    ticket = client.get('/api/tickets/qr/ticket-a-0001-xy34').get_json()['ticket']
    assert client.post(f"/api/tickets/{ticket['id']}/usar").status_code == 200
    assert client.post(f"/api/tickets/{ticket['id']}/anular").status_code == 403

    login(client, 'admin', 'admin123')
    rejected = client.post(f"/api/tickets/{ticket['id']}/anular")
    assert rejected.status_code == 422
    assert 'usado' in rejected.get_json()['error']


def test_admin_configuration_endpoints(admin_client):
    created = admin_client.post('/api/puertas', json={'nombre': 'Entrada Oeste', 'codigo': 'oeste', 'relay_number': 2})
    assert created.status_code == 201
    door_id = created.get_json()['puerta']['id']

    conflict = admin_client.post('/api/puertas', json={'nombre': 'Entrada Este', 'codigo': 'ESTE', 'relay_number': 2})
    assert conflict.status_code == 409
    assert conflict.get_json()['campo'] == 'relay_number'

    relay = admin_client.put('/api/relay', json={'reintentos': 5})
    assert relay.get_json()['relay']['reintentos'] == 5

    deleted = admin_client.delete(f'/api/puertas/{door_id}')
    assert deleted.get_json() == {'ok': True, 'deleted': True, 'deactivated': False}

    logs = admin_client.get('/api/config-logs?limit=2').get_json()
    assert logs['total'] == 3
    assert len(logs['logs']) == 2
    assert logs['logs'][0]['accion'] == 'eliminar'

    historial = admin_client.get(f'/api/config-logs/historial/puertas/{door_id}').get_json()['historial']
    assert [h['accion'] for h in historial] == ['crear', 'eliminar']

    assert admin_client.get('/api/config-logs?limit=abc').status_code == 400
    assert admin_client.get('/api/config-logs/stats').get_json()['ok'] is True


def test_admin_cannot_delete_self(admin_client):
    admin_id = admin_client.get('/api/usuarios').get_json()['usuarios'][0]['id']
    assert admin_client.delete(f'/api/usuarios/{admin_id}').status_code == 400


def test_malformed_dates_and_days_are_validation_errors(admin_client):
    assert admin_client.get('/api/cierres/fecha/no-es-fecha').status_code == 400
    assert admin_client.get('/api/config-logs?desde=ayer').status_code == 400
    assert admin_client.get('/api/cierres/resumen?fecha=2024-13-40').status_code == 400

    purge = admin_client.post('/api/config-logs/purgar', json={'dias': 'x'})
    assert purge.status_code == 400
    assert 'entero' in purge.get_json()['error']
    assert admin_client.post('/api/config-logs/purgar', json={'dias': -1}).status_code == 400
    assert admin_client.post('/api/config-logs/purgar', json={'dias': 0}).get_json()['ok'] is True


def test_config_changes_are_attributed_to_session_user(admin_client):
    admin = admin_client.get('/api/usuarios').get_json()['usuarios'][0]
    admin_client.post('/api/puertas', json={'nombre': 'Entrada Sur', 'codigo': 'sur'})

    entry = admin_client.get('/api/config-logs?tabla=puertas').get_json()['logs'][0]
    assert entry['usuario_id'] == admin['id']
    assert entry['usuario_nombre'] == admin['nombre']
    assert entry['ip_address'] == '127.0.0.1'
