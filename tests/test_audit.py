# -*- coding: utf-8 -*-
"""
Tests de la auditoría de configuración: forma de las entradas, consultas,
historial, retención y escritura best-effort.
"""
import logging
from datetime import datetime, timedelta

import pytest

from conftest import count_rows
from taquilla.errors import ValidationError
from taquilla.models.entities import AccionLog, TablaLog


def _old_entry(app_container, days_ago, registro_id=1):
    with app_container.database.transaction() as session:
        app_container.audit_repo.log(
            session, accion='crear', tabla='puertas', registro_id=registro_id,
            descripcion='entrada antigua', datos_anteriores=None, datos_nuevos='{"id": 1}',
            fecha_hora=datetime.now().replace(microsecond=0) - timedelta(days=days_ago),
        )


def test_snapshot_shape_per_action(container):
    audit = container.audit_service
    created = audit.record('crear', 'puertas', 1, 'alta', after={'id': 1, 'nombre': 'Norte'})
    modified = audit.record(AccionLog.MODIFICAR, TablaLog.PUERTAS, 1, 'cambio',
                            before={'nombre': 'Norte'}, after={'nombre': 'Sur'}, ip_address='10.0.0.5')
    deleted = audit.record('eliminar', 'puertas', 1, 'baja', before={'id': 1})

    entries = {e.id: e for e in audit.list_logs()}
    assert entries[created].before is None and entries[created].after == {'id': 1, 'nombre': 'Norte'}
    assert entries[modified].before == {'nombre': 'Norte'}
    assert entries[modified].after == {'nombre': 'Sur'}
    assert entries[modified].ip_address == '10.0.0.5'
    assert entries[deleted].after is None and entries[deleted].before == {'id': 1}


@pytest.mark.parametrize('accion, tabla, before, after', [
    ('borrar', 'puertas', None, {'id': 1}),
    ('crear', 'usuarios', None, {'id': 1}),
    ('crear', 'puertas', {'id': 1}, {'id': 1}),
    ('crear', 'puertas', None, None),
    ('eliminar', 'puertas', None, None),
    ('modificar', 'puertas', {'id': 1}, None),
])
def test_invalid_entries_are_rejected(container, accion, tabla, before, after):
    with pytest.raises(ValidationError):
        container.audit_service.record(accion, tabla, 1, 'x', before=before, after=after)
    assert count_rows(container, 'config_logs') == 0


def test_door_crud_leaves_audit_trail(container, door):
    container.door_service.update(door['id'], {'descripcion': 'Acceso principal'}, ip_address='10.0.0.9')

    history = container.audit_service.history_of('puertas', door['id'])
    assert [e.accion for e in history] == ['crear', 'modificar']
    assert history[1].ip_address == '10.0.0.9'
    assert history[1].changes() == {
        'descripcion': {'antes': None, 'despues': 'Acceso principal'},
    }


def test_filters_pagination_and_count(container, door, ticket_type):
    container.relay_service.update({'ip': '192.168.3.201'})
    audit = container.audit_service

    assert audit.count_logs() == 3
    assert [e.tabla_afectada for e in audit.list_logs()] == ['config_relay', 'tipos_ticket', 'puertas']
    assert [e.tabla_afectada for e in audit.list_logs(limit=1, offset=1)] == ['tipos_ticket']

    assert audit.count_logs(tabla='puertas') == 1
    assert audit.count_logs(accion='modificar') == 1
    today = datetime.now().date()
    assert audit.count_logs(fecha_desde=today, fecha_hasta=today) == 3
    assert audit.count_logs(fecha_hasta=today - timedelta(days=1)) == 0


def test_stats_group_by_table_and_action(container, door):
    container.door_service.set_active(door['id'], False)
    container.door_service.set_active(door['id'], True)

    stats = container.audit_service.stats_by_table_and_action()
    totals = {(row['tabla_afectada'], row['accion']): row['total'] for row in stats}
    assert totals == {('puertas', 'crear'): 1, ('puertas', 'modificar'): 2}
    assert all(row['ultima_modificacion'] is not None for row in stats)


def test_purge_removes_only_old_entries(container, door):
    _old_entry(container, days_ago=120)
    _old_entry(container, days_ago=10)

    assert container.audit_service.purge_older_than(90) == 1
    assert container.audit_service.count_logs() == 2
    assert container.audit_service.purge_older_than() == 0

    with pytest.raises(ValidationError):
        container.audit_service.purge_older_than(-1)


def test_audit_failure_does_not_undo_change(container, monkeypatch, caplog):
    def broken_log(*args, **kwargs):
        raise RuntimeError('disco lleno')

    monkeypatch.setattr(container.audit_repo, 'log', broken_log)

    with caplog.at_level(logging.ERROR):
        puerta = container.door_service.create({'nombre': 'Entrada Sur', 'codigo': 'SUR'})

    assert container.door_service.get(puerta['id'])['codigo'] == 'SUR'
    assert count_rows(container, 'config_logs') == 0
    assert 'No se pudo registrar la auditoría' in caplog.text


def test_legacy_non_json_snapshot_is_readable(container):
    with container.database.transaction() as session:
        container.audit_repo.log(
            session, accion='modificar', tabla='config_relay', registro_id=1,
            descripcion='texto viejo', datos_anteriores='ip=1.1.1.1', datos_nuevos='{"ip": "2.2.2.2"}',
            fecha_hora=datetime.now().replace(microsecond=0),
        )

    entry = container.audit_service.history_of('config_relay', 1)[0]
    assert entry.before == {'raw': 'ip=1.1.1.1'}
    assert entry.to_dict()['datos_nuevos'] == {'ip': '2.2.2.2'}


def test_entries_record_who_made_the_change(container, door):
    admin = {'id': 1, 'nombre': 'Administrador'}
    container.door_service.update(door['id'], {'descripcion': 'Lateral'}, ip_address='10.0.0.7', usuario=admin)
    container.relay_service.update({'reintentos': 4}, usuario=admin)

    modified = container.audit_service.history_of('puertas', door['id'])[-1]
    assert (modified.usuario_id, modified.usuario_nombre) == (1, 'Administrador')
    assert modified.to_dict()['usuario_nombre'] == 'Administrador'

    relay = container.audit_service.list_logs(tabla='config_relay')[0]
    assert relay.usuario_id == 1
    assert relay.ip_address is None

    # la entrada de alta del fixture no trae usuario
    created = container.audit_service.history_of('puertas', door['id'])[0]
    assert created.usuario_id is None and created.usuario_nombre is None
