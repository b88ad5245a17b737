# -*- coding: utf-8 -*-
"""
Tests del motor de migraciones sobre bases nuevas y bases antiguas.

Las bases antiguas se arman con sqlite3 directamente, con el esquema que
tenían las versiones previas del sistema.
"""
import os
import sqlite3

import pytest
from sqlalchemy import text

from taquilla.database import Database
from taquilla.errors import SchemaError
from taquilla.migrations import MIGRATIONS, MigrationEngine, column_names, index_exists, table_exists
from taquilla.models.tables import CIERRE_UNICO_INDEX
from taquilla.services.backup_service import BackupService

LEGACY_SCHEMA = """
CREATE TABLE usuarios (
    id INTEGER PRIMARY KEY, nombre TEXT NOT NULL, usuario TEXT UNIQUE NOT NULL,
    password TEXT NOT NULL, rol TEXT NOT NULL DEFAULT 'vendedor',
    activo BOOLEAN NOT NULL DEFAULT 1, fecha_creacion DATETIME DEFAULT CURRENT_TIMESTAMP
);
CREATE TABLE puertas (
    id INTEGER PRIMARY KEY, nombre TEXT UNIQUE NOT NULL, codigo TEXT UNIQUE NOT NULL,
    activo BOOLEAN NOT NULL DEFAULT 1, fecha_creacion DATETIME DEFAULT CURRENT_TIMESTAMP
);
CREATE TABLE tipos_ticket (
    id INTEGER PRIMARY KEY, nombre TEXT UNIQUE NOT NULL, precio REAL NOT NULL,
    puerta_id INTEGER REFERENCES puertas (id), activo BOOLEAN NOT NULL DEFAULT 1,
    fecha_creacion DATETIME DEFAULT CURRENT_TIMESTAMP
);
CREATE TABLE ventas (
    id INTEGER PRIMARY KEY, usuario_id INTEGER NOT NULL REFERENCES usuarios (id),
    total REAL NOT NULL, fecha_venta DATETIME DEFAULT CURRENT_TIMESTAMP{ventas_extra}
);
CREATE TABLE tickets (
    id INTEGER PRIMARY KEY, venta_id INTEGER NOT NULL REFERENCES ventas (id),
    tipo_ticket_id INTEGER NOT NULL REFERENCES tipos_ticket (id),
    codigo_qr TEXT UNIQUE NOT NULL, puerta_codigo TEXT, precio REAL NOT NULL,
    fecha_creacion DATETIME DEFAULT CURRENT_TIMESTAMP
);
CREATE TABLE cierres_caja (
    id INTEGER PRIMARY KEY, usuario_id INTEGER NOT NULL REFERENCES usuarios (id),
    fecha_inicio DATETIME NOT NULL, fecha_cierre DATETIME,
    total_ventas REAL DEFAULT 0, cantidad_tickets INTEGER DEFAULT 0, detalle_tipos TEXT
);
CREATE TABLE config_relay (
    id INTEGER PRIMARY KEY, ip TEXT NOT NULL, port INTEGER NOT NULL DEFAULT 80,
    timeout INTEGER NOT NULL DEFAULT 3000, reintentos INTEGER NOT NULL DEFAULT 3
);
CREATE TABLE botones_tickets (
    id INTEGER PRIMARY KEY, input_numero INTEGER UNIQUE NOT NULL,
    tipo_ticket_id INTEGER REFERENCES tipos_ticket (id),
    activo BOOLEAN NOT NULL DEFAULT 1, fecha_actualizacion DATETIME
);
{config_logs}
"""

LEGACY_CONFIG_LOGS = """
CREATE TABLE config_logs (
    id INTEGER PRIMARY KEY, accion TEXT NOT NULL, tabla_afectada TEXT NOT NULL,
    registro_id INTEGER, descripcion TEXT NOT NULL, datos_anteriores TEXT,
    datos_nuevos TEXT, fecha DATETIME, ip_address TEXT
);
CREATE INDEX idx_config_logs_tabla ON config_logs (tabla_afectada);
INSERT INTO config_logs (accion, tabla_afectada, registro_id, descripcion, datos_nuevos, fecha)
VALUES ('crear', 'puertas', 1, 'Puerta creada', '{"id": 1}', '2024-01-05 10:00:00');
"""

CURRENT_CONFIG_LOGS_WITHOUT_AUTHOR = """
CREATE TABLE config_logs (
    id INTEGER PRIMARY KEY, accion TEXT NOT NULL, tabla_afectada TEXT NOT NULL,
    registro_id INTEGER, descripcion TEXT NOT NULL, datos_anteriores TEXT,
    datos_nuevos TEXT, fecha_hora DATETIME NOT NULL DEFAULT CURRENT_TIMESTAMP, ip_address TEXT
);
INSERT INTO config_logs (accion, tabla_afectada, registro_id, descripcion, datos_nuevos)
VALUES ('crear', 'puertas', 1, 'Puerta creada', '{"id": 1}');
"""

BROKEN_CONFIG_LOGS = """
CREATE TABLE config_logs (id INTEGER PRIMARY KEY, accion TEXT, fecha DATETIME);
INSERT INTO config_logs (accion, fecha) VALUES ('crear', '2024-01-05 10:00:00');
"""

LEGACY_DATA = """
INSERT INTO usuarios (id, nombre, usuario, password, rol) VALUES (1, 'Admin', 'admin', 'x', 'admin');
INSERT INTO puertas (id, nombre, codigo) VALUES (1, 'Entrada', 'ENT');
INSERT INTO tipos_ticket (id, nombre, precio, puerta_id) VALUES (1, 'General', 5, 1);
INSERT INTO ventas (id, usuario_id, total) VALUES (1, 1, 5);
INSERT INTO tickets (id, venta_id, tipo_ticket_id, codigo_qr, precio)
VALUES (1, 1, 1, 'ticket-general-0001-abcd', 5);
INSERT INTO config_relay (id, ip) VALUES (1, '192.168.3.200');
INSERT INTO botones_tickets (input_numero, tipo_ticket_id) VALUES (1, 1);
INSERT INTO cierres_caja (id, usuario_id, fecha_inicio, total_ventas) VALUES (1, 1, '2024-01-05 08:00:00', 10);
INSERT INTO cierres_caja (id, usuario_id, fecha_inicio, total_ventas) VALUES (2, 1, '2024-01-05 20:00:00', 12);
INSERT INTO cierres_caja (id, usuario_id, fecha_inicio, total_ventas) VALUES (3, 1, '2024-01-06 08:00:00', 7);
"""


def build_legacy_db(path, config_logs=LEGACY_CONFIG_LOGS, with_anulada=True):
    ventas_extra = ', anulada BOOLEAN NOT NULL DEFAULT 0' if with_anulada else ''
    conn = sqlite3.connect(path)
    try:
        conn.executescript(LEGACY_SCHEMA.format(ventas_extra=ventas_extra, config_logs=config_logs))
        conn.executescript(LEGACY_DATA)
        conn.commit()
    finally:
        conn.close()


@pytest.fixture
def legacy_path(tmp_path):
    path = str(tmp_path / 'legacy.db')
    build_legacy_db(path)
    return path


@pytest.fixture
def open_database():
    opened = []

    def _open(path):
        database = Database(path)
        opened.append(database)
        return database

    yield _open
    for database in opened:
        database.close()


def _schema_objects(database):
    with database.connection() as conn:
        return conn.execute(text("SELECT type, name, sql FROM sqlite_master ORDER BY name")).all()


def test_rerun_on_current_schema_is_noop(container):
    engine = container.migration_engine
    before = _schema_objects(container.database)

    report = engine.run()

    assert report.applied == []
    assert report.skipped == [v for v, _, _ in MIGRATIONS]
    assert engine.current_version() == MIGRATIONS[-1][0]
    assert _schema_objects(container.database) == before
    engine.verify_schema()


def test_legacy_database_is_upgraded(legacy_path, open_database):
    database = open_database(legacy_path)
    engine = MigrationEngine(database)

    report = engine.run()

    assert report.failed == []
    assert report.applied == [v for v, _, _ in MIGRATIONS]
    engine.verify_schema()

    with database.connection() as conn:
        assert {'impreso', 'usado', 'anulado', 'fecha_uso'} <= column_names(conn, 'tickets')
        assert {'relay_number', 'lector_ip', 'tiempo_apertura_segundos'} <= column_names(conn, 'puertas')
        assert {'modo_rele1', 'modo_rele4'} <= column_names(conn, 'config_relay')
        assert {'cantidad', 'descripcion'} <= column_names(conn, 'botones_tickets')

        ticket = conn.execute(text("SELECT impreso, usado, anulado FROM tickets WHERE id = 1")).one()
        assert tuple(ticket) == (0, 0, 0)
        assert conn.execute(text("SELECT modo_rele1 FROM config_relay")).scalar() == 'NA'
        assert conn.execute(text("SELECT cantidad FROM botones_tickets")).scalar() == 1


def test_duplicate_closures_keep_latest_row(legacy_path, open_database):
    database = open_database(legacy_path)
    MigrationEngine(database).run()

    with database.connection() as conn:
        rows = conn.execute(text("SELECT id, total_ventas FROM cierres_caja ORDER BY id")).all()
        assert [tuple(r) for r in rows] == [(2, 12.0), (3, 7.0)]
        assert index_exists(conn, CIERRE_UNICO_INDEX)
        assert not table_exists(conn, 'cierres_caja_new')


def test_config_logs_are_copied_with_new_date_column(legacy_path, open_database):
    database = open_database(legacy_path)
    MigrationEngine(database).run()

    with database.connection() as conn:
        assert 'fecha_hora' in column_names(conn, 'config_logs')
        assert not table_exists(conn, 'config_logs_archivo')
        row = conn.execute(text("SELECT descripcion, fecha_hora FROM config_logs")).one()
    assert row.descripcion == 'Puerta creada'
    assert row.fecha_hora == '2024-01-05 10:00:00'


def test_failed_log_copy_still_drops_archive(tmp_path, open_database):
    path = str(tmp_path / 'broken.db')
    build_legacy_db(path, config_logs=BROKEN_CONFIG_LOGS)
    database = open_database(path)

    report = MigrationEngine(database).run()

    assert 7 in report.applied
    with database.connection() as conn:
        assert not table_exists(conn, 'config_logs_archivo')
        assert 'fecha_hora' in column_names(conn, 'config_logs')
        assert conn.execute(text("SELECT COUNT(*) FROM config_logs")).scalar() == 0


def test_failed_migration_is_retried_on_next_run(tmp_path, open_database):
    database = open_database(str(tmp_path / 'custom.db'))
    calls = []

    def create_a(conn):
        conn.execute(text("CREATE TABLE a (id INTEGER)"))

    def broken(conn):
        conn.execute(text("CREATE TABLE b (id INTEGER)"))
        raise RuntimeError('fallo a mitad de camino')

    def create_c(conn):
        conn.execute(text("CREATE TABLE c (id INTEGER)"))

    def fixed(conn):
        calls.append('fixed')
        conn.execute(text("CREATE TABLE b (id INTEGER)"))

    report = MigrationEngine(database, migrations=[(1, 'a', create_a), (2, 'b', broken), (3, 'c', create_c)]).run()
    assert report.applied == [1, 3]
    assert report.failed == [2]
    assert not report.ok
    with database.connection() as conn:
        assert not table_exists(conn, 'b')

    engine = MigrationEngine(database, migrations=[(1, 'a', create_a), (2, 'b', fixed), (3, 'c', create_c)])
    retry = engine.run()
    assert retry.applied == [2]
    assert retry.skipped == [1, 3]
    assert calls == ['fixed']
    assert engine.applied_versions() == {1, 2, 3}


def test_missing_required_column_fails_verification(tmp_path, open_database):
    path = str(tmp_path / 'sin_anulada.db')
    build_legacy_db(path, with_anulada=False)
    database = open_database(path)
    engine = MigrationEngine(database)
    engine.run()

    with pytest.raises(SchemaError) as exc:
        engine.verify_schema()
    assert 'ventas.anulada' in str(exc.value)


def test_pre_migration_backup_only_for_existing_file(legacy_path, tmp_path, open_database):
    backup_dir = str(tmp_path / 'backups')
    backups = BackupService(legacy_path, backup_dir)
    MigrationEngine(open_database(legacy_path), backups).run()

    names = os.listdir(backup_dir)
    assert len(names) == 1
    assert names[0].startswith('premigracion_')

    fresh_path = str(tmp_path / 'nueva.db')
    fresh_dir = str(tmp_path / 'backups_nueva')
    MigrationEngine(open_database(fresh_path), BackupService(fresh_path, fresh_dir)).run()
    assert os.listdir(fresh_dir) == []


def test_author_columns_added_to_existing_log_table(tmp_path, open_database):
    path = str(tmp_path / 'sin_autor.db')
    build_legacy_db(path, config_logs=CURRENT_CONFIG_LOGS_WITHOUT_AUTHOR)
    database = open_database(path)
    engine = MigrationEngine(database)

    report = engine.run()

    assert 9 in report.applied
    engine.verify_schema()
    with database.connection() as conn:
        assert {'usuario_id', 'usuario_nombre'} <= column_names(conn, 'config_logs')
        row = conn.execute(text("SELECT descripcion, usuario_id, usuario_nombre FROM config_logs")).one()
    assert tuple(row) == ('Puerta creada', None, None)
