# -*- coding: utf-8 -*-
"""
Tests de configuración por entorno y de la traducción de errores UNIQUE.
"""
import os

from taquilla.config import Settings, load_settings
from taquilla.errors import unique_violation_target


def test_load_settings_from_environment(monkeypatch, tmp_path):
    monkeypatch.setenv('TAQUILLA_DB_PATH', str(tmp_path / 'otra.db'))
    monkeypatch.setenv('TAQUILLA_SECRET_KEY', 'clave')
    monkeypatch.setenv('TAQUILLA_LOG_LEVEL', 'debug')
    monkeypatch.setenv('TAQUILLA_AUDIT_RETENTION_DAYS', '30')
    monkeypatch.setenv('TAQUILLA_MAX_BACKUPS', 'muchos')
    monkeypatch.setenv('FLASK_PORT', '8080')
    monkeypatch.setenv('FLASK_DEBUG', '1')

    settings = load_settings(env_file=str(tmp_path / 'no_existe.env'))

    assert settings.db_path == str(tmp_path / 'otra.db')
    assert settings.secret_key == 'clave'
    assert settings.log_level == 'DEBUG'
    assert settings.audit_retention_days == 30
    assert settings.max_backups == 7
    assert settings.port == 8080
    assert settings.debug is True


def test_env_file_is_loaded(monkeypatch, tmp_path):
    # setenv primero para que monkeypatch restaure el entorno al terminar
    monkeypatch.setenv('TAQUILLA_ADMIN_PASSWORD', 'previa')
    monkeypatch.delenv('TAQUILLA_ADMIN_PASSWORD')
    env_file = tmp_path / '.env'
    env_file.write_text('TAQUILLA_ADMIN_PASSWORD=desde-archivo\n')

    settings = load_settings(env_file=str(env_file))

    assert settings.admin_password == 'desde-archivo'


def test_backup_dir_defaults_next_to_database(tmp_path):
    settings = Settings(db_path=str(tmp_path / 'datos' / 'taquilla.db'))
    assert settings.resolved_backup_dir == os.path.join(str(tmp_path / 'datos'), 'backups')


def test_unique_violation_target():
    assert unique_violation_target(Exception('UNIQUE constraint failed: tickets.codigo_qr')) == 'codigo_qr'
    assert unique_violation_target(
        Exception("UNIQUE constraint failed: index 'ux_cierres_caja_usuario_fecha'")
    ) == 'ux_cierres_caja_usuario_fecha'
    assert unique_violation_target(Exception('NOT NULL constraint failed: tickets.precio')) is None
