# -*- coding: utf-8 -*-
"""
Tests de backups ZIP: backup diario, rotación y estado.
"""
import os
import zipfile
from datetime import datetime

from taquilla.services.backup_service import BackupService


def _fake_backup(folder, name):
    with zipfile.ZipFile(os.path.join(folder, name), 'w') as zf:
        zf.writestr('taquilla.db', b'')


def test_bootstrap_creates_daily_backup(container, settings):
    status = container.backup_service.get_backup_status()
    today = datetime.now().strftime('%Y-%m-%d')

    assert status['today_exists'] is True
    assert [b['date'] for b in status['backups']] == [today]
    with zipfile.ZipFile(os.path.join(settings.backup_dir, f'backup_{today}.zip')) as zf:
        assert zf.namelist() == ['taquilla.db']


def test_daily_backup_is_not_repeated(container):
    result = container.backup_service.create_backup()
    assert result['success'] is True
    assert result['message'] == 'Backup del día ya existe'

    forced = container.backup_service.create_backup(force=True)
    assert forced['message'].startswith('Backup creado')


def test_rotation_keeps_most_recent(container, settings):
    for day in ('2024-01-01', '2024-01-02', '2024-01-03', '2024-01-04'):
        _fake_backup(settings.backup_dir, f'backup_{day}.zip')
    _fake_backup(settings.backup_dir, 'backup_sin-fecha.zip')

    rotation = container.backup_service.rotate_backups()

    assert rotation == {'deleted_count': 2, 'remaining_count': 3}
    remaining = sorted(os.listdir(settings.backup_dir))
    assert 'backup_2024-01-04.zip' in remaining
    assert 'backup_2024-01-01.zip' not in remaining
    assert 'backup_sin-fecha.zip' in remaining


def test_missing_database_file(tmp_path):
    service = BackupService(str(tmp_path / 'no_existe.db'), str(tmp_path / 'backups'))
    result = service.create_backup()
    assert result['success'] is False
    assert service.create_pre_migration_backup() is None
