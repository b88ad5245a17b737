# ==============================================================================
# SERVICIO DE BACKUPS
# ==============================================================================
# Copias ZIP del archivo SQLite.
#
# FORMATOS:
#   backup_YYYY-MM-DD.zip                 → backup diario (uno por día)
#   premigracion_YYYY-MM-DD_HHMMSS.zip    → antes de migrar una base existente
#
# Se conservan solo los últimos N de cada tipo (rotación automática).
# ==============================================================================

import logging
import os
import zipfile
from datetime import datetime
from typing import Any, Dict, List, Optional

logger = logging.getLogger(__name__)

DAILY_PREFIX = 'backup_'
PRE_MIGRATION_PREFIX = 'premigracion_'


class BackupService:
    """
    Servicio de backups del archivo de base de datos.

    Uso:
        backup_service = BackupService(db_path, backup_dir)
        backup_service.run_daily_backup()
    """

    MAX_BACKUPS = 7

    def __init__(self, db_path: str, backup_dir: str, max_backups: int = MAX_BACKUPS):
        """
        Args:
            db_path: Archivo SQLite a respaldar
            backup_dir: Carpeta donde se guardan los ZIP
            max_backups: Cantidad de backups a conservar por tipo
        """
        self.db_path = db_path
        self.backup_root = backup_dir
        self.max_backups = max_backups
        os.makedirs(self.backup_root, exist_ok=True)

    def _get_today_zip_path(self) -> str:
        today = datetime.now().strftime('%Y-%m-%d')
        return os.path.join(self.backup_root, f'{DAILY_PREFIX}{today}.zip')

    def _backup_exists_today(self) -> bool:
        zip_path = self._get_today_zip_path()
        return os.path.exists(zip_path) and os.path.getsize(zip_path) > 0

    def _get_existing_backups(self, prefix: str = DAILY_PREFIX) -> List[str]:
        """
        ZIPs de un tipo, ordenados del más reciente al más antiguo.

        Los nombres llevan la fecha (y hora) en orden lexicográfico, así que
        ordenar el nombre ordena por fecha.
        """
        if not os.path.exists(self.backup_root):
            return []
        backups = []
        for item in os.listdir(self.backup_root):
            if not (item.startswith(prefix) and item.endswith('.zip')):
                continue
            if not os.path.isfile(os.path.join(self.backup_root, item)):
                continue
            stamp = item[len(prefix):-4]
            try:
                datetime.strptime(stamp[:10], '%Y-%m-%d')
            except ValueError:
                continue
            backups.append(item)
        backups.sort(reverse=True)
        return backups

    def _zip_database(self, zip_path: str) -> None:
        with zipfile.ZipFile(zip_path, 'w', zipfile.ZIP_DEFLATED) as zf:
            zf.write(self.db_path, os.path.basename(self.db_path))

    def _delete_old_backups(self, prefix: str = DAILY_PREFIX) -> int:
        """Elimina los backups que exceden max_backups. Retorna cuántos borró."""
        deleted = 0
        for name in self._get_existing_backups(prefix)[self.max_backups:]:
            try:
                os.remove(os.path.join(self.backup_root, name))
                deleted += 1
                logger.info(f"Backup antiguo eliminado: {name}")
            except OSError as e:
                logger.error(f"No se pudo eliminar {name}: {e}")
        return deleted

    # =========================================================================
    # OPERACIONES
    # =========================================================================

    def create_backup(self, force: bool = False) -> Dict[str, Any]:
        """
        Crea el backup diario.

        Args:
            force: Rehacerlo aunque ya exista el de hoy

        Returns:
            Dict {success, message, backup_path}
        """
        zip_path = self._get_today_zip_path()
        if not force and self._backup_exists_today():
            return {'success': True, 'message': 'Backup del día ya existe', 'backup_path': zip_path}
        if not os.path.exists(self.db_path):
            return {'success': False, 'message': 'No existe la base de datos a respaldar', 'backup_path': None}

        try:
            self._zip_database(zip_path)
        except (OSError, zipfile.BadZipFile) as e:
            logger.error(f"Error al crear backup: {e}")
            if os.path.exists(zip_path):
                os.remove(zip_path)
            return {'success': False, 'message': f'Error al crear backup: {e}', 'backup_path': None}

        size_kb = round(os.path.getsize(zip_path) / 1024, 2)
        logger.info(f"Backup creado: {os.path.basename(zip_path)} ({size_kb} KB)")
        return {'success': True, 'message': f'Backup creado ({size_kb} KB)', 'backup_path': zip_path}

    def create_pre_migration_backup(self) -> Optional[str]:
        """
        Respaldo previo a migrar una base existente.

        Returns:
            Ruta del ZIP creado, o None si no había base que respaldar
        """
        if not os.path.exists(self.db_path) or os.path.getsize(self.db_path) == 0:
            return None
        stamp = datetime.now().strftime('%Y-%m-%d_%H%M%S')
        zip_path = os.path.join(self.backup_root, f'{PRE_MIGRATION_PREFIX}{stamp}.zip')
        self._zip_database(zip_path)
        logger.info(f"Backup previo a migración: {os.path.basename(zip_path)}")
        self._delete_old_backups(PRE_MIGRATION_PREFIX)
        return zip_path

    def rotate_backups(self) -> Dict[str, int]:
        deleted = self._delete_old_backups()
        return {'deleted_count': deleted, 'remaining_count': len(self._get_existing_backups())}

    def run_daily_backup(self) -> Dict[str, Any]:
        """Backup del día (si falta) + rotación."""
        return {'backup': self.create_backup(), 'rotation': self.rotate_backups()}

    def get_backup_status(self) -> Dict[str, Any]:
        """Resumen de los backups existentes."""
        backups = []
        for name in self._get_existing_backups():
            size = os.path.getsize(os.path.join(self.backup_root, name))
            backups.append({
                'filename': name,
                'date': name[len(DAILY_PREFIX):-4],
                'size_kb': round(size / 1024, 2),
            })
        return {
            'total_backups': len(backups),
            'max_backups': self.max_backups,
            'backup_root': self.backup_root,
            'backups': backups,
            'today_exists': self._backup_exists_today(),
        }
