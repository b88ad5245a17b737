# ==============================================================================
# CONFIGURACIÓN
# ==============================================================================
# Toda la configuración sale de variables de entorno. Si existe un archivo
# .env en el directorio de trabajo se carga primero (python-dotenv).
#
# VARIABLES:
#   TAQUILLA_DB_PATH               → Archivo SQLite (default: taquilla.db)
#   TAQUILLA_SECRET_KEY            → Clave de sesión Flask
#   TAQUILLA_LOG_LEVEL             → DEBUG / INFO / WARNING (default: INFO)
#   TAQUILLA_AUDIT_RETENTION_DAYS  → Días de retención de config_logs (90)
#   TAQUILLA_BACKUP_DIR            → Carpeta de backups ZIP
#   TAQUILLA_MAX_BACKUPS           → Backups a conservar (7)
#   TAQUILLA_ADMIN_PASSWORD        → Contraseña del admin inicial
#   FLASK_HOST / FLASK_PORT / FLASK_DEBUG
# ==============================================================================

import logging
import os
from dataclasses import dataclass
from typing import Optional

from dotenv import load_dotenv

logger = logging.getLogger(__name__)

_DEFAULT_SECRET = "taquilla_dev_secret_key_change_in_production"

LOG_FORMAT = '%(asctime)s - %(name)s - %(levelname)s - %(message)s'


@dataclass
class Settings:
    """Configuración de la aplicación."""
    db_path: str
    secret_key: str = _DEFAULT_SECRET
    log_level: str = 'INFO'
    audit_retention_days: int = 90
    backup_dir: Optional[str] = None
    max_backups: int = 7
    admin_password: str = 'admin123'
    host: str = '127.0.0.1'
    port: int = 5000
    debug: bool = False

    @property
    def resolved_backup_dir(self) -> str:
        """Carpeta de backups; por defecto junto al archivo de la base."""
        if self.backup_dir:
            return self.backup_dir
        base = os.path.dirname(os.path.abspath(self.db_path))
        return os.path.join(base, 'backups')


def _env_int(name: str, default: int) -> int:
    raw = os.environ.get(name)
    if raw is None or raw.strip() == '':
        return default
    try:
        return int(raw)
    except ValueError:
        logger.warning(f"Variable {name} inválida ({raw!r}), usando {default}")
        return default


def load_settings(env_file: Optional[str] = None) -> Settings:
    """
    Construye Settings desde el entorno.

    Args:
        env_file: Ruta a un .env alternativo (opcional)

    Returns:
        Settings con los valores resueltos
    """
    load_dotenv(env_file)

    secret = os.environ.get('TAQUILLA_SECRET_KEY')
    if not secret:
        logger.warning("TAQUILLA_SECRET_KEY no definida, usando clave de desarrollo")

    return Settings(
        db_path=os.environ.get('TAQUILLA_DB_PATH', os.path.join(os.getcwd(), 'taquilla.db')),
        secret_key=secret or _DEFAULT_SECRET,
        log_level=os.environ.get('TAQUILLA_LOG_LEVEL', 'INFO').upper(),
        audit_retention_days=_env_int('TAQUILLA_AUDIT_RETENTION_DAYS', 90),
        backup_dir=os.environ.get('TAQUILLA_BACKUP_DIR') or None,
        max_backups=_env_int('TAQUILLA_MAX_BACKUPS', 7),
        admin_password=os.environ.get('TAQUILLA_ADMIN_PASSWORD', 'admin123'),
        host=os.environ.get('FLASK_HOST', '127.0.0.1'),
        port=_env_int('FLASK_PORT', 5000),
        debug=os.environ.get('FLASK_DEBUG', '0') == '1',
    )


def configure_logging(level: str = 'INFO') -> None:
    """Configura el logging raíz con el formato estándar del proyecto."""
    logging.basicConfig(level=getattr(logging, level.upper(), logging.INFO), format=LOG_FORMAT)
